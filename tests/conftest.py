"""Shared fixtures: isolated config and a scripted terraform stand-in."""

import pytest

from out_of_capacity.config import ENV_VARS, Config


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep OOC_* variables from the outer environment out of tests."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def config(tmp_path):
    return Config(
        delay_seconds=0,
        max_retries=2,
        archive_threshold=5,
        workdir=tmp_path,
    )


class ScriptedRunner:
    """Returns scripted exit codes and records the domain of each call."""

    def __init__(self, returncodes, output=b"", on_call=None):
        self.returncodes = list(returncodes)
        self.output = output
        self.on_call = on_call
        self.domains = []

    def __call__(self, domain, sink):
        if not self.returncodes:
            raise AssertionError(f"unexpected call #{len(self.domains) + 1} for domain {domain}")
        self.domains.append(domain)
        if self.output:
            sink.write(self.output)
        if self.on_call is not None:
            self.on_call(len(self.domains), domain)
        return self.returncodes.pop(0)


@pytest.fixture
def scripted_runner():
    return ScriptedRunner
