"""Invoke terraform apply for one availability domain."""

import subprocess
from typing import BinaryIO, Callable

from out_of_capacity.config import Config
from out_of_capacity.constants import COMMAND_NOT_FOUND


# (domain, sink) -> exit code
CommandRunner = Callable[[int, BinaryIO], int]


def build_apply_command(config: Config, domain: int) -> list[str]:
    """terraform apply -var="<domain_var>=<domain>" -no-color -auto-approve"""
    return [
        config.terraform_bin,
        "apply",
        f"-var={config.domain_var}={domain}",
        *config.extra_args,
        "-no-color",
        "-auto-approve",
    ]


class TerraformRunner:
    """
    Run terraform apply with stdout and stderr appended to sink.

    Never raises for a missing binary: the error goes to the sink and
    127 is returned, so the run loop retries it like any other failure.
    """

    def __init__(self, config: Config):
        self.config = config

    def __call__(self, domain: int, sink: BinaryIO) -> int:
        cmd = build_apply_command(self.config, domain)
        sink.flush()
        try:
            result = subprocess.run(
                cmd,
                cwd=self.config.workdir,
                stdout=sink,
                stderr=subprocess.STDOUT,
                stdin=subprocess.DEVNULL,
            )
        except OSError as e:
            sink.write(f"{cmd[0]}: {e}\n".encode("utf-8"))
            sink.flush()
            return COMMAND_NOT_FOUND

        return result.returncode
