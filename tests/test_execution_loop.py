"""Tests for the retry loop (stub runner, no terraform, no sleeping)."""

import gzip

import pytest

from out_of_capacity.cancellation import CancelToken
from out_of_capacity.execution_loop import archive_node, run_orchestrator
from out_of_capacity.execution_state import RunState
from out_of_capacity.retry_counter import load_counter, save_counter
from out_of_capacity.run_log import RunLog


class CancelDuringSleep(CancelToken):
    """Token that receives a termination request during the first sleep."""

    def __init__(self):
        super().__init__()
        self.sleeps = 0

    def sleep(self, seconds):
        self.sleeps += 1
        self.cancel()
        return super().sleep(seconds)


@pytest.fixture
def run_log(config):
    return RunLog(config.log_path, echo=False)


def run(config, run_log, runner, token=None):
    return run_orchestrator(config, run_log=run_log, runner=runner, token=token or CancelToken())


# =============================================================================
# Counter persistence
# =============================================================================


class TestCounter:
    """Counter persistence across attempts and restarts."""

    def test_counter_tracks_invocations_from_loaded_value(self, config, run_log, scripted_runner):
        """Persisted counter == loaded value + invocations so far."""
        save_counter(config.retry_count_path, 2)
        seen = []

        def on_call(n, domain):
            seen.append(load_counter(config.retry_count_path))

        runner = scripted_runner([1, 1, 0], on_call=on_call)
        state = run(config, run_log, runner)

        assert seen == [3, 4, 5]
        assert state.counter == 5
        assert load_counter(config.retry_count_path) == 5

    def test_missing_counter_file_starts_at_zero(self, config, run_log, scripted_runner):
        state = run(config, run_log, scripted_runner([0]))
        assert state.counter == 1
        assert config.retry_count_path.read_text() == "1\n"


# =============================================================================
# Archival
# =============================================================================


class TestArchival:
    """Log rotation at the start of an outer-loop pass."""

    def test_archive_node_resets_counter_file(self, config, run_log):
        run_log.write("some output")
        save_counter(config.retry_count_path, 9)
        state = archive_node(RunState(counter=9), config, run_log)

        assert state.counter == 0
        assert load_counter(config.retry_count_path) == 0
        assert len(run_log.list_archives()) == 1

    def test_archive_node_below_threshold_is_noop(self, config, run_log):
        state = archive_node(RunState(counter=4), config, run_log)
        assert state.counter == 4
        assert run_log.list_archives() == []

    def test_archives_before_first_pass(self, config, run_log, scripted_runner):
        config.log_path.write_text("previous run output\n")
        save_counter(config.retry_count_path, 5)

        state = run(config, run_log, scripted_runner([0]))

        assert state.counter == 1
        archives = run_log.list_archives()
        assert len(archives) == 1
        archived = gzip.decompress(archives[0].read_bytes()).decode("utf-8")
        assert "previous run output" in archived
        assert "previous run output" not in config.log_path.read_text()

    def test_counter_overshoots_until_next_pass(self, config, run_log, scripted_runner):
        """Threshold is only checked once per pass, not per attempt."""
        config.archive_threshold = 3
        archives_seen = []

        def on_call(n, domain):
            archives_seen.append(len(run_log.list_archives()))

        # 2 retries x 3 domains fail, then first attempt of pass 2 succeeds
        runner = scripted_runner([1] * 6 + [0], on_call=on_call)
        state = run(config, run_log, runner)

        assert archives_seen == [0, 0, 0, 0, 0, 0, 1]
        assert state.cycles == 1
        assert state.counter == 1
        assert load_counter(config.retry_count_path) == 1


# =============================================================================
# Domain loop
# =============================================================================


class TestDomainLoop:
    """Domain ordering and exhaustion."""

    def test_domains_tried_in_order_then_restart(self, config, run_log, scripted_runner):
        runner = scripted_runner([1] * 6 + [0])
        state = run(config, run_log, runner)

        assert runner.domains == [1, 1, 2, 2, 3, 3, 1]
        assert state.cycles == 1
        log_text = config.log_path.read_text()
        assert "Terraform apply failed after 2 attempts for availability_domain = 1. Moving to the next one..." in log_text
        assert "All availability domains exhausted. Restarting the loop..." in log_text
        assert log_text.count("Starting Availability Domain Loop...") == 2

    def test_success_short_circuits(self, config, run_log, scripted_runner):
        runner = scripted_runner([1, 0, 0, 0])
        state = run(config, run_log, runner)

        assert runner.domains == [1, 1]
        assert state.status == "SUCCESS"
        assert state.exit_code == 0
        assert state.domain == 1
        assert state.attempt == 2
        assert load_counter(config.retry_count_path) == 2

    def test_custom_domains(self, config, run_log, scripted_runner):
        config.domains = (3, 1)
        runner = scripted_runner([1, 1, 0])
        run(config, run_log, runner)
        assert runner.domains == [3, 3, 1]

    def test_example_scenario(self, config, run_log, scripted_runner):
        """max_retries=2, threshold=5, start at 4: fail, fail, succeed on domain 2."""
        save_counter(config.retry_count_path, 4)
        runner = scripted_runner([1, 1, 0])

        state = run(config, run_log, runner)

        assert runner.domains == [1, 1, 2]
        assert state.exit_code == 0
        assert load_counter(config.retry_count_path) == 7
        assert run_log.list_archives() == []

        log_text = config.log_path.read_text()
        assert "Attempt 1 of 2 for availability_domain = 1 (Total attempts: 5)" in log_text
        assert "Attempt 2 of 2 for availability_domain = 1 (Total attempts: 6)" in log_text
        assert "Attempt 1 of 2 for availability_domain = 2 (Total attempts: 7)" in log_text
        assert "Terraform apply succeeded for availability_domain = 2 on attempt 1 (Total attempts: 7)" in log_text


# =============================================================================
# Logging
# =============================================================================


class TestLogOutput:
    """What ends up in tf_apply.log."""

    def test_command_output_appended_verbatim(self, config, run_log, scripted_runner):
        runner = scripted_runner([1, 0], output=b"Error: 500-InternalError, Out of host capacity.\n")
        run(config, run_log, runner)

        lines = config.log_path.read_text().splitlines()
        assert lines.count("Error: 500-InternalError, Out of host capacity.") == 2

    def test_failure_line_mentions_delay(self, config, run_log, scripted_runner):
        config.delay_seconds = 0
        run(config, run_log, scripted_runner([1, 0]))
        assert "Terraform apply failed for availability_domain = 1. Retrying after 0 seconds..." in config.log_path.read_text()

    def test_progress_echoed_to_stdout(self, config, scripted_runner, capsys):
        run_log = RunLog(config.log_path)
        run(config, run_log, scripted_runner([0], output=b"terraform noise\n"))

        out = capsys.readouterr().out
        assert "Trying Terraform apply for availability_domain = 1" in out
        assert "terraform noise" not in out


# =============================================================================
# Cancellation
# =============================================================================


class TestCancellation:
    """Termination requests end the run with exit code 1."""

    def test_cancel_during_sleep_stops_next_attempt(self, config, run_log, scripted_runner):
        token = CancelDuringSleep()
        runner = scripted_runner([1, 0])

        state = run(config, run_log, runner, token=token)

        assert runner.domains == [1]
        assert token.sleeps == 1
        assert state.status == "TERMINATED"
        assert state.exit_code == 1
        assert load_counter(config.retry_count_path) == 1
        assert "Script terminated. Exiting..." in config.log_path.read_text()

    def test_cancel_during_command_skips_sleep(self, config, run_log, scripted_runner):
        token = CancelDuringSleep()
        runner = scripted_runner([1, 0], on_call=lambda n, d: token.cancel())

        state = run(config, run_log, runner, token=token)

        assert runner.domains == [1]
        assert token.sleeps == 0
        assert state.exit_code == 1
        assert load_counter(config.retry_count_path) == 1

    def test_success_wins_over_cancel(self, config, run_log, scripted_runner):
        token = CancelToken()
        runner = scripted_runner([0], on_call=lambda n, d: token.cancel())

        state = run(config, run_log, runner, token=token)

        assert state.exit_code == 0
        assert state.status == "SUCCESS"

    def test_cancelled_before_start_runs_nothing(self, config, run_log, scripted_runner):
        save_counter(config.retry_count_path, 3)
        token = CancelToken()
        token.cancel()
        runner = scripted_runner([])

        state = run(config, run_log, runner, token=token)

        assert runner.domains == []
        assert state.exit_code == 1
        assert load_counter(config.retry_count_path) == 3
