"""Retry loop: terraform apply across availability domains until success.

Each node takes the RunState and returns it. The loop never gives up on
its own: it stops on success or when the CancelToken is cancelled.
"""

from typing import Optional

from out_of_capacity.cancellation import CancelToken
from out_of_capacity.config import Config
from out_of_capacity.constants import (
    ATTEMPT_SEPARATOR,
    EXIT_SUCCESS,
    EXIT_TERMINATED,
    LOOP_SEPARATOR,
)
from out_of_capacity.execution_state import RunState
from out_of_capacity.retry_counter import load_counter, save_counter
from out_of_capacity.run_log import RunLog
from out_of_capacity.terraform_runner import CommandRunner, TerraformRunner


def load_node(state: RunState, config: Config) -> RunState:
    """Load the persisted counter (0 if absent)."""
    state.counter = load_counter(config.retry_count_path)
    state.status = "OUTER_LOOP"
    return state


def archive_node(state: RunState, config: Config, run_log: RunLog) -> RunState:
    """
    Archive the log and reset the counter once the threshold is reached.

    Checked once per outer-loop pass, so the counter can overshoot the
    threshold by up to one full pass.
    """
    if state.counter >= config.archive_threshold:
        run_log.archive()
        state.counter = 0
        save_counter(config.retry_count_path, state.counter)

    state.status = "DOMAIN_LOOP"
    return state


def success_node(state: RunState, config: Config, run_log: RunLog) -> RunState:
    run_log.write(ATTEMPT_SEPARATOR)
    run_log.write(
        f"Terraform apply succeeded for {config.domain_var} = {state.domain} "
        f"on attempt {state.attempt} (Total attempts: {state.counter})"
    )
    save_counter(config.retry_count_path, state.counter)
    state.status = "SUCCESS"
    state.exit_code = EXIT_SUCCESS
    return state


def terminate_node(state: RunState, config: Config, run_log: RunLog) -> RunState:
    run_log.write("Script terminated. Exiting...")
    save_counter(config.retry_count_path, state.counter)
    state.status = "TERMINATED"
    state.exit_code = EXIT_TERMINATED
    return state


def attempt_node(
    state: RunState,
    config: Config,
    run_log: RunLog,
    runner: CommandRunner,
    token: CancelToken,
) -> RunState:
    """
    One terraform apply for state.domain.

    Increments and persists the counter before invoking. On failure,
    sleeps delay_seconds; cancellation during the sleep terminates.
    """
    if token.cancelled:
        return terminate_node(state, config, run_log)

    state.status = "ATTEMPT"
    state.counter += 1
    save_counter(config.retry_count_path, state.counter)

    run_log.write(
        f"Attempt {state.attempt} of {config.max_retries} for "
        f"{config.domain_var} = {state.domain} (Total attempts: {state.counter})"
    )
    run_log.write(ATTEMPT_SEPARATOR)

    with run_log.open_sink() as sink:
        state.last_returncode = runner(state.domain, sink)

    if state.last_returncode == 0:
        return success_node(state, config, run_log)

    if token.cancelled:
        return terminate_node(state, config, run_log)

    run_log.write(ATTEMPT_SEPARATOR)
    run_log.write(
        f"Terraform apply failed for {config.domain_var} = {state.domain}. "
        f"Retrying after {config.delay_seconds:g} seconds..."
    )

    if token.sleep(config.delay_seconds):
        return terminate_node(state, config, run_log)

    return state


def domain_node(
    state: RunState,
    config: Config,
    run_log: RunLog,
    runner: CommandRunner,
    token: CancelToken,
    domain: int,
) -> RunState:
    """Up to max_retries attempts for one domain."""
    state.status = "DOMAIN_LOOP"
    state.domain = domain

    run_log.write(f"Trying Terraform apply for {config.domain_var} = {domain}")

    for attempt in range(1, config.max_retries + 1):
        state.attempt = attempt
        state = attempt_node(state, config, run_log, runner, token)
        if state.finished:
            return state

    run_log.write(
        f"Terraform apply failed after {config.max_retries} attempts for "
        f"{config.domain_var} = {domain}. Moving to the next one..."
    )
    state.status = "DOMAIN_LOOP"
    return state


def run_orchestrator(
    config: Config,
    run_log: Optional[RunLog] = None,
    runner: Optional[CommandRunner] = None,
    token: Optional[CancelToken] = None,
) -> RunState:
    """
    Main loop.

    Logic:
    1. Load the counter
    2. Per outer pass: archive if counter >= threshold
    3. For each domain in order: attempt up to max_retries
    4. Success or cancellation ends the run; otherwise restart at 2

    There is no limit on outer passes.
    """
    if run_log is None:
        run_log = RunLog(config.log_path)
    if runner is None:
        runner = TerraformRunner(config)
    if token is None:
        token = CancelToken()

    state = load_node(RunState(), config)

    while True:
        state.status = "OUTER_LOOP"
        state = archive_node(state, config, run_log)

        run_log.write(LOOP_SEPARATOR)
        run_log.write("Starting Availability Domain Loop...")
        run_log.write(LOOP_SEPARATOR)

        for domain in config.domains:
            state = domain_node(state, config, run_log, runner, token, domain)
            if state.finished:
                return state

        run_log.write("All availability domains exhausted. Restarting the loop...")
        state.cycles += 1
