"""CLI entrypoint for the out-of-capacity runner."""

from pathlib import Path
from typing import Optional

import click
from dotenv import load_dotenv

from out_of_capacity.config import Config, ConfigError, load_config
from out_of_capacity.retry_counter import CounterFileError

# Load .env file on CLI startup
load_dotenv()


config_option = click.option(
    "--config", "config_file",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="YAML or JSON file with configuration overrides.",
)

workdir_option = click.option(
    "--workdir",
    type=click.Path(file_okay=False),
    default=None,
    help="Terraform working directory; log and counter files live here too.",
)


def _load(config_file: Optional[str], **overrides) -> Config:
    try:
        return load_config(
            config_file=Path(config_file) if config_file else None,
            overrides=overrides,
        )
    except ConfigError as e:
        click.echo(f"Configuration error: {e}", err=True)
        raise SystemExit(1)


@click.group()
@click.version_option(package_name="out-of-capacity")
def cli():
    """Retry terraform apply across availability domains until capacity frees up."""
    pass


@cli.command("run")
@config_option
@workdir_option
@click.option("--delay", type=float, default=None, help="Seconds between failed attempts (default: 5)")
@click.option("--max-retries", type=int, default=None, help="Attempts per domain before moving on (default: 10)")
@click.option("--threshold", type=int, default=None, help="Archive the log after this many attempts (default: 15000)")
def run_cmd(
    config_file: Optional[str],
    workdir: Optional[str],
    delay: Optional[float],
    max_retries: Optional[int],
    threshold: Optional[int],
):
    """Run terraform apply until it succeeds or the process is terminated.

    Exits 0 on success, 1 when terminated by a signal.
    """
    from out_of_capacity.cancellation import CancelToken, install_signal_handlers
    from out_of_capacity.execution_loop import run_orchestrator

    config = _load(
        config_file,
        workdir=workdir,
        delay_seconds=delay,
        max_retries=max_retries,
        archive_threshold=threshold,
    )

    token = CancelToken()
    install_signal_handlers(token)

    try:
        final_state = run_orchestrator(config, token=token)
    except CounterFileError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)

    raise SystemExit(final_state.exit_code)


@cli.command("status")
@config_option
@workdir_option
@click.option("--tail", "tail_lines", default=5, help="Number of log lines to show")
def status_cmd(config_file: Optional[str], workdir: Optional[str], tail_lines: int):
    """Show the attempt counter, log size and archives.

    Read-only.
    """
    from out_of_capacity.observe import print_summary

    config = _load(config_file, workdir=workdir)

    try:
        print_summary(config, tail_lines=tail_lines)
    except CounterFileError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)


@cli.command("archive")
@config_option
@workdir_option
def archive_cmd(config_file: Optional[str], workdir: Optional[str]):
    """Archive the log now and reset the attempt counter."""
    from out_of_capacity.retry_counter import reset_counter
    from out_of_capacity.run_log import RunLog

    config = _load(config_file, workdir=workdir)

    archive_path = RunLog(config.log_path, echo=False).archive()
    reset_counter(config.retry_count_path)

    click.echo(f"Archived log to: {archive_path}")
    click.echo("Retry count reset to 0.")


@cli.command("reset")
@config_option
@workdir_option
def reset_cmd(config_file: Optional[str], workdir: Optional[str]):
    """Reset the attempt counter to 0 without touching the log."""
    from out_of_capacity.retry_counter import reset_counter

    config = _load(config_file, workdir=workdir)
    reset_counter(config.retry_count_path)

    click.echo(f"Retry count reset to 0 ({config.retry_count_path})")


@cli.command("check-config")
@config_option
def check_config(config_file: Optional[str]):
    """Print the effective configuration."""
    config = _load(config_file)

    click.echo("Configuration loaded successfully!")
    click.echo(f"  delay_seconds:     {config.delay_seconds:g}")
    click.echo(f"  max_retries:       {config.max_retries}")
    click.echo(f"  archive_threshold: {config.archive_threshold}")
    click.echo(f"  domains:           {', '.join(str(d) for d in config.domains)}")
    click.echo(f"  domain_var:        {config.domain_var}")
    click.echo(f"  terraform_bin:     {config.terraform_bin}")
    click.echo(f"  workdir:           {config.workdir}")
    click.echo(f"  log_file:          {config.log_path}")
    click.echo(f"  retry_count_file:  {config.retry_count_path}")
    if config.extra_args:
        click.echo(f"  extra_args:        {' '.join(config.extra_args)}")


if __name__ == "__main__":
    cli()
