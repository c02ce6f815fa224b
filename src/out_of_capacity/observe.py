"""Read-only status surface.

Reads the counter file, the live log and the archive list. Never writes.
"""

from out_of_capacity.config import Config
from out_of_capacity.retry_counter import load_counter
from out_of_capacity.run_log import RunLog


def format_size(num_bytes: int) -> str:
    """Format a byte count in human-readable form."""
    if num_bytes < 1024:
        return f"{num_bytes}B"
    elif num_bytes < 1024 * 1024:
        return f"{num_bytes / 1024:.1f}KB"
    else:
        return f"{num_bytes / (1024 * 1024):.1f}MB"


def collect_status(config: Config, tail_lines: int = 5) -> dict:
    run_log = RunLog(config.log_path, echo=False)
    counter = load_counter(config.retry_count_path)

    return {
        "counter": counter,
        "archive_threshold": config.archive_threshold,
        "until_archive": max(config.archive_threshold - counter, 0),
        "log_file": str(config.log_path),
        "log_size": run_log.size(),
        "tail": run_log.tail(tail_lines),
        "archives": [p.name for p in run_log.list_archives()],
    }


def print_summary(config: Config, tail_lines: int = 5) -> None:
    """Print a human-readable summary of the retry loop's on-disk state."""
    status = collect_status(config, tail_lines=tail_lines)

    print("=" * 60)
    print("OUT-OF-CAPACITY STATUS")
    print("=" * 60)
    print()

    print("COUNTER")
    print("-" * 40)
    print(f"  Total attempts:  {status['counter']}")
    print(f"  Threshold:       {status['archive_threshold']}")
    if status["until_archive"] == 0:
        print("  Next pass:       archives log")
    else:
        print(f"  Until archive:   {status['until_archive']}")
    print()

    print("LOG")
    print("-" * 40)
    print(f"  File:            {status['log_file']}")
    print(f"  Size:            {format_size(status['log_size'])}")
    if status["tail"]:
        print("  Last lines:")
        for line in status["tail"]:
            print(f"    {line[:70]}")
    print()

    print("ARCHIVES")
    print("-" * 40)
    if status["archives"]:
        for name in status["archives"][:5]:
            print(f"  {name}")
        if len(status["archives"]) > 5:
            print(f"  ... and {len(status['archives']) - 5} more")
    else:
        print("  None.")
    print()
