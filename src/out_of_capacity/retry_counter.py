"""Persisted attempt counter: a single decimal line in a file."""

from pathlib import Path


class CounterFileError(ValueError):
    """Raised when the counter file holds something other than a count."""
    pass


def load_counter(path: Path) -> int:
    """Read the counter. Missing or empty file means 0."""
    if not path.exists():
        return 0

    text = path.read_text(encoding="utf-8").strip()
    if not text:
        return 0

    if not (text.isascii() and text.isdigit()):
        raise CounterFileError(f"Invalid retry count in {path}: {text!r}")

    return int(text)


def save_counter(path: Path, value: int) -> None:
    """Overwrite the counter file with value."""
    if value < 0:
        raise ValueError(f"Retry count cannot be negative: {value}")
    path.write_text(f"{value}\n", encoding="utf-8")


def reset_counter(path: Path) -> None:
    save_counter(path, 0)
