"""Append-only run log with gzip archival.

Progress lines go to the log file and are echoed to stdout.
Command output is written to the log only, via open_sink().
"""

import gzip
import shutil
from collections import deque
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import BinaryIO, Iterator, Optional

import click

from out_of_capacity.constants import (
    ARCHIVE_PREFIX,
    ARCHIVE_SUFFIX,
    ARCHIVE_TIMESTAMP_FORMAT,
)


def archive_name(now: datetime) -> str:
    """tf_apply_<YYYYMMDDHHMM>.log.gz"""
    return f"{ARCHIVE_PREFIX}{now.strftime(ARCHIVE_TIMESTAMP_FORMAT)}{ARCHIVE_SUFFIX}"


class RunLog:
    """Writer for the live log file."""

    def __init__(self, path: Path, echo: bool = True):
        self.path = Path(path)
        self.echo = echo

    def write(self, message: str) -> None:
        """Append one line to the log and echo it to stdout."""
        if self.echo:
            click.echo(message)
        with self.path.open("a", encoding="utf-8") as f:
            f.write(message + "\n")

    @contextmanager
    def open_sink(self) -> Iterator[BinaryIO]:
        """Binary append handle for subprocess stdout/stderr."""
        with self.path.open("ab") as f:
            yield f

    def size(self) -> int:
        if not self.path.exists():
            return 0
        return self.path.stat().st_size

    def tail(self, lines: int = 10) -> list[str]:
        if not self.path.exists():
            return []
        with self.path.open("r", encoding="utf-8", errors="replace") as f:
            last = deque(f, maxlen=lines)
        return [line.rstrip("\r\n") for line in last]

    def archive(self, now: Optional[datetime] = None) -> Path:
        """
        Compress the current log next to it and truncate the live log.

        Two archivals within the same minute share a name; the second
        overwrites the first.

        Returns:
            Path of the archive written.
        """
        if now is None:
            now = datetime.now()

        archive_path = self.path.parent / archive_name(now)

        self.write(f"Archiving and compressing log file as {archive_path.name}")

        with self.path.open("rb") as rf, gzip.open(archive_path, "wb") as wf:
            shutil.copyfileobj(rf, wf)

        # Truncate
        self.path.open("w").close()

        self.write("Retry count reset after archiving.")

        return archive_path

    def list_archives(self) -> list[Path]:
        """Archive files next to the log, newest first."""
        directory = self.path.parent
        if not directory.exists():
            return []
        archives = directory.glob(f"{ARCHIVE_PREFIX}*{ARCHIVE_SUFFIX}")
        return sorted(archives, key=lambda p: p.name, reverse=True)
