"""Run state for the retry loop."""

from dataclasses import dataclass
from typing import Optional


@dataclass
class RunState:
    counter: int = 0
    domain: Optional[int] = None
    attempt: int = 0
    cycles: int = 0
    last_returncode: Optional[int] = None
    exit_code: Optional[int] = None
    status: str = "LOADING"  # LOADING | OUTER_LOOP | DOMAIN_LOOP | ATTEMPT | SUCCESS | TERMINATED

    @property
    def finished(self) -> bool:
        return self.status in ("SUCCESS", "TERMINATED")
