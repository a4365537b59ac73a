"""Domain models shared by the watchdog components."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Optional

from .errors import ShuteyeError


class ActivityStatus(enum.Enum):
    ACTIVE = "active"
    IDLE = "idle"


@dataclass(frozen=True, slots=True)
class ProcessSnapshot:
    """Command lines of the processes running at a single poll tick."""

    command_lines: tuple[str, ...] = ()
    source: str = "none"

    def __len__(self) -> int:
        return len(self.command_lines)

    def __iter__(self):
        return iter(self.command_lines)


@dataclass(frozen=True, slots=True)
class ShutdownResult:
    """Outcome of a shutdown request: which mechanism worked, or why none did."""

    ok: bool
    mechanism: Optional[str] = None
    error: Optional[ShuteyeError] = None
    failures: tuple[str, ...] = ()
    declined: bool = False

    @classmethod
    def success(cls, mechanism: str, failures: tuple[str, ...] = ()) -> "ShutdownResult":
        return cls(ok=True, mechanism=mechanism, failures=failures)

    @classmethod
    def failure(
        cls, error: ShuteyeError, failures: tuple[str, ...] = (), declined: bool = False
    ) -> "ShutdownResult":
        return cls(ok=False, error=error, failures=failures, declined=declined)


@dataclass(slots=True)
class TickOutcome:
    """What happened during one evaluation of the monitor loop."""

    status: ActivityStatus
    elapsed: timedelta = timedelta(0)
    remaining: timedelta = timedelta(0)
    matched_pattern: Optional[str] = None
    shutdown: Optional[ShutdownResult] = field(default=None)

    @property
    def triggered(self) -> bool:
        return self.shutdown is not None
