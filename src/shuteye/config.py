"""Configuration models and helpers for the shutdown watchdog."""

from __future__ import annotations

import enum
import math
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Iterable, Optional, Union

from .errors import ConfigInvalid
from .paths import get_log_path, get_state_path


DEFAULT_PATTERNS: tuple[str, ...] = ("ollama", "invoke")


class NotificationMethod(str, enum.Enum):
    """How users are warned before the machine goes down."""

    WALL = "wall"
    DESKTOP_NOTIFY = "notify-send"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["NotificationMethod"]:
        """Return the matching method, or None when the value is unrecognized."""
        if value is None:
            return None
        normalized = str(value).strip().lower()
        if normalized in ("desktop", "desktop-notify", "desktopnotify"):
            return cls.DESKTOP_NOTIFY
        for member in cls:
            if member.value == normalized:
                return member
        return None


def split_patterns(raw: Union[str, Iterable[str]]) -> tuple[str, ...]:
    """Accept a comma separated string or a sequence and return trimmed patterns."""
    items = raw.split(",") if isinstance(raw, str) else list(raw)
    return tuple(item.strip() for item in items if item and item.strip())


@dataclass(frozen=True, slots=True)
class MonitorSettings:
    """Runtime configuration for the watchdog, fixed for the daemon's lifetime."""

    watched_patterns: tuple[str, ...] = DEFAULT_PATTERNS
    inactivity_timeout: timedelta = timedelta(minutes=60)
    shutdown_delay: timedelta = timedelta(minutes=1)
    check_interval: timedelta = timedelta(seconds=60)
    notification_method: Optional[NotificationMethod] = NotificationMethod.WALL
    state_path: Path = field(default_factory=get_state_path)
    log_path: Path = field(default_factory=get_log_path)
    allow_immediate_poweroff: bool = False

    def __post_init__(self) -> None:
        if not self.watched_patterns:
            raise ConfigInvalid("At least one process pattern must be monitored")
        if any(not pattern.strip() for pattern in self.watched_patterns):
            raise ConfigInvalid("Process patterns must not be empty")
        if self.inactivity_timeout <= timedelta(0):
            raise ConfigInvalid("Inactivity timeout must be greater than zero")
        if self.shutdown_delay < timedelta(0):
            raise ConfigInvalid("Shutdown delay must not be negative")
        if self.check_interval <= timedelta(0):
            raise ConfigInvalid("Check interval must be greater than zero")

    @classmethod
    def from_values(
        cls,
        patterns: Union[str, Iterable[str]] = DEFAULT_PATTERNS,
        timeout_minutes: float = 60,
        delay_minutes: float = 1,
        interval_seconds: float = 60,
        notification_method: Optional[str] = NotificationMethod.WALL.value,
        state_path: Optional[Path] = None,
        log_path: Optional[Path] = None,
        allow_immediate_poweroff: bool = False,
    ) -> "MonitorSettings":
        for label, number in (
            ("Inactivity timeout", timeout_minutes),
            ("Shutdown delay", delay_minutes),
            ("Check interval", interval_seconds),
        ):
            if not math.isfinite(number):
                raise ConfigInvalid(f"{label} must be a finite number, got {number}")
        try:
            inactivity_timeout = timedelta(minutes=timeout_minutes)
            shutdown_delay = timedelta(minutes=delay_minutes)
            check_interval = timedelta(seconds=interval_seconds)
        except OverflowError as exc:
            raise ConfigInvalid(f"Duration out of range: {exc}") from exc
        return cls(
            watched_patterns=split_patterns(patterns),
            inactivity_timeout=inactivity_timeout,
            shutdown_delay=shutdown_delay,
            check_interval=check_interval,
            notification_method=NotificationMethod.parse(notification_method),
            state_path=Path(state_path) if state_path else get_state_path(),
            log_path=Path(log_path) if log_path else get_log_path(),
            allow_immediate_poweroff=allow_immediate_poweroff,
        )

    @property
    def delay_minutes(self) -> int:
        """Shutdown delay rounded up to whole minutes, as shutdown(8) expects."""
        seconds = self.shutdown_delay.total_seconds()
        return int(-(-seconds // 60))
