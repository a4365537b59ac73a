"""Simple reporting utilities for CLI output."""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional

from .config import MonitorSettings
from .matching import find_match
from .models import ProcessSnapshot
from .state import ActivityStateStore


class StatusPrinter:
    """Render the watchdog's current view of activity in the console."""

    def __init__(self, settings: MonitorSettings) -> None:
        self.settings = settings
        self.store = ActivityStateStore(settings.state_path)

    def print_status(self, snapshot: ProcessSnapshot, now: datetime) -> None:
        last_active = self.store.read()
        print(f"State file:  {self.store.path}")
        if last_active is None:
            print("Last active: never recorded (timer starts when the service runs)")
        else:
            elapsed = max(now.timestamp() - last_active, 0.0)
            remaining = max(self.settings.inactivity_timeout.total_seconds() - elapsed, 0.0)
            stamp = datetime.fromtimestamp(last_active).strftime("%Y-%m-%d %H:%M:%S")
            print(f"Last active: {stamp}")
            print(f"Idle for:    {format_duration(elapsed)}")
            print(f"Shutdown in: {format_duration(remaining)}")
        print()
        print("Watched processes:")
        for pattern, match in pattern_matches(self.settings.watched_patterns, snapshot):
            label = "running" if match else "not running"
            print(f"  {pattern:<30} {label}")
            if match:
                print(f"    {match[:70]}")


def pattern_matches(
    patterns: Iterable[str], snapshot: ProcessSnapshot
) -> list[tuple[str, Optional[str]]]:
    return [(pattern, find_match(pattern, snapshot)) for pattern in patterns]


def format_duration(seconds: float) -> str:
    total_seconds = int(round(seconds))
    hours, remainder = divmod(total_seconds, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"
