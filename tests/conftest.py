"""Shared test fixtures."""

import tempfile
from pathlib import Path

import pytest

from shuteye.config import MonitorSettings
from shuteye.errors import ShutdownMechanismFailed
from shuteye.models import ProcessSnapshot

START = 1_700_000_000


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as d:
        yield Path(d)


@pytest.fixture
def settings(temp_dir):
    """Settings watching 'alpha' with a 60 minute timeout and 60 second interval."""
    return MonitorSettings.from_values(
        patterns=["alpha"],
        timeout_minutes=60,
        delay_minutes=1,
        interval_seconds=60,
        state_path=temp_dir / "last_active",
        log_path=temp_dir / "shuteye.log",
    )


class FakeClock:
    """Wall clock that only moves when the fake sleep is called."""

    def __init__(self, start: float = START) -> None:
        self.now = float(start)
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakeProcessTable:
    """Returns command lines chosen by a function of the current time."""

    def __init__(self, clock: FakeClock, lines_at=None) -> None:
        self.clock = clock
        self.lines_at = lines_at or (lambda elapsed: [])
        self.captures = 0

    def capture(self) -> ProcessSnapshot:
        self.captures += 1
        elapsed = self.clock.now - START
        return ProcessSnapshot(command_lines=tuple(self.lines_at(elapsed)), source="fake")


class RecordingNotifier:
    """Collects messages instead of delivering them."""

    def __init__(self) -> None:
        self.messages: list[str] = []

    def notify(self, message, method) -> bool:
        self.messages.append(message)
        return True


class FakeMechanism:
    """Shutdown mechanism that succeeds or fails on demand."""

    def __init__(self, name: str, outcomes=(True,), available: bool = True) -> None:
        self.name = name
        self._outcomes = list(outcomes)
        self._available = available
        self.calls: list[int] = []

    def available(self) -> bool:
        return self._available

    def attempt(self, delay_minutes: int) -> None:
        self.calls.append(delay_minutes)
        ok = self._outcomes.pop(0) if len(self._outcomes) > 1 else self._outcomes[0]
        if not ok:
            raise ShutdownMechanismFailed(self.name, "boom")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def start():
    return START


@pytest.fixture
def make_table(clock):
    def factory(lines_at=None):
        return FakeProcessTable(clock, lines_at)

    return factory


@pytest.fixture
def make_mechanism():
    return FakeMechanism
