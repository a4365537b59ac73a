"""Exception types raised by the watchdog components."""

from __future__ import annotations


class ShuteyeError(Exception):
    """Base class for all watchdog errors."""


class ConfigInvalid(ShuteyeError):
    """The supplied configuration cannot be used; the daemon must not start."""


class StateStoreUnavailable(ShuteyeError):
    """The activity state file could not be read or written."""


class NotificationDeliveryFailed(ShuteyeError):
    """A user notification could not be delivered."""


class ShutdownMechanismFailed(ShuteyeError):
    """A single shutdown mechanism was missing or returned an error."""

    def __init__(self, mechanism: str, reason: str) -> None:
        super().__init__(f"{mechanism}: {reason}")
        self.mechanism = mechanism
        self.reason = reason


class NoMechanismAvailable(ShuteyeError):
    """Every shutdown mechanism was missing or failed."""


class DelayNotHonored(ShutdownMechanismFailed):
    """A mechanism exists but cannot wait the requested delay, so it declined."""
