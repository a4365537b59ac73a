"""Inactivity timer built on the persisted activity timestamp."""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Iterable, Optional

from .errors import StateStoreUnavailable
from .matching import matches
from .models import ActivityStatus, ProcessSnapshot
from .state import ActivityStateStore

logger = logging.getLogger(__name__)


class InactivityTracker:
    """Decides whether the watched processes have been idle for long enough.

    All timing state lives in the store. When the store cannot be read or
    written the tracker keeps the timestamp in memory for the rest of the run.
    """

    def __init__(self, store: ActivityStateStore) -> None:
        self.store = store
        self._memory: Optional[int] = None
        self._store_failed = False
        self.last_matched_pattern: Optional[str] = None

    def ensure_seeded(self, now: float) -> int:
        """Return ``last_active_at``, seeding it with ``now`` if nothing is stored."""
        current = self._load()
        if current is None:
            logger.info("No previous activity recorded; starting inactivity timer now")
            current = self._save(now)
        return current

    def record_activity_if_any(
        self, patterns: Iterable[str], snapshot: ProcessSnapshot, now: float
    ) -> ActivityStatus:
        self.ensure_seeded(now)
        self.last_matched_pattern = None
        for pattern in patterns:
            pattern = pattern.strip()
            if matches(pattern, snapshot):
                logger.info("Process '%s' is currently running", pattern)
                self.last_matched_pattern = pattern
                current = self._load()
                if current is None or now >= current:
                    self._save(now)
                return ActivityStatus.ACTIVE
            logger.info("Process '%s' is not currently running", pattern)
        return ActivityStatus.IDLE

    def last_active_at(self, now: float) -> int:
        return self.ensure_seeded(now)

    def elapsed_since_activity(self, now: float) -> timedelta:
        elapsed = now - self.ensure_seeded(now)
        if elapsed < 0:
            logger.debug("Clock moved backwards by %.0fs; treating elapsed as zero", -elapsed)
            return timedelta(0)
        return timedelta(seconds=elapsed)

    def timeout_reached(self, now: float, timeout: timedelta) -> bool:
        return self.elapsed_since_activity(now) >= timeout

    def _load(self) -> Optional[int]:
        if self._store_failed:
            return self._memory
        try:
            value = self.store.read()
        except StateStoreUnavailable as exc:
            self._mark_failed(exc)
            return self._memory
        if value is not None:
            self._memory = value
        return value

    def _save(self, now: float) -> int:
        value = int(now)
        self._memory = value
        if self._store_failed:
            return value
        try:
            self.store.write(value)
        except StateStoreUnavailable as exc:
            self._mark_failed(exc)
        return value

    def _mark_failed(self, exc: StateStoreUnavailable) -> None:
        if not self._store_failed:
            logger.warning(
                "Warning: activity state unavailable (%s); keeping it in memory for this run",
                exc,
            )
        self._store_failed = True
