"""The polling loop that ties detection, notification and shutdown together."""

from __future__ import annotations

import logging
import signal
import threading
import time
from datetime import timedelta
from typing import Callable, Optional

from .config import MonitorSettings
from .models import ActivityStatus, ShutdownResult, TickOutcome
from .notifier import Notifier
from .reporting import format_duration
from .shutdown import ShutdownInvoker, default_mechanisms
from .snapshot import ProcessTable
from .state import ActivityStateStore
from .tracker import InactivityTracker

logger = logging.getLogger(__name__)

COOL_DOWN = timedelta(seconds=300)

FAILED_MESSAGE = "ERROR: Failed to execute shutdown command"
UNAVAILABLE_MESSAGE = "ERROR: Cannot shut down system - no shutdown command available"
DECLINED_MESSAGE = (
    "WARNING: System would have shut down, but no suitable shutdown command was found"
)


def shutdown_warning(delay_minutes: int) -> str:
    return (
        f"System will shut down in {delay_minutes} minute(s) "
        "due to inactivity of monitored processes"
    )


class MonitorLoop:
    """Polls the process table and shuts the machine down after inactivity."""

    def __init__(
        self,
        settings: MonitorSettings,
        *,
        process_table: Optional[ProcessTable] = None,
        tracker: Optional[InactivityTracker] = None,
        notifier: Optional[Notifier] = None,
        invoker: Optional[ShutdownInvoker] = None,
        clock: Callable[[], float] = time.time,
        sleep: Optional[Callable[[float], object]] = None,
        stop_event: Optional[threading.Event] = None,
    ) -> None:
        self.settings = settings
        self.process_table = process_table or ProcessTable()
        self.tracker = tracker or InactivityTracker(ActivityStateStore(settings.state_path))
        self.notifier = notifier or Notifier()
        self.invoker = invoker or ShutdownInvoker(
            default_mechanisms(settings.allow_immediate_poweroff)
        )
        self._clock = clock
        self.stop_event = stop_event or threading.Event()
        self._sleep = sleep or self.stop_event.wait

    def log_startup(self) -> None:
        settings = self.settings
        logger.info("Shuteye service started")
        logger.info("Monitoring processes: %s", ",".join(settings.watched_patterns))
        logger.info(
            "Inactivity timeout: %g minutes", settings.inactivity_timeout.total_seconds() / 60
        )
        method = settings.notification_method
        logger.info("Notification method: %s", method.value if method else "unknown")
        logger.info("Shutdown delay: %d minute(s)", settings.delay_minutes)

    def tick(self, now: Optional[float] = None) -> TickOutcome:
        """Run one evaluation: capture, record activity, maybe shut down."""
        now = self._clock() if now is None else now
        settings = self.settings
        snapshot = self.process_table.capture()
        status = self.tracker.record_activity_if_any(settings.watched_patterns, snapshot, now)
        if status is ActivityStatus.ACTIVE:
            return TickOutcome(
                status=status,
                remaining=settings.inactivity_timeout,
                matched_pattern=self.tracker.last_matched_pattern,
            )

        elapsed = self.tracker.elapsed_since_activity(now)
        if elapsed < settings.inactivity_timeout:
            remaining = settings.inactivity_timeout - elapsed
            logger.info(
                "No monitored processes active for %s; shutdown in %s",
                format_duration(elapsed.total_seconds()),
                format_duration(remaining.total_seconds()),
            )
            return TickOutcome(status=status, elapsed=elapsed, remaining=remaining)

        result = self._shut_down(elapsed)
        return TickOutcome(status=status, elapsed=elapsed, shutdown=result)

    def _shut_down(self, elapsed: timedelta) -> ShutdownResult:
        delay = self.settings.delay_minutes
        method = self.settings.notification_method
        logger.warning(
            "WARNING: No monitored processes have been active for %s",
            format_duration(elapsed.total_seconds()),
        )
        logger.info("Initiating system shutdown in %d minute(s)", delay)
        self.notifier.notify(shutdown_warning(delay), method)

        logger.info("Executing shutdown command")
        result = self.invoker.invoke(delay)
        if not result.ok:
            if result.declined:
                message = DECLINED_MESSAGE
            elif result.failures:
                message = FAILED_MESSAGE
            else:
                message = UNAVAILABLE_MESSAGE
            self.notifier.notify(message, method)
        return result

    def run(self) -> int:
        """Poll until a shutdown is scheduled or the loop is stopped; returns an exit code."""
        interval = self.settings.check_interval.total_seconds()
        while not self.stop_event.is_set():
            outcome = self.tick()
            if outcome.shutdown is not None and outcome.shutdown.ok:
                logger.info("Shutdown requested via '%s'; exiting", outcome.shutdown.mechanism)
                return 0
            if outcome.shutdown is not None:
                logger.info(
                    "Retrying in %s after failed shutdown attempt",
                    format_duration(COOL_DOWN.total_seconds()),
                )
                self._sleep(COOL_DOWN.total_seconds())
            else:
                self._sleep(interval)
        logger.info("Shuteye service stopped without shutting down")
        return 0

    def install_signal_handlers(self) -> None:
        """Stop between ticks on SIGTERM or SIGINT."""
        for sig in (signal.SIGTERM, signal.SIGINT):
            signal.signal(sig, self._handle_signal)

    def _handle_signal(self, signum: int, frame: object) -> None:
        logger.info("Received %s; stopping", signal.Signals(signum).name)
        self.stop_event.set()
