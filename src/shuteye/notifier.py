"""User notifications sent before and after shutdown attempts."""

from __future__ import annotations

import logging
import pwd
import shutil
import subprocess
from typing import Callable, Optional, Protocol

import psutil

from .config import NotificationMethod
from .errors import NotificationDeliveryFailed

logger = logging.getLogger(__name__)

APP_TITLE = "Shuteye"
DELIVERY_TIMEOUT_SECONDS = 10

Runner = Callable[..., subprocess.CompletedProcess]


class DeliveryStrategy(Protocol):
    def deliver(self, message: str) -> None:
        ...


def _run(runner: Runner, cmd: list[str], **kwargs) -> None:
    try:
        runner(cmd, check=True, capture_output=True, timeout=DELIVERY_TIMEOUT_SECONDS, **kwargs)
    except subprocess.TimeoutExpired as exc:
        raise NotificationDeliveryFailed(f"{cmd[0]} timed out") from exc
    except subprocess.CalledProcessError as exc:
        raise NotificationDeliveryFailed(f"{cmd[0]} exited with {exc.returncode}") from exc
    except OSError as exc:
        raise NotificationDeliveryFailed(f"{cmd[0]} could not run: {exc}") from exc


class WallBroadcast:
    """Broadcast to every terminal session with wall(1)."""

    def __init__(self, runner: Runner = subprocess.run) -> None:
        self._runner = runner

    def deliver(self, message: str) -> None:
        wall = shutil.which("wall")
        if not wall:
            raise NotificationDeliveryFailed("wall command not found")
        _run(self._runner, [wall, message])


class DesktopNotify:
    """Send a notify-send bubble into each logged-in user's session bus."""

    def __init__(
        self,
        runner: Runner = subprocess.run,
        list_users: Optional[Callable[[], list[str]]] = None,
        uid_for: Optional[Callable[[str], int]] = None,
    ) -> None:
        self._runner = runner
        self._list_users = list_users or logged_in_users
        self._uid_for = uid_for or (lambda name: pwd.getpwnam(name).pw_uid)

    def deliver(self, message: str) -> None:
        notify_send = shutil.which("notify-send")
        sudo = shutil.which("sudo")
        if not notify_send or not sudo:
            logger.debug("notify-send or sudo missing; skipping desktop notifications")
            return
        for user in self._list_users():
            try:
                uid = self._uid_for(user)
                _run(
                    self._runner,
                    [
                        sudo,
                        "-u",
                        user,
                        "DISPLAY=:0",
                        f"DBUS_SESSION_BUS_ADDRESS=unix:path=/run/user/{uid}/bus",
                        notify_send,
                        APP_TITLE,
                        message,
                    ],
                )
            except (KeyError, NotificationDeliveryFailed) as exc:
                logger.debug("Desktop notification for %s skipped: %s", user, exc)


def logged_in_users() -> list[str]:
    """Distinct user names with an active login session, sorted."""
    try:
        return sorted({session.name for session in psutil.users() if session.name})
    except (psutil.Error, OSError) as exc:
        logger.debug("Could not enumerate user sessions: %s", exc)
        return []


class Notifier:
    """Dispatch messages through the configured delivery strategy."""

    def __init__(self, strategies: Optional[dict[NotificationMethod, DeliveryStrategy]] = None) -> None:
        if strategies is None:
            strategies = {
                NotificationMethod.WALL: WallBroadcast(),
                NotificationMethod.DESKTOP_NOTIFY: DesktopNotify(),
            }
        self._strategies = strategies

    def notify(self, message: str, method: Optional[NotificationMethod]) -> bool:
        """Deliver a message; returns False when delivery failed. Never raises."""
        if method not in self._strategies:
            logger.warning(
                "Warning: Unknown notification method '%s', defaulting to wall",
                getattr(method, "value", method),
            )
            method = NotificationMethod.WALL
        strategy = self._strategies.get(method)
        if strategy is None:
            logger.warning("Warning: no %s delivery configured; message dropped", method.value)
            return False
        try:
            strategy.deliver(message)
        except NotificationDeliveryFailed as exc:
            logger.warning("Warning: Failed to send %s notification: %s", method.value, exc)
            return False
        return True
