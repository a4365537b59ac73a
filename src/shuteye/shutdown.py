"""Request a system shutdown through whichever mechanism the host provides."""

from __future__ import annotations

import logging
import shutil
import subprocess
from typing import Callable, Optional, Protocol, Sequence

from .errors import DelayNotHonored, NoMechanismAvailable, ShutdownMechanismFailed
from .models import ShutdownResult

logger = logging.getLogger(__name__)

SHUTDOWN_MESSAGE = "Automatic shutdown due to process inactivity"
COMMAND_TIMEOUT_SECONDS = 30

Runner = Callable[..., subprocess.CompletedProcess]
Which = Callable[[str], Optional[str]]


class ShutdownMechanism(Protocol):
    name: str

    def available(self) -> bool:
        ...

    def attempt(self, delay_minutes: int) -> None:
        """Request the shutdown or raise ShutdownMechanismFailed."""
        ...


class _CommandMechanism:
    name = "command"

    def __init__(self, runner: Runner = subprocess.run, which: Which = shutil.which) -> None:
        self._runner = runner
        self._which = which

    def _execute(self, cmd: list[str], stdin: Optional[str] = None) -> None:
        try:
            self._runner(
                cmd,
                input=stdin,
                check=True,
                capture_output=True,
                text=True,
                timeout=COMMAND_TIMEOUT_SECONDS,
            )
        except subprocess.CalledProcessError as exc:
            detail = (exc.stderr or "").strip() or f"exit status {exc.returncode}"
            raise ShutdownMechanismFailed(self.name, detail) from exc
        except subprocess.TimeoutExpired as exc:
            raise ShutdownMechanismFailed(self.name, "timed out") from exc
        except OSError as exc:
            raise ShutdownMechanismFailed(self.name, str(exc)) from exc

    def _require(self, program: str) -> str:
        path = self._which(program)
        if not path:
            raise ShutdownMechanismFailed(self.name, f"{program} not found")
        return path


class ShutdownHalt(_CommandMechanism):
    """``shutdown -h +N``."""

    name = "shutdown -h"

    def available(self) -> bool:
        return self._which("shutdown") is not None

    def attempt(self, delay_minutes: int) -> None:
        shutdown = self._require("shutdown")
        self._execute([shutdown, "-h", f"+{delay_minutes}", SHUTDOWN_MESSAGE])


class ShutdownPlain(_CommandMechanism):
    """``shutdown +N`` for variants that reject ``-h``."""

    name = "shutdown"

    def available(self) -> bool:
        return self._which("shutdown") is not None

    def attempt(self, delay_minutes: int) -> None:
        shutdown = self._require("shutdown")
        self._execute([shutdown, f"+{delay_minutes}", SHUTDOWN_MESSAGE])


class ScheduledPoweroff(_CommandMechanism):
    """Queue ``poweroff`` with at(1), since poweroff itself cannot wait."""

    name = "poweroff via at"

    def available(self) -> bool:
        return self._which("poweroff") is not None and self._which("at") is not None

    def attempt(self, delay_minutes: int) -> None:
        poweroff = self._require("poweroff")
        at = self._require("at")
        when = ["now"] if delay_minutes <= 0 else ["now", "+", str(delay_minutes), "minutes"]
        self._execute([at, *when], stdin=f"{poweroff}\n")


class ImmediatePoweroff(_CommandMechanism):
    """Last resort when poweroff exists but nothing can delay it."""

    name = "poweroff"

    def __init__(
        self,
        runner: Runner = subprocess.run,
        which: Which = shutil.which,
        allow: bool = False,
    ) -> None:
        super().__init__(runner, which)
        self.allow = allow

    def available(self) -> bool:
        return (
            self._which("poweroff") is not None
            and self._which("shutdown") is None
            and self._which("at") is None
        )

    def attempt(self, delay_minutes: int) -> None:
        if delay_minutes > 0 and not self.allow:
            raise DelayNotHonored(
                self.name,
                f"no scheduler available to honor a {delay_minutes} minute delay; declining",
            )
        if delay_minutes > 0:
            logger.warning(
                "WARNING: cannot delay poweroff by %d minute(s); powering off now",
                delay_minutes,
            )
        self._execute([self._require("poweroff")])


def default_mechanisms(
    allow_immediate_poweroff: bool = False,
    runner: Runner = subprocess.run,
    which: Which = shutil.which,
) -> list[ShutdownMechanism]:
    return [
        ShutdownHalt(runner, which),
        ShutdownPlain(runner, which),
        ScheduledPoweroff(runner, which),
        ImmediatePoweroff(runner, which, allow=allow_immediate_poweroff),
    ]


class ShutdownInvoker:
    """Tries each mechanism in priority order until one accepts the request."""

    def __init__(self, mechanisms: Optional[Sequence[ShutdownMechanism]] = None) -> None:
        self.mechanisms = list(mechanisms) if mechanisms is not None else default_mechanisms()

    def invoke(self, delay_minutes: int) -> ShutdownResult:
        failures: list[str] = []
        declined = False
        for mechanism in self.mechanisms:
            if not mechanism.available():
                logger.debug("Shutdown mechanism '%s' not available", mechanism.name)
                continue
            try:
                mechanism.attempt(delay_minutes)
            except ShutdownMechanismFailed as exc:
                logger.error(
                    "ERROR: shutdown mechanism '%s' failed: %s", exc.mechanism, exc.reason
                )
                failures.append(str(exc))
                declined = declined or isinstance(exc, DelayNotHonored)
                continue
            logger.info(
                "Shutdown scheduled in %d minute(s) via '%s'", delay_minutes, mechanism.name
            )
            return ShutdownResult.success(mechanism.name, tuple(failures))

        if failures:
            error = NoMechanismAvailable("Failed to execute shutdown command")
        else:
            error = NoMechanismAvailable("No shutdown or poweroff command available")
        logger.error("ERROR: %s", error)
        return ShutdownResult.failure(error, tuple(failures), declined=declined)
