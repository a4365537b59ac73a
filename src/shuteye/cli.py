"""Command-line interface for the shutdown watchdog."""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

import typer

from .config import MonitorSettings, NotificationMethod
from .errors import ConfigInvalid, StateStoreUnavailable

app = typer.Typer(help="Shut the machine down when watched processes stay idle.")

logger = logging.getLogger(__name__)


PatternsOption = typer.Option(
    "ollama,invoke",
    "--processes",
    "-p",
    envvar="SHUTEYE_PROCESSES",
    help="Comma separated process names or command-line fragments to watch.",
)
TimeoutOption = typer.Option(
    60.0,
    "--timeout",
    envvar="SHUTEYE_INACTIVITY_TIMEOUT",
    help="Minutes without watched activity before shutting down.",
)
DelayOption = typer.Option(
    1.0,
    "--delay",
    envvar="SHUTEYE_SHUTDOWN_DELAY",
    help="Minutes between the warning and the actual shutdown.",
)
IntervalOption = typer.Option(
    60.0,
    "--interval",
    envvar="SHUTEYE_CHECK_INTERVAL",
    help="Seconds between process checks.",
)
NotifyOption = typer.Option(
    NotificationMethod.WALL.value,
    "--notify",
    envvar="SHUTEYE_NOTIFICATION_METHOD",
    help="How to warn users: 'wall' or 'notify-send'.",
)
StateOption = typer.Option(
    None,
    "--state-file",
    envvar="SHUTEYE_STATE_FILE",
    path_type=Path,
    help="File holding the last activity timestamp.",
)
LogOption = typer.Option(
    None,
    "--log-file",
    envvar="SHUTEYE_LOG_FILE",
    path_type=Path,
    help="Append-only log file.",
)


@app.callback(no_args_is_help=True)
def main() -> None:
    """Watch processes and shut the host down after inactivity."""


def _build_settings(log_rejection: bool = False, **values) -> MonitorSettings:
    try:
        return MonitorSettings.from_values(**values)
    except ConfigInvalid as exc:
        if not (log_rejection and _log_rejection(values.get("log_path"), exc)):
            typer.echo(f"Invalid configuration: {exc}", err=True)
        raise typer.Exit(code=2) from exc


def _log_rejection(log_path: Optional[Path], exc: ConfigInvalid) -> bool:
    """Record a refused start in the log sink; False when the sink is unusable."""
    from .logs import configure_logging
    from .paths import get_log_path

    try:
        configure_logging(Path(log_path) if log_path else get_log_path())
    except OSError as log_exc:
        typer.echo(f"Error: Cannot write to log file: {log_exc}", err=True)
        return False
    logger.error("Invalid configuration: %s", exc)
    return True


@app.command()
def run(
    processes: str = PatternsOption,
    timeout: float = TimeoutOption,
    delay: float = DelayOption,
    interval: float = IntervalOption,
    notify: str = NotifyOption,
    state_file: Optional[Path] = StateOption,
    log_file: Optional[Path] = LogOption,
    allow_immediate_poweroff: bool = typer.Option(
        False,
        "--allow-immediate-poweroff/--no-allow-immediate-poweroff",
        envvar="SHUTEYE_ALLOW_IMMEDIATE_POWEROFF",
        help="Power off without delay when no scheduler can honor --delay.",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logs."),
) -> None:
    """Run the watchdog until it schedules a shutdown."""
    from .logs import configure_logging
    from .monitor import MonitorLoop

    settings = _build_settings(
        log_rejection=True,
        patterns=processes,
        timeout_minutes=timeout,
        delay_minutes=delay,
        interval_seconds=interval,
        notification_method=notify,
        state_path=state_file,
        log_path=log_file,
        allow_immediate_poweroff=allow_immediate_poweroff,
    )
    try:
        configure_logging(settings.log_path, verbose=verbose)
    except OSError as exc:
        typer.echo(f"Error: Cannot write to log file {settings.log_path}: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    if settings.notification_method is None:
        logger.warning("Warning: Unknown notification method '%s', defaulting to wall", notify)

    loop = MonitorLoop(settings)
    loop.install_signal_handlers()
    loop.log_startup()
    raise typer.Exit(code=loop.run())


@app.command()
def status(
    processes: str = PatternsOption,
    timeout: float = TimeoutOption,
    state_file: Optional[Path] = StateOption,
) -> None:
    """Print the last recorded activity and which watched processes are running."""
    from .reporting import StatusPrinter
    from .snapshot import ProcessTable

    settings = _build_settings(
        patterns=processes, timeout_minutes=timeout, state_path=state_file
    )
    printer = StatusPrinter(settings)
    try:
        printer.print_status(ProcessTable().capture(), datetime.now())
    except StateStoreUnavailable as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc
