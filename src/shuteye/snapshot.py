"""Capture the command lines of running processes."""

from __future__ import annotations

import logging
import shutil
import subprocess
from typing import Callable, Optional, Sequence

import psutil

from .models import ProcessSnapshot

logger = logging.getLogger(__name__)

PS_TIMEOUT_SECONDS = 10


class SnapshotSourceError(RuntimeError):
    """A process listing source could not produce a snapshot."""


def psutil_command_lines() -> list[str]:
    lines: list[str] = []
    try:
        processes = psutil.process_iter(attrs=["name", "cmdline"])
        for proc in processes:
            try:
                cmdline = proc.info.get("cmdline")
                name = proc.info.get("name")
            except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
                continue
            if cmdline:
                lines.append(" ".join(str(part) for part in cmdline))
            elif name:
                lines.append(str(name))
    except psutil.Error as exc:
        raise SnapshotSourceError(f"psutil process listing failed: {exc}") from exc
    return lines


def ps_command_lines() -> list[str]:
    ps = shutil.which("ps")
    if not ps:
        raise SnapshotSourceError("ps command not found")
    try:
        completed = subprocess.run(
            [ps, "-eo", "args="],
            check=True,
            capture_output=True,
            text=True,
            timeout=PS_TIMEOUT_SECONDS,
        )
    except (OSError, subprocess.SubprocessError) as exc:
        raise SnapshotSourceError(f"ps failed: {exc}") from exc
    return [line.strip() for line in completed.stdout.splitlines() if line.strip()]


SnapshotSource = Callable[[], list[str]]

DEFAULT_SOURCES: tuple[tuple[str, SnapshotSource], ...] = (
    ("psutil", psutil_command_lines),
    ("ps", ps_command_lines),
)


class ProcessTable:
    """Reads the live process table, falling back across listing sources."""

    def __init__(
        self, sources: Optional[Sequence[tuple[str, SnapshotSource]]] = None
    ) -> None:
        self._sources = tuple(sources) if sources is not None else DEFAULT_SOURCES

    def capture(self) -> ProcessSnapshot:
        for name, source in self._sources:
            try:
                lines = source()
            except SnapshotSourceError as exc:
                logger.warning("Warning: process source '%s' unavailable: %s", name, exc)
                continue
            logger.debug("Captured %d processes via %s", len(lines), name)
            return ProcessSnapshot(command_lines=tuple(lines), source=name)
        logger.warning("Warning: no process listing source available; assuming no activity")
        return ProcessSnapshot()
