"""Helpers for locating the state and log files."""

from __future__ import annotations

import os
from pathlib import Path

from platformdirs import PlatformDirs


APP_NAME = "shuteye"
APP_AUTHOR = "shuteye"

SYSTEM_STATE_DIR = Path("/var/lib/shuteye")
SYSTEM_LOG_PATH = Path("/var/log/shuteye.log")


def _is_root() -> bool:
    geteuid = getattr(os, "geteuid", None)
    return bool(geteuid) and geteuid() == 0


def get_state_dir() -> Path:
    """Return the directory holding the persisted activity timestamp."""
    if _is_root():
        return SYSTEM_STATE_DIR
    dirs = PlatformDirs(appname=APP_NAME, appauthor=APP_AUTHOR)
    return Path(dirs.user_state_path)


def get_state_path() -> Path:
    return get_state_dir() / "last_active"


def get_log_path() -> Path:
    if _is_root():
        return SYSTEM_LOG_PATH
    dirs = PlatformDirs(appname=APP_NAME, appauthor=APP_AUTHOR)
    return Path(dirs.user_log_path) / "shuteye.log"
