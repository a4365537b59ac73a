"""Persistent storage for the time of last observed activity."""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Optional

from .errors import StateStoreUnavailable

logger = logging.getLogger(__name__)


class ActivityStateStore:
    """Stores ``last_active_at`` as a bare decimal integer in a single file.

    Writes go to a temporary file in the same directory which then replaces
    the target, so a concurrent reader sees either the old or the new value.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def read(self) -> Optional[int]:
        """Return the stored timestamp, or None when missing, empty or unparsable."""
        try:
            raw = self.path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise StateStoreUnavailable(f"Cannot read {self.path}: {exc}") from exc
        if not raw:
            return None
        try:
            return int(raw)
        except ValueError:
            logger.warning("Warning: ignoring corrupt activity state %r in %s", raw, self.path)
            return None

    def write(self, timestamp: float) -> int:
        value = int(timestamp)
        tmp_name: Optional[str] = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
            )
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(f"{value}\n")
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, self.path)
            tmp_name = None
        except OSError as exc:
            raise StateStoreUnavailable(f"Cannot write {self.path}: {exc}") from exc
        finally:
            if tmp_name is not None:
                try:
                    os.unlink(tmp_name)
                except OSError:
                    pass
        return value
