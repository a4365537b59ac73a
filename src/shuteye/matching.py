"""Match watched patterns against process command lines."""

from __future__ import annotations

import re
from functools import lru_cache
from typing import Iterable, Optional, Pattern

_WHITESPACE = re.compile(r"\s")


@lru_cache(maxsize=256)
def compile_pattern(pattern: str) -> Pattern[str]:
    """Build the regex used for a single watched pattern.

    Multi-token patterns match as a contiguous substring anywhere in the
    command line. Single tokens must be bounded by whitespace or the ends of
    the command line, so ``run`` matches ``/usr/bin/run arg`` but not
    ``runner-x``.
    """
    cleaned = pattern.strip()
    if not cleaned:
        raise ValueError("Pattern must not be empty")
    escaped = re.escape(cleaned)
    if _WHITESPACE.search(cleaned):
        return re.compile(escaped)
    return re.compile(rf"(?:^|\s|/){escaped}(?=\s|$)")


def matches(pattern: str, command_lines: Iterable[str]) -> bool:
    """Return True if any command line satisfies the pattern."""
    return find_match(pattern, command_lines) is not None


def find_match(pattern: str, command_lines: Iterable[str]) -> Optional[str]:
    """Return the first command line matching the pattern, if any."""
    regex = compile_pattern(pattern)
    for command_line in command_lines:
        if command_line and regex.search(command_line):
            return command_line
    return None
