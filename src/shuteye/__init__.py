"""Shut a host down once watched processes have been idle long enough."""

__version__ = "0.1.0"
