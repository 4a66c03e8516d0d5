"""Shared helpers."""

from schemamcp.utils.timeout import DEFAULT_TIMEOUT_MS, with_timeout

__all__ = ["DEFAULT_TIMEOUT_MS", "with_timeout"]
