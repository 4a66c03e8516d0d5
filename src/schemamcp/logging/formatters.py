"""
Record formatters.

``JSONFormatter`` writes one object per line for log shippers;
``TextFormatter`` writes ``key=value`` lines for a terminal.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any

from schemamcp.logging.context import CONTEXT_FIELDS

# Attributes every LogRecord carries; anything else was passed as a field.
_RECORD_ATTRIBUTES = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", None, None)).keys()
) | {"message", "asctime", "taskName"}


def record_fields(record: logging.LogRecord) -> tuple[dict[str, Any], dict[str, Any]]:
    """Split the non-standard attributes of a record into context and extras."""
    context: dict[str, Any] = {}
    extra: dict[str, Any] = {}
    for key, value in record.__dict__.items():
        if key in _RECORD_ATTRIBUTES or key.startswith("_"):
            continue
        if key in CONTEXT_FIELDS:
            if value is not None:
                context[key] = value
        else:
            extra[key] = value
    return context, extra


class JSONFormatter(logging.Formatter):
    """
    One JSON object per record.

    Keys: ``timestamp``, ``level``, ``logger``, ``message``, then the context
    fields at top level, an ``extra`` object with the remaining fields and an
    ``exception`` object when exception info is attached.
    """

    def __init__(self, include_extra: bool = True) -> None:
        super().__init__()
        self.include_extra = include_extra

    def format(self, record: logging.LogRecord) -> str:
        context, extra = record_fields(record)
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **context,
        }
        if self.include_extra and extra:
            entry["extra"] = extra
        if record.exc_info and record.exc_info[0] is not None:
            exc_type, exc_value, _ = record.exc_info
            entry["exception"] = {
                "type": exc_type.__name__,
                "message": str(exc_value),
                "traceback": self.formatException(record.exc_info),
            }
        return json.dumps(entry, default=str, ensure_ascii=False)


class TextFormatter(logging.Formatter):
    """``<time> <LEVEL> <logger>: <message> key=value ...``, optionally colored."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(self, use_colors: bool = False) -> None:
        super().__init__()
        self.use_colors = use_colors

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created, timezone.utc).strftime("%H:%M:%S")
        level = f"{record.levelname:8}"
        if self.use_colors and record.levelname in self.COLORS:
            level = f"{self.COLORS[record.levelname]}{level}{self.RESET}"

        context, extra = record_fields(record)
        pairs = " ".join(f"{key}={value}" for key, value in {**context, **extra}.items())

        line = f"{timestamp} {level} {record.name}: {record.getMessage()}"
        if pairs:
            line = f"{line} {pairs}"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line
