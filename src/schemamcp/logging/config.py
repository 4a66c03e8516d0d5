"""
Logger factory and handler setup.

All schemamcp loggers live under the ``schemamcp`` hierarchy and emit
through the stdlib ``logging`` machinery, so an application that configures
logging itself needs nothing from here. ``configure_logging`` is for the
standalone server.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Mapping
from typing import Any, TextIO

from schemamcp.logging.context import ContextFilter
from schemamcp.logging.formatters import JSONFormatter, TextFormatter

PACKAGE_LOGGER = "schemamcp"

LOG_FORMATS = ("json", "text")


class SchemaMcpLogger:
    """
    Logger taking record fields as keyword arguments.

    ``bind`` returns a logger carrying fixed fields; fields given on the call
    win over bound ones.

    Example:
        logger = get_logger(__name__).bind(entity="CatalogService.Books")
        logger.info("Query executed", rows=3)
    """

    def __init__(self, name: str, fields: Mapping[str, Any] | None = None) -> None:
        self._logger = logging.getLogger(name)
        self.fields = dict(fields or {})

    @property
    def name(self) -> str:
        return self._logger.name

    def bind(self, **fields: Any) -> SchemaMcpLogger:
        return SchemaMcpLogger(self._logger.name, {**self.fields, **fields})

    def log(
        self,
        level: int,
        msg: str,
        *args: Any,
        exc_info: bool | BaseException | None = None,
        **fields: Any,
    ) -> None:
        if self._logger.isEnabledFor(level):
            self._logger.log(
                level, msg, *args, exc_info=exc_info, extra={**self.fields, **fields}
            )

    def debug(self, msg: str, *args: Any, **fields: Any) -> None:
        self.log(logging.DEBUG, msg, *args, **fields)

    def info(self, msg: str, *args: Any, **fields: Any) -> None:
        self.log(logging.INFO, msg, *args, **fields)

    def warning(self, msg: str, *args: Any, **fields: Any) -> None:
        self.log(logging.WARNING, msg, *args, **fields)

    def error(self, msg: str, *args: Any, **fields: Any) -> None:
        self.log(logging.ERROR, msg, *args, **fields)

    def exception(self, msg: str, *args: Any, **fields: Any) -> None:
        self.log(logging.ERROR, msg, *args, exc_info=True, **fields)

    def is_enabled_for(self, level: int | str) -> bool:
        return self._logger.isEnabledFor(_level_number(level))


def get_logger(name: str) -> SchemaMcpLogger:
    return SchemaMcpLogger(name)


def _level_number(level: int | str) -> int:
    if isinstance(level, int):
        return level
    number = logging.getLevelName(level.upper())
    if not isinstance(number, int):
        raise ValueError(f"Unknown log level: {level}")
    return number


def configure_logging(
    level: int | str = "INFO",
    format: str = "json",
    output: TextIO | None = None,
    *,
    include_context: bool = True,
    use_colors: bool | None = None,
) -> logging.Handler:
    """
    Install one handler on the ``schemamcp`` logger and return it.

    Handlers added by an earlier call are replaced and records stop
    propagating to the root logger. Colors default to on when the output is
    a terminal.

    Example:
        configure_logging(level="DEBUG", format="text")
    """
    if format not in LOG_FORMATS:
        raise ValueError(f"Unknown log format: {format} (expected one of {', '.join(LOG_FORMATS)})")
    number = _level_number(level)
    output = output or sys.stderr

    handler = logging.StreamHandler(output)
    handler.setLevel(number)
    if format == "json":
        handler.setFormatter(JSONFormatter())
    else:
        if use_colors is None:
            use_colors = output.isatty()
        handler.setFormatter(TextFormatter(use_colors=use_colors))
    if include_context:
        handler.addFilter(ContextFilter())

    package_logger = logging.getLogger(PACKAGE_LOGGER)
    package_logger.setLevel(number)
    package_logger.handlers.clear()
    package_logger.addHandler(handler)
    package_logger.propagate = False
    return handler
