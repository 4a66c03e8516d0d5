"""
Structured logging for schemamcp: keyword fields on records, request scope
from contextvars, JSON or text output.
"""

from schemamcp.logging.config import (
    LOG_FORMATS,
    PACKAGE_LOGGER,
    SchemaMcpLogger,
    configure_logging,
    get_logger,
)
from schemamcp.logging.context import (
    CONTEXT_FIELDS,
    ContextFilter,
    bind_log_fields,
    call_fields,
    current_log_fields,
    log_scope,
)
from schemamcp.logging.formatters import JSONFormatter, TextFormatter

__all__ = [
    "CONTEXT_FIELDS",
    "LOG_FORMATS",
    "PACKAGE_LOGGER",
    "ContextFilter",
    "JSONFormatter",
    "SchemaMcpLogger",
    "TextFormatter",
    "bind_log_fields",
    "call_fields",
    "configure_logging",
    "current_log_fields",
    "get_logger",
    "log_scope",
]
