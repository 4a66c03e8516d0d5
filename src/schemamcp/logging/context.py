"""
Request-scoped log fields.

``Tool.run`` opens a scope with the caller, the request and the tool; every
record emitted inside it, down to the SQL executors, carries those fields.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from contextvars import ContextVar
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from schemamcp.core.context import RunContext

# Fields the formatters treat as context rather than per-call extras
CONTEXT_FIELDS = ("request_id", "user_id", "tool_name", "service", "entity")

_EMPTY: Mapping[str, Any] = MappingProxyType({})

_scope: ContextVar[Mapping[str, Any]] = ContextVar("schemamcp_log_scope", default=_EMPTY)


def current_log_fields() -> dict[str, Any]:
    return dict(_scope.get())


def call_fields(ctx: RunContext, **fields: Any) -> dict[str, Any]:
    """Scope fields for one invocation under ``ctx``."""
    return {"request_id": ctx.request_id, "user_id": ctx.principal.user_id, **fields}


@contextmanager
def log_scope(**fields: Any) -> Iterator[Mapping[str, Any]]:
    """
    Add fields to every record logged inside the block.

    Scopes nest: inner fields are merged over the outer ones and ``None``
    values are left out.

    Example:
        with log_scope(request_id="r-1", tool_name="CatalogService_Books_query"):
            logger.info("Running query")
    """
    merged = {**_scope.get(), **{k: v for k, v in fields.items() if v is not None}}
    token = _scope.set(MappingProxyType(merged))
    try:
        yield _scope.get()
    finally:
        _scope.reset(token)


def bind_log_fields(**fields: Any) -> None:
    """Add fields to the innermost open scope until it closes."""
    _scope.set(MappingProxyType({**_scope.get(), **fields}))


class ContextFilter(logging.Filter):
    """Copy the scope fields onto each record, keeping explicit extras."""

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in _scope.get().items():
            record.__dict__.setdefault(key, value)
        return True
