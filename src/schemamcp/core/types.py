"""
Shared type definitions for schemamcp.
"""

import datetime as dt
import decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel


class ElementKind(str, Enum):
    """What an element of the schema model is."""

    SCALAR = "scalar"
    ASSOCIATION = "association"
    COMPOSITION = "composition"


class CrudOperation(str, Enum):
    CREATE = "CREATE"
    READ = "READ"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


ALL_OPERATIONS: tuple[str, ...] = tuple(op.value for op in CrudOperation)


class OperationMode(str, Enum):
    """Entity entry points that can be wrapped as tools."""

    QUERY = "query"
    GET = "get"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class ResourceOption(str, Enum):
    """Query capabilities a resource can enable."""

    FILTER = "filter"
    ORDERBY = "orderby"
    TOP = "top"
    SKIP = "skip"
    SELECT = "select"


ALL_RESOURCE_OPTIONS: frozenset[str] = frozenset(opt.value for opt in ResourceOption)


class AggregateFunction(str, Enum):
    COUNT = "count"
    SUM = "sum"
    AVG = "avg"
    MIN = "min"
    MAX = "max"


class ReturnMode(str, Enum):
    ROWS = "rows"
    COUNT = "count"
    AGGREGATE = "aggregate"


class OperationKind(str, Enum):
    FUNCTION = "function"
    ACTION = "action"


SAFE_INTEGER_TYPES = frozenset({"Integer", "Int16", "Int32", "UInt8"})
PRECISION_SENSITIVE_TYPES = frozenset({"Int64", "Decimal"})
STRING_TYPES = frozenset({"String", "LargeString"})

_PYTHON_TYPES: dict[str, Any] = {
    "UUID": str,
    "String": str,
    "LargeString": str,
    "Boolean": bool,
    "Integer": int,
    "Int16": int,
    "Int32": int,
    "UInt8": int,
    "Int64": int | str,
    "Decimal": decimal.Decimal | float | int | str,
    "Double": float,
    "Date": dt.date,
    "Time": dt.time,
    "DateTime": dt.datetime,
    "Timestamp": dt.datetime,
}


class PropertyType(BaseModel):
    """
    Resolved type of an element.

    ``base`` is the scalar type name without the ``cds.`` prefix (or
    ``Association``/``Composition`` for navigation elements). ``str()``
    appends ``Array`` for array-valued elements, which is the form shown to
    agents.
    """

    base: str
    kind: ElementKind = ElementKind.SCALAR
    is_array: bool = False

    model_config = {"frozen": True}

    @classmethod
    def parse(cls, type_name: str, *, is_array: bool = False) -> "PropertyType":
        base = type_name[4:] if type_name.startswith("cds.") else type_name
        if base == "Association":
            kind = ElementKind.ASSOCIATION
        elif base == "Composition":
            kind = ElementKind.COMPOSITION
        else:
            kind = ElementKind.SCALAR
        return cls(base=base, kind=kind, is_array=is_array)

    def __str__(self) -> str:
        return f"{self.base}Array" if self.is_array else self.base

    @property
    def is_association(self) -> bool:
        return self.kind == ElementKind.ASSOCIATION

    @property
    def is_navigation(self) -> bool:
        return self.kind != ElementKind.SCALAR

    @property
    def is_text(self) -> bool:
        return not self.is_array and self.base in STRING_TYPES

    def python_type(self) -> Any:
        """Python type used for tool argument validation."""
        if self.is_array:
            return list[Any]
        return _PYTHON_TYPES.get(self.base, str)
