"""
schemamcp core module.

Contains the runtime context, query DSL, error taxonomy and shared types.
"""

from schemamcp.core.context import Principal, RunContext
from schemamcp.core.dsl import (
    AggregateClause,
    OrderByClause,
    QueryArgs,
    WhereClause,
    WhereOp,
)
from schemamcp.core.errors import (
    AnnotationError,
    BoundOperationError,
    CyclicTypeReferenceError,
    ExecutionError,
    FilterParseError,
    InvalidInputError,
    MissingKeyError,
    MissingServiceError,
    ModelLoadError,
    NoFieldsError,
    NotFoundError,
    OperationTimeoutError,
    SchemaMcpError,
    UnresolvableTypeReferenceError,
)
from schemamcp.core.types import (
    CrudOperation,
    ElementKind,
    OperationMode,
    PropertyType,
    ReturnMode,
)

__all__ = [
    # Context
    "Principal",
    "RunContext",
    # DSL
    "QueryArgs",
    "WhereClause",
    "WhereOp",
    "OrderByClause",
    "AggregateClause",
    # Errors
    "SchemaMcpError",
    "ModelLoadError",
    "AnnotationError",
    "UnresolvableTypeReferenceError",
    "CyclicTypeReferenceError",
    "BoundOperationError",
    "InvalidInputError",
    "MissingServiceError",
    "MissingKeyError",
    "NoFieldsError",
    "FilterParseError",
    "NotFoundError",
    "OperationTimeoutError",
    "ExecutionError",
    # Types
    "CrudOperation",
    "ElementKind",
    "OperationMode",
    "PropertyType",
    "ReturnMode",
]
