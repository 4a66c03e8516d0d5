"""
SQLAlchemy adapter for schemamcp.

Maps schema entities onto SQLAlchemy Core tables and runs queries and
mutations through async sessions.
"""

from schemamcp.adapters.sqlalchemy.compiler import QueryCompiler, QueryExecutor
from schemamcp.adapters.sqlalchemy.mutations import (
    MutationCompiler,
    MutationExecutor,
    normalize_key_arguments,
)
from schemamcp.adapters.sqlalchemy.schema import EntityTables, build_tables
from schemamcp.adapters.sqlalchemy.service import SQLAlchemyService
from schemamcp.adapters.sqlalchemy.session import SessionManager, SQLAlchemyTransaction

__all__ = [
    "EntityTables",
    "MutationCompiler",
    "MutationExecutor",
    "QueryCompiler",
    "QueryExecutor",
    "SessionManager",
    "SQLAlchemyService",
    "SQLAlchemyTransaction",
    "build_tables",
    "normalize_key_arguments",
]
