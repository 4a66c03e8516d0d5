"""
schemamcp - expose annotated schema models as MCP tools, resources and prompts.

Entities, functions, actions and prompt templates tagged with ``@mcp.*``
annotations are compiled into an immutable annotation model at load time.
Agent calls are validated against it and run as SQLAlchemy statements.
"""

from schemamcp.adapters import DataService, ServiceRegistry
from schemamcp.adapters.sqlalchemy import SQLAlchemyService, build_tables
from schemamcp.annotations import AnnotationRegistry, parse_definitions
from schemamcp.core import Principal, RunContext, SchemaMcpError
from schemamcp.mcp import McpConfig, McpServer, McpSession
from schemamcp.model import ModelReader

__version__ = "0.1.0"

__all__ = [
    "AnnotationRegistry",
    "DataService",
    "McpConfig",
    "McpServer",
    "McpSession",
    "ModelReader",
    "Principal",
    "RunContext",
    "SQLAlchemyService",
    "SchemaMcpError",
    "ServiceRegistry",
    "build_tables",
    "parse_definitions",
]
