"""
schemamcp tools.

Entity tools (query/get/create/update/delete), operation tools for
functions and actions, and the model description tool.
"""

from schemamcp.tools.base import Tool, ToolResult
from schemamcp.tools.describe import DescribeModelTool
from schemamcp.tools.entity import (
    CreateTool,
    DeleteTool,
    EntityTool,
    GetTool,
    QueryTool,
    UpdateTool,
    build_entity_tools,
    tool_name_for,
)
from schemamcp.tools.operations import OperationTool
from schemamcp.tools.registry import ToolRegistry

__all__ = [
    # Base
    "Tool",
    "ToolResult",
    "ToolRegistry",
    # Entity tools
    "EntityTool",
    "QueryTool",
    "GetTool",
    "CreateTool",
    "UpdateTool",
    "DeleteTool",
    "build_entity_tools",
    "tool_name_for",
    # Other tools
    "OperationTool",
    "DescribeModelTool",
]
