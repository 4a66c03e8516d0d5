"""
MCP surface: configuration, sessions, resources and prompts.
"""

from schemamcp.mcp.config import McpConfig
from schemamcp.mcp.filters import parse_filter, parse_orderby, parse_select
from schemamcp.mcp.prompts import PromptEntry, render_template
from schemamcp.mcp.resources import ResourceReader
from schemamcp.mcp.server import McpServer, McpSession

__all__ = [
    "McpConfig",
    "McpServer",
    "McpSession",
    "PromptEntry",
    "ResourceReader",
    "parse_filter",
    "parse_orderby",
    "parse_select",
    "render_template",
]
