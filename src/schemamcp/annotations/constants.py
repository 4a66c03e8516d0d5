"""
Recognized annotation tags.
"""

from schemamcp.core.types import ALL_RESOURCE_OPTIONS

MCP_ANNOTATION_KEY = "@mcp"

# Definition-level tag -> record field. Anything else is dropped at parse time.
MCP_ANNOTATION_MAPPING: dict[str, str] = {
    "@mcp.name": "name",
    "@mcp.description": "description",
    "@mcp.resource": "resource",
    "@mcp.tool": "tool",
    "@mcp.prompts": "prompts",
    "@mcp.wrap": "wrap",
    "@mcp.wrap.tools": "wrap.tools",
    "@mcp.wrap.modes": "wrap.modes",
    "@mcp.wrap.name": "wrap.name",
    "@mcp.wrap.hint": "wrap.hint",
    "@mcp.wrap.hint.get": "wrap.hint.get",
    "@mcp.wrap.hint.query": "wrap.hint.query",
    "@mcp.wrap.hint.create": "wrap.hint.create",
    "@mcp.wrap.hint.update": "wrap.hint.update",
    "@mcp.wrap.hint.delete": "wrap.hint.delete",
    "@mcp.elicit": "elicit",
    "@requires": "requires",
    "@restrict": "restrict",
}

DEFAULT_ALL_RESOURCE_OPTIONS = ALL_RESOURCE_OPTIONS

# Element-level tags
MCP_HINT_ELEMENT = "@mcp.hint"
MCP_OMIT_ELEMENT = "@mcp.omit"
MCP_DEEP_INSERT_ELEMENT = "@mcp.deepInsert"

ELICIT_MODES = frozenset({"input", "confirm"})
PROMPT_ROLES = frozenset({"user", "assistant"})
