"""
Per-session tool lookup.
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any

from schemamcp.core.context import RunContext
from schemamcp.core.errors import NotFoundError
from schemamcp.logging import get_logger
from schemamcp.tools.base import Tool, ToolResult

logger = get_logger(__name__)


class ToolRegistry:
    """
    The tools one session was admitted to, by name.

    Names are unique: a later tool with a taken name is dropped with a
    warning, so an operation can never shadow an entity tool registered
    before it. Calls for unknown names fail with NOT_FOUND.
    """

    def __init__(self, tools: list[Tool] | None = None) -> None:
        self._tools: dict[str, Tool] = {}
        for tool in tools or []:
            self.register(tool)

    def register(self, tool: Tool) -> bool:
        if tool.name in self._tools:
            logger.warning("Duplicate tool name, keeping the first", tool=tool.name)
            return False
        self._tools[tool.name] = tool
        return True

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def names(self) -> list[str]:
        return list(self._tools)

    def schemas(self) -> list[dict[str, Any]]:
        return [tool.get_json_schema() for tool in self]

    async def execute(self, name: str, arguments: dict[str, Any], ctx: RunContext) -> ToolResult:
        tool = self._tools.get(name)
        if tool is None:
            error = NotFoundError(
                f"Tool '{name}' not found",
                retry_hints=[f"Available tools: {', '.join(self._tools)}"],
            )
            return ToolResult.fail(error.to_dict())
        return await tool.run(arguments, ctx)

    def __iter__(self) -> Iterator[Tool]:
        return iter(self._tools.values())

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools
