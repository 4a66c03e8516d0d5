"""
Tool contract: validated input in, ``ToolResult`` out.
"""

import json
from abc import ABC, abstractmethod
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ValidationError

from schemamcp.core.context import RunContext
from schemamcp.core.errors import InvalidInputError, SchemaMcpError
from schemamcp.logging import call_fields, get_logger, log_scope

logger = get_logger(__name__)

InputT = TypeVar("InputT", bound=BaseModel)
OutputT = TypeVar("OutputT")


class ToolResult(BaseModel, Generic[OutputT]):
    """
    Result of a tool execution.

    Failures carry the structured error envelope
    ``{"error": CODE, "message": ..., ...}``.
    """

    success: bool
    data: OutputT | None = None
    error: dict[str, Any] | None = None

    model_config = {"frozen": True}

    @classmethod
    def ok(cls, data: OutputT) -> "ToolResult[OutputT]":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: dict[str, Any]) -> "ToolResult[OutputT]":
        return cls(success=False, error=error)

    @property
    def payload(self) -> Any:
        return self.data if self.success else self.error

    def to_mcp(self) -> dict[str, Any]:
        """
        Render as an MCP ``CallToolResult`` body.

        The payload is serialized as JSON text; dict payloads are also given
        as ``structuredContent``.
        """
        payload = self.payload
        result: dict[str, Any] = {
            "content": [{"type": "text", "text": json.dumps(payload, default=str)}],
        }
        if isinstance(payload, dict):
            result["structuredContent"] = payload
        if not self.success:
            result["isError"] = True
        return result


class Tool(ABC, Generic[InputT, OutputT]):
    """
    One MCP tool.

    Subclasses set ``name``, ``description`` and a pydantic ``input_schema``
    and implement ``execute``. Callers go through ``run``, which validates
    the arguments and turns every failure into an error envelope.
    """

    name: str
    description: str
    input_schema: type[InputT]

    @abstractmethod
    async def execute(
        self,
        input: InputT,
        ctx: RunContext,
    ) -> OutputT:
        """
        Execute the tool with validated input.

        Raises SchemaMcpError subclasses for request and execution failures.
        """
        ...

    def prepare_input(self, arguments: dict[str, Any]) -> dict[str, Any]:
        """Normalize raw arguments before validation."""
        return arguments

    def log_fields(self) -> dict[str, Any]:
        """Fields added to the log scope of every call."""
        return {}

    async def run(
        self,
        input: InputT | dict[str, Any],
        ctx: RunContext,
    ) -> ToolResult[OutputT]:
        """Validate, execute and wrap the outcome; never raises."""
        with log_scope(**call_fields(ctx, tool_name=self.name, **self.log_fields())):
            try:
                if isinstance(input, dict):
                    try:
                        input = self.input_schema.model_validate(self.prepare_input(input))
                    except ValidationError as e:
                        raise InvalidInputError(
                            e.errors(include_url=False, include_context=False)
                        ) from e

                result = await self.execute(input, ctx)
                logger.debug("Tool call completed", duration_ms=ctx.elapsed_ms())
                return ToolResult.ok(result)

            except SchemaMcpError as e:
                logger.info(
                    "Tool call failed", code=e.code, reason=e.message, duration_ms=ctx.elapsed_ms()
                )
                return ToolResult.fail(e.to_dict())
            except Exception as e:
                logger.exception("Unexpected tool failure")
                return ToolResult.fail({
                    "error": "INTERNAL_ERROR",
                    "message": str(e),
                })

    def get_json_schema(self) -> dict[str, Any]:
        """Tool definition as listed to MCP clients."""
        return {
            "name": self.name,
            "description": self.description,
            "parameters": self.input_schema.model_json_schema(by_alias=True),
        }
