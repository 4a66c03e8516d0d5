"""
Tools for annotated functions and actions.

Unbound operations take their declared parameters. Bound operations also
take the keys of their entity, which are coerced before dispatch. Execution
is delegated to the handler registered on the service with ``DataService.on``.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, create_model

from schemamcp.adapters.base import ServiceRegistry
from schemamcp.annotations.structures import ToolAnnotation
from schemamcp.core.coercion import coerce_keys
from schemamcp.core.context import RunContext
from schemamcp.core.dsl import key_input_type
from schemamcp.core.errors import MissingKeyError, OperationFailedError, SchemaMcpError
from schemamcp.logging import get_logger
from schemamcp.tools.base import Tool
from schemamcp.utils.timeout import DEFAULT_TIMEOUT_MS, with_timeout

logger = get_logger(__name__)


def build_operation_model(annotation: ToolAnnotation) -> type[BaseModel]:
    fields: dict[str, Any] = {}
    for name, prop in (annotation.key_type_map or {}).items():
        fields[name] = (key_input_type(prop) | None, None)
    for name, prop in (annotation.parameters or {}).items():
        fields[name] = (prop.python_type() | None, None)
    return create_model(
        f"{annotation.name}Args",
        __config__=ConfigDict(extra="forbid"),
        **fields,
    )


class OperationTool(Tool[BaseModel, Any]):
    """
    Exposes one function or action.

    Example:
        service.on("submitOrder", handle_submit)
        tool = OperationTool(annotation, services)
        result = await tool.run({"book": 201, "quantity": 2}, ctx)
    """

    def __init__(
        self,
        annotation: ToolAnnotation,
        services: ServiceRegistry,
        *,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
    ) -> None:
        self.annotation = annotation
        self.services = services
        self.timeout_ms = timeout_ms
        self.name = annotation.name
        self.description = annotation.description
        self.input_schema = build_operation_model(annotation)

    def log_fields(self) -> dict[str, Any]:
        return {"service": self.annotation.service_name}

    async def execute(self, input: BaseModel, ctx: RunContext) -> Any:
        annotation = self.annotation
        service = self.services.resolve(annotation.service_name)
        arguments = input.model_dump(exclude_unset=True)

        keys: dict[str, Any] = {}
        if annotation.is_bound:
            key_types = annotation.key_type_map or {}
            for name in key_types:
                if arguments.get(name) is None:
                    raise MissingKeyError(name, list(key_types))
                keys[name] = arguments.pop(name)
            keys = coerce_keys(key_types, keys)

        label = f"Operation {annotation.qualified_name}"
        try:
            return await with_timeout(
                service.send(
                    annotation.target,
                    arguments,
                    principal=ctx.principal,
                    entity=annotation.entity_key,
                    keys=keys,
                ),
                self.timeout_ms,
                label=label,
            )
        except SchemaMcpError:
            raise
        except Exception as e:
            logger.error(f"{label} failed", exc_info=True)
            raise OperationFailedError(e) from e
