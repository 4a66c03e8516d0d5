"""
Entity tools: query, get, create, update and delete for one resource.

Each tool resolves its live service by name on every call, validates the
arguments against a model derived from the resource annotation and delegates
to the SQLAlchemy compilers.
"""

from abc import abstractmethod
from typing import Any

from pydantic import BaseModel

from schemamcp.adapters.base import DataService, ServiceRegistry
from schemamcp.adapters.sqlalchemy.compiler import QueryExecutor
from schemamcp.adapters.sqlalchemy.mutations import MutationExecutor, normalize_key_arguments
from schemamcp.annotations.structures import ResourceAnnotation
from schemamcp.core.context import RunContext
from schemamcp.core.dsl import (
    MAX_TOP,
    QueryArgs,
    build_keys_model,
    build_payload_model,
    build_query_args_model,
)
from schemamcp.core.types import OperationMode
from schemamcp.tools.base import Tool
from schemamcp.utils.timeout import DEFAULT_TIMEOUT_MS


def tool_name_for(resource: ResourceAnnotation, mode: OperationMode | str) -> str:
    """``<Service>_<Entity>_<mode>``, or ``<wrap.name>_<mode>`` when set."""
    mode = OperationMode(mode).value
    if resource.wrap.name:
        return f"{resource.wrap.name}_{mode}"
    return f"{resource.service_name}_{resource.target}_{mode}"


_MODE_DESCRIPTIONS = {
    OperationMode.QUERY: (
        f"Query {{entity}} rows with select, where, orderby, top (max {MAX_TOP}), skip, "
        "q for quick search, expand for associations and return rows, count or aggregate."
    ),
    OperationMode.GET: "Get one {entity} row by its keys ({keys}).",
    OperationMode.CREATE: "Create a {entity} row.",
    OperationMode.UPDATE: "Update the {entity} row identified by {keys}; only given fields change.",
    OperationMode.DELETE: "Delete the {entity} row identified by {keys}.",
}


class EntityTool(Tool[BaseModel, Any]):
    """Shared setup of the five entity tools."""

    mode: OperationMode

    def __init__(
        self,
        resource: ResourceAnnotation,
        services: ServiceRegistry,
        *,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
    ) -> None:
        self.resource = resource
        self.services = services
        self.timeout_ms = timeout_ms
        self.name = tool_name_for(resource, self.mode)
        self.description = self._describe()
        self.input_schema = self._build_input_schema()

    def _describe(self) -> str:
        base = _MODE_DESCRIPTIONS[self.mode].format(
            entity=self.resource.target,
            keys=", ".join(self.resource.resource_keys) or "none",
        )
        return f"{self.resource.description} {base}{self.resource.wrap.hint_for(self.mode)}"

    @abstractmethod
    def _build_input_schema(self) -> type[BaseModel]:
        """The pydantic model arguments are validated against."""

    def service(self) -> DataService:
        return self.services.resolve(self.resource.service_name)

    def log_fields(self) -> dict[str, Any]:
        return {"service": self.resource.service_name, "entity": self.resource.qualified_name}


class QueryTool(EntityTool):
    mode = OperationMode.QUERY

    def _build_input_schema(self) -> type[BaseModel]:
        return build_query_args_model(self.resource)

    async def execute(self, input: QueryArgs, ctx: RunContext) -> Any:
        executor = QueryExecutor(self.resource, self.service(), timeout_ms=self.timeout_ms)
        return await executor.execute(input)


class GetTool(EntityTool):
    mode = OperationMode.GET

    def _build_input_schema(self) -> type[BaseModel]:
        return build_keys_model(self.resource, "Get")

    def prepare_input(self, arguments: dict[str, Any]) -> dict[str, Any]:
        return normalize_key_arguments(self.resource, arguments, value_shorthand=True)

    async def execute(self, input: BaseModel, ctx: RunContext) -> Any:
        executor = MutationExecutor(self.resource, self.service(), timeout_ms=self.timeout_ms)
        return await executor.get(input.model_dump())


class CreateTool(EntityTool):
    mode = OperationMode.CREATE

    def _build_input_schema(self) -> type[BaseModel]:
        return build_payload_model(self.resource, "create")

    async def execute(self, input: BaseModel, ctx: RunContext) -> Any:
        executor = MutationExecutor(self.resource, self.service(), timeout_ms=self.timeout_ms)
        return await executor.create(input.model_dump(exclude_unset=True), ctx.principal)


class UpdateTool(EntityTool):
    mode = OperationMode.UPDATE

    def _build_input_schema(self) -> type[BaseModel]:
        return build_payload_model(self.resource, "update")

    def prepare_input(self, arguments: dict[str, Any]) -> dict[str, Any]:
        return normalize_key_arguments(self.resource, arguments)

    async def execute(self, input: BaseModel, ctx: RunContext) -> Any:
        executor = MutationExecutor(self.resource, self.service(), timeout_ms=self.timeout_ms)
        return await executor.update(input.model_dump(exclude_unset=True), ctx.principal)


class DeleteTool(EntityTool):
    mode = OperationMode.DELETE

    def _build_input_schema(self) -> type[BaseModel]:
        return build_keys_model(self.resource, "Delete")

    def prepare_input(self, arguments: dict[str, Any]) -> dict[str, Any]:
        return normalize_key_arguments(self.resource, arguments)

    async def execute(self, input: BaseModel, ctx: RunContext) -> Any:
        executor = MutationExecutor(self.resource, self.service(), timeout_ms=self.timeout_ms)
        return await executor.delete(input.model_dump(), ctx.principal)


ENTITY_TOOLS: dict[OperationMode, type[EntityTool]] = {
    OperationMode.QUERY: QueryTool,
    OperationMode.GET: GetTool,
    OperationMode.CREATE: CreateTool,
    OperationMode.UPDATE: UpdateTool,
    OperationMode.DELETE: DeleteTool,
}


def build_entity_tools(
    resource: ResourceAnnotation,
    services: ServiceRegistry,
    modes: list[OperationMode],
    *,
    timeout_ms: int = DEFAULT_TIMEOUT_MS,
) -> list[EntityTool]:
    return [
        ENTITY_TOOLS[OperationMode(mode)](resource, services, timeout_ms=timeout_ms)
        for mode in modes
    ]
