"""
Discovery tool describing the exposed services and entities.

Agents call it to plan entity tool calls: it lists fields, keys and example
payloads. Omitted fields are never described.
"""

from collections.abc import Iterable
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict

from schemamcp.annotations.structures import ResourceAnnotation
from schemamcp.core.context import RunContext
from schemamcp.core.errors import NotFoundError
from schemamcp.core.types import OperationMode
from schemamcp.tools.base import Tool
from schemamcp.tools.entity import tool_name_for

DESCRIBE_MODEL_TOOL = "describe_model"

_SAMPLE_TOP = 5
_USAGE = {
    "rationale": (
        "Entity tools expose CRUD operations. Prefer query/get; create, update and "
        "delete exist only where the developer enabled them."
    ),
    "guidance": (
        "Use the *_query tool for retrieval with filters and projections. For associations "
        "use the foreign key field (e.g. author_ID, not author). Use *_get with all keys "
        "for a single record."
    ),
}


class DescribeModelInput(BaseModel):
    service: str | None = None
    entity: str | None = None
    format: Literal["concise", "detailed"] = "concise"

    model_config = ConfigDict(extra="forbid")


class DescribeModelTool(Tool[DescribeModelInput, dict[str, Any]]):
    """Lists services and entities, or describes one entity."""

    name = DESCRIBE_MODEL_TOOL
    description = (
        "Describe services and entities with their fields, keys and example tool calls. "
        "Call without arguments to list everything, with 'service' to list its entities, "
        "or with 'entity' to describe one entity."
    )
    input_schema = DescribeModelInput

    def __init__(self, resources: Iterable[ResourceAnnotation]) -> None:
        self.resources = list(resources)

    async def execute(self, input: DescribeModelInput, ctx: RunContext) -> dict[str, Any]:
        if input.entity:
            return self.describe_entity(input.entity, input.service, detailed=input.format == "detailed")
        if input.service:
            return {"service": input.service, "entities": self.entities(input.service)}
        return {"services": self.services(), "entities": self.entities()}

    def services(self) -> list[str]:
        return sorted({r.service_name for r in self.resources})

    def entities(self, service: str | None = None) -> list[str]:
        return sorted(
            r.qualified_name for r in self.resources if service is None or r.service_name == service
        )

    def _find(self, entity: str, service: str | None) -> ResourceAnnotation:
        for resource in self.resources:
            if service is not None and resource.service_name != service:
                continue
            if entity in (resource.target, resource.qualified_name, resource.name):
                return resource
        raise NotFoundError(
            f"Entity not found: {entity}" + (f" (service {service})" if service else "")
        )

    def describe_entity(
        self, entity: str, service: str | None = None, *, detailed: bool = False
    ) -> dict[str, Any]:
        resource = self._find(entity, service)
        fields = []
        for name, prop in resource.properties.items():
            if name in resource.omitted_fields:
                continue
            info: dict[str, Any] = {
                "name": name,
                "type": str(prop),
                "key": name in resource.resource_keys,
            }
            if prop.is_navigation:
                info["target"] = resource.associations[name].target
            if name in resource.computed_fields:
                info["computed"] = True
            if detailed and name in resource.property_hints:
                info["hint"] = resource.property_hints[name]
            fields.append(info)

        keys = list(resource.resource_keys)
        return {
            "service": resource.service_name,
            "entity": resource.qualified_name,
            "keys": keys,
            "fields": fields,
            "usage": _USAGE,
            "examples": {
                "list_tool": tool_name_for(resource, OperationMode.QUERY),
                "list_tool_payload": {
                    "top": _SAMPLE_TOP,
                    "select": resource.scalar_fields[:5],
                },
                "get_tool": tool_name_for(resource, OperationMode.GET),
                "get_tool_payload": {key: "<value>" for key in keys},
            },
        }
