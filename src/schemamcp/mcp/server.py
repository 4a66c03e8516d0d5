"""
MCP server over an annotation registry.

``McpServer`` holds the schema-wide parts (annotation registry, live services,
configuration). ``open_session`` evaluates access for one principal and
returns an ``McpSession`` holding only the tools, resources and prompts that
principal was admitted to. Access is decided here, before any call is made;
a role change takes effect for sessions opened afterwards.
"""

from typing import Any

from schemamcp.adapters.base import ServiceRegistry
from schemamcp.annotations.registry import AnnotationRegistry
from schemamcp.annotations.structures import ResourceAnnotation
from schemamcp.core.context import Principal, RunContext
from schemamcp.core.errors import NotFoundError
from schemamcp.core.types import OperationMode
from schemamcp.logging import get_logger
from schemamcp.mcp.config import McpConfig
from schemamcp.mcp.prompts import PromptEntry, prompt_entries
from schemamcp.mcp.resources import ResourceReader
from schemamcp.policy.access import compute_wrap_access, has_operation_access
from schemamcp.tools.base import ToolResult
from schemamcp.tools.describe import DescribeModelTool
from schemamcp.tools.entity import build_entity_tools
from schemamcp.tools.operations import OperationTool
from schemamcp.tools.registry import ToolRegistry

logger = get_logger(__name__)


class McpSession:
    """Tools, resources and prompts admitted for one principal."""

    def __init__(self, principal: Principal) -> None:
        self.principal = principal
        self.tools = ToolRegistry()
        self.resources: dict[str, ResourceReader] = {}
        self.prompts: dict[str, PromptEntry] = {}

    def context(self, request_id: str | None = None) -> RunContext:
        if request_id is None:
            return RunContext(principal=self.principal)
        return RunContext(principal=self.principal, request_id=request_id)

    # --- Tools ---

    def list_tools(self) -> list[dict[str, Any]]:
        return self.tools.schemas()

    async def call_tool(
        self,
        name: str,
        arguments: dict[str, Any] | None = None,
        *,
        request_id: str | None = None,
    ) -> ToolResult:
        return await self.tools.execute(name, arguments or {}, self.context(request_id))

    # --- Resources ---

    def list_resources(self) -> list[dict[str, Any]]:
        return [r.definition() for r in self.resources.values()]

    def _resource(self, name_or_uri: str) -> ResourceReader:
        reader = self.resources.get(name_or_uri)
        if reader is not None:
            return reader
        for candidate in self.resources.values():
            if candidate.matches(name_or_uri):
                return candidate
        raise NotFoundError(f"Resource '{name_or_uri}' not found")

    async def read_resource(self, uri: str) -> dict[str, Any]:
        return await self._resource(uri).read_uri(uri)

    # --- Prompts ---

    def list_prompts(self) -> list[dict[str, Any]]:
        return [p.definition() for p in self.prompts.values()]

    def get_prompt(self, name: str, arguments: dict[str, Any] | None = None) -> dict[str, Any]:
        entry = self.prompts.get(name)
        if entry is None:
            raise NotFoundError(f"Prompt '{name}' not found")
        return entry.render(arguments)


class McpServer:
    """
    Exposes an annotation registry as MCP tools, resources and prompts.

    Example:
        registry = parse_definitions(ModelReader.from_file("csn.json"))
        services = ServiceRegistry([SQLAlchemyService("CatalogService", engine, tables)])
        server = McpServer(registry, services, McpConfig(wrap_entities_to_actions=True))
        session = server.open_session(Principal(user_id="alice", roles=("read-role",)))
        result = await session.call_tool("CatalogService_Books_query", {"top": 5})
    """

    def __init__(
        self,
        registry: AnnotationRegistry,
        services: ServiceRegistry,
        config: McpConfig | None = None,
    ) -> None:
        self.registry = registry
        self.services = services
        self.config = config or McpConfig()

    def wrap_modes(self, resource: ResourceAnnotation) -> list[OperationMode]:
        """Entity tool modes for a resource, empty when it is not wrapped."""
        enabled = resource.wrap.tools
        if enabled is None:
            enabled = self.config.wrap_entities_to_actions
        if not enabled:
            return []
        return list(resource.wrap.modes or self.config.wrap_entity_modes)

    def open_session(self, principal: Principal | None = None) -> McpSession:
        if self.config.auth == "none":
            principal = Principal.privileged_user()
        elif principal is None:
            principal = Principal.anonymous()

        session = McpSession(principal)
        timeout_ms = self.config.timeout_ms
        admitted_resources = []

        for resource in self.registry.resources():
            if not has_operation_access(principal, resource.restrictions):
                continue
            admitted_resources.append(resource)
            session.resources[resource.name] = ResourceReader(
                resource,
                self.services,
                default_top=self.config.resource_default_top,
                timeout_ms=timeout_ms,
            )

            access = compute_wrap_access(principal, resource.restrictions)
            modes = [m for m in self.wrap_modes(resource) if access.allows(m)]
            for tool in build_entity_tools(resource, self.services, modes, timeout_ms=timeout_ms):
                session.tools.register(tool)

        for annotation in self.registry.tools():
            if has_operation_access(principal, annotation.restrictions):
                session.tools.register(
                    OperationTool(annotation, self.services, timeout_ms=timeout_ms)
                )

        for annotation in self.registry.prompts():
            for entry in prompt_entries(annotation):
                session.prompts[entry.name] = entry

        session.tools.register(DescribeModelTool(admitted_resources))

        logger.info(
            "Session opened",
            user_id=principal.user_id,
            tools=len(session.tools),
            resources=len(session.resources),
            prompts=len(session.prompts),
        )
        return session

    def to_mcp_server(self, principal: Principal | None = None) -> Any:
        """
        Build an ``mcp`` SDK low-level server for one session.

        Requires the 'mcp' package to be installed.
        """
        try:
            import mcp.types as types
            from mcp.server.lowlevel import Server
            from mcp.server.lowlevel.helper_types import ReadResourceContents
        except ImportError:
            raise ImportError(
                "MCP SDK not installed. Install with: pip install schemamcp[mcp]"
            ) from None

        session = self.open_session(principal)
        server = Server(
            self.config.name,
            version=self.config.version,
            instructions=self.config.instructions,
        )

        @server.list_tools()
        async def list_tools() -> list[types.Tool]:
            return [
                types.Tool(
                    name=schema["name"],
                    description=schema["description"],
                    inputSchema=schema["parameters"],
                )
                for schema in session.list_tools()
            ]

        @server.call_tool()
        async def call_tool(name: str, arguments: dict[str, Any]) -> list[types.TextContent]:
            result = await session.call_tool(name, arguments)
            return [types.TextContent(type="text", text=c["text"]) for c in result.to_mcp()["content"]]

        @server.list_resources()
        async def list_resources() -> list[types.Resource]:
            return [
                types.Resource(
                    uri=d["uri"], name=d["name"], description=d["description"], mimeType=d["mimeType"]
                )
                for d in session.list_resources()
                if "uri" in d
            ]

        @server.list_resource_templates()
        async def list_resource_templates() -> list[types.ResourceTemplate]:
            return [
                types.ResourceTemplate(
                    uriTemplate=d["uriTemplate"],
                    name=d["name"],
                    description=d["description"],
                    mimeType=d["mimeType"],
                )
                for d in session.list_resources()
                if "uriTemplate" in d
            ]

        @server.read_resource()
        async def read_resource(uri: Any) -> list[ReadResourceContents]:
            result = await session.read_resource(str(uri))
            return [
                ReadResourceContents(content=c["text"], mime_type=c["mimeType"])
                for c in result["contents"]
            ]

        @server.list_prompts()
        async def list_prompts() -> list[types.Prompt]:
            return [
                types.Prompt(
                    name=d["name"],
                    description=d["description"],
                    arguments=[types.PromptArgument(**a) for a in d["arguments"]],
                )
                for d in session.list_prompts()
            ]

        @server.get_prompt()
        async def get_prompt(name: str, arguments: dict[str, str] | None) -> types.GetPromptResult:
            rendered = session.get_prompt(name, arguments)
            return types.GetPromptResult(
                description=rendered["description"],
                messages=[
                    types.PromptMessage(
                        role=m["role"],
                        content=types.TextContent(type="text", text=m["content"]["text"]),
                    )
                    for m in rendered["messages"]
                ],
            )

        return server
