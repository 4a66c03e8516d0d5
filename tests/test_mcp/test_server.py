"""
Tests for sessions and the MCP server.
"""

import json

import pytest

from schemamcp.annotations import parse_definitions
from schemamcp.core.context import Principal
from schemamcp.core.errors import NotFoundError
from schemamcp.core.types import OperationMode
from schemamcp.mcp.config import McpConfig
from schemamcp.mcp.server import McpServer
from schemamcp.model import ModelReader

BOOK_TOOLS = {
    "CatalogService_Books_query",
    "CatalogService_Books_get",
    "CatalogService_Books_create",
    "CatalogService_Books_update",
    "CatalogService_Books_delete",
}


def restricted_registry(model, entity, **declarations):
    model["definitions"][f"CatalogService.{entity}"].update(declarations)
    return parse_definitions(ModelReader(model))


class TestOpenSession:
    """Tests for admission when a session is opened."""

    @pytest.mark.asyncio
    async def test_unrestricted(self, registry, services, principal):
        session = McpServer(registry, services).open_session(principal)

        assert set(session.tools.names()) == BOOK_TOOLS | {
            "CatalogService_Orders_create",
            "restock-book",
            "get-stock-level",
            "describe_model",
        }
        assert set(session.resources) == {"books", "authors", "orders", "order-items"}
        assert set(session.prompts) == {"book-abstract"}

    @pytest.mark.asyncio
    async def test_read_role(self, model, services, principal):
        registry = restricted_registry(
            model, "Books", **{"@restrict": [{"grant": ["READ"], "to": ["read-role"]}]}
        )
        session = McpServer(registry, services).open_session(principal)

        book_tools = {name for name in session.tools.names() if name.startswith("CatalogService_Books")}
        assert book_tools == {"CatalogService_Books_query", "CatalogService_Books_get"}
        assert "books" in session.resources

    @pytest.mark.asyncio
    async def test_missing_role_hides_entity(self, model, services):
        registry = restricted_registry(model, "Books", **{"@requires": "admin"})
        session = McpServer(registry, services).open_session(Principal(user_id="bob"))

        assert not BOOK_TOOLS & set(session.tools.names())
        assert "books" not in session.resources

        result = await session.call_tool("describe_model", {})
        assert "CatalogService.Books" not in result.data["entities"]

    @pytest.mark.asyncio
    async def test_operation_requires(self, model, services, principal):
        model["definitions"]["CatalogService.getStockLevel"]["@requires"] = "warehouse"
        registry = parse_definitions(ModelReader(model))
        server = McpServer(registry, services)

        assert "get-stock-level" not in server.open_session(principal).tools
        warehouse = Principal(user_id="wendy", roles=("warehouse",))
        assert "get-stock-level" in server.open_session(warehouse).tools

    @pytest.mark.asyncio
    async def test_auth_none_is_privileged(self, model, services):
        registry = restricted_registry(model, "Books", **{"@requires": "admin"})
        server = McpServer(registry, services, McpConfig(auth="none"))

        session = server.open_session(Principal(user_id="bob"))

        assert session.principal.privileged
        assert BOOK_TOOLS <= set(session.tools.names())

    @pytest.mark.asyncio
    async def test_no_principal_is_anonymous(self, model, services):
        registry = restricted_registry(model, "Books", **{"@requires": "authenticated-user"})
        session = McpServer(registry, services).open_session()

        assert session.principal.user_id == "anonymous"
        assert "books" not in session.resources


class TestWrapModes:
    """Tests for which entities become tools."""

    def test_explicit_wrap(self, registry):
        server = McpServer(registry, None)
        assert server.wrap_modes(registry.get_resource("Orders")) == [OperationMode.CREATE]
        assert server.wrap_modes(registry.get_resource("Authors")) == []

    def test_wrap_all_entities(self, registry):
        server = McpServer(registry, None, McpConfig(wrap_entities_to_actions=True))
        assert server.wrap_modes(registry.get_resource("Authors")) == [
            OperationMode.QUERY,
            OperationMode.GET,
        ]

    def test_configured_modes(self, registry):
        config = McpConfig(wrap_entities_to_actions=True, wrap_entity_modes=("get",))
        server = McpServer(registry, None, config)
        assert server.wrap_modes(registry.get_resource("OrderItems")) == [OperationMode.GET]

    @pytest.mark.asyncio
    async def test_wrapped_session(self, registry, services, principal):
        server = McpServer(registry, services, McpConfig(wrap_entities_to_actions=True))
        session = server.open_session(principal)
        assert "CatalogService_Authors_query" in session.tools


class TestSessionCalls:
    """Tests for calling tools, resources and prompts through a session."""

    @pytest.fixture
    async def session(self, registry, services, principal):
        return McpServer(registry, services).open_session(principal)

    @pytest.mark.asyncio
    async def test_call_tool(self, session):
        result = await session.call_tool(
            "CatalogService_Books_get", {"ID": 207}, request_id="req-9"
        )
        assert result.success
        assert result.data["title"] == "Jane Eyre"
        assert "secret" not in result.data

    @pytest.mark.asyncio
    async def test_unknown_tool(self, session):
        result = await session.call_tool("CatalogService_Publishers_query")
        assert result.error["error"] == "NOT_FOUND"

    @pytest.mark.asyncio
    async def test_list_tools(self, session):
        names = {schema["name"] for schema in session.list_tools()}
        assert "describe_model" in names

    @pytest.mark.asyncio
    async def test_read_resource_by_uri(self, session):
        result = await session.read_resource("odata://CatalogService/authors?orderby=name%20desc")
        rows = json.loads(result["contents"][0]["text"])
        assert [row["ID"] for row in rows] == [2, 1]

    @pytest.mark.asyncio
    async def test_read_resource_by_name(self, session):
        result = await session.read_resource("authors")
        assert len(json.loads(result["contents"][0]["text"])) == 2

    @pytest.mark.asyncio
    async def test_missing_resource(self, session):
        with pytest.raises(NotFoundError):
            await session.read_resource("odata://CatalogService/publishers")

    @pytest.mark.asyncio
    async def test_list_resources(self, session):
        names = [entry["name"] for entry in session.list_resources()]
        assert sorted(names) == ["authors", "books", "order-items", "orders"]

    @pytest.mark.asyncio
    async def test_prompts(self, session):
        assert [p["name"] for p in session.list_prompts()] == ["book-abstract"]

        rendered = session.get_prompt("book-abstract", {"title": "Emma"})
        assert rendered["messages"][0]["content"]["text"] == "Give me an abstract of the book Emma"

        with pytest.raises(NotFoundError):
            session.get_prompt("book-review")


class TestToMcpServer:
    """Tests for the MCP SDK bridge."""

    @pytest.mark.asyncio
    async def test_build(self, registry, services, principal):
        pytest.importorskip("mcp")
        server = McpServer(registry, services, McpConfig(name="bookshop")).to_mcp_server(principal)
        assert server.name == "bookshop"
