"""
Shared test fixtures.
"""

import copy
from decimal import Decimal
from typing import Any

import pytest
from sqlalchemy import insert
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from schemamcp.adapters.base import ServiceRegistry
from schemamcp.adapters.sqlalchemy import SQLAlchemyService, build_tables
from schemamcp.annotations import AnnotationRegistry, parse_definitions
from schemamcp.core.context import Principal, RunContext
from schemamcp.model import ModelReader

# === Test Model ===

CATALOG_MODEL: dict[str, Any] = {
    "definitions": {
        "CatalogService": {
            "kind": "service",
            "@mcp.prompts": [
                {
                    "name": "book-abstract",
                    "title": "Book Abstract",
                    "description": "Abstract of a book by title",
                    "template": "Give me an abstract of the book {{title}}",
                    "role": "user",
                    "inputs": [{"key": "title", "type": "String"}],
                }
            ],
        },
        "CatalogService.Price": {"kind": "type", "type": "cds.Decimal"},
        "CatalogService.Books": {
            "kind": "entity",
            "@mcp.name": "books",
            "@mcp.description": "Book catalog",
            "@mcp.resource": True,
            "@mcp.wrap": {
                "tools": True,
                "modes": ["query", "get", "create", "update", "delete"],
                "hint": "Use for book lookups",
            },
            "elements": {
                "ID": {"key": True, "type": "cds.Integer"},
                "title": {"type": "cds.String", "length": 111, "@mcp.hint": "Title of the book"},
                "stock": {"type": "cds.Integer"},
                "price": {"type": "CatalogService.Price"},
                "secret": {"type": "cds.String", "@mcp.omit": True},
                "createdAt": {"type": "cds.Timestamp", "@Core.Computed": True},
                "author": {
                    "type": "cds.Association",
                    "target": "CatalogService.Authors",
                    "keys": [{"ref": ["ID"], "$generatedFieldName": "author_ID"}],
                },
                "author_ID": {"type": "cds.Integer", "@odata.foreignKey4": "author"},
            },
            "actions": {
                "restock": {
                    "kind": "action",
                    "@mcp.name": "restock-book",
                    "@mcp.description": "Add stock to a book",
                    "@mcp.tool": True,
                    "params": {"quantity": {"type": "cds.Integer"}},
                }
            },
        },
        "CatalogService.Authors": {
            "kind": "entity",
            "@mcp.name": "authors",
            "@mcp.description": "Authors of the catalog",
            "@mcp.resource": ["filter", "orderby", "top"],
            "elements": {
                "ID": {"key": True, "type": "cds.Integer"},
                "name": {"type": "cds.String"},
                "email": {"type": "cds.String", "@mcp.omit": True},
                "books": {
                    "type": "cds.Association",
                    "target": "CatalogService.Books",
                    "cardinality": {"max": "*"},
                    "on": [{"ref": ["books", "author"]}, "=", {"ref": ["$self"]}],
                },
            },
        },
        "CatalogService.Orders": {
            "kind": "entity",
            "@odata.draft.enabled": True,
            "@mcp.name": "orders",
            "@mcp.description": "Customer orders",
            "@mcp.resource": True,
            "@mcp.wrap.tools": True,
            "@mcp.wrap.modes": ["create"],
            "elements": {
                "ID": {"key": True, "type": "cds.UUID"},
                "buyer": {"type": "cds.String"},
                "items": {
                    "type": "cds.Composition",
                    "target": "CatalogService.OrderItems",
                    "cardinality": {"max": "*"},
                    "on": [{"ref": ["items", "up_"]}, "=", {"ref": ["$self"]}],
                    "@mcp.deepInsert": True,
                },
            },
        },
        "CatalogService.OrderItems": {
            "kind": "entity",
            "@mcp.name": "order-items",
            "@mcp.description": "Order lines",
            "@mcp.resource": True,
            "elements": {
                "ID": {"key": True, "type": "cds.UUID"},
                "up_": {
                    "type": "cds.Association",
                    "target": "CatalogService.Orders",
                    "keys": [{"ref": ["ID"], "$generatedFieldName": "up__ID"}],
                },
                "up__ID": {"type": "cds.UUID", "@odata.foreignKey4": "up_"},
                "quantity": {"type": "cds.Integer"},
                "book_ID": {"type": "cds.Integer"},
            },
        },
        "CatalogService.getStockLevel": {
            "kind": "function",
            "@mcp.name": "get-stock-level",
            "@mcp.description": "Stock level of a book",
            "@mcp.tool": True,
            "params": {"book": {"type": "cds.Integer"}},
        },
    }
}

AUTHORS = [
    {"ID": 1, "name": "Emily Brontë", "email": "emily@example.com"},
    {"ID": 2, "name": "Flann O'Brien", "email": "flann@example.com"},
]

BOOKS = [
    {"ID": 201, "title": "Wuthering Heights", "stock": 12, "price": Decimal("11.11"), "secret": "s-201", "author_ID": 1},
    {"ID": 207, "title": "Jane Eyre", "stock": 11, "price": Decimal("12.34"), "secret": "s-207", "author_ID": 1},
    {"ID": 251, "title": "The Third Policeman", "stock": 0, "price": Decimal("9.99"), "secret": "s-251", "author_ID": 2},
    {"ID": 252, "title": "At Swim-Two-Birds", "stock": 5, "price": Decimal("8.50"), "secret": "s-252", "author_ID": 2},
]


# === Fixtures ===


@pytest.fixture
def model() -> dict[str, Any]:
    return copy.deepcopy(CATALOG_MODEL)


@pytest.fixture
def reader(model) -> ModelReader:
    return ModelReader(model)


@pytest.fixture
def registry(reader) -> AnnotationRegistry:
    return parse_definitions(reader)


@pytest.fixture
def principal() -> Principal:
    return Principal(user_id="alice", roles=("read-role",))


@pytest.fixture
def ctx(principal) -> RunContext:
    return RunContext(principal=principal, request_id="req-123")


@pytest.fixture
async def service(reader):
    """SQLAlchemyService over a seeded in-memory SQLite database."""
    tables = build_tables(reader)
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(tables.metadata.create_all)
        await conn.execute(insert(tables.get("CatalogService.Authors")), AUTHORS)
        await conn.execute(insert(tables.get("CatalogService.Books")), BOOKS)

    yield SQLAlchemyService("CatalogService", engine, tables)

    await engine.dispose()


@pytest.fixture
def services(service) -> ServiceRegistry:
    return ServiceRegistry([service])
