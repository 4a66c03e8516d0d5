"""
Tests for the SQLAlchemy data service and the service registry.
"""

import pytest
from sqlalchemy import select

from schemamcp.adapters.base import ServiceRegistry
from schemamcp.core.errors import ExecutionError, MissingServiceError, OperationFailedError


class TestServiceRegistry:
    """Tests for service lookup."""

    @pytest.mark.asyncio
    async def test_exact_and_case_insensitive(self, service):
        registry = ServiceRegistry([service])
        assert registry.resolve("CatalogService") is service
        assert registry.resolve("catalogservice") is service
        assert "CatalogService" in registry

    @pytest.mark.asyncio
    async def test_missing(self, service):
        registry = ServiceRegistry([service])
        with pytest.raises(MissingServiceError) as exc_info:
            registry.resolve("AdminService")
        assert exc_info.value.to_dict()["service"] == "AdminService"


class TestSQLAlchemyService:
    """Tests for entity lookup, reads and transactions."""

    @pytest.mark.asyncio
    async def test_entity_relative_and_qualified(self, service):
        assert service.entity("Books") is service.entity("CatalogService.Books")

    @pytest.mark.asyncio
    async def test_unknown_entity(self, service):
        with pytest.raises(ExecutionError, match="Publishers"):
            service.entity("Publishers")

    @pytest.mark.asyncio
    async def test_read(self, service):
        books = service.entity("Books")
        rows = await service.read(select(books.c.ID).order_by(books.c.ID))
        assert [r["ID"] for r in rows] == [201, 207, 251, 252]

    @pytest.mark.asyncio
    async def test_rollback(self, service, principal):
        books = service.entity("Books")
        tx = service.tx(principal)
        await tx.run(books.delete())
        await tx.rollback()
        await tx.commit()

        assert tx.finished
        assert len(await service.read(select(books))) == 4

    @pytest.mark.asyncio
    async def test_new_draft_requires_draft_table(self, service, principal):
        tx = service.tx(principal)
        try:
            with pytest.raises(ExecutionError, match="not draft-enabled"):
                await service.new_draft(tx, "Books", {"title": "x"}, principal)
        finally:
            await tx.rollback()


class TestOperationDispatch:
    """Tests for function and action handlers."""

    @pytest.mark.asyncio
    async def test_send_to_registered_handler(self, service, principal):
        async def restock(request):
            return {"book": request.keys["ID"], "added": request.data["quantity"]}

        service.on("restock", restock, entity="Books")

        result = await service.send(
            "restock", {"quantity": 5}, principal=principal, entity="Books", keys={"ID": 201}
        )
        assert result == {"book": 201, "added": 5}

    @pytest.mark.asyncio
    async def test_unbound_and_bound_are_distinct(self, service, principal):
        async def handler(request):
            return "bound"

        service.on("restock", handler, entity="Books")

        with pytest.raises(OperationFailedError, match="No handler"):
            await service.send("restock", principal=principal)
