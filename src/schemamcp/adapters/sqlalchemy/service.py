"""
SQLAlchemy implementation of the data-access runtime.
"""

from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from sqlalchemy import Table, insert
from sqlalchemy.ext.asyncio import AsyncEngine

from schemamcp.adapters.base import DataService, Transaction
from schemamcp.adapters.sqlalchemy.schema import DRAFT_ADMIN_LINK, EntityTables
from schemamcp.adapters.sqlalchemy.session import SessionManager
from schemamcp.core.context import Principal
from schemamcp.core.errors import ExecutionError
from schemamcp.logging import get_logger

logger = get_logger(__name__)


def fill_generated_keys(table: Table, row: dict[str, Any]) -> dict[str, Any]:
    """Generate values for UUID key columns the caller left empty."""
    for column in table.primary_key.columns:
        if column.info.get("cds_type") == "UUID" and row.get(column.name) is None:
            row[column.name] = str(uuid4())
    return row


def table_values(table: Table, row: dict[str, Any]) -> dict[str, Any]:
    """Keep only the entries that are columns of ``table``."""
    return {k: v for k, v in row.items() if k in table.c}


class SQLAlchemyService(DataService):
    """
    A schema service backed by an async SQLAlchemy engine.

    Entity names are resolved relative to the service (``"Books"`` means
    ``"<service>.Books"``) unless already qualified.

    Example:
        tables = build_tables(reader)
        service = SQLAlchemyService("CatalogService", engine, tables)
        rows = await service.read(select(service.entity("Books")))
    """

    def __init__(
        self,
        name: str,
        engine: AsyncEngine,
        tables: EntityTables,
        *,
        session_manager: SessionManager | None = None,
    ) -> None:
        super().__init__(name)
        self.engine = engine
        self.tables = tables
        self.sessions = session_manager or SessionManager(engine)

    def _qualify(self, target: str) -> str:
        if target in self.tables:
            return target
        return f"{self.name}.{target}"

    def entity(self, target: str) -> Table:
        table = self.tables.get(self._qualify(target))
        if table is None:
            raise ExecutionError(f"Entity '{target}' not found in service {self.name}")
        return table

    def draft_entity(self, target: str) -> Table | None:
        return self.tables.draft(self._qualify(target))

    async def read(self, statement: Any) -> list[dict[str, Any]]:
        async with self.sessions.session() as session:
            result = await session.execute(statement)
            return [dict(row) for row in result.mappings().all()]

    def tx(self, principal: Principal) -> Transaction:
        return self.sessions.begin(principal)

    async def new_draft(
        self,
        tx: Transaction,
        target: str,
        data: dict[str, Any],
        principal: Principal,
    ) -> dict[str, Any]:
        draft = self.draft_entity(target)
        if draft is None:
            raise ExecutionError(f"Entity '{target}' is not draft-enabled")

        draft_uuid = str(uuid4())
        now = datetime.now(timezone.utc)
        await tx.run(
            insert(self.tables.draft_admin).values(
                DraftUUID=draft_uuid,
                CreationDateTime=now,
                CreatedByUser=principal.user_id,
                LastChangeDateTime=now,
                LastChangedByUser=principal.user_id,
                InProcessByUser=principal.user_id,
            )
        )

        row = fill_generated_keys(draft, table_values(draft, data))
        row.update(
            IsActiveEntity=False,
            HasActiveEntity=False,
            HasDraftEntity=False,
            **{DRAFT_ADMIN_LINK: draft_uuid},
        )
        await tx.run(insert(draft).values(row))
        logger.info("Draft created", entity=target, draft_uuid=draft_uuid)
        return row
