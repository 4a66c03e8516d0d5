"""
SQLAlchemy session management.

Hands out short-lived async sessions for reads and explicit transactions for
mutations.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from schemamcp.adapters.base import Transaction
from schemamcp.core.context import Principal


class SQLAlchemyTransaction(Transaction):
    """Transaction backed by one ``AsyncSession``."""

    def __init__(self, session: AsyncSession, principal: Principal) -> None:
        super().__init__(principal)
        self.session = session

    async def run(self, statement: Any) -> Any:
        return await self.session.execute(statement)

    async def fetch(self, statement: Any) -> list[dict[str, Any]]:
        result = await self.session.execute(statement)
        return [dict(row) for row in result.mappings().all()]

    async def commit(self) -> None:
        if self.finished:
            return
        self.finished = True
        try:
            await self.session.commit()
        finally:
            await self.session.close()

    async def rollback(self) -> None:
        if self.finished:
            return
        self.finished = True
        try:
            await self.session.rollback()
        finally:
            await self.session.close()


class SessionManager:
    """
    Session factory for one async engine.

    Example:
        manager = SessionManager(engine)
        async with manager.session() as session:
            rows = (await session.execute(stmt)).mappings().all()
    """

    def __init__(
        self,
        engine: AsyncEngine,
        session_factory: async_sessionmaker | None = None,
    ) -> None:
        self.engine = engine
        self._session_factory = session_factory or async_sessionmaker(
            engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Read session; rolled back on error and always closed."""
        session: AsyncSession = self._session_factory()
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    def begin(self, principal: Principal) -> SQLAlchemyTransaction:
        return SQLAlchemyTransaction(self._session_factory(), principal)
