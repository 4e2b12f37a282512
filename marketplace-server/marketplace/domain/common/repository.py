"""Base class for the SQL repositories.

Conditional UPDATEs are the concurrency guard for every state change in the
ledger, so the helpers here report how many rows a statement touched.
"""

from __future__ import annotations

from typing import Generic, TypeVar

from sqlalchemy import Select, Update
from sqlalchemy.ext.asyncio import AsyncSession

ModelT = TypeVar("ModelT")


class AsyncRepository(Generic[ModelT]):
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    @property
    def session(self) -> AsyncSession:
        return self._session

    async def add(self, instance: ModelT) -> ModelT:
        self.session.add(instance)
        await self.session.flush()
        return instance

    async def _fresh(self, stmt: Select) -> ModelT | None:
        """First row of ``stmt``, overwriting any stale copy held by the session."""
        result = await self.session.execute(stmt.execution_options(populate_existing=True))
        return result.scalars().first()

    async def _affected(self, stmt: Update) -> int:
        result = await self.session.execute(stmt.execution_options(synchronize_session=False))
        return result.rowcount
