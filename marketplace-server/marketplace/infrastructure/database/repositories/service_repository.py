"""SQLAlchemy implementation for service listings"""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import select

from marketplace.db.models import Service
from marketplace.domain.common.repository import AsyncRepository


class SqlServiceRepository(AsyncRepository[Service]):
    async def create(
        self,
        *,
        freelance_id: str,
        title: str,
        description: str | None,
        price: Decimal,
        currency: str,
    ) -> Service:
        return await self.add(
            Service(
                freelance_id=freelance_id,
                title=title,
                description=description,
                price=price,
                currency=currency,
            )
        )

    async def get(self, service_id: str) -> Service | None:
        stmt = select(Service).where(Service.id == service_id)
        result = await self.session.execute(stmt)
        return result.scalars().first()
