"""SQLAlchemy repository for user notifications."""

from __future__ import annotations

from typing import Sequence

from sqlalchemy import desc, select

from marketplace.db.models import Notification
from marketplace.domain.common.repository import AsyncRepository


class SqlNotificationRepository(AsyncRepository[Notification]):
    async def create(self, *, user_id: str, type: str, content: str, link: str | None) -> Notification:
        return await self.add(Notification(user_id=user_id, type=type, content=content, link=link))

    async def list_for_user(self, user_id: str, limit: int = 50) -> Sequence[Notification]:
        stmt = (
            select(Notification)
            .where(Notification.user_id == user_id)
            .order_by(desc(Notification.id))
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()
