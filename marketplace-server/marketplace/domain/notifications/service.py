"""User notifications, written best-effort."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.infrastructure.database.repositories.notification_repository import SqlNotificationRepository

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class NotificationService:
    repository: SqlNotificationRepository

    @classmethod
    def with_session(cls, session: AsyncSession) -> "NotificationService":
        return cls(SqlNotificationRepository(session))

    async def notify(self, user_id: str, type: str, content: str, link: str | None = None) -> bool:
        try:
            async with self.repository.session.begin_nested():
                await self.repository.create(user_id=user_id, type=type, content=content, link=link)
        except SQLAlchemyError:
            logger.warning("Failed to create %s notification for user %s", type, user_id, exc_info=True)
            return False
        return True
