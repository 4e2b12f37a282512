"""Audit outbox writer.

Events are written to the ``audit_events`` table inside a SAVEPOINT of the
caller's transaction, so they commit together with the state change they
describe. A failure to write an event only rolls back the savepoint.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.infrastructure.database.repositories.audit_repository import SqlAuditRepository

from .models import SEVERITIES

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class AuditService:
    repository: SqlAuditRepository
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None

    @classmethod
    def with_session(
        cls,
        session: AsyncSession,
        *,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> "AuditService":
        return cls(SqlAuditRepository(session), ip_address=ip_address, user_agent=user_agent)

    async def record(
        self,
        type: str,
        *,
        user_id: str | None = None,
        severity: str = "info",
        details: dict[str, Any] | None = None,
    ) -> bool:
        if severity not in SEVERITIES:
            severity = "info"
        try:
            async with self.repository.session.begin_nested():
                await self.repository.create(
                    type=type,
                    user_id=user_id,
                    severity=severity,
                    details=details,
                    ip_address=self.ip_address,
                    user_agent=(self.user_agent or "")[:255] or None,
                )
        except SQLAlchemyError:
            logger.warning("Failed to record audit event %s for user %s", type, user_id, exc_info=True)
            return False
        return True
