"""SQLAlchemy repository for the audit outbox."""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Sequence

from sqlalchemy import select, update

from marketplace.db.models import AuditEvent
from marketplace.domain.common.repository import AsyncRepository


class SqlAuditRepository(AsyncRepository[AuditEvent]):
    async def create(
        self,
        *,
        type: str,
        user_id: str | None,
        severity: str,
        details: dict[str, Any] | None,
        ip_address: str | None,
        user_agent: str | None,
    ) -> AuditEvent:
        return await self.add(
            AuditEvent(
                type=type,
                user_id=user_id,
                severity=severity,
                details=json.dumps(details, ensure_ascii=False, default=str) if details else None,
                ip_address=ip_address,
                user_agent=user_agent,
                status="pending",
            )
        )

    async def list_pending(self, limit: int, max_attempts: int) -> Sequence[AuditEvent]:
        stmt = (
            select(AuditEvent)
            .where(AuditEvent.status == "pending", AuditEvent.attempts < max_attempts)
            .order_by(AuditEvent.id)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def list_by_type(self, type: str) -> Sequence[AuditEvent]:
        stmt = select(AuditEvent).where(AuditEvent.type == type).order_by(AuditEvent.id)
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def mark_dispatched(self, event_ids: Sequence[int], timestamp: datetime) -> None:
        if not event_ids:
            return
        stmt = (
            update(AuditEvent)
            .where(AuditEvent.id.in_(event_ids))
            .values(status="dispatched", dispatched_at=timestamp, attempts=AuditEvent.attempts + 1)
            .execution_options(synchronize_session=False)
        )
        await self.session.execute(stmt)

    async def bump_attempts(self, event_id: int) -> None:
        stmt = (
            update(AuditEvent)
            .where(AuditEvent.id == event_id)
            .values(attempts=AuditEvent.attempts + 1)
            .execution_options(synchronize_session=False)
        )
        await self.session.execute(stmt)
