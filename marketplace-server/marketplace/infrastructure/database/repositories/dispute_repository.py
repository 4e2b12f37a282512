"""SQLAlchemy implementation for disputes and their messages."""

from __future__ import annotations

from typing import Sequence

from sqlalchemy import desc, or_, select, update

from marketplace.db.models import Dispute, DisputeMessage, utcnow
from marketplace.domain.common.repository import AsyncRepository


class SqlDisputeRepository(AsyncRepository[Dispute]):
    async def create(self, *, order_id: str, client_id: str, freelance_id: str, reason: str) -> Dispute:
        return await self.add(
            Dispute(
                order_id=order_id,
                client_id=client_id,
                freelance_id=freelance_id,
                reason=reason,
                status="open",
            )
        )

    async def get(self, dispute_id: str) -> Dispute | None:
        return await self._fresh(select(Dispute).where(Dispute.id == dispute_id))

    async def get_open_for_order(self, order_id: str) -> Dispute | None:
        stmt = select(Dispute).where(Dispute.order_id == order_id, Dispute.status == "open")
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def list_for_user(self, user_id: str | None) -> Sequence[Dispute]:
        stmt = select(Dispute).order_by(desc(Dispute.created_at))
        if user_id is not None:
            stmt = stmt.where(or_(Dispute.client_id == user_id, Dispute.freelance_id == user_id))
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def resolve(self, dispute_id: str, *, resolved_by: str, resolution: str | None) -> bool:
        now = utcnow()
        stmt = (
            update(Dispute)
            .where(Dispute.id == dispute_id, Dispute.status == "open")
            .values(
                status="resolved",
                resolved_by=resolved_by,
                resolution=resolution,
                resolved_at=now,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        return await self._affected(stmt) == 1

    async def add_message(
        self,
        *,
        dispute_id: str,
        user_id: str,
        message: str,
        attachment_url: str | None,
    ) -> DisputeMessage:
        model = DisputeMessage(
            dispute_id=dispute_id,
            user_id=user_id,
            message=message,
            attachment_url=attachment_url,
        )
        self.session.add(model)
        await self.session.flush()
        return model

    async def list_messages(self, dispute_id: str) -> Sequence[DisputeMessage]:
        stmt = (
            select(DisputeMessage)
            .where(DisputeMessage.dispute_id == dispute_id)
            .order_by(DisputeMessage.created_at, DisputeMessage.id)
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()
