"""Dispute use cases."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.config import PaymentSettings
from marketplace.db.models import Dispute as DisputeModel
from marketplace.db.models import DisputeMessage as DisputeMessageModel
from marketplace.domain.accounts.models import Account
from marketplace.domain.audit import AuditService
from marketplace.domain.audit.models import DISPUTE_RESOLVED
from marketplace.domain.common.exceptions import (
    InvalidInputError,
    InvalidTransitionError,
    NotFoundError,
    NotOwnerError,
    PermissionDeniedError,
)
from marketplace.domain.notifications import NotificationService
from marketplace.domain.orders import OrderService
from marketplace.infrastructure.database.repositories.dispute_repository import SqlDisputeRepository

from .models import RESOLUTION_OUTCOMES, DisputeMessageRecord, DisputeSnapshot

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class DisputeService:
    repository: SqlDisputeRepository
    orders: OrderService
    audit: AuditService
    notifications: NotificationService

    @classmethod
    def with_session(
        cls,
        session: AsyncSession,
        *,
        audit: AuditService | None = None,
        settings: PaymentSettings | None = None,
    ) -> "DisputeService":
        audit = audit or AuditService.with_session(session)
        return cls(
            SqlDisputeRepository(session),
            OrderService.with_session(session, audit=audit, settings=settings),
            audit,
            NotificationService.with_session(session),
        )

    async def open_dispute(self, order_id: str, client_id: str, reason: str) -> DisputeSnapshot:
        reason = (reason or "").strip()
        if not reason:
            raise InvalidInputError("A reason is required to open a dispute")
        order = await self.orders.require_order(order_id)
        if order.client_id != client_id:
            raise NotOwnerError("Order not found")
        if await self.repository.get_open_for_order(order.id) is not None:
            raise InvalidInputError("A dispute is already open for this order")
        await self.orders.mark_in_dispute(order)

        model = await self.repository.create(
            order_id=order.id,
            client_id=order.client_id,
            freelance_id=order.freelance_id,
            reason=reason,
        )
        await self.notifications.notify(
            order.freelance_id,
            "dispute_opened",
            f"A dispute was opened on order {order.order_number}.",
            link=f"/disputes/{model.id}",
        )
        logger.info("Dispute %s opened on order %s", model.id, order.id)
        return self._to_domain(model)

    async def add_message(
        self,
        dispute_id: str,
        account: Account,
        message: str,
        attachment_url: str | None = None,
    ) -> DisputeMessageRecord:
        dispute = await self._require_visible(dispute_id, account)
        if dispute.status != "open":
            raise InvalidTransitionError("Messages can only be added to open disputes")
        message = (message or "").strip()
        if not message:
            raise InvalidInputError("Message must not be empty")
        model = await self.repository.add_message(
            dispute_id=dispute.id,
            user_id=account.id,
            message=message,
            attachment_url=attachment_url,
        )
        return self._to_message(model)

    async def list_messages(self, dispute_id: str, account: Account) -> list[DisputeMessageRecord]:
        dispute = await self._require_visible(dispute_id, account)
        rows = await self.repository.list_messages(dispute.id)
        return [self._to_message(row) for row in rows]

    async def list_disputes(self, account: Account) -> list[DisputeSnapshot]:
        rows = await self.repository.list_for_user(None if account.is_admin() else account.id)
        return [self._to_domain(row) for row in rows]

    async def get_dispute(self, dispute_id: str, account: Account) -> DisputeSnapshot:
        return await self._require_visible(dispute_id, account)

    async def resolve_dispute(
        self,
        dispute_id: str,
        admin: Account,
        outcome: str,
        resolution: str | None = None,
    ) -> DisputeSnapshot:
        if not admin.is_admin():
            raise PermissionDeniedError("Only administrators can resolve disputes")
        if outcome not in RESOLUTION_OUTCOMES:
            raise InvalidInputError("Unknown outcome", details={"allowed": list(RESOLUTION_OUTCOMES)})
        model = await self.repository.get(dispute_id)
        if model is None:
            raise NotFoundError("Dispute not found")
        if model.status != "open":
            raise InvalidTransitionError("Dispute is already closed")

        order = await self.orders.require_order(model.order_id)
        if outcome == "complete":
            await self.orders.settle(order, from_statuses=("in_dispute",))
        else:
            await self.orders.cancel(order, from_statuses=("in_dispute",), reason=resolution)

        if not await self.repository.resolve(model.id, resolved_by=admin.id, resolution=resolution):
            raise InvalidTransitionError("Dispute is already closed")
        await self.audit.record(
            DISPUTE_RESOLVED,
            user_id=admin.id,
            severity="medium",
            details={"dispute_id": model.id, "order_id": order.id, "outcome": outcome},
        )
        for user_id in (model.client_id, model.freelance_id):
            await self.notifications.notify(
                user_id,
                "dispute_resolved",
                f"The dispute on order {order.order_number} was resolved.",
                link=f"/disputes/{model.id}",
            )
        resolved = await self.repository.get(model.id)
        return self._to_domain(resolved)

    async def _require_visible(self, dispute_id: str, account: Account) -> DisputeSnapshot:
        model = await self.repository.get(dispute_id)
        if model is None:
            raise NotFoundError("Dispute not found")
        dispute = self._to_domain(model)
        if not (account.is_admin() or dispute.is_participant(account.id)):
            raise NotOwnerError("Dispute not found")
        return dispute

    @staticmethod
    def _to_domain(model: DisputeModel) -> DisputeSnapshot:
        return DisputeSnapshot(
            id=model.id,
            order_id=model.order_id,
            client_id=model.client_id,
            freelance_id=model.freelance_id,
            reason=model.reason,
            status=model.status,
            resolution=model.resolution,
            resolved_by=model.resolved_by,
            resolved_at=model.resolved_at,
            created_at=model.created_at,
        )

    @staticmethod
    def _to_message(model: DisputeMessageModel) -> DisputeMessageRecord:
        return DisputeMessageRecord(
            id=model.id,
            dispute_id=model.dispute_id,
            user_id=model.user_id,
            message=model.message,
            attachment_url=model.attachment_url,
            created_at=model.created_at,
        )
