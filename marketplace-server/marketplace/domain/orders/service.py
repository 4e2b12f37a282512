"""Order lifecycle and completion settlement.

Status changes are claimed with a conditional UPDATE on the current status, so
of two concurrent callers only one performs the wallet movements that belong
to a transition. Wallet movements run in the same database transaction as the
status change; any failure aborts the whole operation.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.config import PaymentSettings, get_settings
from marketplace.db.models import Order as OrderModel
from marketplace.db.models import utcnow
from marketplace.domain.accounts.models import Account
from marketplace.domain.audit import AuditService
from marketplace.domain.audit.models import ORDER_CANCELLED, PAYMENT_REFUNDED, PAYMENT_SUCCESS
from marketplace.domain.common.exceptions import (
    InvalidTransitionError,
    NotDeliverableError,
    NotFoundError,
    NotOwnerError,
    PersistenceError,
)
from marketplace.domain.notifications import NotificationService
from marketplace.domain.wallets import WalletService
from marketplace.infrastructure.database.repositories.order_repository import SqlOrderRepository

from .models import CancellationResult, OrderSnapshot, SettlementResult, can_transition

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class OrderService:
    repository: SqlOrderRepository
    wallets: WalletService
    audit: AuditService
    notifications: NotificationService
    settings: PaymentSettings

    @classmethod
    def with_session(
        cls,
        session: AsyncSession,
        *,
        audit: AuditService | None = None,
        settings: PaymentSettings | None = None,
    ) -> "OrderService":
        audit = audit or AuditService.with_session(session)
        return cls(
            SqlOrderRepository(session),
            WalletService.with_session(session, audit=audit),
            audit,
            NotificationService.with_session(session),
            settings or get_settings().payments,
        )

    async def create_order(
        self,
        *,
        client_id: str,
        freelance_id: str,
        service_id: str,
        price: Decimal,
        currency: str = "XOF",
        requirements: str | None = None,
    ) -> OrderSnapshot:
        model = await self.repository.create(
            order_number=await self._next_order_number(),
            client_id=client_id,
            freelance_id=freelance_id,
            service_id=service_id,
            price=price,
            currency=currency,
            requirements=requirements,
        )
        return self._to_domain(model)

    async def record_payment(
        self,
        order: OrderSnapshot,
        *,
        payment_method: str,
        payment_intent_id: str | None,
        capture_id: str | None,
        details: str | None = None,
    ) -> None:
        await self.repository.add_payment(
            order_id=order.id,
            client_id=order.client_id,
            freelance_id=order.freelance_id,
            amount=order.price,
            payment_method=payment_method,
            payment_intent_id=payment_intent_id,
            capture_id=capture_id,
            details=details,
        )

    async def get_order(self, order_id: str, account: Account) -> OrderSnapshot:
        order = await self._require(order_id)
        if not (account.is_admin() or order.is_participant(account.id)):
            raise NotOwnerError("Order not found")
        return order

    async def deliver_order(self, order_id: str, freelance_id: str) -> OrderSnapshot:
        order = await self._require(order_id)
        if order.freelance_id != freelance_id:
            raise NotOwnerError("Order not found")
        await self._claim(order, "delivered", delivered_at=utcnow())

        for earning in await self.wallets.list_order_earnings(order.id):
            await self.wallets.hold_earning(earning.id)
        await self.notifications.notify(
            order.client_id,
            "order_delivered",
            f"Order {order.order_number} has been delivered.",
            link=f"/orders/{order.id}",
        )
        return await self._require(order.id)

    async def request_revision(self, order_id: str, client_id: str) -> OrderSnapshot:
        order = await self._require(order_id)
        if order.client_id != client_id:
            raise NotOwnerError("Order not found")
        await self._claim(order, "revision_requested")
        await self.notifications.notify(
            order.freelance_id,
            "revision_requested",
            f"A revision was requested on order {order.order_number}.",
            link=f"/orders/{order.id}",
        )
        return await self._require(order.id)

    async def complete_order(self, order_id: str, client_id: str) -> SettlementResult:
        order = await self._require(order_id)
        if order.client_id != client_id:
            raise NotOwnerError("Order not found")
        if order.status == "completed":
            return SettlementResult(order_id=order.id, status=order.status, already_completed=True)
        if order.status != "delivered":
            raise NotDeliverableError(details={"status": order.status})
        return await self.settle(order, from_statuses=("delivered",))

    async def settle(self, order: OrderSnapshot, *, from_statuses: Iterable[str]) -> SettlementResult:
        """Mark ``order`` completed and settle its pending earnings."""
        claimed = await self.repository.transition(
            order.id,
            from_statuses=from_statuses,
            to_status="completed",
            completed_at=utcnow(),
        )
        if not claimed:
            current = await self._require(order.id)
            if current.status == "completed":
                return SettlementResult(order_id=order.id, status=current.status, already_completed=True)
            raise NotDeliverableError(details={"status": current.status})

        settled = 0
        total = Decimal("0")
        try:
            for earning in await self.wallets.list_order_earnings(order.id):
                if await self.wallets.settle_earning(earning.id):
                    settled += 1
                    total += earning.amount
        except SQLAlchemyError as exc:
            logger.exception("Settlement of order %s failed", order.id)
            raise PersistenceError("Could not settle the order") from exc

        logger.info("Order %s completed, %d earning(s) settled for %s", order.id, settled, total)
        await self.audit.record(
            PAYMENT_SUCCESS,
            user_id=order.client_id,
            details={
                "action": "order_completed",
                "order_id": order.id,
                "order_number": order.order_number,
                "freelance_id": order.freelance_id,
                "settled_amount": str(total),
            },
        )
        await self.notifications.notify(
            order.freelance_id,
            "order_completed",
            f"Order {order.order_number} is complete, {total} {order.currency} is now available.",
            link="/dashboard/wallet",
        )
        return SettlementResult(
            order_id=order.id,
            status="completed",
            settled_transactions=settled,
            settled_amount=total,
        )

    async def cancel_order(self, order_id: str, actor_id: str, reason: str | None = None) -> CancellationResult:
        order = await self._require(order_id)
        if not order.is_participant(actor_id):
            raise NotOwnerError("Order not found")
        if order.status == "cancelled":
            return CancellationResult(order_id=order.id, status=order.status, already_cancelled=True)
        if order.status not in ("pending", "delivered"):
            raise InvalidTransitionError(
                f"Order in status '{order.status}' cannot be cancelled",
                details={"status": order.status},
            )
        result = await self.cancel(order, from_statuses=("pending", "delivered"), reason=reason)

        recipient = order.freelance_id if actor_id == order.client_id else order.client_id
        await self.notifications.notify(
            recipient,
            "order_cancelled",
            f"Order {order.order_number} was cancelled." + (f" Reason: {reason}" if reason else ""),
            link=f"/orders/{order.id}",
        )
        return result

    async def cancel(
        self,
        order: OrderSnapshot,
        *,
        from_statuses: Iterable[str],
        reason: str | None = None,
        refund_wallet: bool = True,
    ) -> CancellationResult:
        """Cancel ``order``, release the freelance earnings and refund the client wallet.

        With ``refund_wallet=False`` the client is assumed to have been repaid
        outside the ledger, by the payment provider.
        """
        claimed = await self.repository.transition(
            order.id,
            from_statuses=from_statuses,
            to_status="cancelled",
            cancelled_at=utcnow(),
            cancellation_reason=reason,
        )
        if not claimed:
            current = await self._require(order.id)
            if current.status == "cancelled":
                return CancellationResult(order_id=order.id, status=current.status, already_cancelled=True)
            raise InvalidTransitionError(details={"status": current.status})

        released = 0
        try:
            for earning in await self.wallets.list_order_earnings(order.id):
                if await self.wallets.release_earning(earning.id):
                    released += 1
            paid = await self.wallets.list_order_payments(order.id)
            refunded = order.price if paid and refund_wallet else Decimal("0")
            if refunded > 0:
                await self.wallets.refund_client(
                    order.client_id,
                    refunded,
                    order_id=order.id,
                    service_id=order.service_id,
                    reference_id=order.id,
                    description=f"Refund for cancelled order {order.order_number}",
                )
            await self.repository.mark_payments_refunded(order.id)
        except SQLAlchemyError as exc:
            logger.exception("Cancellation of order %s failed", order.id)
            raise PersistenceError("Could not cancel the order") from exc

        await self.audit.record(
            ORDER_CANCELLED,
            user_id=order.client_id,
            severity="low",
            details={"order_id": order.id, "reason": reason, "refunded_amount": str(refunded)},
        )
        logger.info("Order %s cancelled, %d earning(s) released, %s refunded", order.id, released, refunded)
        return CancellationResult(
            order_id=order.id,
            status="cancelled",
            released_transactions=released,
            refunded_amount=refunded,
        )

    async def record_provider_refund(
        self,
        order_id: str,
        *,
        reference: str | None = None,
    ) -> CancellationResult | None:
        """Reflect a refund issued at the payment provider.

        Orders that can still be cancelled are cancelled without a wallet refund.
        Returns ``None`` when the order is past that point and needs a manual review.
        """
        order = await self._require(order_id)
        payments = await self.repository.mark_payments_refunded(order.id)
        result = None
        if can_transition(order.status, "cancelled"):
            result = await self.cancel(
                order,
                from_statuses=(order.status,),
                reason="Refunded by the payment provider",
                refund_wallet=False,
            )
        else:
            logger.warning("Provider refund on order %s in status %s needs review", order.id, order.status)

        await self.audit.record(
            PAYMENT_REFUNDED,
            user_id=order.client_id,
            severity="medium" if result is not None else "high",
            details={
                "order_id": order.id,
                "status": order.status,
                "reference": reference,
                "payments_refunded": payments,
                "requires_review": result is None,
            },
        )
        await self.notifications.notify(
            order.client_id,
            "payment_refunded",
            f"The payment for order {order.order_number} was refunded.",
            link=f"/orders/{order.id}",
        )
        return result

    async def mark_in_dispute(self, order: OrderSnapshot) -> None:
        await self._claim(order, "in_dispute")

    async def require_order(self, order_id: str) -> OrderSnapshot:
        return await self._require(order_id)

    async def _claim(self, order: OrderSnapshot, target: str, **fields) -> None:
        if not can_transition(order.status, target):
            raise InvalidTransitionError(
                f"Cannot move order from '{order.status}' to '{target}'",
                details={"status": order.status, "target": target},
            )
        claimed = await self.repository.transition(
            order.id,
            from_statuses=(order.status,),
            to_status=target,
            **fields,
        )
        if not claimed:
            raise InvalidTransitionError("Order status changed concurrently, retry the operation")

    async def _require(self, order_id: str) -> OrderSnapshot:
        model = await self.repository.get(order_id)
        if model is None:
            raise NotFoundError("Order not found")
        return self._to_domain(model)

    async def _next_order_number(self) -> str:
        prefix = self.settings.order_number_prefix
        while True:
            # last six digits of the epoch milliseconds plus three random digits
            stamp = str(int(utcnow().timestamp() * 1000))[-6:]
            candidate = f"{prefix}-{stamp}-{random.randint(0, 999):03d}"
            if not await self.repository.order_number_exists(candidate):
                return candidate

    @staticmethod
    def _to_domain(model: OrderModel) -> OrderSnapshot:
        return OrderSnapshot(
            id=model.id,
            order_number=model.order_number,
            client_id=model.client_id,
            freelance_id=model.freelance_id,
            service_id=model.service_id,
            price=model.price,
            currency=model.currency,
            status=model.status,
            requirements=model.requirements,
            cancellation_reason=model.cancellation_reason,
            created_at=model.created_at,
            delivered_at=model.delivered_at,
            completed_at=model.completed_at,
            cancelled_at=model.cancelled_at,
        )
