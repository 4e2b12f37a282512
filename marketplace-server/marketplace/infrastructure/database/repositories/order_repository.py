"""SQLAlchemy implementation for orders and their payments."""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Iterable, Sequence

from sqlalchemy import select, update

from marketplace.db.models import Order, Payment, utcnow
from marketplace.domain.common.repository import AsyncRepository


class SqlOrderRepository(AsyncRepository[Order]):
    async def create(
        self,
        *,
        order_number: str,
        client_id: str,
        freelance_id: str,
        service_id: str,
        price: Decimal,
        currency: str,
        requirements: str | None = None,
    ) -> Order:
        return await self.add(
            Order(
                order_number=order_number,
                client_id=client_id,
                freelance_id=freelance_id,
                service_id=service_id,
                price=price,
                currency=currency,
                status="pending",
                requirements=requirements,
            )
        )

    async def get(self, order_id: str) -> Order | None:
        return await self._fresh(select(Order).where(Order.id == order_id))

    async def order_number_exists(self, order_number: str) -> bool:
        stmt = select(Order.id).where(Order.order_number == order_number)
        result = await self.session.execute(stmt)
        return result.first() is not None

    async def transition(
        self,
        order_id: str,
        *,
        from_statuses: Iterable[str],
        to_status: str,
        **fields: Any,
    ) -> bool:
        """Move the order to ``to_status`` only if it is still in one of ``from_statuses``."""
        stmt = (
            update(Order)
            .where(Order.id == order_id, Order.status.in_(list(from_statuses)))
            .values(status=to_status, updated_at=utcnow(), **fields)
            .execution_options(synchronize_session=False)
        )
        return await self._affected(stmt) == 1

    async def add_payment(
        self,
        *,
        order_id: str,
        client_id: str,
        freelance_id: str,
        amount: Decimal,
        payment_method: str,
        payment_intent_id: str | None,
        capture_id: str | None,
        details: str | None = None,
    ) -> Payment:
        return await self.add(
            Payment(
                order_id=order_id,
                client_id=client_id,
                freelance_id=freelance_id,
                amount=amount,
                status="paid",
                payment_method=payment_method,
                payment_intent_id=payment_intent_id,
                capture_id=capture_id,
                details=details,
            )
        )

    async def list_payments(self, order_id: str) -> Sequence[Payment]:
        stmt = select(Payment).where(Payment.order_id == order_id).order_by(Payment.created_at)
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def mark_payments_refunded(self, order_id: str) -> int:
        stmt = (
            update(Payment)
            .where(Payment.order_id == order_id, Payment.status == "paid")
            .values(status="refunded")
            .execution_options(synchronize_session=False)
        )
        return await self._affected(stmt)
