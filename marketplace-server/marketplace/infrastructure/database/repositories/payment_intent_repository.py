"""SQLAlchemy implementation for provider payment intents."""

from __future__ import annotations

from decimal import Decimal
from typing import Any

from sqlalchemy import select, update

from marketplace.db.models import PaymentIntent, utcnow
from marketplace.domain.common.repository import AsyncRepository


class SqlPaymentIntentRepository(AsyncRepository[PaymentIntent]):
    async def create(
        self,
        *,
        provider: str,
        provider_id: str,
        client_id: str,
        freelance_id: str,
        service_id: str,
        amount: Decimal,
        currency: str,
        provider_amount: Decimal,
        provider_currency: str,
        idempotency_key: str | None,
        client_secret: str | None,
        meta: str | None,
    ) -> PaymentIntent:
        return await self.add(
            PaymentIntent(
                provider=provider,
                provider_id=provider_id,
                client_id=client_id,
                freelance_id=freelance_id,
                service_id=service_id,
                amount=amount,
                currency=currency,
                provider_amount=provider_amount,
                provider_currency=provider_currency,
                status="created",
                idempotency_key=idempotency_key,
                client_secret=client_secret,
                meta=meta,
            )
        )

    async def get_by_provider_id(self, provider_id: str) -> PaymentIntent | None:
        return await self._fresh(select(PaymentIntent).where(PaymentIntent.provider_id == provider_id))

    async def get_by_capture_id(self, capture_id: str) -> PaymentIntent | None:
        return await self._fresh(select(PaymentIntent).where(PaymentIntent.capture_id == capture_id))

    async def get_by_idempotency_key(self, client_id: str, idempotency_key: str) -> PaymentIntent | None:
        stmt = select(PaymentIntent).where(
            PaymentIntent.client_id == client_id,
            PaymentIntent.idempotency_key == idempotency_key,
        )
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def claim_capture(self, intent_id: str) -> bool:
        """Flip an uncaptured intent to ``captured``; only one caller wins.

        A ``failed`` intent can still be claimed: the provider may report a later
        attempt on the same payment as completed.
        """
        stmt = (
            update(PaymentIntent)
            .where(PaymentIntent.id == intent_id, PaymentIntent.status.in_(("created", "failed")))
            .values(status="captured", captured_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        return await self._affected(stmt) == 1

    async def update(self, intent_id: str, **values: Any) -> None:
        stmt = (
            update(PaymentIntent)
            .where(PaymentIntent.id == intent_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        await self.session.execute(stmt)
