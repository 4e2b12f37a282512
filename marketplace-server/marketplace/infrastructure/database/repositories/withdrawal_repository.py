"""SQLAlchemy implementation for withdrawal requests"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Sequence

from sqlalchemy import and_, select, update

from marketplace.db.models import Transaction, WithdrawalRequest, utcnow
from marketplace.domain.common.repository import AsyncRepository


class SqlWithdrawalRepository(AsyncRepository[WithdrawalRequest]):
    async def create(
        self,
        *,
        user_id: str,
        wallet_id: str,
        amount: Decimal,
        fee_amount: Decimal,
        net_amount: Decimal,
        payment_method: str,
    ) -> WithdrawalRequest:
        return await self.add(
            WithdrawalRequest(
                user_id=user_id,
                wallet_id=wallet_id,
                amount=amount,
                fee_amount=fee_amount,
                net_amount=net_amount,
                payment_method=payment_method,
                status="pending",
            )
        )

    async def get(self, withdrawal_id: str) -> WithdrawalRequest | None:
        return await self._fresh(select(WithdrawalRequest).where(WithdrawalRequest.id == withdrawal_id))

    async def mark_failed(self, withdrawal_id: str, notes: str) -> None:
        stmt = (
            update(WithdrawalRequest)
            .where(WithdrawalRequest.id == withdrawal_id)
            .values(status="failed", notes=notes, processed_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        await self.session.execute(stmt)

    async def list_unreserved(self, created_before: datetime, limit: int = 100) -> Sequence[WithdrawalRequest]:
        """Pending requests that never got their ``withdrawal`` ledger entry."""
        reservation = and_(
            Transaction.reference_id == WithdrawalRequest.id,
            Transaction.type == "withdrawal",
        )
        stmt = (
            select(WithdrawalRequest)
            .outerjoin(Transaction, reservation)
            .where(
                WithdrawalRequest.status == "pending",
                WithdrawalRequest.created_at < created_before,
                Transaction.id.is_(None),
            )
            .order_by(WithdrawalRequest.created_at)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()
