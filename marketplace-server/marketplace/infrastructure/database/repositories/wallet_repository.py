"""SQLAlchemy implementation for the wallet ledger.

Balance changes are issued as single UPDATE statements built from column
expressions so the database applies them atomically; rows are re-read with
``populate_existing`` afterwards because bulk updates bypass the identity map.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Sequence

from sqlalchemy import case, desc, select, update
from sqlalchemy.exc import IntegrityError

from marketplace.db.models import Transaction, Wallet, utcnow
from marketplace.domain.common.repository import AsyncRepository


class SqlWalletRepository(AsyncRepository[Wallet]):
    async def get_wallet(self, wallet_id: str) -> Wallet | None:
        return await self._fresh(select(Wallet).where(Wallet.id == wallet_id))

    async def get_wallet_by_user(self, user_id: str) -> Wallet | None:
        return await self._fresh(select(Wallet).where(Wallet.user_id == user_id))

    async def create_wallet(
        self,
        user_id: str,
        *,
        min_withdrawal_amount: Decimal,
        withdrawal_fee_percentage: Decimal,
        currency: str = "XOF",
    ) -> Wallet:
        wallet = Wallet(
            user_id=user_id,
            balance=Decimal("0"),
            pending_balance=Decimal("0"),
            total_earnings=Decimal("0"),
            total_withdrawals=Decimal("0"),
            min_withdrawal_amount=min_withdrawal_amount,
            withdrawal_fee_percentage=withdrawal_fee_percentage,
            currency=currency,
        )
        try:
            async with self.session.begin_nested():
                self.session.add(wallet)
        except IntegrityError:
            # created concurrently by another request
            wallet = await self.get_wallet_by_user(user_id)
            if wallet is None:
                raise
        return wallet

    async def _apply(self, wallet_id: str, *conditions: Any, **values: Any) -> bool:
        stmt = (
            update(Wallet)
            .where(Wallet.id == wallet_id, *conditions)
            .values(updated_at=utcnow(), **values)
            .execution_options(synchronize_session=False)
        )
        return await self._affected(stmt) == 1

    async def credit_pending(self, wallet_id: str, amount: Decimal) -> bool:
        return await self._apply(wallet_id, pending_balance=Wallet.pending_balance + amount)

    async def release_pending(self, wallet_id: str, amount: Decimal) -> bool:
        return await self._apply(wallet_id, pending_balance=self._floored_pending(amount))

    async def settle_pending(self, wallet_id: str, amount: Decimal, *, held: bool = True) -> bool:
        """Credit a settled earning; only a held earning is taken back out of pending_balance."""
        values = {"balance": Wallet.balance + amount, "total_earnings": Wallet.total_earnings + amount}
        if held:
            values["pending_balance"] = self._floored_pending(amount)
        return await self._apply(wallet_id, **values)

    async def credit_balance(self, wallet_id: str, amount: Decimal) -> bool:
        return await self._apply(wallet_id, balance=Wallet.balance + amount)

    async def reserve_withdrawal(self, wallet_id: str, amount: Decimal) -> bool:
        """Move ``amount`` from balance to pending_balance if the balance still covers it."""
        return await self._apply(
            wallet_id,
            Wallet.balance >= amount,
            balance=Wallet.balance - amount,
            pending_balance=Wallet.pending_balance + amount,
        )

    async def update_min_withdrawal_amount(self, amount: Decimal) -> int:
        stmt = (
            update(Wallet)
            .values(min_withdrawal_amount=amount, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        return await self._affected(stmt)

    async def add_transaction(self, **fields: Any) -> Transaction:
        return await self.add(Transaction(**fields))

    async def get_transaction(self, transaction_id: str) -> Transaction | None:
        return await self._fresh(select(Transaction).where(Transaction.id == transaction_id))

    async def list_order_transactions(
        self,
        order_id: str,
        *,
        type: str,
        status: str | None = None,
    ) -> Sequence[Transaction]:
        stmt = select(Transaction).where(Transaction.order_id == order_id, Transaction.type == type)
        if status is not None:
            stmt = stmt.where(Transaction.status == status)
        stmt = stmt.order_by(Transaction.created_at).execution_options(populate_existing=True)
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def transition_transaction(
        self,
        transaction_id: str,
        *,
        from_status: str,
        to_status: str,
        completed_at: datetime | None = None,
    ) -> bool:
        values: dict[str, Any] = {"status": to_status}
        if completed_at is not None:
            values["completed_at"] = completed_at
        stmt = (
            update(Transaction)
            .where(Transaction.id == transaction_id, Transaction.status == from_status)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return await self._affected(stmt) == 1

    async def mark_held(self, transaction_id: str, held_at: datetime) -> bool:
        stmt = (
            update(Transaction)
            .where(
                Transaction.id == transaction_id,
                Transaction.status == "pending",
                Transaction.held_at.is_(None),
            )
            .values(held_at=held_at)
            .execution_options(synchronize_session=False)
        )
        return await self._affected(stmt) == 1

    async def list_transactions(self, wallet_id: str, limit: int, offset: int) -> Sequence[Transaction]:
        stmt = (
            select(Transaction)
            .where(Transaction.wallet_id == wallet_id)
            .order_by(desc(Transaction.created_at))
            .offset(offset)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()

    @staticmethod
    def _floored_pending(amount: Decimal):
        return case(
            (Wallet.pending_balance > amount, Wallet.pending_balance - amount),
            else_=0,
        )
