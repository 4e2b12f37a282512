"""Repository protocol for wallet operations."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Protocol, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.db.models import Transaction as TransactionModel
from marketplace.db.models import Wallet as WalletModel
from marketplace.db.models import WithdrawalRequest as WithdrawalModel


class WalletRepository(Protocol):
    @property
    def session(self) -> AsyncSession:
        ...

    async def get_wallet(self, wallet_id: str) -> WalletModel | None:
        ...

    async def get_wallet_by_user(self, user_id: str) -> WalletModel | None:
        ...

    async def create_wallet(
        self,
        user_id: str,
        *,
        min_withdrawal_amount: Decimal,
        withdrawal_fee_percentage: Decimal,
        currency: str = "XOF",
    ) -> WalletModel:
        ...

    async def credit_pending(self, wallet_id: str, amount: Decimal) -> bool:
        ...

    async def release_pending(self, wallet_id: str, amount: Decimal) -> bool:
        ...

    async def settle_pending(self, wallet_id: str, amount: Decimal) -> bool:
        ...

    async def credit_balance(self, wallet_id: str, amount: Decimal) -> bool:
        ...

    async def reserve_withdrawal(self, wallet_id: str, amount: Decimal) -> bool:
        ...

    async def update_min_withdrawal_amount(self, amount: Decimal) -> int:
        ...

    async def add_transaction(self, **fields: Any) -> TransactionModel:
        ...

    async def get_transaction(self, transaction_id: str) -> TransactionModel | None:
        ...

    async def list_order_transactions(
        self,
        order_id: str,
        *,
        type: str,
        status: str | None = None,
    ) -> Sequence[TransactionModel]:
        ...

    async def transition_transaction(
        self,
        transaction_id: str,
        *,
        from_status: str,
        to_status: str,
        completed_at: datetime | None = None,
    ) -> bool:
        ...

    async def mark_held(self, transaction_id: str, held_at: datetime) -> bool:
        ...

    async def list_transactions(self, wallet_id: str, limit: int, offset: int) -> Sequence[TransactionModel]:
        ...


class WithdrawalRepository(Protocol):
    async def create(
        self,
        *,
        user_id: str,
        wallet_id: str,
        amount: Decimal,
        fee_amount: Decimal,
        net_amount: Decimal,
        payment_method: str,
    ) -> WithdrawalModel:
        ...

    async def get(self, withdrawal_id: str) -> WithdrawalModel | None:
        ...

    async def mark_failed(self, withdrawal_id: str, notes: str) -> None:
        ...
