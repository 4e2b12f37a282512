"""Wallet ledger service.

Every balance change is a single conditional or incremental UPDATE issued by
the repository, and runs inside the caller's database transaction together
with the ledger rows it belongs to.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.config import WalletSettings, get_settings
from marketplace.db.models import Transaction as TransactionModel
from marketplace.db.models import Wallet as WalletModel
from marketplace.db.models import WithdrawalRequest as WithdrawalModel
from marketplace.db.models import utcnow
from marketplace.domain.audit import AuditService
from marketplace.domain.audit.models import WITHDRAWAL_REQUEST
from marketplace.domain.common.exceptions import (
    BelowMinimumError,
    InsufficientBalanceError,
    InvalidAmountError,
    InvalidInputError,
    NotFoundError,
    PersistenceError,
    WithdrawalReservationError,
)
from marketplace.domain.common.money import percentage_of, to_money
from marketplace.domain.notifications import NotificationService
from marketplace.infrastructure.database.repositories.setting_repository import SqlSettingRepository
from marketplace.infrastructure.database.repositories.wallet_repository import SqlWalletRepository
from marketplace.infrastructure.database.repositories.withdrawal_repository import SqlWithdrawalRepository

from .models import TransactionRecord, WalletSnapshot, WithdrawalRecord
from .repository import WalletRepository, WithdrawalRepository

logger = logging.getLogger(__name__)

MIN_WITHDRAWAL_KEY = "min_withdrawal_amount"


@dataclass(slots=True)
class WalletService:
    repository: WalletRepository
    withdrawals: WithdrawalRepository
    system_settings: SqlSettingRepository
    settings: WalletSettings
    audit: AuditService
    notifications: NotificationService

    @classmethod
    def with_session(
        cls,
        session: AsyncSession,
        settings: WalletSettings | None = None,
        *,
        audit: AuditService | None = None,
    ) -> "WalletService":
        return cls(
            SqlWalletRepository(session),
            SqlWithdrawalRepository(session),
            SqlSettingRepository(session),
            settings or get_settings().wallet,
            audit or AuditService.with_session(session),
            NotificationService.with_session(session),
        )

    async def ensure_wallet(self, user_id: str) -> WalletSnapshot:
        return self._to_snapshot(await self._ensure_model(user_id))

    async def get_wallet(self, user_id: str) -> WalletSnapshot:
        return await self.ensure_wallet(user_id)

    async def record_earning(
        self,
        wallet_id: str,
        amount: Decimal,
        *,
        order_id: str,
        service_id: str | None,
        client_id: str | None,
        freelance_id: str | None,
        currency: str = "XOF",
        description: str | None = None,
    ) -> TransactionRecord:
        """Insert a pending earning. The wallet itself is credited on delivery."""
        amount = self._positive(amount)
        model = await self.repository.add_transaction(
            wallet_id=wallet_id,
            amount=amount,
            type="earning",
            status="pending",
            order_id=order_id,
            service_id=service_id,
            client_id=client_id,
            freelance_id=freelance_id,
            currency=currency,
            description=description,
        )
        return self._to_transaction(model)

    async def record_payment(
        self,
        wallet_id: str,
        amount: Decimal,
        *,
        order_id: str,
        service_id: str | None,
        client_id: str | None,
        freelance_id: str | None,
        reference_id: str | None = None,
        currency: str = "XOF",
        description: str | None = None,
    ) -> TransactionRecord:
        amount = self._positive(amount)
        model = await self.repository.add_transaction(
            wallet_id=wallet_id,
            amount=amount,
            type="payment",
            status="completed",
            order_id=order_id,
            service_id=service_id,
            client_id=client_id,
            freelance_id=freelance_id,
            reference_id=reference_id,
            currency=currency,
            description=description,
            completed_at=utcnow(),
        )
        return self._to_transaction(model)

    async def hold_earning(self, transaction_id: str) -> bool:
        """Add a pending earning to the wallet's pending balance, once."""
        tx = await self._get_earning(transaction_id)
        if not await self.repository.mark_held(tx.id, utcnow()):
            return False
        if not await self.repository.credit_pending(tx.wallet_id, tx.amount):
            raise PersistenceError(f"Wallet {tx.wallet_id} missing for transaction {tx.id}")
        return True

    async def settle_earning(self, transaction_id: str) -> bool:
        """Complete a pending earning and move its amount into the spendable balance.

        Returns ``False`` when the transaction was already settled or released.
        """
        tx = await self._get_earning(transaction_id)
        claimed = await self.repository.transition_transaction(
            tx.id,
            from_status="pending",
            to_status="completed",
            completed_at=utcnow(),
        )
        if not claimed:
            return False
        if not await self.repository.settle_pending(tx.wallet_id, tx.amount, held=tx.held_at is not None):
            raise PersistenceError(f"Wallet {tx.wallet_id} missing for transaction {tx.id}")
        logger.info("Settled earning %s of %s on wallet %s", tx.id, tx.amount, tx.wallet_id)
        return True

    async def release_earning(self, transaction_id: str) -> bool:
        tx = await self._get_earning(transaction_id)
        released = await self.repository.transition_transaction(tx.id, from_status="pending", to_status="failed")
        if not released:
            return False
        if tx.held_at is not None:
            await self.repository.release_pending(tx.wallet_id, tx.amount)
        return True

    async def refund_client(
        self,
        client_id: str,
        amount: Decimal,
        *,
        order_id: str,
        service_id: str | None = None,
        reference_id: str | None = None,
        description: str | None = None,
    ) -> TransactionRecord:
        amount = self._positive(amount)
        wallet = await self._ensure_model(client_id)
        model = await self.repository.add_transaction(
            wallet_id=wallet.id,
            amount=amount,
            type="refund",
            status="completed",
            order_id=order_id,
            service_id=service_id,
            client_id=client_id,
            reference_id=reference_id,
            currency=wallet.currency,
            description=description,
            completed_at=utcnow(),
        )
        if not await self.repository.credit_balance(wallet.id, amount):
            raise PersistenceError(f"Could not credit refund to wallet {wallet.id}")
        return self._to_transaction(model)

    async def record_withdrawal_request(
        self,
        user_id: str,
        amount: Decimal,
        payment_method: str,
        *,
        fee_amount: Decimal | None = None,
        net_amount: Decimal | None = None,
    ) -> WithdrawalRecord:
        amount = self._positive(amount)
        if payment_method not in self.settings.payment_methods:
            raise InvalidInputError(
                "Unsupported payment method",
                details={"payment_method": payment_method, "allowed": list(self.settings.payment_methods)},
            )

        wallet = await self._ensure_model(user_id)
        if amount > wallet.balance:
            raise InsufficientBalanceError(details={"available": str(wallet.balance), "requested": str(amount)})
        if amount < wallet.min_withdrawal_amount:
            raise BelowMinimumError(details={"minimum": str(wallet.min_withdrawal_amount)})

        fee = percentage_of(amount, wallet.withdrawal_fee_percentage)
        net = amount - fee
        if fee_amount is not None and to_money(fee_amount) != fee:
            raise InvalidInputError("Fee amount does not match", details={"fee_amount": str(fee)})
        if net_amount is not None and to_money(net_amount) != net:
            raise InvalidInputError("Net amount does not match", details={"net_amount": str(net)})

        # the request row is written first; a crash before the reservation leaves
        # a pending request that the reconciliation job reports
        request = await self.withdrawals.create(
            user_id=user_id,
            wallet_id=wallet.id,
            amount=amount,
            fee_amount=fee,
            net_amount=net,
            payment_method=payment_method,
        )
        await self._reserve(request, wallet, amount)

        await self.repository.add_transaction(
            wallet_id=wallet.id,
            amount=amount,
            type="withdrawal",
            status="pending",
            reference_id=request.id,
            currency=wallet.currency,
            description=f"Withdrawal via {payment_method}",
        )
        await self.audit.record(
            WITHDRAWAL_REQUEST,
            user_id=user_id,
            severity="medium",
            details={
                "withdrawal_id": request.id,
                "amount": str(amount),
                "fee_amount": str(fee),
                "net_amount": str(net),
                "payment_method": payment_method,
            },
        )
        await self.notifications.notify(
            user_id,
            "withdrawal_requested",
            f"Your withdrawal request of {net} {wallet.currency} is being processed.",
            link="/dashboard/wallet",
        )
        logger.info("Withdrawal %s of %s reserved on wallet %s", request.id, amount, wallet.id)
        return self._to_withdrawal(request)

    async def get_min_withdrawal_amount(self) -> Decimal:
        value = await self.system_settings.get_value(MIN_WITHDRAWAL_KEY)
        if value is None:
            return self.settings.default_min_withdrawal_amount
        return Decimal(value)

    async def update_min_withdrawal_amount(self, amount: Decimal) -> int:
        amount = self._positive(amount)
        await self.system_settings.set_value(MIN_WITHDRAWAL_KEY, str(amount))
        updated = await self.repository.update_min_withdrawal_amount(amount)
        logger.info("Minimum withdrawal amount set to %s on %d wallets", amount, updated)
        return updated

    async def list_transactions(self, user_id: str, limit: int = 20, offset: int = 0) -> list[TransactionRecord]:
        wallet = await self._ensure_model(user_id)
        rows = await self.repository.list_transactions(wallet.id, limit, offset)
        return [self._to_transaction(row) for row in rows]

    async def list_order_earnings(self, order_id: str, status: str | None = "pending") -> list[TransactionRecord]:
        rows = await self.repository.list_order_transactions(order_id, type="earning", status=status)
        return [self._to_transaction(row) for row in rows]

    async def list_order_payments(self, order_id: str) -> list[TransactionRecord]:
        rows = await self.repository.list_order_transactions(order_id, type="payment")
        return [self._to_transaction(row) for row in rows]

    async def _reserve(self, request: WithdrawalModel, wallet: WalletModel, amount: Decimal) -> None:
        try:
            async with self.repository.session.begin_nested():
                reserved = await self.repository.reserve_withdrawal(wallet.id, amount)
        except SQLAlchemyError:
            logger.exception("Reservation of withdrawal %s failed on wallet %s", request.id, wallet.id)
            reserved = False
        if reserved:
            return
        await self.withdrawals.mark_failed(request.id, "Wallet reservation failed, balance unchanged")
        logger.warning("Withdrawal %s marked failed, reservation not applied", request.id)
        raise WithdrawalReservationError(request.id)

    async def _ensure_model(self, user_id: str) -> WalletModel:
        wallet = await self.repository.get_wallet_by_user(user_id)
        if wallet is not None:
            return wallet
        return await self.repository.create_wallet(
            user_id,
            min_withdrawal_amount=await self.get_min_withdrawal_amount(),
            withdrawal_fee_percentage=self.settings.default_withdrawal_fee_percentage,
        )

    async def _get_earning(self, transaction_id: str) -> TransactionModel:
        tx = await self.repository.get_transaction(transaction_id)
        if tx is None:
            raise NotFoundError("Transaction not found")
        if tx.type != "earning":
            raise InvalidInputError(f"Transaction {transaction_id} is not an earning")
        return tx

    @staticmethod
    def _positive(amount: Decimal) -> Decimal:
        amount = to_money(amount)
        if amount <= 0:
            raise InvalidAmountError()
        return amount

    @staticmethod
    def _to_snapshot(model: WalletModel) -> WalletSnapshot:
        return WalletSnapshot(
            id=model.id,
            user_id=model.user_id,
            balance=model.balance,
            pending_balance=model.pending_balance,
            total_earnings=model.total_earnings,
            total_withdrawals=model.total_withdrawals,
            min_withdrawal_amount=model.min_withdrawal_amount,
            withdrawal_fee_percentage=model.withdrawal_fee_percentage,
            currency=model.currency,
            updated_at=model.updated_at,
        )

    @staticmethod
    def _to_transaction(model: TransactionModel) -> TransactionRecord:
        return TransactionRecord(
            id=model.id,
            wallet_id=model.wallet_id,
            amount=model.amount,
            type=model.type,
            status=model.status,
            currency=model.currency,
            order_id=model.order_id,
            service_id=model.service_id,
            client_id=model.client_id,
            freelance_id=model.freelance_id,
            reference_id=model.reference_id,
            description=model.description,
            held_at=model.held_at,
            created_at=model.created_at,
            completed_at=model.completed_at,
        )

    @staticmethod
    def _to_withdrawal(model: WithdrawalModel) -> WithdrawalRecord:
        return WithdrawalRecord(
            id=model.id,
            user_id=model.user_id,
            wallet_id=model.wallet_id,
            amount=model.amount,
            fee_amount=model.fee_amount,
            net_amount=model.net_amount,
            payment_method=model.payment_method,
            status=model.status,
            notes=model.notes,
            created_at=model.created_at,
        )
