"""Domain models for wallet operations."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional


@dataclass(slots=True)
class WalletSnapshot:
    id: str
    user_id: str
    balance: Decimal
    pending_balance: Decimal
    total_earnings: Decimal
    total_withdrawals: Decimal
    min_withdrawal_amount: Decimal
    withdrawal_fee_percentage: Decimal
    currency: str
    updated_at: Optional[datetime]


@dataclass(slots=True)
class TransactionRecord:
    id: str
    wallet_id: str
    amount: Decimal
    type: str
    status: str
    currency: str
    order_id: Optional[str]
    service_id: Optional[str]
    client_id: Optional[str]
    freelance_id: Optional[str]
    reference_id: Optional[str]
    description: Optional[str]
    held_at: Optional[datetime]
    created_at: Optional[datetime]
    completed_at: Optional[datetime]


@dataclass(slots=True)
class WithdrawalRecord:
    id: str
    user_id: str
    wallet_id: str
    amount: Decimal
    fee_amount: Decimal
    net_amount: Decimal
    payment_method: str
    status: str
    notes: Optional[str]
    created_at: Optional[datetime]
