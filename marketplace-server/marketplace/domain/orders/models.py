"""Order snapshots and the order state machine."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional

ORDER_STATUSES = ("pending", "delivered", "completed", "cancelled", "in_dispute", "revision_requested")

ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    "pending": frozenset({"delivered", "cancelled"}),
    "delivered": frozenset({"completed", "cancelled", "in_dispute", "revision_requested"}),
    "revision_requested": frozenset({"delivered"}),
    "in_dispute": frozenset({"completed", "cancelled"}),
    "completed": frozenset(),
    "cancelled": frozenset(),
}


def can_transition(current: str, target: str) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


@dataclass(slots=True)
class OrderSnapshot:
    id: str
    order_number: str
    client_id: str
    freelance_id: str
    service_id: str
    price: Decimal
    currency: str
    status: str
    requirements: Optional[str]
    cancellation_reason: Optional[str]
    created_at: Optional[datetime]
    delivered_at: Optional[datetime]
    completed_at: Optional[datetime]
    cancelled_at: Optional[datetime]

    def is_participant(self, user_id: str) -> bool:
        return user_id in (self.client_id, self.freelance_id)


@dataclass(slots=True)
class SettlementResult:
    order_id: str
    status: str
    settled_transactions: int = 0
    settled_amount: Decimal = Decimal("0")
    already_completed: bool = False


@dataclass(slots=True)
class CancellationResult:
    order_id: str
    status: str
    released_transactions: int = 0
    refunded_amount: Decimal = Decimal("0")
    already_cancelled: bool = False
