"""Provider-neutral view of an external payment.

Stripe and PayPal report different status vocabularies; both are normalised
to the PayPal order statuses below before the gateway looks at them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Mapping, Optional, Protocol

CREATED = "CREATED"
APPROVED = "APPROVED"
PENDING = "PENDING"
COMPLETED = "COMPLETED"
VOIDED = "VOIDED"
FAILED = "FAILED"

CAPTURABLE_STATUSES = frozenset({CREATED, APPROVED})

# webhook event kinds the gateway acts on
PAYMENT_SUCCEEDED = "payment.succeeded"
PAYMENT_FAILED = "payment.failed"
PAYMENT_REFUNDED = "payment.refunded"

# currencies without a minor unit at Stripe
ZERO_DECIMAL_CURRENCIES = frozenset({"XOF", "XAF", "JPY", "KRW", "VND", "CLP", "GNF", "RWF", "UGX"})


@dataclass(slots=True)
class PaymentRequest:
    amount: Decimal
    currency: str
    description: str
    reference: str
    email: Optional[str] = None
    metadata: dict[str, str] = field(default_factory=dict)
    idempotency_key: Optional[str] = None


@dataclass(slots=True)
class ProviderPayment:
    provider_id: str
    status: str
    amount: Optional[Decimal] = None
    currency: Optional[str] = None
    client_secret: Optional[str] = None
    capture_id: Optional[str] = None
    raw: dict[str, Any] = field(default_factory=dict, repr=False)


@dataclass(slots=True)
class ProviderEvent:
    """A verified webhook notification.

    ``kind`` is ``None`` for event types the gateway does not act on. The
    payment is identified by ``provider_id`` or, for refunds that only name the
    capture, by ``capture_id``.
    """

    id: str
    type: str
    kind: Optional[str] = None
    provider_id: Optional[str] = None
    capture_id: Optional[str] = None
    payment: Optional[ProviderPayment] = None
    reason: Optional[str] = None


class PaymentProvider(Protocol):
    name: str

    async def create_payment(self, request: PaymentRequest) -> ProviderPayment:
        ...

    async def get_payment(self, provider_id: str) -> ProviderPayment:
        ...

    async def capture_payment(self, provider_id: str) -> ProviderPayment:
        ...

    async def parse_webhook(self, payload: bytes, headers: Mapping[str, str]) -> ProviderEvent:
        ...

    async def aclose(self) -> None:
        ...


def round_to_minor_unit(amount: Decimal, currency: str) -> Decimal:
    """Round ``amount`` to what the provider can actually charge in ``currency``."""
    exponent = Decimal("1") if currency.upper() in ZERO_DECIMAL_CURRENCIES else Decimal("0.01")
    return amount.quantize(exponent, rounding=ROUND_HALF_UP)


def to_minor_units(amount: Decimal, currency: str) -> int:
    if currency.upper() in ZERO_DECIMAL_CURRENCIES:
        return int(amount.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_minor_units(value: int, currency: str) -> Decimal:
    if currency.upper() in ZERO_DECIMAL_CURRENCIES:
        return Decimal(value)
    return (Decimal(value) / 100).quantize(Decimal("0.01"))
