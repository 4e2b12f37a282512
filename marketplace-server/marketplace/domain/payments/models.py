"""Results returned by the payment gateway."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional


@dataclass(slots=True)
class IntentResult:
    intent_id: str
    provider: str
    provider_id: str
    status: str
    amount: Decimal
    provider_amount: Decimal
    provider_currency: str
    client_secret: Optional[str] = None
    reused: bool = False


@dataclass(slots=True)
class CaptureResult:
    success: bool
    status: str
    transaction_id: Optional[str]
    order_id: Optional[str]
    order_number: Optional[str]
    capture_id: Optional[str]
    already_captured: bool = False


@dataclass(slots=True)
class WebhookResult:
    provider: str
    event_id: str
    event_type: str
    handled: bool
    order_id: Optional[str] = None
    detail: Optional[str] = None
