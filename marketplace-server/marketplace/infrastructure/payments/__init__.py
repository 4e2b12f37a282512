"""Payment provider clients."""

from .base import (
    APPROVED,
    CAPTURABLE_STATUSES,
    COMPLETED,
    CREATED,
    PAYMENT_FAILED,
    PAYMENT_REFUNDED,
    PAYMENT_SUCCEEDED,
    PaymentProvider,
    PaymentRequest,
    ProviderEvent,
    ProviderPayment,
)
from .factory import build_payment_providers
from .paypal import PayPalClient
from .stripe_gateway import StripeGateway

__all__ = [
    "APPROVED",
    "CAPTURABLE_STATUSES",
    "COMPLETED",
    "CREATED",
    "PAYMENT_FAILED",
    "PAYMENT_REFUNDED",
    "PAYMENT_SUCCEEDED",
    "PayPalClient",
    "PaymentProvider",
    "PaymentRequest",
    "ProviderEvent",
    "ProviderPayment",
    "StripeGateway",
    "build_payment_providers",
]
