"""Build the configured payment providers."""

from __future__ import annotations

from marketplace.core.config import Settings

from .base import PaymentProvider
from .paypal import PayPalClient
from .stripe_gateway import StripeGateway


def build_payment_providers(settings: Settings) -> dict[str, PaymentProvider]:
    return {
        PayPalClient.name: PayPalClient(settings.paypal),
        StripeGateway.name: StripeGateway(settings.stripe),
    }
