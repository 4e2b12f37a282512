"""Stripe PaymentIntent gateway.

The stripe SDK is synchronous; calls run in a worker thread so they do not
block the event loop.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Mapping

import stripe

from marketplace.core.config import StripeSettings
from marketplace.domain.common.exceptions import ProviderError, WebhookVerificationError

from .base import APPROVED, COMPLETED, CREATED, FAILED, PENDING, VOIDED, PaymentRequest, ProviderPayment
from .base import PAYMENT_FAILED, PAYMENT_REFUNDED, PAYMENT_SUCCEEDED, ProviderEvent
from .base import from_minor_units, to_minor_units

logger = logging.getLogger(__name__)

STATUS_MAP = {
    "succeeded": COMPLETED,
    "requires_capture": APPROVED,
    "requires_payment_method": CREATED,
    "requires_confirmation": CREATED,
    "requires_action": CREATED,
    "processing": PENDING,
    "canceled": VOIDED,
}

EVENT_KINDS = {
    "payment_intent.succeeded": PAYMENT_SUCCEEDED,
    "payment_intent.payment_failed": PAYMENT_FAILED,
    "payment_intent.canceled": PAYMENT_FAILED,
    "charge.refunded": PAYMENT_REFUNDED,
}


class StripeGateway:
    name = "stripe"

    def __init__(self, settings: StripeSettings) -> None:
        self._settings = settings

    async def aclose(self) -> None:
        return None

    async def create_payment(self, request: PaymentRequest) -> ProviderPayment:
        params: dict[str, Any] = {
            "amount": to_minor_units(request.amount, request.currency),
            "currency": request.currency.lower(),
            "payment_method_types": list(self._settings.payment_method_types),
            "description": request.description,
            "metadata": {**request.metadata, "service_id": request.reference},
        }
        if request.email:
            params["receipt_email"] = request.email
        if request.idempotency_key:
            params["idempotency_key"] = request.idempotency_key
        intent = await self._call(stripe.PaymentIntent.create, **params)
        return self._to_payment(intent)

    async def get_payment(self, provider_id: str) -> ProviderPayment:
        intent = await self._call(stripe.PaymentIntent.retrieve, provider_id)
        return self._to_payment(intent)

    async def capture_payment(self, provider_id: str) -> ProviderPayment:
        intent = await self._call(stripe.PaymentIntent.retrieve, provider_id)
        if intent.status != "requires_capture":
            # only manually captured intents need the extra call
            return self._to_payment(intent)
        intent = await self._call(stripe.PaymentIntent.capture, provider_id)
        return self._to_payment(intent)

    async def parse_webhook(self, payload: bytes, headers: Mapping[str, str]) -> ProviderEvent:
        if not self._settings.webhook_secret:
            raise ProviderError("Stripe webhooks are not configured")
        signature = headers.get("stripe-signature")
        if not signature:
            raise WebhookVerificationError()
        try:
            event = stripe.Webhook.construct_event(
                payload,
                signature,
                self._settings.webhook_secret,
                tolerance=self._settings.webhook_tolerance,
            )
        except (ValueError, stripe.SignatureVerificationError) as exc:
            logger.warning("Rejected Stripe webhook: %s", exc)
            raise WebhookVerificationError() from exc
        return self._to_event(event)

    async def _call(self, method, *args: Any, **kwargs: Any) -> Any:
        if not self._settings.secret_key:
            raise ProviderError("Stripe is not configured")
        try:
            return await asyncio.to_thread(method, *args, api_key=self._settings.secret_key, **kwargs)
        except stripe.StripeError as exc:
            logger.error("Stripe call %s failed: %s", getattr(method, "__name__", method), exc)
            raise ProviderError("Stripe request failed", details={"code": getattr(exc, "code", None)}) from exc

    def _to_event(self, event: Any) -> ProviderEvent:
        kind = EVENT_KINDS.get(event.type)
        result = ProviderEvent(id=event.id, type=event.type, kind=kind)
        if kind is None:
            return result
        obj = event.data.object
        if kind == PAYMENT_REFUNDED:
            result.provider_id = getattr(obj, "payment_intent", None)
            result.capture_id = obj.id
            return result
        result.provider_id = obj.id
        if kind == PAYMENT_SUCCEEDED:
            result.payment = self._to_payment(obj)
        else:
            error = getattr(obj, "last_payment_error", None)
            result.reason = getattr(error, "message", None) or obj.status
        return result

    @staticmethod
    def _to_payment(intent: Any) -> ProviderPayment:
        currency = (intent.currency or "").upper()
        received = getattr(intent, "amount_received", None) or intent.amount
        latest_charge = getattr(intent, "latest_charge", None)
        return ProviderPayment(
            provider_id=intent.id,
            status=STATUS_MAP.get(intent.status, FAILED),
            amount=from_minor_units(received, currency) if received is not None else None,
            currency=currency or None,
            client_secret=getattr(intent, "client_secret", None),
            capture_id=latest_charge if isinstance(latest_charge, str) else getattr(latest_charge, "id", None),
            raw={"status": intent.status},
        )
