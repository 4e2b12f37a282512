"""PayPal Orders v2 client built on httpx."""

from __future__ import annotations

import asyncio
import json
import logging
import time
from decimal import Decimal
from typing import Any, Callable, Mapping

import httpx

from marketplace.core.config import PayPalSettings
from marketplace.domain.common.exceptions import ProviderError, WebhookVerificationError

from .base import PAYMENT_FAILED, PAYMENT_REFUNDED, PAYMENT_SUCCEEDED, ProviderEvent
from .base import PaymentRequest, ProviderPayment

logger = logging.getLogger(__name__)

# refresh the OAuth token this many seconds before PayPal expires it
TOKEN_EXPIRY_MARGIN = 60

EVENT_KINDS = {
    "PAYMENT.CAPTURE.COMPLETED": PAYMENT_SUCCEEDED,
    "PAYMENT.CAPTURE.DENIED": PAYMENT_FAILED,
    "PAYMENT.CAPTURE.DECLINED": PAYMENT_FAILED,
    "PAYMENT.CAPTURE.REFUNDED": PAYMENT_REFUNDED,
    "PAYMENT.CAPTURE.REVERSED": PAYMENT_REFUNDED,
}

# transmission headers PayPal signs every webhook delivery with
SIGNATURE_HEADERS = {
    "auth_algo": "paypal-auth-algo",
    "cert_url": "paypal-cert-url",
    "transmission_id": "paypal-transmission-id",
    "transmission_sig": "paypal-transmission-sig",
    "transmission_time": "paypal-transmission-time",
}


class PayPalClient:
    name = "paypal"

    def __init__(
        self,
        settings: PayPalSettings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._settings = settings
        self._clock = clock
        self._client = httpx.AsyncClient(
            base_url=settings.api_base,
            timeout=settings.timeout,
            transport=transport,
        )
        self._token: str | None = None
        self._token_expires_at = 0.0
        self._token_lock = asyncio.Lock()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def create_payment(self, request: PaymentRequest) -> ProviderPayment:
        value = f"{request.amount:.2f}"
        money = {"currency_code": request.currency, "value": value}
        unit = {
            "amount": {**money, "breakdown": {"item_total": money}},
            "description": request.description,
            "custom_id": request.reference,
            "items": [
                {
                    "name": request.metadata.get("item_name", "Service"),
                    "unit_amount": money,
                    "quantity": "1",
                }
            ],
        }
        payload: dict[str, Any] = {
            "intent": "CAPTURE",
            "purchase_units": [unit],
            "application_context": {
                "brand_name": self._settings.brand_name,
                "landing_page": "BILLING",
                "shipping_preference": "NO_SHIPPING",
                "user_action": "PAY_NOW",
            },
        }
        if self._settings.return_url:
            payload["application_context"]["return_url"] = self._settings.return_url
        if self._settings.cancel_url:
            payload["application_context"]["cancel_url"] = self._settings.cancel_url
        if request.email:
            payload["payer"] = {"email_address": request.email}

        headers = {"PayPal-Request-Id": request.idempotency_key} if request.idempotency_key else None
        data = await self._request("POST", "/v2/checkout/orders", json=payload, headers=headers)
        return self._to_payment(data)

    async def get_payment(self, provider_id: str) -> ProviderPayment:
        data = await self._request("GET", f"/v2/checkout/orders/{provider_id}")
        return self._to_payment(data)

    async def capture_payment(self, provider_id: str) -> ProviderPayment:
        data = await self._request("POST", f"/v2/checkout/orders/{provider_id}/capture")
        return self._to_payment(data)

    async def parse_webhook(self, payload: bytes, headers: Mapping[str, str]) -> ProviderEvent:
        """Verify a webhook delivery with PayPal and map it to a provider event."""
        if not self._settings.webhook_id:
            raise ProviderError("PayPal webhooks are not configured")
        try:
            event = json.loads(payload)
        except ValueError as exc:
            raise WebhookVerificationError() from exc
        if not isinstance(event, dict):
            raise WebhookVerificationError()
        verification: dict[str, Any] = {field: headers.get(name) for field, name in SIGNATURE_HEADERS.items()}
        if not all(verification.values()):
            raise WebhookVerificationError()
        verification["webhook_id"] = self._settings.webhook_id
        verification["webhook_event"] = event
        result = await self._request("POST", "/v1/notifications/verify-webhook-signature", json=verification)
        if result.get("verification_status") != "SUCCESS":
            logger.warning("Rejected PayPal webhook %s", event.get("id"))
            raise WebhookVerificationError()
        return self._to_event(event)

    async def _access_token(self) -> str:
        async with self._token_lock:
            if self._token and self._clock() < self._token_expires_at:
                return self._token
            if not (self._settings.client_id and self._settings.secret):
                raise ProviderError("PayPal credentials are not configured")
            try:
                response = await self._client.post(
                    "/v1/oauth2/token",
                    data={"grant_type": "client_credentials"},
                    auth=(self._settings.client_id, self._settings.secret),
                    headers={"Accept": "application/json"},
                )
            except httpx.HTTPError as exc:
                raise ProviderError("PayPal authentication failed") from exc
            if response.is_error:
                logger.error("PayPal token request failed with %s: %s", response.status_code, response.text)
                raise ProviderError("PayPal authentication failed")
            body = response.json()
            self._token = body["access_token"]
            self._token_expires_at = self._clock() + int(body.get("expires_in", 0)) - TOKEN_EXPIRY_MARGIN
            return self._token

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        token = await self._access_token()
        request_headers = {"Authorization": f"Bearer {token}", "Content-Type": "application/json"}
        if headers:
            request_headers.update(headers)
        try:
            response = await self._client.request(method, path, json=json, headers=request_headers)
        except httpx.HTTPError as exc:
            logger.error("PayPal %s %s failed: %s", method, path, exc)
            raise ProviderError("PayPal request failed") from exc

        if response.status_code == 401:
            self._token = None
        if response.is_error:
            body = self._safe_json(response)
            logger.error("PayPal %s %s returned %s: %s", method, path, response.status_code, body)
            raise ProviderError(
                "PayPal request failed",
                details={"status": response.status_code, "name": body.get("name"), "message": body.get("message")},
            )
        return self._safe_json(response)

    @staticmethod
    def _safe_json(response: httpx.Response) -> dict[str, Any]:
        try:
            body = response.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {}

    @staticmethod
    def _to_payment(data: dict[str, Any]) -> ProviderPayment:
        status = data.get("status", "")
        amount = currency = capture_id = None
        units = data.get("purchase_units") or []
        if units:
            unit = units[0]
            captures = (unit.get("payments") or {}).get("captures") or []
            if captures:
                capture = captures[0]
                capture_id = capture.get("id")
                # a captured order reports the capture's own status
                status = capture.get("status", status)
                money = capture.get("amount") or {}
            else:
                money = unit.get("amount") or {}
            if money.get("value") is not None:
                amount = Decimal(str(money["value"]))
                currency = money.get("currency_code")
        return ProviderPayment(
            provider_id=data.get("id", ""),
            status=status,
            amount=amount,
            currency=currency,
            capture_id=capture_id,
            raw=data,
        )

    @staticmethod
    def _to_event(event: dict[str, Any]) -> ProviderEvent:
        event_type = event.get("event_type", "")
        kind = EVENT_KINDS.get(event_type)
        result = ProviderEvent(id=event.get("id", ""), type=event_type, kind=kind)
        if kind is None:
            return result
        resource = event.get("resource") or {}
        related = (resource.get("supplementary_data") or {}).get("related_ids") or {}
        result.provider_id = related.get("order_id")
        if kind == PAYMENT_REFUNDED and event_type.endswith("REFUNDED"):
            # the resource is the refund; its "up" link names the refunded capture
            result.capture_id = PayPalClient._linked_capture_id(resource)
        else:
            result.capture_id = resource.get("id")
        if kind == PAYMENT_SUCCEEDED:
            money = resource.get("amount") or {}
            result.payment = ProviderPayment(
                provider_id=result.provider_id or "",
                status=resource.get("status", ""),
                amount=Decimal(str(money["value"])) if money.get("value") is not None else None,
                currency=money.get("currency_code"),
                capture_id=resource.get("id"),
                raw=resource,
            )
        elif kind == PAYMENT_FAILED:
            result.reason = (resource.get("status_details") or {}).get("reason") or resource.get("status")
        return result

    @staticmethod
    def _linked_capture_id(resource: dict[str, Any]) -> str | None:
        for link in resource.get("links") or []:
            href = link.get("href", "")
            if link.get("rel") == "up" and "/captures/" in href:
                return href.rstrip("/").rsplit("/", 1)[-1]
        return None
