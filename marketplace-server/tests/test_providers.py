import hashlib
import hmac
import json
import time
from decimal import Decimal
from types import SimpleNamespace

import httpx
import pytest
import stripe

from marketplace.core.config import PayPalSettings, StripeSettings
from marketplace.domain.common.exceptions import ProviderError, WebhookVerificationError
from marketplace.infrastructure.payments import PayPalClient, PaymentRequest, StripeGateway
from marketplace.infrastructure.payments.base import (
    COMPLETED,
    CREATED,
    FAILED,
    PAYMENT_FAILED,
    PAYMENT_REFUNDED,
    PAYMENT_SUCCEEDED,
    from_minor_units,
    round_to_minor_unit,
    to_minor_units,
)


def payment_request(**overrides) -> PaymentRequest:
    values = {
        "amount": Decimal("7.62"),
        "currency": "EUR",
        "description": "Order for Logo design",
        "reference": "service-1",
        "metadata": {"item_name": "Logo design"},
        "idempotency_key": "key-1",
    }
    values.update(overrides)
    return PaymentRequest(**values)


class PayPalSandbox:
    def __init__(self):
        self.calls = []
        self.verification = "SUCCESS"

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        path = request.url.path
        if path == "/v1/oauth2/token":
            return httpx.Response(200, json={"access_token": "token-1", "expires_in": 3600})
        if path == "/v1/notifications/verify-webhook-signature":
            return httpx.Response(200, json={"verification_status": self.verification})
        if path == "/v2/checkout/orders" and request.method == "POST":
            body = json.loads(request.content)
            return httpx.Response(
                201,
                json={"id": "ORDER-1", "status": "CREATED", "purchase_units": [{"amount": body["purchase_units"][0]["amount"]}]},
            )
        if path == "/v2/checkout/orders/ORDER-1/capture":
            return httpx.Response(
                201,
                json={
                    "id": "ORDER-1",
                    "status": "COMPLETED",
                    "purchase_units": [
                        {
                            "payments": {
                                "captures": [
                                    {"id": "CAPTURE-1", "status": "COMPLETED", "amount": {"currency_code": "EUR", "value": "7.62"}}
                                ]
                            }
                        }
                    ],
                },
            )
        return httpx.Response(422, json={"name": "UNPROCESSABLE_ENTITY", "message": "Order not approved"})


@pytest.fixture
def sandbox():
    return PayPalSandbox()


@pytest.fixture
def paypal(sandbox):
    settings = PayPalSettings(client_id="client", secret="secret", api_base="https://paypal.test")
    return PayPalClient(settings, transport=httpx.MockTransport(sandbox))


async def test_paypal_create_and_capture(paypal, sandbox):
    created = await paypal.create_payment(payment_request())
    captured = await paypal.capture_payment(created.provider_id)

    assert created.provider_id == "ORDER-1"
    assert created.status == CREATED
    assert created.amount == Decimal("7.62")
    assert captured.status == COMPLETED
    assert captured.capture_id == "CAPTURE-1"
    assert captured.amount == Decimal("7.62")
    assert captured.currency == "EUR"

    token_calls = [call for call in sandbox.calls if call.url.path == "/v1/oauth2/token"]
    assert len(token_calls) == 1
    create_call = sandbox.calls[1]
    assert create_call.headers["Authorization"] == "Bearer token-1"
    assert create_call.headers["PayPal-Request-Id"] == "key-1"
    body = json.loads(create_call.content)
    assert body["intent"] == "CAPTURE"
    assert body["purchase_units"][0]["amount"]["value"] == "7.62"
    await paypal.aclose()


async def test_paypal_error_becomes_provider_error(paypal):
    with pytest.raises(ProviderError) as excinfo:
        await paypal.capture_payment("ORDER-2")

    assert excinfo.value.details["status"] == 422
    assert excinfo.value.details["name"] == "UNPROCESSABLE_ENTITY"
    await paypal.aclose()


async def test_paypal_requires_credentials():
    client = PayPalClient(PayPalSettings(), transport=httpx.MockTransport(PayPalSandbox()))

    with pytest.raises(ProviderError):
        await client.get_payment("ORDER-1")
    await client.aclose()


PAYPAL_TRANSMISSION = {
    "paypal-auth-algo": "SHA256withRSA",
    "paypal-cert-url": "https://api.paypal.test/v1/notifications/certs/CERT-1",
    "paypal-transmission-id": "TRANSMISSION-1",
    "paypal-transmission-sig": "c2lnbmF0dXJl",
    "paypal-transmission-time": "2024-05-01T10:00:00Z",
}


@pytest.fixture
def paypal_webhooks(sandbox):
    settings = PayPalSettings(client_id="client", secret="secret", api_base="https://paypal.test", webhook_id="WH-1")
    return PayPalClient(settings, transport=httpx.MockTransport(sandbox))


def paypal_event(event_type, resource):
    return json.dumps({"id": "WH-EVENT-1", "event_type": event_type, "resource": resource}).encode()


async def test_paypal_webhook_completed_capture(paypal_webhooks, sandbox):
    payload = paypal_event(
        "PAYMENT.CAPTURE.COMPLETED",
        {
            "id": "CAPTURE-1",
            "status": "COMPLETED",
            "amount": {"currency_code": "EUR", "value": "7.62"},
            "supplementary_data": {"related_ids": {"order_id": "ORDER-1"}},
        },
    )

    event = await paypal_webhooks.parse_webhook(payload, PAYPAL_TRANSMISSION)

    assert event.id == "WH-EVENT-1"
    assert event.kind == PAYMENT_SUCCEEDED
    assert event.provider_id == "ORDER-1"
    assert event.capture_id == "CAPTURE-1"
    assert event.payment.status == COMPLETED
    assert event.payment.amount == Decimal("7.62")
    verify = [call for call in sandbox.calls if call.url.path == "/v1/notifications/verify-webhook-signature"]
    body = json.loads(verify[0].content)
    assert body["webhook_id"] == "WH-1"
    assert body["transmission_id"] == "TRANSMISSION-1"
    assert body["webhook_event"]["id"] == "WH-EVENT-1"
    await paypal_webhooks.aclose()


async def test_paypal_webhook_refund_names_the_capture(paypal_webhooks):
    payload = paypal_event(
        "PAYMENT.CAPTURE.REFUNDED",
        {
            "id": "REFUND-1",
            "status": "COMPLETED",
            "links": [
                {"rel": "self", "href": "https://api.paypal.test/v2/payments/refunds/REFUND-1"},
                {"rel": "up", "href": "https://api.paypal.test/v2/payments/captures/CAPTURE-1"},
            ],
        },
    )

    event = await paypal_webhooks.parse_webhook(payload, PAYPAL_TRANSMISSION)

    assert event.kind == PAYMENT_REFUNDED
    assert event.capture_id == "CAPTURE-1"
    assert event.payment is None
    await paypal_webhooks.aclose()


async def test_paypal_webhook_denied_capture(paypal_webhooks):
    payload = paypal_event(
        "PAYMENT.CAPTURE.DENIED",
        {"id": "CAPTURE-1", "status": "DENIED", "status_details": {"reason": "RISK_DECLINED"}},
    )

    event = await paypal_webhooks.parse_webhook(payload, PAYPAL_TRANSMISSION)

    assert event.kind == PAYMENT_FAILED
    assert event.reason == "RISK_DECLINED"
    await paypal_webhooks.aclose()


async def test_paypal_webhook_failed_verification(paypal_webhooks, sandbox):
    sandbox.verification = "FAILURE"

    with pytest.raises(WebhookVerificationError):
        await paypal_webhooks.parse_webhook(paypal_event("PAYMENT.CAPTURE.COMPLETED", {}), PAYPAL_TRANSMISSION)
    await paypal_webhooks.aclose()


async def test_paypal_webhook_without_transmission_headers(paypal_webhooks, sandbox):
    headers = {key: value for key, value in PAYPAL_TRANSMISSION.items() if key != "paypal-transmission-sig"}

    with pytest.raises(WebhookVerificationError):
        await paypal_webhooks.parse_webhook(paypal_event("PAYMENT.CAPTURE.COMPLETED", {}), headers)
    assert sandbox.calls == []
    await paypal_webhooks.aclose()


async def test_paypal_webhook_requires_webhook_id(paypal):
    with pytest.raises(ProviderError):
        await paypal.parse_webhook(paypal_event("PAYMENT.CAPTURE.COMPLETED", {}), PAYPAL_TRANSMISSION)
    await paypal.aclose()


def stripe_intent(status: str, **values):
    defaults = {
        "id": "pi_1",
        "status": status,
        "amount": 762,
        "amount_received": 0,
        "currency": "eur",
        "client_secret": "pi_1_secret",
        "latest_charge": None,
    }
    defaults.update(values)
    return SimpleNamespace(**defaults)


@pytest.fixture
def stripe_gateway():
    return StripeGateway(StripeSettings(secret_key="sk_test_123"))


async def test_stripe_create_sends_minor_units(stripe_gateway, monkeypatch):
    calls = []

    def create(**params):
        calls.append(params)
        return stripe_intent("requires_payment_method")

    monkeypatch.setattr(stripe.PaymentIntent, "create", create)

    payment = await stripe_gateway.create_payment(payment_request())

    assert payment.status == CREATED
    assert payment.amount == Decimal("7.62")
    assert payment.client_secret == "pi_1_secret"
    assert calls[0]["amount"] == 762
    assert calls[0]["currency"] == "eur"
    assert calls[0]["api_key"] == "sk_test_123"
    assert calls[0]["idempotency_key"] == "key-1"
    assert calls[0]["metadata"]["service_id"] == "service-1"


async def test_stripe_capture_of_succeeded_intent_skips_capture_call(stripe_gateway, monkeypatch):
    monkeypatch.setattr(
        stripe.PaymentIntent,
        "retrieve",
        lambda intent_id, **kwargs: stripe_intent("succeeded", amount_received=762, latest_charge="ch_1"),
    )

    def capture(*args, **kwargs):
        raise AssertionError("capture must not be called")

    monkeypatch.setattr(stripe.PaymentIntent, "capture", capture)

    payment = await stripe_gateway.capture_payment("pi_1")

    assert payment.status == COMPLETED
    assert payment.capture_id == "ch_1"


async def test_stripe_unknown_status_is_failed(stripe_gateway, monkeypatch):
    monkeypatch.setattr(stripe.PaymentIntent, "retrieve", lambda intent_id, **kwargs: stripe_intent("mystery"))

    payment = await stripe_gateway.get_payment("pi_1")

    assert payment.status == FAILED


async def test_stripe_errors_become_provider_errors(stripe_gateway, monkeypatch):
    def retrieve(intent_id, **kwargs):
        raise stripe.StripeError("card declined")

    monkeypatch.setattr(stripe.PaymentIntent, "retrieve", retrieve)

    with pytest.raises(ProviderError):
        await stripe_gateway.get_payment("pi_1")


async def test_stripe_requires_secret_key():
    with pytest.raises(ProviderError):
        await StripeGateway(StripeSettings()).get_payment("pi_1")


def test_minor_units():
    assert to_minor_units(Decimal("7.62"), "EUR") == 762
    assert to_minor_units(Decimal("5000"), "XOF") == 5000
    assert from_minor_units(762, "eur") == Decimal("7.62")
    assert from_minor_units(5000, "XOF") == Decimal("5000")


def test_rounding_to_the_minor_unit():
    assert round_to_minor_unit(Decimal("5000.50"), "XOF") == Decimal("5001")
    assert round_to_minor_unit(Decimal("7.625"), "EUR") == Decimal("7.63")
    assert to_minor_units(round_to_minor_unit(Decimal("5000.50"), "xof"), "XOF") == 5001


WEBHOOK_SECRET = "whsec_test"


def stripe_signed(event: dict, secret: str = WEBHOOK_SECRET) -> tuple[bytes, dict]:
    payload = json.dumps(event)
    timestamp = int(time.time())
    digest = hmac.new(secret.encode(), f"{timestamp}.{payload}".encode(), hashlib.sha256).hexdigest()
    return payload.encode(), {"stripe-signature": f"t={timestamp},v1={digest}"}


@pytest.fixture
def stripe_webhooks():
    return StripeGateway(StripeSettings(secret_key="sk_test_123", webhook_secret=WEBHOOK_SECRET))


def stripe_event(event_type: str, obj: dict) -> dict:
    return {"id": "evt_1", "object": "event", "type": event_type, "data": {"object": obj}}


async def test_stripe_webhook_succeeded_intent(stripe_webhooks):
    payload, headers = stripe_signed(
        stripe_event(
            "payment_intent.succeeded",
            {
                "id": "pi_1",
                "object": "payment_intent",
                "status": "succeeded",
                "amount": 762,
                "amount_received": 762,
                "currency": "eur",
                "latest_charge": "ch_1",
            },
        )
    )

    event = await stripe_webhooks.parse_webhook(payload, headers)

    assert event.id == "evt_1"
    assert event.kind == PAYMENT_SUCCEEDED
    assert event.provider_id == "pi_1"
    assert event.payment.status == COMPLETED
    assert event.payment.amount == Decimal("7.62")
    assert event.payment.capture_id == "ch_1"


async def test_stripe_webhook_refunded_charge(stripe_webhooks):
    payload, headers = stripe_signed(
        stripe_event("charge.refunded", {"id": "ch_1", "object": "charge", "payment_intent": "pi_1"})
    )

    event = await stripe_webhooks.parse_webhook(payload, headers)

    assert event.kind == PAYMENT_REFUNDED
    assert event.provider_id == "pi_1"
    assert event.capture_id == "ch_1"


async def test_stripe_webhook_failed_intent(stripe_webhooks):
    payload, headers = stripe_signed(
        stripe_event(
            "payment_intent.payment_failed",
            {
                "id": "pi_1",
                "object": "payment_intent",
                "status": "requires_payment_method",
                "last_payment_error": {"message": "Your card was declined."},
            },
        )
    )

    event = await stripe_webhooks.parse_webhook(payload, headers)

    assert event.kind == PAYMENT_FAILED
    assert event.reason == "Your card was declined."


async def test_stripe_webhook_other_events_are_passed_through(stripe_webhooks):
    payload, headers = stripe_signed(stripe_event("customer.created", {"id": "cus_1", "object": "customer"}))

    event = await stripe_webhooks.parse_webhook(payload, headers)

    assert event.kind is None
    assert event.type == "customer.created"


async def test_stripe_webhook_with_wrong_secret(stripe_webhooks):
    payload, headers = stripe_signed(stripe_event("payment_intent.succeeded", {"id": "pi_1"}), secret="whsec_other")

    with pytest.raises(WebhookVerificationError):
        await stripe_webhooks.parse_webhook(payload, headers)


async def test_stripe_webhook_without_signature(stripe_webhooks):
    with pytest.raises(WebhookVerificationError):
        await stripe_webhooks.parse_webhook(b"{}", {})


async def test_stripe_webhook_requires_secret(stripe_gateway):
    payload, headers = stripe_signed(stripe_event("payment_intent.succeeded", {"id": "pi_1"}))

    with pytest.raises(ProviderError):
        await stripe_gateway.parse_webhook(payload, headers)
