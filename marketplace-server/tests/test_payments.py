from decimal import Decimal
from types import SimpleNamespace

import pytest
import stripe

from marketplace.core.config import PaymentSettings, Settings, StripeSettings
from marketplace.domain.audit.models import PAYMENT_ATTEMPT, PAYMENT_FAILURE, PAYMENT_SUCCESS, SECURITY_VIOLATION
from marketplace.domain.common.exceptions import (
    AuthenticationRequiredError,
    CaptureFailedError,
    InvalidAmountError,
    InvalidInputError,
    NotFoundError,
    NotOwnerError,
    ServiceNotFoundError,
)
from marketplace.domain.payments import PaymentGateway
from marketplace.infrastructure.database.repositories import SqlAuditRepository, SqlPaymentIntentRepository
from marketplace.infrastructure.payments import StripeGateway
from marketplace.infrastructure.payments.base import COMPLETED, VOIDED

from .conftest import create_account


async def audit_types(session):
    repository = SqlAuditRepository(session)
    return [event.type for event in await repository.list_pending(100, 5)]


async def test_create_intent_converts_to_provider_currency(gateway, providers, client, service):
    intent = await gateway.create_payment_intent("paypal", client, Decimal("5000"), service.id)

    assert intent.status == "CREATED"
    assert intent.amount == Decimal("5000")
    # 5000 XOF at 655.957 XOF per EUR
    assert intent.provider_amount == Decimal("7.62")
    assert intent.provider_currency == "EUR"
    request = providers["paypal"].requests[0]
    assert request.amount == Decimal("7.62")
    assert request.metadata["client_id"] == client.id
    assert request.reference == service.id


async def test_create_intent_records_attempt(session, gateway, client, service):
    await gateway.create_payment_intent("stripe", client, Decimal("5000"), service.id)

    assert await audit_types(session) == [PAYMENT_ATTEMPT]


async def test_idempotency_key_reuses_intent(gateway, providers, client, service):
    first = await gateway.create_payment_intent("paypal", client, Decimal("5000"), service.id, idempotency_key="k-1")
    second = await gateway.create_payment_intent("paypal", client, Decimal("5000"), service.id, idempotency_key="k-1")

    assert second.reused is True
    assert second.provider_id == first.provider_id
    assert len(providers["paypal"].requests) == 1


async def test_idempotency_key_with_other_amount_is_rejected(gateway, client, service):
    await gateway.create_payment_intent("paypal", client, Decimal("5000"), service.id, idempotency_key="k-1")

    with pytest.raises(InvalidInputError):
        await gateway.create_payment_intent("paypal", client, Decimal("6000"), service.id, idempotency_key="k-1")


async def test_anonymous_payer_is_rejected_and_audited(session, gateway, service):
    with pytest.raises(AuthenticationRequiredError):
        await gateway.create_payment_intent("paypal", None, Decimal("5000"), service.id, bypass_auth=True)

    assert await audit_types(session) == [SECURITY_VIOLATION]


async def test_dev_bypass_uses_fixed_account(session, converter, providers, service):
    settings = Settings(
        environment="development",
        payments=PaymentSettings(allow_dev_auth_bypass=True),
        _env_file=None,
    )
    gateway = PaymentGateway.with_session(session, converter=converter, providers=providers, settings=settings)

    intent = await gateway.create_payment_intent("paypal", None, Decimal("5000"), service.id, bypass_auth=True)

    dev = await gateway.accounts.get_by_username(settings.payments.dev_account_username)
    assert dev is not None
    assert providers["paypal"].requests[0].metadata["client_id"] == dev.id
    assert intent.provider_id


@pytest.mark.parametrize("amount", ["0", "-5", "NaN", "not-a-number"])
async def test_invalid_amount(gateway, client, service, amount):
    with pytest.raises(InvalidAmountError):
        await gateway.create_payment_intent("paypal", client, amount, service.id)


async def test_amount_above_provider_ceiling(gateway, client, service):
    # 10000 EUR is the provider ceiling
    with pytest.raises(InvalidAmountError):
        await gateway.create_payment_intent("paypal", client, Decimal("7000000"), service.id)


async def test_unknown_service(gateway, client):
    with pytest.raises(ServiceNotFoundError):
        await gateway.create_payment_intent("paypal", client, Decimal("5000"), "missing")


async def test_unknown_provider(gateway, client, service):
    with pytest.raises(InvalidInputError):
        await gateway.create_payment_intent("bank", client, Decimal("5000"), service.id)


async def test_freelance_must_own_service(session, gateway, client, service):
    other = await create_account(session, "other-freelance", role="freelance")

    with pytest.raises(InvalidInputError):
        await gateway.create_payment_intent("stripe", client, Decimal("5000"), service.id, freelance_id=other.id)


async def test_capture_records_order_and_audit(session, gateway, client, service):
    intent = await gateway.create_payment_intent("paypal", client, Decimal("5000"), service.id)

    result = await gateway.capture_payment("paypal", intent.provider_id, client, service_id=service.id)

    assert result.success is True
    assert result.status == COMPLETED
    assert result.order_id
    assert result.order_number.startswith("MKT-")
    assert result.capture_id == f"CAP-{intent.provider_id}"
    stored = await SqlPaymentIntentRepository(session).get_by_provider_id(intent.provider_id)
    assert stored.status == "captured"
    assert stored.order_id == result.order_id
    assert stored.transaction_id == result.transaction_id
    assert await audit_types(session) == [PAYMENT_ATTEMPT, PAYMENT_SUCCESS]


async def test_second_capture_is_a_no_op(gateway, providers, client, service):
    intent = await gateway.create_payment_intent("paypal", client, Decimal("5000"), service.id)
    first = await gateway.capture_payment("paypal", intent.provider_id, client)

    second = await gateway.capture_payment("paypal", intent.provider_id, client)

    assert second.already_captured is True
    assert second.order_id == first.order_id
    assert second.transaction_id == first.transaction_id
    assert providers["paypal"].captures == 1
    assert len(await gateway.wallets.list_order_payments(first.order_id)) == 1


async def test_capture_requires_authentication(gateway, client, service):
    intent = await gateway.create_payment_intent("paypal", client, Decimal("5000"), service.id)

    with pytest.raises(AuthenticationRequiredError):
        await gateway.capture_payment("paypal", intent.provider_id, None)


async def test_capture_by_another_client(session, gateway, client, service):
    intent = await gateway.create_payment_intent("paypal", client, Decimal("5000"), service.id)
    other = await create_account(session, "other-client")

    with pytest.raises(NotOwnerError):
        await gateway.capture_payment("paypal", intent.provider_id, other)


async def test_capture_unknown_payment(gateway, client):
    with pytest.raises(NotFoundError):
        await gateway.capture_payment("paypal", "PAYPAL-404", client)


async def test_capture_with_wrong_service(session, gateway, client, freelance, service):
    intent = await gateway.create_payment_intent("paypal", client, Decimal("5000"), service.id)

    with pytest.raises(InvalidInputError):
        await gateway.capture_payment("paypal", intent.provider_id, client, service_id="another-service")


async def test_voided_payment_fails_capture(session, gateway, providers, client, service):
    intent = await gateway.create_payment_intent("paypal", client, Decimal("5000"), service.id)
    providers["paypal"].capture_status = VOIDED

    with pytest.raises(CaptureFailedError):
        await gateway.capture_payment("paypal", intent.provider_id, client)

    stored = await SqlPaymentIntentRepository(session).get_by_provider_id(intent.provider_id)
    assert stored.status == "failed"
    assert stored.order_id is None
    assert await audit_types(session) == [PAYMENT_ATTEMPT, PAYMENT_FAILURE]


async def test_captured_amount_mismatch_fails(session, gateway, providers, client, service):
    intent = await gateway.create_payment_intent("paypal", client, Decimal("5000"), service.id)
    providers["paypal"].captured_amount = Decimal("1.00")

    with pytest.raises(CaptureFailedError):
        await gateway.capture_payment("paypal", intent.provider_id, client)

    stored = await SqlPaymentIntentRepository(session).get_by_provider_id(intent.provider_id)
    assert stored.status == "created"


async def test_commission_reduces_earning(session, converter, providers, client, service):
    settings = Settings(environment="test", payments=PaymentSettings(commission_percentage=Decimal("10")), _env_file=None)
    gateway = PaymentGateway.with_session(session, converter=converter, providers=providers, settings=settings)
    intent = await gateway.create_payment_intent("paypal", client, Decimal("5000"), service.id)

    result = await gateway.capture_payment("paypal", intent.provider_id, client)

    earnings = await gateway.wallets.list_order_earnings(result.order_id)
    assert [tx.amount for tx in earnings] == [Decimal("4500")]


def xof_intent(intent_id, status, amount, **values):
    fields = {"amount_received": 0, "client_secret": None, "latest_charge": None, **values}
    return SimpleNamespace(id=intent_id, status=status, amount=amount, currency="xof", **fields)


async def test_zero_decimal_stripe_currency_charges_and_captures_whole_units(
    session, converter, client, service, monkeypatch
):
    settings = Settings(
        environment="test",
        stripe=StripeSettings(secret_key="sk_test_123", currency="XOF"),
        _env_file=None,
    )
    stripe_gateway = StripeGateway(settings.stripe)
    gateway = PaymentGateway.with_session(
        session, converter=converter, providers={"stripe": stripe_gateway}, settings=settings
    )
    charged = {}

    def create(**params):
        charged.update(params)
        return xof_intent("pi_xof", "requires_payment_method", params["amount"], client_secret="pi_xof_secret")

    def retrieve(intent_id, **kwargs):
        amount = charged["amount"]
        return xof_intent(intent_id, "succeeded", amount, amount_received=amount, latest_charge="ch_xof")

    monkeypatch.setattr(stripe.PaymentIntent, "create", create)
    monkeypatch.setattr(stripe.PaymentIntent, "retrieve", retrieve)

    intent = await gateway.create_payment_intent("stripe", client, Decimal("5000.50"), service.id)
    assert intent.provider_amount == Decimal("5001")
    assert charged["amount"] == 5001

    result = await gateway.capture_payment("stripe", "pi_xof", client)
    assert result.success is True
    assert result.capture_id == "ch_xof"


async def test_provider_ceiling_applies_to_the_rounded_amount(session, converter, providers, client, service):
    settings = Settings(
        environment="test",
        payments=PaymentSettings(max_provider_amount=Decimal("5000")),
        stripe=StripeSettings(currency="XOF"),
        _env_file=None,
    )
    gateway = PaymentGateway.with_session(session, converter=converter, providers=providers, settings=settings)

    with pytest.raises(InvalidAmountError):
        await gateway.create_payment_intent("stripe", client, Decimal("5000.50"), service.id)
