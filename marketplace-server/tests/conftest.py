"""Shared fixtures: a fresh SQLite database per test and a fake payment provider."""

from __future__ import annotations

import json
from decimal import Decimal

import pytest
import pytest_asyncio

from marketplace.core.config import Settings
from marketplace.domain.accounts import AccountCreateInput, AccountService
from marketplace.domain.common.exceptions import WebhookVerificationError
from marketplace.domain.currency import CurrencyConverter, StaticRateSource
from marketplace.domain.payments import PaymentGateway
from marketplace.domain.services import ServiceCatalog
from marketplace.infrastructure.database.session import build_engine, build_session_factory, init_db
from marketplace.infrastructure.payments.base import APPROVED, COMPLETED, CREATED, ProviderEvent, ProviderPayment

WEBHOOK_SIGNATURE = "signed-by-provider"


class FakeProvider:
    """In-memory stand-in for a payment provider."""

    def __init__(self, name: str = "paypal", *, status: str = APPROVED, capture_status: str = COMPLETED) -> None:
        self.name = name
        self.status = status
        self.capture_status = capture_status
        self.captured_amount: Decimal | None = None
        self.requests = []
        self.captures = 0
        self._payments: dict[str, ProviderPayment] = {}

    async def create_payment(self, request):
        self.requests.append(request)
        provider_id = f"{self.name.upper()}-{len(self.requests)}"
        payment = ProviderPayment(
            provider_id=provider_id,
            status=CREATED,
            amount=request.amount,
            currency=request.currency,
            client_secret=f"{provider_id}_secret",
        )
        self._payments[provider_id] = payment
        return payment

    async def get_payment(self, provider_id):
        payment = self._payments[provider_id]
        return ProviderPayment(provider_id, self.status, amount=payment.amount, currency=payment.currency)

    async def capture_payment(self, provider_id):
        self.captures += 1
        payment = self._payments[provider_id]
        return ProviderPayment(
            provider_id,
            self.capture_status,
            amount=self.captured_amount if self.captured_amount is not None else payment.amount,
            currency=payment.currency,
            capture_id=f"CAP-{provider_id}",
        )

    async def parse_webhook(self, payload, headers):
        if headers.get("x-provider-signature") != WEBHOOK_SIGNATURE:
            raise WebhookVerificationError()
        body = json.loads(payload)
        payment = None
        if body.get("status"):
            payment = ProviderPayment(
                body.get("provider_id", ""),
                body["status"],
                amount=Decimal(body["amount"]) if body.get("amount") else None,
                currency=body.get("currency"),
                capture_id=body.get("capture_id"),
            )
        return ProviderEvent(
            id=body.get("id", "EV-1"),
            type=body["type"],
            kind=body.get("kind"),
            provider_id=body.get("provider_id"),
            capture_id=body.get("capture_id"),
            payment=payment,
            reason=body.get("reason"),
        )

    async def aclose(self):
        return None


@pytest.fixture
def settings() -> Settings:
    return Settings(environment="test", _env_file=None)


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'marketplace.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def converter(settings) -> CurrencyConverter:
    return CurrencyConverter(StaticRateSource(settings.currency.rates), base=settings.currency.base)


@pytest.fixture
def providers() -> dict[str, FakeProvider]:
    return {"paypal": FakeProvider("paypal"), "stripe": FakeProvider("stripe")}


@pytest.fixture
def gateway(session, converter, providers, settings) -> PaymentGateway:
    return PaymentGateway.with_session(session, converter=converter, providers=providers, settings=settings)


def webhook_event(event_type, kind=None, **fields):
    return json.dumps({"type": event_type, "kind": kind, **fields}).encode()


async def create_account(session, username: str, role: str = "client"):
    return await AccountService.with_session(session).create_account(
        AccountCreateInput(username=username, password="secret123", role=role)
    )


async def create_service(session, freelance, price: str = "5000", title: str = "Logo design"):
    return await ServiceCatalog.with_session(session).create_service(
        freelance_id=freelance.id,
        role=freelance.role,
        title=title,
        price=Decimal(price),
    )


@pytest_asyncio.fixture
async def client(session):
    return await create_account(session, "client-one")


@pytest_asyncio.fixture
async def freelance(session):
    return await create_account(session, "freelance-one", role="freelance")


@pytest_asyncio.fixture
async def admin(session):
    return await create_account(session, "admin-one", role="admin")


@pytest_asyncio.fixture
async def service(session, freelance):
    return await create_service(session, freelance)


@pytest_asyncio.fixture
async def paid_order(gateway, client, service):
    """An order paid through the fake PayPal provider, still ``pending``."""
    intent = await gateway.create_payment_intent("paypal", client, Decimal("5000"), service.id)
    result = await gateway.capture_payment("paypal", intent.provider_id, client)
    return await gateway.orders.require_order(result.order_id)
