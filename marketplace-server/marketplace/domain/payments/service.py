"""Payment intent gateway.

Creates provider-side payments for a service purchase and, on capture, turns
them into an order with its ledger entries. Capture is idempotent on the
provider id: the intent row is claimed with a conditional UPDATE and a second
capture returns the stored result without touching the ledger. Provider
webhooks go through the same recording path.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Mapping, NoReturn

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.config import Settings, get_settings
from marketplace.db.models import PaymentIntent as PaymentIntentModel
from marketplace.domain.accounts import AccountService
from marketplace.domain.accounts.models import Account
from marketplace.domain.audit import AuditService
from marketplace.domain.audit.models import PAYMENT_ATTEMPT, PAYMENT_FAILURE, PAYMENT_SUCCESS, SECURITY_VIOLATION
from marketplace.domain.common.exceptions import (
    AuthenticationRequiredError,
    CaptureFailedError,
    InvalidAmountError,
    InvalidInputError,
    NotFoundError,
    NotOwnerError,
    PersistenceError,
    ProviderError,
    ServiceNotFoundError,
)
from marketplace.domain.common.money import percentage_of, to_money
from marketplace.domain.currency import CurrencyConverter
from marketplace.domain.orders import OrderService
from marketplace.domain.services import ServiceCatalog
from marketplace.domain.wallets import WalletService
from marketplace.infrastructure.database.repositories.payment_intent_repository import SqlPaymentIntentRepository
from marketplace.infrastructure.payments.base import (
    CAPTURABLE_STATUSES,
    COMPLETED,
    FAILED,
    PAYMENT_FAILED,
    PAYMENT_SUCCEEDED,
    VOIDED,
    PaymentProvider,
    PaymentRequest,
    ProviderEvent,
    ProviderPayment,
    round_to_minor_unit,
)

from .models import CaptureResult, IntentResult, WebhookResult

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class PaymentGateway:
    intents: SqlPaymentIntentRepository
    accounts: AccountService
    services: ServiceCatalog
    orders: OrderService
    wallets: WalletService
    audit: AuditService
    converter: CurrencyConverter
    providers: Mapping[str, PaymentProvider]
    settings: Settings

    @classmethod
    def with_session(
        cls,
        session: AsyncSession,
        *,
        converter: CurrencyConverter,
        providers: Mapping[str, PaymentProvider],
        settings: Settings | None = None,
        audit: AuditService | None = None,
    ) -> "PaymentGateway":
        settings = settings or get_settings()
        audit = audit or AuditService.with_session(session)
        orders = OrderService.with_session(session, audit=audit, settings=settings.payments)
        return cls(
            SqlPaymentIntentRepository(session),
            AccountService.with_session(session),
            ServiceCatalog.with_session(session),
            orders,
            orders.wallets,
            audit,
            converter,
            providers,
            settings,
        )

    async def create_payment_intent(
        self,
        provider: str,
        account: Account | None,
        amount: Decimal,
        service_id: str,
        *,
        freelance_id: str | None = None,
        metadata: dict[str, Any] | None = None,
        email: str | None = None,
        idempotency_key: str | None = None,
        bypass_auth: bool = False,
    ) -> IntentResult:
        client = self._provider(provider)
        account = await self._resolve_payer(account, provider, "create_payment_intent", bypass_auth=bypass_auth)

        amount = to_money(amount)
        if amount <= 0:
            raise InvalidAmountError()
        service = await self.services.get_service(service_id) if service_id else None
        if service is None or not service.is_active:
            raise ServiceNotFoundError(details={"service_id": service_id})
        freelance_id = freelance_id or service.freelance_id
        if freelance_id != service.freelance_id:
            raise InvalidInputError("Freelance does not match the service owner")

        if idempotency_key:
            existing = await self.intents.get_by_idempotency_key(account.id, idempotency_key)
            if existing is not None:
                if existing.service_id != service.id or existing.amount != amount:
                    raise InvalidInputError("Idempotency key was already used for a different payment")
                logger.info("Reusing payment intent %s for idempotency key", existing.provider_id)
                return self._to_intent_result(existing, reused=True)

        provider_currency = self._provider_currency(provider)
        converted = await self.converter.convert(amount, provider_currency)
        provider_amount = round_to_minor_unit(converted, provider_currency)
        if provider_amount <= 0 or provider_amount > self.settings.payments.max_provider_amount:
            raise InvalidAmountError(
                "Amount is outside the range accepted by the payment provider",
                details={"provider_amount": str(provider_amount), "currency": provider_currency},
            )

        details = {
            "provider": provider,
            "service_id": service.id,
            "amount": str(amount),
            "provider_amount": str(provider_amount),
            "provider_currency": provider_currency,
        }
        await self.audit.record(PAYMENT_ATTEMPT, user_id=account.id, details=details)

        request = PaymentRequest(
            amount=provider_amount,
            currency=provider_currency,
            description=f"Order for {service.title}"[:127],
            reference=service.id,
            email=email,
            metadata={
                "client_id": account.id,
                "freelance_id": freelance_id,
                "item_name": service.title[:127],
                **{str(key): str(value) for key, value in (metadata or {}).items()},
            },
            idempotency_key=idempotency_key,
        )
        try:
            remote = await client.create_payment(request)
        except ProviderError:
            await self.audit.record(
                PAYMENT_FAILURE,
                user_id=account.id,
                severity="medium",
                details={**details, "stage": "create"},
            )
            raise

        model = await self.intents.create(
            provider=provider,
            provider_id=remote.provider_id,
            client_id=account.id,
            freelance_id=freelance_id,
            service_id=service.id,
            amount=amount,
            currency=self.converter.base,
            provider_amount=provider_amount,
            provider_currency=provider_currency,
            idempotency_key=idempotency_key,
            client_secret=remote.client_secret,
            meta=json.dumps(metadata, ensure_ascii=False, default=str) if metadata else None,
        )
        logger.info("Created %s payment %s for service %s", provider, remote.provider_id, service.id)
        return self._to_intent_result(model, status=remote.status)

    async def capture_payment(
        self,
        provider: str,
        provider_id: str,
        account: Account | None,
        *,
        service_id: str | None = None,
    ) -> CaptureResult:
        client = self._provider(provider)
        if account is None:
            await self._security_violation(provider, "capture_payment", bypass_requested=False)
            raise AuthenticationRequiredError()

        intent = await self.intents.get_by_provider_id(provider_id)
        if intent is None or intent.provider != provider:
            raise NotFoundError("Payment not found")
        if intent.client_id != account.id:
            raise NotOwnerError("Payment not found")
        if service_id and service_id != intent.service_id:
            raise InvalidInputError("Service does not match the payment")
        if intent.status == "captured":
            return await self._captured_result(intent)

        try:
            remote = await client.get_payment(provider_id)
            if remote.status in CAPTURABLE_STATUSES:
                remote = await client.capture_payment(provider_id)
        except ProviderError:
            await self._payment_failure(intent, "provider_error")
            raise

        if remote.status != COMPLETED:
            if remote.status in (VOIDED, FAILED):
                await self.intents.update(intent.id, status="failed")
            await self._capture_failed(intent, f"provider status {remote.status}")
        await self._check_captured_amount(intent, remote)
        return await self._record_capture(intent, remote)

    async def handle_webhook(self, provider: str, payload: bytes, headers: Mapping[str, str]) -> WebhookResult:
        """Apply a provider notification to the matching payment intent.

        Completed payments are recorded exactly like a client-side capture, so a
        buyer who never returns to confirm still gets an order. Events that name
        an unknown payment are acknowledged and ignored.
        """
        client = self._provider(provider)
        event = await client.parse_webhook(payload, headers)
        result = WebhookResult(provider=provider, event_id=event.id, event_type=event.type, handled=False)
        if event.kind is None:
            logger.info("Ignoring %s webhook %s", provider, event.type)
            return result

        intent = await self._intent_for_event(provider, event)
        if intent is None:
            logger.warning(
                "%s webhook %s names an unknown payment %s",
                provider,
                event.type,
                event.provider_id or event.capture_id,
            )
            result.detail = "unknown_payment"
            return result
        result.order_id = intent.order_id

        if event.kind == PAYMENT_SUCCEEDED:
            return await self._apply_succeeded(intent, event, result)
        if event.kind == PAYMENT_FAILED:
            return await self._apply_failed(intent, event, result)
        return await self._apply_refunded(intent, event, result)

    async def _intent_for_event(self, provider: str, event: ProviderEvent) -> PaymentIntentModel | None:
        intent = None
        if event.provider_id:
            intent = await self.intents.get_by_provider_id(event.provider_id)
        if intent is None and event.capture_id:
            intent = await self.intents.get_by_capture_id(event.capture_id)
        if intent is None or intent.provider != provider:
            return None
        return intent

    async def _apply_succeeded(
        self,
        intent: PaymentIntentModel,
        event: ProviderEvent,
        result: WebhookResult,
    ) -> WebhookResult:
        if intent.status == "captured":
            result.handled = True
            result.detail = "already_captured"
            return result
        remote = event.payment
        if remote is None or remote.status != COMPLETED:
            result.detail = f"provider status {remote.status if remote else 'unknown'}"
            return result
        try:
            await self._check_captured_amount(intent, remote)
        except CaptureFailedError:
            result.detail = "amount_mismatch"
            return result

        capture = await self._record_capture(intent, remote)
        result.handled = True
        result.order_id = capture.order_id
        result.detail = "already_captured" if capture.already_captured else "captured"
        return result

    async def _apply_failed(
        self,
        intent: PaymentIntentModel,
        event: ProviderEvent,
        result: WebhookResult,
    ) -> WebhookResult:
        if intent.status == "captured":
            logger.warning("Ignoring %s for captured payment %s", event.type, intent.provider_id)
            result.detail = "already_captured"
            return result
        await self.intents.update(intent.id, status="failed")
        await self._payment_failure(intent, event.reason or event.type, stage="webhook")
        result.handled = True
        result.detail = "failed"
        return result

    async def _apply_refunded(
        self,
        intent: PaymentIntentModel,
        event: ProviderEvent,
        result: WebhookResult,
    ) -> WebhookResult:
        if intent.order_id is None:
            logger.warning("Refund reported for %s which never became an order", intent.provider_id)
            result.detail = "no_order"
            return result
        cancellation = await self.orders.record_provider_refund(
            intent.order_id,
            reference=event.capture_id or event.id,
        )
        result.handled = True
        result.detail = "refunded" if cancellation is not None else "refund_requires_review"
        return result

    async def _check_captured_amount(self, intent: PaymentIntentModel, remote: ProviderPayment) -> None:
        if remote.amount is None:
            return
        if (
            remote.amount != intent.provider_amount
            or (remote.currency or "").upper() != intent.provider_currency.upper()
        ):
            await self._capture_failed(
                intent,
                "captured amount does not match",
                captured=f"{remote.amount} {remote.currency}",
            )

    async def _record_capture(self, intent: PaymentIntentModel, remote: ProviderPayment) -> CaptureResult:
        try:
            async with self.intents.session.begin_nested():
                if not await self.intents.claim_capture(intent.id):
                    claimed = False
                else:
                    claimed = True
                    order = await self.orders.create_order(
                        client_id=intent.client_id,
                        freelance_id=intent.freelance_id,
                        service_id=intent.service_id,
                        price=intent.amount,
                        currency=intent.currency,
                    )
                    await self.orders.record_payment(
                        order,
                        payment_method=intent.provider,
                        payment_intent_id=intent.provider_id,
                        capture_id=remote.capture_id,
                        details=json.dumps(
                            {"provider_amount": str(intent.provider_amount), "currency": intent.provider_currency}
                        ),
                    )
                    client_wallet = await self.wallets.ensure_wallet(intent.client_id)
                    payment_tx = await self.wallets.record_payment(
                        client_wallet.id,
                        intent.amount,
                        order_id=order.id,
                        service_id=intent.service_id,
                        client_id=intent.client_id,
                        freelance_id=intent.freelance_id,
                        reference_id=intent.provider_id,
                        currency=intent.currency,
                        description=f"Payment for order {order.order_number}",
                    )
                    freelance_wallet = await self.wallets.ensure_wallet(intent.freelance_id)
                    commission = percentage_of(intent.amount, self.settings.payments.commission_percentage)
                    await self.wallets.record_earning(
                        freelance_wallet.id,
                        intent.amount - commission,
                        order_id=order.id,
                        service_id=intent.service_id,
                        client_id=intent.client_id,
                        freelance_id=intent.freelance_id,
                        currency=intent.currency,
                        description=f"Earning for order {order.order_number}",
                    )
                    await self.intents.update(
                        intent.id,
                        capture_id=remote.capture_id,
                        order_id=order.id,
                        transaction_id=payment_tx.id,
                    )
        except SQLAlchemyError as exc:
            logger.exception("Recording capture of %s failed", intent.provider_id)
            await self._payment_failure(intent, "persistence_error")
            raise PersistenceError("Payment was captured but could not be recorded") from exc

        refreshed = await self.intents.get_by_provider_id(intent.provider_id)
        if not claimed:
            return await self._captured_result(refreshed)

        await self.audit.record(
            PAYMENT_SUCCESS,
            user_id=intent.client_id,
            details={
                "provider": intent.provider,
                "provider_id": intent.provider_id,
                "order_id": order.id,
                "amount": str(intent.amount),
            },
        )
        logger.info("Captured %s payment %s into order %s", intent.provider, intent.provider_id, order.id)
        return CaptureResult(
            success=True,
            status=COMPLETED,
            transaction_id=refreshed.transaction_id,
            order_id=order.id,
            order_number=order.order_number,
            capture_id=refreshed.capture_id,
        )

    async def _captured_result(self, intent: PaymentIntentModel) -> CaptureResult:
        order_number = None
        if intent.order_id:
            order_number = (await self.orders.require_order(intent.order_id)).order_number
        return CaptureResult(
            success=True,
            status=COMPLETED,
            transaction_id=intent.transaction_id,
            order_id=intent.order_id,
            order_number=order_number,
            capture_id=intent.capture_id,
            already_captured=True,
        )

    async def _resolve_payer(
        self,
        account: Account | None,
        provider: str,
        action: str,
        *,
        bypass_auth: bool,
    ) -> Account:
        if account is not None:
            return account
        if bypass_auth and self.settings.dev_auth_bypass_enabled:
            logger.warning("Development auth bypass used for %s on %s", action, provider)
            return await self.accounts.ensure_dev_account(self.settings.payments.dev_account_username)
        await self._security_violation(provider, action, bypass_requested=bypass_auth)
        raise AuthenticationRequiredError()

    async def _security_violation(self, provider: str, action: str, *, bypass_requested: bool) -> None:
        await self.audit.record(
            SECURITY_VIOLATION,
            severity="high",
            details={
                "action": action,
                "provider": provider,
                "reason": "unauthenticated",
                "bypass_requested": bypass_requested,
            },
        )

    async def _payment_failure(self, intent: PaymentIntentModel, reason: str, **extra: Any) -> None:
        await self.audit.record(
            PAYMENT_FAILURE,
            user_id=intent.client_id,
            severity="medium",
            details={
                "provider": intent.provider,
                "provider_id": intent.provider_id,
                "reason": reason,
                **extra,
            },
        )

    async def _capture_failed(self, intent: PaymentIntentModel, reason: str, **extra: Any) -> NoReturn:
        await self._payment_failure(intent, reason, **extra)
        logger.warning("Capture of %s failed: %s", intent.provider_id, reason)
        raise CaptureFailedError(details={"reason": reason})

    def _provider(self, name: str) -> PaymentProvider:
        try:
            return self.providers[name]
        except KeyError:
            raise InvalidInputError(f"Unknown payment provider: {name}") from None

    def _provider_currency(self, provider: str) -> str:
        if provider == "paypal":
            return self.settings.paypal.currency.upper()
        return self.settings.stripe.currency.upper()

    @staticmethod
    def _to_intent_result(model: PaymentIntentModel, *, status: str | None = None, reused: bool = False) -> IntentResult:
        return IntentResult(
            intent_id=model.id,
            provider=model.provider,
            provider_id=model.provider_id,
            status=status or model.status.upper(),
            amount=model.amount,
            provider_amount=model.provider_amount,
            provider_currency=model.provider_currency,
            client_secret=model.client_secret,
            reused=reused,
        )
