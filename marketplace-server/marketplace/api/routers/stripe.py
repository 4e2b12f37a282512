"""Stripe PaymentIntent endpoints."""
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.api.deps import get_db_session, get_payment_gateway, keep_failure_trail
from marketplace.core.security import get_optional_account
from marketplace.domain.accounts import Account as AccountDomain
from marketplace.domain.common.exceptions import MarketplaceError
from marketplace.domain.payments import PaymentGateway
from marketplace.schemas import (
    CaptureResponse,
    StripeConfirmRequest,
    StripeIntentRequest,
    StripeIntentResponse,
    WebhookResponse,
)

router = APIRouter()


@router.post("/payment-intent", response_model=StripeIntentResponse)
async def create_payment_intent(
    payload: StripeIntentRequest,
    idempotency_key: Optional[str] = Header(default=None, alias="Idempotency-Key"),
    account: Optional[AccountDomain] = Depends(get_optional_account),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    db: AsyncSession = Depends(get_db_session),
):
    try:
        intent = await gateway.create_payment_intent(
            "stripe",
            account,
            payload.amount,
            payload.service_id,
            freelance_id=payload.freelance_id,
            metadata=payload.metadata,
            email=payload.email,
            idempotency_key=idempotency_key,
            bypass_auth=payload.bypass_auth,
        )
    except MarketplaceError:
        await keep_failure_trail(db)
        raise
    await db.commit()
    return StripeIntentResponse(
        client_secret=intent.client_secret,
        payment_intent_id=intent.provider_id,
        status=intent.status,
    )


@router.post("/confirm-payment", response_model=CaptureResponse)
async def confirm_payment(
    payload: StripeConfirmRequest,
    account: Optional[AccountDomain] = Depends(get_optional_account),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    db: AsyncSession = Depends(get_db_session),
):
    try:
        result = await gateway.capture_payment(
            "stripe",
            payload.payment_intent_id,
            account,
            service_id=payload.service_id,
        )
    except MarketplaceError:
        await keep_failure_trail(db)
        raise
    await db.commit()
    return CaptureResponse.model_validate(result)


@router.post("/webhook", response_model=WebhookResponse)
async def stripe_webhook(
    request: Request,
    gateway: PaymentGateway = Depends(get_payment_gateway),
    db: AsyncSession = Depends(get_db_session),
):
    """Stripe event delivery; the raw body is needed for signature verification."""
    payload = await request.body()
    try:
        result = await gateway.handle_webhook("stripe", payload, request.headers)
    except MarketplaceError:
        await keep_failure_trail(db)
        raise
    await db.commit()
    return WebhookResponse.model_validate(result)
