"""PayPal checkout endpoints."""
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
    PayPalCaptureRequest,
    PayPalCreateOrderRequest,
    PayPalCreateOrderResponse,
    WebhookResponse,
)

router = APIRouter()


@router.post("/create-order", response_model=PayPalCreateOrderResponse)
async def create_order(
    payload: PayPalCreateOrderRequest,
    idempotency_key: Optional[str] = Header(default=None, alias="Idempotency-Key"),
    account: Optional[AccountDomain] = Depends(get_optional_account),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    db: AsyncSession = Depends(get_db_session),
):
    try:
        intent = await gateway.create_payment_intent(
            "paypal",
            account,
            payload.amount,
            payload.service_id,
            metadata=payload.metadata,
            email=payload.email,
            idempotency_key=idempotency_key,
            bypass_auth=payload.bypass_auth,
        )
    except MarketplaceError:
        await keep_failure_trail(db)
        raise
    await db.commit()
    return PayPalCreateOrderResponse(order_id=intent.provider_id, status=intent.status)


@router.post("/capture-payment", response_model=CaptureResponse)
async def capture_payment(
    payload: PayPalCaptureRequest,
    account: Optional[AccountDomain] = Depends(get_optional_account),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    db: AsyncSession = Depends(get_db_session),
):
    try:
        result = await gateway.capture_payment("paypal", payload.order_id, account, service_id=payload.service_id)
    except MarketplaceError:
        await keep_failure_trail(db)
        raise
    await db.commit()
    return CaptureResponse.model_validate(result)


@router.post("/webhook", response_model=WebhookResponse)
async def paypal_webhook(
    request: Request,
    gateway: PaymentGateway = Depends(get_payment_gateway),
    db: AsyncSession = Depends(get_db_session),
):
    payload = await request.body()
    try:
        result = await gateway.handle_webhook("paypal", payload, request.headers)
    except MarketplaceError:
        await keep_failure_trail(db)
        raise
    await db.commit()
    return WebhookResponse.model_validate(result)
