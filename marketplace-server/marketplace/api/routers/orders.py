"""Order lifecycle endpoints."""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.api.deps import get_db_session, get_order_service
from marketplace.core.security import get_current_account
from marketplace.domain.accounts import Account as AccountDomain
from marketplace.domain.orders import OrderService
from marketplace.schemas import CancellationResponse, OrderActionRequest, OrderResponse, SettlementResponse

router = APIRouter()


@router.post("/complete", response_model=SettlementResponse)
async def complete_order(
    payload: OrderActionRequest,
    account: AccountDomain = Depends(get_current_account),
    orders: OrderService = Depends(get_order_service),
    db: AsyncSession = Depends(get_db_session),
):
    result = await orders.complete_order(payload.order_id, account.id)
    await db.commit()
    return SettlementResponse.model_validate(result)


@router.post("/deliver", response_model=OrderResponse)
async def deliver_order(
    payload: OrderActionRequest,
    account: AccountDomain = Depends(get_current_account),
    orders: OrderService = Depends(get_order_service),
    db: AsyncSession = Depends(get_db_session),
):
    order = await orders.deliver_order(payload.order_id, account.id)
    await db.commit()
    return OrderResponse.model_validate(order)


@router.post("/request-revision", response_model=OrderResponse)
async def request_revision(
    payload: OrderActionRequest,
    account: AccountDomain = Depends(get_current_account),
    orders: OrderService = Depends(get_order_service),
    db: AsyncSession = Depends(get_db_session),
):
    order = await orders.request_revision(payload.order_id, account.id)
    await db.commit()
    return OrderResponse.model_validate(order)


@router.post("/cancel", response_model=CancellationResponse)
async def cancel_order(
    payload: OrderActionRequest,
    account: AccountDomain = Depends(get_current_account),
    orders: OrderService = Depends(get_order_service),
    db: AsyncSession = Depends(get_db_session),
):
    result = await orders.cancel_order(payload.order_id, account.id, payload.reason)
    await db.commit()
    return CancellationResponse.model_validate(result)


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: str,
    account: AccountDomain = Depends(get_current_account),
    orders: OrderService = Depends(get_order_service),
):
    return OrderResponse.model_validate(await orders.get_order(order_id, account))
