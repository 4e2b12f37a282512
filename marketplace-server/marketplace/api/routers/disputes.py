"""Dispute endpoints."""
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.api.deps import get_db_session, get_dispute_service
from marketplace.core.security import get_current_account, get_current_admin
from marketplace.domain.accounts import Account as AccountDomain
from marketplace.domain.disputes import DisputeService
from marketplace.schemas import (
    DisputeCreate,
    DisputeListResponse,
    DisputeMessageCreate,
    DisputeMessageListResponse,
    DisputeMessageResponse,
    DisputeResolveRequest,
    DisputeResponse,
)

router = APIRouter()


@router.post("", response_model=DisputeResponse, status_code=status.HTTP_201_CREATED)
async def open_dispute(
    payload: DisputeCreate,
    account: AccountDomain = Depends(get_current_account),
    disputes: DisputeService = Depends(get_dispute_service),
    db: AsyncSession = Depends(get_db_session),
):
    dispute = await disputes.open_dispute(payload.order_id, account.id, payload.reason)
    await db.commit()
    return DisputeResponse.model_validate(dispute)


@router.get("", response_model=DisputeListResponse)
async def list_disputes(
    account: AccountDomain = Depends(get_current_account),
    disputes: DisputeService = Depends(get_dispute_service),
):
    rows = await disputes.list_disputes(account)
    return DisputeListResponse(disputes=[DisputeResponse.model_validate(row) for row in rows])


@router.get("/{dispute_id}", response_model=DisputeResponse)
async def get_dispute(
    dispute_id: str,
    account: AccountDomain = Depends(get_current_account),
    disputes: DisputeService = Depends(get_dispute_service),
):
    return DisputeResponse.model_validate(await disputes.get_dispute(dispute_id, account))


@router.get("/{dispute_id}/messages", response_model=DisputeMessageListResponse)
async def list_messages(
    dispute_id: str,
    account: AccountDomain = Depends(get_current_account),
    disputes: DisputeService = Depends(get_dispute_service),
):
    rows = await disputes.list_messages(dispute_id, account)
    return DisputeMessageListResponse(messages=[DisputeMessageResponse.model_validate(row) for row in rows])


@router.post("/{dispute_id}/messages", response_model=DisputeMessageResponse, status_code=status.HTTP_201_CREATED)
async def add_message(
    dispute_id: str,
    payload: DisputeMessageCreate,
    account: AccountDomain = Depends(get_current_account),
    disputes: DisputeService = Depends(get_dispute_service),
    db: AsyncSession = Depends(get_db_session),
):
    message = await disputes.add_message(dispute_id, account, payload.message, payload.attachment_url)
    await db.commit()
    return DisputeMessageResponse.model_validate(message)


@router.post("/{dispute_id}/resolve", response_model=DisputeResponse)
async def resolve_dispute(
    dispute_id: str,
    payload: DisputeResolveRequest,
    admin: AccountDomain = Depends(get_current_admin),
    disputes: DisputeService = Depends(get_dispute_service),
    db: AsyncSession = Depends(get_db_session),
):
    dispute = await disputes.resolve_dispute(dispute_id, admin, payload.outcome, payload.resolution)
    await db.commit()
    return DisputeResponse.model_validate(dispute)
