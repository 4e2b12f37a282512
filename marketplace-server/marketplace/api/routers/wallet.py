"""Wallet, ledger and withdrawal endpoints."""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.api.deps import get_db_session, get_wallet_service, keep_failure_trail
from marketplace.core.security import get_current_account, get_current_admin
from marketplace.domain.accounts import Account as AccountDomain
from marketplace.domain.common.exceptions import WithdrawalReservationError
from marketplace.domain.wallets import WalletService
from marketplace.schemas import (
    MinWithdrawalResponse,
    MinWithdrawalUpdate,
    MinWithdrawalUpdateResponse,
    TransactionListResponse,
    TransactionResponse,
    WalletResponse,
    WithdrawRequest,
    WithdrawResponse,
)

router = APIRouter()


@router.get("", response_model=WalletResponse)
async def get_wallet(
    account: AccountDomain = Depends(get_current_account),
    wallets: WalletService = Depends(get_wallet_service),
    db: AsyncSession = Depends(get_db_session),
):
    wallet = await wallets.ensure_wallet(account.id)
    await db.commit()
    return WalletResponse.model_validate(wallet)


@router.get("/transactions", response_model=TransactionListResponse)
async def list_transactions(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    account: AccountDomain = Depends(get_current_account),
    wallets: WalletService = Depends(get_wallet_service),
    db: AsyncSession = Depends(get_db_session),
):
    rows = await wallets.list_transactions(account.id, limit=limit, offset=offset)
    await db.commit()
    return TransactionListResponse(transactions=[TransactionResponse.model_validate(row) for row in rows])


@router.post("/withdraw", response_model=WithdrawResponse)
async def withdraw(
    payload: WithdrawRequest,
    account: AccountDomain = Depends(get_current_account),
    wallets: WalletService = Depends(get_wallet_service),
    db: AsyncSession = Depends(get_db_session),
):
    try:
        request = await wallets.record_withdrawal_request(
            account.id,
            payload.amount,
            payload.payment_method,
            fee_amount=payload.fee_amount,
            net_amount=payload.net_amount,
        )
    except WithdrawalReservationError:
        # the request stays behind as failed
        await keep_failure_trail(db)
        raise
    await db.commit()
    return WithdrawResponse(
        withdrawal_id=request.id,
        status=request.status,
        amount=request.amount,
        fee_amount=request.fee_amount,
        net_amount=request.net_amount,
    )


@router.get("/get-min-withdrawal", response_model=MinWithdrawalResponse)
async def get_min_withdrawal(
    admin: AccountDomain = Depends(get_current_admin),
    wallets: WalletService = Depends(get_wallet_service),
):
    return MinWithdrawalResponse(amount=await wallets.get_min_withdrawal_amount())


@router.post("/update-min-withdrawal", response_model=MinWithdrawalUpdateResponse)
async def update_min_withdrawal(
    payload: MinWithdrawalUpdate,
    admin: AccountDomain = Depends(get_current_admin),
    wallets: WalletService = Depends(get_wallet_service),
    db: AsyncSession = Depends(get_db_session),
):
    updated = await wallets.update_min_withdrawal_amount(payload.amount)
    await db.commit()
    return MinWithdrawalUpdateResponse(amount=await wallets.get_min_withdrawal_amount(), updated_wallets=updated)
