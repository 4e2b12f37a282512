"""Registration and login."""
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.api.deps import get_db_session
from marketplace.core.security import create_access_token, get_current_account
from marketplace.domain.accounts import Account as AccountDomain
from marketplace.domain.accounts import AccountCreateInput, AccountService
from marketplace.domain.common.exceptions import InvalidInputError
from marketplace.schemas import AccountResponse, LoginRequest, RegisterRequest, Token

router = APIRouter()

SELF_SERVICE_ROLES = {"client", "freelance"}


@router.post("/register", response_model=AccountResponse, status_code=status.HTTP_201_CREATED)
async def register(payload: RegisterRequest, db: AsyncSession = Depends(get_db_session)):
    if payload.role not in SELF_SERVICE_ROLES:
        raise InvalidInputError("Role must be client or freelance")
    account = await AccountService.with_session(db).create_account(
        AccountCreateInput(
            username=payload.username,
            password=payload.password,
            role=payload.role,
            email=payload.email,
        )
    )
    await db.commit()
    return account


@router.post("/login", response_model=Token)
async def login(payload: LoginRequest, db: AsyncSession = Depends(get_db_session)):
    account = await AccountService.with_session(db).authenticate(payload.username, payload.password)
    if account is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid username or password")
    await db.commit()
    return Token(access_token=create_access_token(account.id, account.username, account.role))


@router.get("/me", response_model=AccountResponse)
async def me(account: AccountDomain = Depends(get_current_account)):
    return account
