"""Domain services for account management."""

from __future__ import annotations

import secrets
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.crypto import hash_password, verify_password
from marketplace.infrastructure.database.repositories.account_repository import SqlAccountRepository

from marketplace.domain.common.exceptions import InvalidInputError

from .exceptions import AccountAlreadyExistsError
from .models import ROLES, Account, AccountCreateInput
from .repository import AccountRepository


class AccountService:
    """Encapsulates core account use cases."""

    def __init__(self, repository: AccountRepository) -> None:
        self._repository = repository

    @classmethod
    def with_session(cls, session: AsyncSession) -> "AccountService":
        return cls(SqlAccountRepository(session))

    async def get_by_id(self, account_id: str) -> Account | None:
        return await self._repository.get_by_id(account_id)

    async def get_by_username(self, username: str) -> Account | None:
        return await self._repository.get_by_username(username)

    async def authenticate(self, username: str, password: str) -> Account | None:
        account = await self._repository.get_by_username(username)
        if account is None or not account.is_active:
            return None
        if not verify_password(password, account.password_hash):
            return None
        await self._repository.set_last_login(account.id, datetime.now(timezone.utc))
        return account

    async def create_account(self, payload: AccountCreateInput) -> Account:
        if payload.role not in ROLES:
            raise InvalidInputError(f"Unknown role: {payload.role}")
        existing = await self._repository.get_by_username(payload.username)
        if existing is not None:
            raise AccountAlreadyExistsError(f"Username already exists: {payload.username}")

        return await self._repository.create_account(
            username=payload.username,
            password_hash=hash_password(payload.password),
            role=payload.role,
            email=payload.email,
            is_active=payload.is_active,
        )

    async def ensure_dev_account(self, username: str) -> Account:
        """Return the fixed development client used by the auth bypass."""
        account = await self._repository.get_by_username(username)
        if account is not None:
            return account
        return await self.create_account(
            AccountCreateInput(username=username, password=secrets.token_urlsafe(24), role="client")
        )
