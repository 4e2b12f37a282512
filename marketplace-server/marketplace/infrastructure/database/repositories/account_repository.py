"""SQLAlchemy implementation of the account repository."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import select, update

from marketplace.db.models import Account as AccountModel
from marketplace.domain.accounts.models import Account
from marketplace.domain.common.repository import AsyncRepository


class SqlAccountRepository(AsyncRepository[AccountModel]):
    """Account repository backed by SQLAlchemy models."""

    async def get_by_id(self, account_id: str) -> Account | None:
        stmt = select(AccountModel).where(AccountModel.id == account_id)
        result = await self.session.execute(stmt)
        return self._to_domain(result.scalar_one_or_none())

    async def get_by_username(self, username: str) -> Account | None:
        stmt = select(AccountModel).where(AccountModel.username == username)
        result = await self.session.execute(stmt)
        return self._to_domain(result.scalar_one_or_none())

    async def create_account(
        self,
        *,
        username: str,
        password_hash: str,
        role: str,
        email: str | None,
        is_active: bool,
    ) -> Account:
        model = await self.add(
            AccountModel(
                username=username,
                password_hash=password_hash,
                role=role,
                email=email,
                is_active=is_active,
            )
        )
        return self._to_domain(model)

    async def set_last_login(self, account_id: str, timestamp: datetime) -> None:
        stmt = (
            update(AccountModel)
            .where(AccountModel.id == account_id)
            .values(last_login_at=timestamp)
            .execution_options(synchronize_session=False)
        )
        await self.session.execute(stmt)

    @staticmethod
    def _to_domain(model: AccountModel | None) -> Account | None:
        if model is None:
            return None
        return Account(
            id=str(model.id),
            username=model.username,
            role=model.role or "client",
            is_active=bool(model.is_active),
            password_hash=model.password_hash,
            email=model.email,
            created_at=model.created_at,
            last_login_at=model.last_login_at,
        )
