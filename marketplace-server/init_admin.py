"""
Create the default administrator account.
Needed once to manage disputes and withdrawal settings.
"""
import asyncio

from sqlalchemy import select

from marketplace.db.models import Account
from marketplace.domain.accounts import AccountCreateInput, AccountService
from marketplace.infrastructure.database.session import dispose_engine, get_session, init_db


async def create_default_admin():
    """Create the admin account unless one already exists."""
    await init_db()

    async for db in get_session():
        stmt = select(Account).where(Account.role == "admin")
        result = await db.execute(stmt)
        existing_admin = result.scalars().first()

        if existing_admin:
            print("An admin account already exists, nothing to do")
            return

        service = AccountService.with_session(db)

        await service.create_account(
            AccountCreateInput(
                username="admin",
                password="admin123",
                role="admin",
                email="admin@example.com",
                is_active=True,
            )
        )
        await db.commit()

        print("=" * 50)
        print("Default admin account created")
        print("=" * 50)
        print("Username: admin")
        print("Password: admin123")
        print("=" * 50)
        print("Change the password after the first login!")
        print("=" * 50)


async def main():
    try:
        await create_default_admin()
    finally:
        await dispose_engine()


if __name__ == "__main__":
    asyncio.run(main())
