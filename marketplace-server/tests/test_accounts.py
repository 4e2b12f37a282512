import pytest

from marketplace.core.crypto import BCRYPT_MAX_BYTES, hash_password, verify_password
from marketplace.domain.accounts import AccountCreateInput, AccountService
from marketplace.domain.accounts.exceptions import AccountAlreadyExistsError
from marketplace.domain.common.exceptions import InvalidInputError

from .conftest import create_account


def test_password_hash_round_trip():
    hashed = hash_password("secret123")

    assert hashed != "secret123"
    assert verify_password("secret123", hashed)
    assert not verify_password("secret124", hashed)


def test_long_passwords_are_accepted():
    password = "é" * BCRYPT_MAX_BYTES

    assert verify_password(password, hash_password(password))


@pytest.mark.parametrize("stored", [None, "", "not-a-bcrypt-hash"])
def test_missing_or_malformed_hash_never_matches(stored):
    assert verify_password("secret123", stored) is False


async def test_authenticate(session):
    accounts = AccountService.with_session(session)
    created = await create_account(session, "ada")

    account = await accounts.authenticate("ada", "secret123")

    assert account.id == created.id
    assert await accounts.authenticate("ada", "wrong-password") is None
    assert await accounts.authenticate("nobody", "secret123") is None


async def test_inactive_accounts_cannot_sign_in(session):
    accounts = AccountService.with_session(session)
    await accounts.create_account(AccountCreateInput(username="grace", password="secret123", is_active=False))

    assert await accounts.authenticate("grace", "secret123") is None


async def test_duplicate_usernames_and_unknown_roles(session):
    accounts = AccountService.with_session(session)
    await create_account(session, "linus")

    with pytest.raises(AccountAlreadyExistsError):
        await create_account(session, "linus")
    with pytest.raises(InvalidInputError):
        await accounts.create_account(AccountCreateInput(username="ken", password="secret123", role="root"))
