from decimal import Decimal

import pytest

from marketplace.domain.common.exceptions import (
    BelowMinimumError,
    InsufficientBalanceError,
    InvalidAmountError,
    InvalidInputError,
    WithdrawalReservationError,
)
from marketplace.domain.wallets import WalletService
from marketplace.infrastructure.database.repositories import SqlWalletRepository, SqlWithdrawalRepository


@pytest.fixture
def wallets(session, settings):
    return WalletService.with_session(session, settings.wallet)


async def fund(session, wallets, user_id, amount):
    wallet = await wallets.ensure_wallet(user_id)
    await SqlWalletRepository(session).credit_balance(wallet.id, Decimal(amount))
    return wallet


async def test_new_wallet_uses_defaults(wallets, freelance):
    wallet = await wallets.ensure_wallet(freelance.id)

    assert wallet.balance == 0
    assert wallet.pending_balance == 0
    assert wallet.min_withdrawal_amount == Decimal("5000")
    assert wallet.withdrawal_fee_percentage == Decimal("1")
    assert (await wallets.ensure_wallet(freelance.id)).id == wallet.id


async def test_withdrawal_reserves_amount_and_computes_fee(session, wallets, freelance):
    await fund(session, wallets, freelance.id, "5000")
    await wallets.update_min_withdrawal_amount(Decimal("1000"))

    request = await wallets.record_withdrawal_request(freelance.id, Decimal("3000"), "wave")

    assert request.status == "pending"
    assert request.fee_amount == Decimal("30.00")
    assert request.net_amount == Decimal("2970.00")
    wallet = await wallets.get_wallet(freelance.id)
    assert wallet.balance == Decimal("2000")
    assert wallet.pending_balance == Decimal("3000")

    ledger = await wallets.list_transactions(freelance.id)
    assert [(tx.type, tx.status, tx.amount) for tx in ledger] == [("withdrawal", "pending", Decimal("3000"))]
    assert ledger[0].reference_id == request.id


async def test_withdrawal_accepts_matching_client_fee(session, wallets, freelance):
    await fund(session, wallets, freelance.id, "5000")
    await wallets.update_min_withdrawal_amount(Decimal("1000"))

    request = await wallets.record_withdrawal_request(
        freelance.id,
        Decimal("3000"),
        "orange_money",
        fee_amount=Decimal("30"),
        net_amount=Decimal("2970"),
    )

    assert request.net_amount == Decimal("2970")


@pytest.mark.parametrize(
    ("amount", "method", "kwargs", "error"),
    [
        ("6000", "wave", {}, InsufficientBalanceError),
        ("500", "wave", {}, BelowMinimumError),
        ("0", "wave", {}, InvalidAmountError),
        ("-10", "wave", {}, InvalidAmountError),
        ("3000", "bitcoin", {}, InvalidInputError),
        ("3000", "wave", {"fee_amount": Decimal("10")}, InvalidInputError),
        ("3000", "wave", {"net_amount": Decimal("3000")}, InvalidInputError),
    ],
)
async def test_withdrawal_rejections_leave_wallet_untouched(session, wallets, freelance, amount, method, kwargs, error):
    await fund(session, wallets, freelance.id, "5000")
    await wallets.update_min_withdrawal_amount(Decimal("1000"))

    with pytest.raises(error):
        await wallets.record_withdrawal_request(freelance.id, Decimal(amount), method, **kwargs)

    wallet = await wallets.get_wallet(freelance.id)
    assert wallet.balance == Decimal("5000")
    assert wallet.pending_balance == 0
    assert await wallets.list_transactions(freelance.id) == []


async def test_failed_reservation_marks_request_failed(session, wallets, freelance, monkeypatch):
    await fund(session, wallets, freelance.id, "5000")
    await wallets.update_min_withdrawal_amount(Decimal("1000"))

    async def refuse(wallet_id, amount):
        return False

    monkeypatch.setattr(wallets.repository, "reserve_withdrawal", refuse)

    with pytest.raises(WithdrawalReservationError) as excinfo:
        await wallets.record_withdrawal_request(freelance.id, Decimal("3000"), "wave")

    request = await SqlWithdrawalRepository(session).get(excinfo.value.withdrawal_id)
    assert request.status == "failed"
    wallet = await wallets.get_wallet(freelance.id)
    assert wallet.balance == Decimal("5000")
    assert wallet.pending_balance == 0


async def test_min_withdrawal_update_applies_to_existing_and_new_wallets(wallets, client, freelance):
    await wallets.ensure_wallet(client.id)

    updated = await wallets.update_min_withdrawal_amount(Decimal("2500"))

    assert updated == 1
    assert await wallets.get_min_withdrawal_amount() == Decimal("2500")
    assert (await wallets.get_wallet(client.id)).min_withdrawal_amount == Decimal("2500")
    assert (await wallets.ensure_wallet(freelance.id)).min_withdrawal_amount == Decimal("2500")


async def test_min_withdrawal_must_be_positive(wallets):
    with pytest.raises(InvalidAmountError):
        await wallets.update_min_withdrawal_amount(Decimal("0"))


async def test_earning_is_held_once_and_settled_once(wallets, freelance):
    wallet = await wallets.ensure_wallet(freelance.id)
    earning = await wallets.record_earning(
        wallet.id,
        Decimal("1200"),
        order_id=None,
        service_id=None,
        client_id=None,
        freelance_id=freelance.id,
    )

    assert await wallets.hold_earning(earning.id) is True
    assert await wallets.hold_earning(earning.id) is False
    assert (await wallets.get_wallet(freelance.id)).pending_balance == Decimal("1200")

    assert await wallets.settle_earning(earning.id) is True
    assert await wallets.settle_earning(earning.id) is False
    settled = await wallets.get_wallet(freelance.id)
    assert settled.balance == Decimal("1200")
    assert settled.pending_balance == 0
    assert settled.total_earnings == Decimal("1200")


async def test_settling_an_unheld_earning_leaves_reservations_alone(session, wallets, freelance):
    wallet = await fund(session, wallets, freelance.id, "6000")
    await wallets.update_min_withdrawal_amount(Decimal("1000"))
    await wallets.record_withdrawal_request(freelance.id, Decimal("4000"), "wave")
    earning = await wallets.record_earning(
        wallet.id,
        Decimal("1500"),
        order_id=None,
        service_id=None,
        client_id=None,
        freelance_id=freelance.id,
    )

    assert await wallets.settle_earning(earning.id) is True

    settled = await wallets.get_wallet(freelance.id)
    assert settled.pending_balance == Decimal("4000")
    assert settled.balance == Decimal("3500")
    assert settled.total_earnings == Decimal("1500")
