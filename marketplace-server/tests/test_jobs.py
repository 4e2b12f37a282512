import json
import logging
from datetime import timedelta
from decimal import Decimal

from marketplace.core.logging import AUDIT_LOGGER
from marketplace.db.models import utcnow
from marketplace.domain.audit import AuditService
from marketplace.domain.audit.models import PAYMENT_ATTEMPT, WITHDRAWAL_RECONCILIATION_REQUIRED, WITHDRAWAL_REQUEST
from marketplace.domain.wallets import WalletService
from marketplace.infrastructure.database.repositories import (
    SqlAuditRepository,
    SqlWalletRepository,
    SqlWithdrawalRepository,
)
from marketplace.jobs.audit_relay import AuditRelay
from marketplace.jobs.withdrawal_reconciler import WithdrawalReconciler


async def test_audit_relay_dispatches_pending_events(session, session_factory, caplog):
    audit = AuditService.with_session(session, ip_address="10.0.0.1", user_agent="pytest")
    await audit.record(PAYMENT_ATTEMPT, user_id="user-1", details={"amount": "5000"})
    await audit.record(WITHDRAWAL_REQUEST, user_id="user-1", severity="medium")
    await session.commit()
    caplog.set_level(logging.INFO, logger=AUDIT_LOGGER)

    relay = AuditRelay(session_factory, batch_size=10)
    sent = await relay.run_once()

    assert sent == 2
    emitted = [record for record in caplog.records if record.name == AUDIT_LOGGER]
    messages = [record.getMessage() for record in emitted]
    assert messages[0].startswith("payment_attempt user=user-1 ip=10.0.0.1")
    assert json.dumps({"amount": "5000"}) in messages[0]
    assert [record.levelno for record in emitted] == [logging.INFO, logging.WARNING]
    async with session_factory() as check:
        assert await SqlAuditRepository(check).list_pending(10, 5) == []
    assert await relay.run_once() == 0


async def test_audit_relay_drains_in_batches(session, session_factory):
    audit = AuditService.with_session(session)
    for _ in range(5):
        await audit.record(PAYMENT_ATTEMPT)
    await session.commit()

    assert await AuditRelay(session_factory, batch_size=2).drain() == 5


async def test_reconciler_flags_requests_without_reservation(session, session_factory, settings, freelance):
    wallets = WalletService.with_session(session, settings.wallet)
    wallet = await wallets.ensure_wallet(freelance.id)
    await SqlWalletRepository(session).credit_balance(wallet.id, Decimal("8000"))

    reserved = await wallets.record_withdrawal_request(freelance.id, Decimal("5000"), "wave")
    orphan = await SqlWithdrawalRepository(session).create(
        user_id=freelance.id,
        wallet_id=wallet.id,
        amount=Decimal("6000"),
        fee_amount=Decimal("60"),
        net_amount=Decimal("5940"),
        payment_method="wave",
    )
    for request_id in (reserved.id, orphan.id):
        model = await SqlWithdrawalRepository(session).get(request_id)
        model.created_at = utcnow() - timedelta(hours=1)
    await session.commit()

    flagged = await WithdrawalReconciler(session_factory, grace_minutes=15).run_once()

    assert flagged == [orphan.id]
    async with session_factory() as check:
        events = await SqlAuditRepository(check).list_by_type(WITHDRAWAL_RECONCILIATION_REQUIRED)
        assert [json.loads(event.details)["withdrawal_id"] for event in events] == [orphan.id]
        balance = (await SqlWalletRepository(check).get_wallet(wallet.id)).balance
        assert balance == Decimal("3000")


async def test_reconciler_ignores_recent_requests(session, session_factory, freelance, settings):
    wallets = WalletService.with_session(session, settings.wallet)
    wallet = await wallets.ensure_wallet(freelance.id)
    await SqlWithdrawalRepository(session).create(
        user_id=freelance.id,
        wallet_id=wallet.id,
        amount=Decimal("6000"),
        fee_amount=Decimal("60"),
        net_amount=Decimal("5940"),
        payment_method="wave",
    )
    await session.commit()

    assert await WithdrawalReconciler(session_factory, grace_minutes=15).run_once() == []
