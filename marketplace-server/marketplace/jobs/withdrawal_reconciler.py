"""Report withdrawal requests whose balance reservation never happened.

A request row is written before the wallet is debited. If the process dies in
between, the request stays ``pending`` with no ``withdrawal`` transaction. This
job only reports such requests; fixing them is a manual operation.

Run with ``python -m marketplace.jobs.withdrawal_reconciler``.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from marketplace.core.config import get_settings
from marketplace.core.logging import configure_logging
from marketplace.db.models import utcnow
from marketplace.domain.audit import AuditService
from marketplace.domain.audit.models import WITHDRAWAL_RECONCILIATION_REQUIRED
from marketplace.infrastructure.database.repositories.withdrawal_repository import SqlWithdrawalRepository
from marketplace.infrastructure.database.session import build_session_factory, dispose_engine, get_engine

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class WithdrawalReconciler:
    session_factory: async_sessionmaker[AsyncSession]
    grace_minutes: int = 15
    batch_size: int = 100

    async def run_once(self) -> list[str]:
        """Return the ids of the requests flagged for manual reconciliation."""
        cutoff = utcnow() - timedelta(minutes=self.grace_minutes)
        async with self.session_factory() as session:
            requests = await SqlWithdrawalRepository(session).list_unreserved(cutoff, limit=self.batch_size)
            audit = AuditService.with_session(session)
            for request in requests:
                logger.error(
                    "Withdrawal %s of %s for user %s has no reservation, manual reconciliation required",
                    request.id,
                    request.amount,
                    request.user_id,
                )
                await audit.record(
                    WITHDRAWAL_RECONCILIATION_REQUIRED,
                    user_id=request.user_id,
                    severity="high",
                    details={
                        "withdrawal_id": request.id,
                        "wallet_id": request.wallet_id,
                        "amount": str(request.amount),
                        "created_at": request.created_at,
                    },
                )
            await session.commit()
        return [request.id for request in requests]


async def main() -> None:
    settings = get_settings()
    configure_logging(settings)
    reconciler = WithdrawalReconciler(
        build_session_factory(get_engine()),
        grace_minutes=settings.wallet.reconciliation_grace_minutes,
    )
    try:
        flagged = await reconciler.run_once()
        logger.info("%d withdrawal request(s) need reconciliation", len(flagged))
    finally:
        await dispose_engine()


if __name__ == "__main__":
    asyncio.run(main())
