"""Drain the audit outbox into the ``marketplace.audit`` logger.

Run with ``python -m marketplace.jobs.audit_relay``.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from marketplace.core.config import get_settings
from marketplace.core.logging import AUDIT_LOGGER, configure_logging
from marketplace.db.models import AuditEvent, utcnow
from marketplace.domain.audit.models import AuditRecord
from marketplace.infrastructure.database.repositories.audit_repository import SqlAuditRepository
from marketplace.infrastructure.database.session import build_session_factory, dispose_engine, get_engine

logger = logging.getLogger(__name__)
audit_logger = logging.getLogger(AUDIT_LOGGER)

SEVERITY_LEVELS = {
    "info": logging.INFO,
    "low": logging.INFO,
    "medium": logging.WARNING,
    "high": logging.ERROR,
    "critical": logging.CRITICAL,
}


@dataclass(slots=True)
class AuditRelay:
    session_factory: async_sessionmaker[AsyncSession]
    batch_size: int = 100
    max_attempts: int = 5

    async def run_once(self) -> int:
        """Dispatch one batch of pending events and return how many were sent."""
        async with self.session_factory() as session:
            repository = SqlAuditRepository(session)
            events = await repository.list_pending(self.batch_size, self.max_attempts)
            dispatched: list[int] = []
            for event in events:
                try:
                    self._emit(self._to_record(event))
                except (TypeError, ValueError):
                    logger.warning("Audit event %s could not be dispatched", event.id, exc_info=True)
                    await repository.bump_attempts(event.id)
                    continue
                dispatched.append(event.id)
            await repository.mark_dispatched(dispatched, utcnow())
            await session.commit()
        return len(dispatched)

    async def drain(self) -> int:
        total = 0
        while True:
            sent = await self.run_once()
            total += sent
            if sent < self.batch_size:
                return total

    @staticmethod
    def _emit(record: AuditRecord) -> None:
        details = json.loads(record.details) if record.details else {}
        audit_logger.log(
            SEVERITY_LEVELS.get(record.severity, logging.INFO),
            "%s user=%s ip=%s details=%s",
            record.type,
            record.user_id,
            record.ip_address,
            json.dumps(details, sort_keys=True),
            extra={"audit_event_id": record.id, "created_at": record.created_at},
        )

    @staticmethod
    def _to_record(model: AuditEvent) -> AuditRecord:
        return AuditRecord(
            id=model.id,
            type=model.type,
            user_id=model.user_id,
            severity=model.severity,
            details=model.details,
            ip_address=model.ip_address,
            user_agent=model.user_agent,
            created_at=model.created_at,
        )


async def main() -> None:
    configure_logging(get_settings())
    relay = AuditRelay(build_session_factory(get_engine()))
    try:
        sent = await relay.drain()
        logger.info("Dispatched %d audit event(s)", sent)
    finally:
        await dispose_engine()


if __name__ == "__main__":
    asyncio.run(main())
