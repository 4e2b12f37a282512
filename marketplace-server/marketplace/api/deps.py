"""Shared FastAPI dependencies."""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator

from fastapi import Depends, Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.container import ApplicationContainer, get_container
from marketplace.domain.audit import AuditService
from marketplace.domain.disputes import DisputeService
from marketplace.domain.orders import OrderService
from marketplace.domain.payments import PaymentGateway
from marketplace.domain.wallets import WalletService
from marketplace.infrastructure.database.session import get_session

logger = logging.getLogger(__name__)


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    async for session in get_session():
        yield session


def get_app_container() -> ApplicationContainer:
    return get_container()


def client_ip(request: Request) -> str | None:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


def get_audit_service(request: Request, db: AsyncSession = Depends(get_db_session)) -> AuditService:
    return AuditService.with_session(
        db,
        ip_address=client_ip(request),
        user_agent=request.headers.get("user-agent"),
    )


def get_wallet_service(
    db: AsyncSession = Depends(get_db_session),
    audit: AuditService = Depends(get_audit_service),
    container: ApplicationContainer = Depends(get_app_container),
) -> WalletService:
    return WalletService.with_session(db, container.settings.wallet, audit=audit)


def get_order_service(
    db: AsyncSession = Depends(get_db_session),
    audit: AuditService = Depends(get_audit_service),
    container: ApplicationContainer = Depends(get_app_container),
) -> OrderService:
    return OrderService.with_session(db, audit=audit, settings=container.settings.payments)


def get_dispute_service(
    db: AsyncSession = Depends(get_db_session),
    audit: AuditService = Depends(get_audit_service),
    container: ApplicationContainer = Depends(get_app_container),
) -> DisputeService:
    return DisputeService.with_session(db, audit=audit, settings=container.settings.payments)


def get_payment_gateway(
    db: AsyncSession = Depends(get_db_session),
    audit: AuditService = Depends(get_audit_service),
    container: ApplicationContainer = Depends(get_app_container),
) -> PaymentGateway:
    return PaymentGateway.with_session(
        db,
        converter=container.converter,
        providers=container.providers,
        settings=container.settings,
        audit=audit,
    )


async def keep_failure_trail(db: AsyncSession) -> None:
    """Commit what a failed request deliberately left behind (audit rows, failed markers)."""
    try:
        await db.commit()
    except SQLAlchemyError:
        logger.exception("Could not persist the trail of a failed request")
        await db.rollback()
