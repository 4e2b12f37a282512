"""Service listing use cases."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.db.models import Service as ServiceModel
from marketplace.domain.common.exceptions import InvalidAmountError, PermissionDeniedError
from marketplace.infrastructure.database.repositories.service_repository import SqlServiceRepository

from .models import ServiceListing


@dataclass(slots=True)
class ServiceCatalog:
    repository: SqlServiceRepository

    @classmethod
    def with_session(cls, session: AsyncSession) -> "ServiceCatalog":
        return cls(SqlServiceRepository(session))

    async def create_service(
        self,
        *,
        freelance_id: str,
        role: str,
        title: str,
        price: Decimal,
        description: str | None = None,
        currency: str = "XOF",
    ) -> ServiceListing:
        if role != "freelance":
            raise PermissionDeniedError("Only freelance accounts can publish services")
        if price <= 0:
            raise InvalidAmountError("Service price must be a positive number")
        model = await self.repository.create(
            freelance_id=freelance_id,
            title=title,
            description=description,
            price=price,
            currency=currency,
        )
        return self._to_domain(model)

    async def get_service(self, service_id: str) -> ServiceListing | None:
        model = await self.repository.get(service_id)
        return self._to_domain(model) if model else None

    @staticmethod
    def _to_domain(model: ServiceModel) -> ServiceListing:
        return ServiceListing(
            id=model.id,
            freelance_id=model.freelance_id,
            title=model.title,
            description=model.description,
            price=model.price,
            currency=model.currency,
            status=model.status,
            created_at=model.created_at,
        )
