"""Service listings published by freelances."""
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.api.deps import get_db_session
from marketplace.core.security import get_current_account
from marketplace.domain.accounts import Account as AccountDomain
from marketplace.domain.common.exceptions import NotFoundError
from marketplace.domain.services import ServiceCatalog
from marketplace.schemas import ServiceCreate, ServiceResponse

router = APIRouter()


@router.post("", response_model=ServiceResponse, status_code=status.HTTP_201_CREATED)
async def create_service(
    payload: ServiceCreate,
    account: AccountDomain = Depends(get_current_account),
    db: AsyncSession = Depends(get_db_session),
):
    service = await ServiceCatalog.with_session(db).create_service(
        freelance_id=account.id,
        role=account.role,
        title=payload.title,
        description=payload.description,
        price=payload.price,
        currency=payload.currency,
    )
    await db.commit()
    return service


@router.get("/{service_id}", response_model=ServiceResponse)
async def get_service(service_id: str, db: AsyncSession = Depends(get_db_session)):
    service = await ServiceCatalog.with_session(db).get_service(service_id)
    if service is None:
        raise NotFoundError("Service not found")
    return service
