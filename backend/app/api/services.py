"""
Service catalogue API endpoints.

WHAT: Agency-scoped CRUD for price templates. GET /services accepts
active_only=true to list only services that can still be picked.

WHY: Proposal and invoice items copy a service's name and price when
they are added, so changing or deleting a service leaves existing
documents untouched.
"""

import logging

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.deps import get_current_agency
from app.core.exceptions import ServiceNotFoundError
from app.dao.service import ServiceDAO
from app.db.session import get_db
from app.models.agency import Agency
from app.models.service import Service
from app.schemas.service import (
    ServiceCreate,
    ServiceUpdate,
    ServiceResponse,
    ServiceListResponse,
)


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/services", tags=["services"])

# Columns that cannot be cleared; a null in the request leaves them as they are
_REQUIRED_FIELDS = ("name", "default_unit_price", "unit_type", "is_active")


def _default_currency(agency: Agency) -> str:
    return agency.currency or settings.DEFAULT_CURRENCY


async def _get_service(dao: ServiceDAO, service_id: int, agency_id: int) -> Service:
    service = await dao.get_by_id_and_agency(service_id, agency_id)
    if service is None:
        raise ServiceNotFoundError(service_id=service_id)
    return service


@router.post(
    "",
    response_model=ServiceResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_service(
    data: ServiceCreate,
    agency: Agency = Depends(get_current_agency),
    db: AsyncSession = Depends(get_db),
) -> ServiceResponse:
    service = await ServiceDAO(db).create(
        agency_id=agency.id,
        name=data.name,
        description=data.description or None,
        default_unit_price=data.default_unit_price,
        unit_type=data.unit_type,
        currency=data.currency or _default_currency(agency),
        is_active=True,
    )
    logger.info("Created service %s for agency %s", service.id, agency.id)
    return ServiceResponse.model_validate(service)


@router.get("", response_model=ServiceListResponse)
async def list_services(
    active_only: bool = Query(default=False, description="Only services that are still offered"),
    agency: Agency = Depends(get_current_agency),
    db: AsyncSession = Depends(get_db),
) -> ServiceListResponse:
    services = await ServiceDAO(db).list_for_agency(agency.id, active_only=active_only)
    return ServiceListResponse(
        items=[ServiceResponse.model_validate(s) for s in services],
        total=len(services),
    )


@router.get("/{service_id}", response_model=ServiceResponse)
async def get_service(
    service_id: int,
    agency: Agency = Depends(get_current_agency),
    db: AsyncSession = Depends(get_db),
) -> ServiceResponse:
    service = await _get_service(ServiceDAO(db), service_id, agency.id)
    return ServiceResponse.model_validate(service)


@router.patch("/{service_id}", response_model=ServiceResponse)
async def update_service(
    service_id: int,
    data: ServiceUpdate,
    agency: Agency = Depends(get_current_agency),
    db: AsyncSession = Depends(get_db),
) -> ServiceResponse:
    """
    Update a service. Only provided fields change.

    A blank description is stored as null; a blank currency falls back to
    the agency's default currency.
    """
    dao = ServiceDAO(db)
    service = await _get_service(dao, service_id, agency.id)
    changes = {
        field: value
        for field, value in data.model_dump(exclude_unset=True).items()
        if value is not None or field not in _REQUIRED_FIELDS
    }
    if "description" in changes:
        changes["description"] = changes["description"] or None
    if "currency" in changes:
        changes["currency"] = changes["currency"] or _default_currency(agency)
    if changes:
        service = await dao.update(service.id, **changes)
    return ServiceResponse.model_validate(service)


@router.delete("/{service_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_service(
    service_id: int,
    agency: Agency = Depends(get_current_agency),
    db: AsyncSession = Depends(get_db),
) -> None:
    dao = ServiceDAO(db)
    service = await _get_service(dao, service_id, agency.id)
    await dao.delete(service.id)
    logger.info("Deleted service %s (agency %s)", service_id, agency.id)
