"""
Client management API endpoints.

WHAT: Agency-scoped CRUD for clients.

WHY: Clients are the recipients of proposals and invoices; an invoice
can only be emailed once its client has an email address.
"""

import logging

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.deps import get_current_agency
from app.core.exceptions import ClientNotFoundError
from app.dao.client import ClientDAO
from app.db.session import get_db
from app.models.agency import Agency
from app.models.client import Client
from app.schemas.client import ClientCreate, ClientUpdate, ClientResponse, ClientListResponse


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/clients", tags=["clients"])


async def _get_client(dao: ClientDAO, client_id: int, agency_id: int) -> Client:
    client = await dao.get_by_id_and_agency(client_id, agency_id)
    if client is None:
        raise ClientNotFoundError(client_id=client_id)
    return client


@router.post(
    "",
    response_model=ClientResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_client(
    data: ClientCreate,
    agency: Agency = Depends(get_current_agency),
    db: AsyncSession = Depends(get_db),
) -> ClientResponse:
    client = await ClientDAO(db).create(agency_id=agency.id, **data.model_dump())
    logger.info("Created client %s for agency %s", client.id, agency.id)
    return ClientResponse.model_validate(client)


@router.get("", response_model=ClientListResponse)
async def list_clients(
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=500),
    agency: Agency = Depends(get_current_agency),
    db: AsyncSession = Depends(get_db),
) -> ClientListResponse:
    dao = ClientDAO(db)
    clients = await dao.list_for_agency(agency.id, skip=skip, limit=limit)
    return ClientListResponse(
        items=[ClientResponse.model_validate(c) for c in clients],
        total=await dao.count(agency_id=agency.id),
        skip=skip,
        limit=limit,
    )


@router.get("/{client_id}", response_model=ClientResponse)
async def get_client(
    client_id: int,
    agency: Agency = Depends(get_current_agency),
    db: AsyncSession = Depends(get_db),
) -> ClientResponse:
    client = await _get_client(ClientDAO(db), client_id, agency.id)
    return ClientResponse.model_validate(client)


@router.put("/{client_id}", response_model=ClientResponse)
async def update_client(
    client_id: int,
    data: ClientUpdate,
    agency: Agency = Depends(get_current_agency),
    db: AsyncSession = Depends(get_db),
) -> ClientResponse:
    """Update a client. Only provided fields change."""
    dao = ClientDAO(db)
    client = await _get_client(dao, client_id, agency.id)
    changes = data.model_dump(exclude_unset=True)
    if changes:
        client = await dao.update(client.id, **changes)
    return ClientResponse.model_validate(client)


@router.delete("/{client_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_client(
    client_id: int,
    agency: Agency = Depends(get_current_agency),
    db: AsyncSession = Depends(get_db),
) -> None:
    """
    Delete a client. Its invoices and proposals keep existing without a client.
    """
    dao = ClientDAO(db)
    client = await _get_client(dao, client_id, agency.id)
    await dao.delete(client.id)
    logger.info("Deleted client %s (agency %s)", client_id, agency.id)
