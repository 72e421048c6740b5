"""
Support ticket API endpoints.

WHAT:
1. POST /support/tickets - File a ticket (notifies the support inbox)
2. GET /support/tickets - The agency's tickets, newest first
3. GET /support/tickets/{ticket_id} - One ticket

SECURITY (OWASP):
- A01: Agency-scoped data access
- A07: Authenticated endpoints only
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.deps import get_current_agency
from app.db.session import get_db
from app.models.agency import Agency
from app.schemas.support import (
    SupportTicketCreate,
    SupportTicketResponse,
    SupportTicketListResponse,
)
from app.services.support_service import SupportService


router = APIRouter(prefix="/support/tickets", tags=["support"])


@router.post(
    "",
    response_model=SupportTicketResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_ticket(
    data: SupportTicketCreate,
    agency: Agency = Depends(get_current_agency),
    db: AsyncSession = Depends(get_db),
) -> SupportTicketResponse:
    """
    File a support ticket.

    Priority is high on the growth and scale plans and normal otherwise.
    """
    ticket = await SupportService(db).create_ticket(agency, data.subject, data.description)
    return SupportTicketResponse.model_validate(ticket)


@router.get("", response_model=SupportTicketListResponse)
async def list_tickets(
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=200),
    agency: Agency = Depends(get_current_agency),
    db: AsyncSession = Depends(get_db),
) -> SupportTicketListResponse:
    tickets, total = await SupportService(db).list_tickets(agency.id, skip=skip, limit=limit)
    return SupportTicketListResponse(
        items=[SupportTicketResponse.model_validate(t) for t in tickets],
        total=total,
        skip=skip,
        limit=limit,
    )


@router.get("/{ticket_id}", response_model=SupportTicketResponse)
async def get_ticket(
    ticket_id: int,
    agency: Agency = Depends(get_current_agency),
    db: AsyncSession = Depends(get_db),
) -> SupportTicketResponse:
    ticket = await SupportService(db).get_ticket(agency.id, ticket_id)
    return SupportTicketResponse.model_validate(ticket)
