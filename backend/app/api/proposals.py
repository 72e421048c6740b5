"""
Proposal management API endpoints.

WHAT: RESTful API for proposal CRUD, the proposal workflow, the public
review page and conversion to an invoice.

WHY: Proposals are the pre-invoice step:
1. Agency drafts and sends a proposal
2. Client reviews and accepts it through the public link
3. Agency converts the approved proposal into a draft invoice, once

HOW: FastAPI router with agency-scoped routes plus two unauthenticated
routes addressed by the proposal's public token.
"""

from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.deps import get_current_agency
from app.db.session import get_db
from app.models.agency import Agency
from app.models.proposal import Proposal, ProposalStatus
from app.schemas.invoice import LineItemResponse
from app.schemas.proposal import (
    ProposalCreate,
    ProposalUpdate,
    ProposalSendRequest,
    ProposalResponse,
    ProposalListResponse,
    PublicProposalResponse,
    ProposalConvertResponse,
)
from app.services.proposal_service import ProposalService


router = APIRouter(prefix="/proposals", tags=["proposals"])


def _public_response(proposal: Proposal) -> PublicProposalResponse:
    return PublicProposalResponse(
        title=proposal.title,
        status=proposal.status,
        agency_name=proposal.agency.agency_name,
        client_name=proposal.client.name if proposal.client else None,
        currency=proposal.currency,
        tax_rate=float(proposal.tax_rate),
        total=float(proposal.total),
        notes=proposal.notes,
        sent_at=proposal.sent_at,
        items=[LineItemResponse.model_validate(item) for item in proposal.items],
    )


# ============================================================================
# Public Endpoints (no authentication)
# ============================================================================


@router.get(
    "/public/{token}",
    response_model=PublicProposalResponse,
    summary="View proposal via public link",
)
async def get_public_proposal(
    token: str,
    db: AsyncSession = Depends(get_db),
) -> PublicProposalResponse:
    """
    Public review page data. Draft proposals answer 404.
    """
    proposal = await ProposalService(db).get_public(token)
    return _public_response(proposal)


@router.post(
    "/public/{token}/accept",
    response_model=PublicProposalResponse,
    summary="Accept proposal via public link",
)
async def accept_public_proposal(
    token: str,
    db: AsyncSession = Depends(get_db),
) -> PublicProposalResponse:
    """
    Client acceptance (sent -> approved).

    Raises:
        ProposalNotFoundError (404): Unknown token or draft
        InvalidStateTransitionError (400): Not awaiting a decision
    """
    proposal = await ProposalService(db).accept_public(token)
    return _public_response(proposal)


# ============================================================================
# Proposal CRUD Endpoints
# ============================================================================


@router.post(
    "",
    response_model=ProposalResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create proposal",
)
async def create_proposal(
    data: ProposalCreate,
    agency: Agency = Depends(get_current_agency),
    db: AsyncSession = Depends(get_db),
) -> ProposalResponse:
    proposal = await ProposalService(db).create_proposal(agency, data)
    return ProposalResponse.model_validate(proposal)


@router.get(
    "",
    response_model=ProposalListResponse,
    summary="List proposals",
)
async def list_proposals(
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=500),
    status_filter: Optional[ProposalStatus] = Query(default=None, alias="status"),
    agency: Agency = Depends(get_current_agency),
    db: AsyncSession = Depends(get_db),
) -> ProposalListResponse:
    proposals, total = await ProposalService(db).list_proposals(
        agency.id, status=status_filter, skip=skip, limit=limit
    )
    return ProposalListResponse(
        items=[ProposalResponse.model_validate(p) for p in proposals],
        total=total,
        skip=skip,
        limit=limit,
    )


@router.get(
    "/{proposal_id}",
    response_model=ProposalResponse,
    summary="Get proposal",
)
async def get_proposal(
    proposal_id: int,
    agency: Agency = Depends(get_current_agency),
    db: AsyncSession = Depends(get_db),
) -> ProposalResponse:
    proposal = await ProposalService(db).get_proposal(agency.id, proposal_id)
    return ProposalResponse.model_validate(proposal)


@router.put(
    "/{proposal_id}",
    response_model=ProposalResponse,
    summary="Update draft proposal",
)
async def update_proposal(
    proposal_id: int,
    data: ProposalUpdate,
    agency: Agency = Depends(get_current_agency),
    db: AsyncSession = Depends(get_db),
) -> ProposalResponse:
    proposal = await ProposalService(db).update_proposal(
        agency.id, proposal_id, data.model_dump(exclude_unset=True)
    )
    return ProposalResponse.model_validate(proposal)


@router.delete(
    "/{proposal_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete draft proposal",
)
async def delete_proposal(
    proposal_id: int,
    agency: Agency = Depends(get_current_agency),
    db: AsyncSession = Depends(get_db),
) -> None:
    await ProposalService(db).delete_proposal(agency.id, proposal_id)


# ============================================================================
# Workflow Endpoints
# ============================================================================


@router.post(
    "/{proposal_id}/send",
    response_model=ProposalResponse,
    summary="Send proposal",
)
async def send_proposal(
    proposal_id: int,
    data: Optional[ProposalSendRequest] = None,
    agency: Agency = Depends(get_current_agency),
    db: AsyncSession = Depends(get_db),
) -> ProposalResponse:
    """
    Send a draft proposal and email the review link to the client.
    """
    send_email = data.send_email if data is not None else True
    proposal = await ProposalService(db).send(agency, proposal_id, send_email=send_email)
    return ProposalResponse.model_validate(proposal)


@router.post(
    "/{proposal_id}/approve",
    response_model=ProposalResponse,
    summary="Approve proposal",
)
async def approve_proposal(
    proposal_id: int,
    agency: Agency = Depends(get_current_agency),
    db: AsyncSession = Depends(get_db),
) -> ProposalResponse:
    proposal = await ProposalService(db).approve(agency.id, proposal_id)
    return ProposalResponse.model_validate(proposal)


@router.post(
    "/{proposal_id}/reject",
    response_model=ProposalResponse,
    summary="Reject proposal",
)
async def reject_proposal(
    proposal_id: int,
    agency: Agency = Depends(get_current_agency),
    db: AsyncSession = Depends(get_db),
) -> ProposalResponse:
    proposal = await ProposalService(db).reject(agency.id, proposal_id)
    return ProposalResponse.model_validate(proposal)


@router.post(
    "/{proposal_id}/convert-to-invoice",
    response_model=ProposalConvertResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Convert proposal to invoice",
)
async def convert_proposal(
    proposal_id: int,
    agency: Agency = Depends(get_current_agency),
    db: AsyncSession = Depends(get_db),
) -> ProposalConvertResponse:
    """
    Convert an approved proposal into a draft invoice.

    Raises:
        InvalidStateTransitionError (400): Proposal is not approved
        ProposalAlreadyConvertedError (400): details.invoice_id is the
            existing invoice
        InvoiceLimitReachedError (403): Monthly quota used up
    """
    invoice = await ProposalService(db).convert_to_invoice(agency, proposal_id)
    return ProposalConvertResponse(
        proposal_id=proposal_id,
        invoice_id=invoice.id,
        invoice_number=invoice.invoice_number,
    )
