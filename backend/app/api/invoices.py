"""
Invoice management API endpoints.

WHAT: RESTful API for invoice CRUD, the invoice workflow and the
payments recorded against an invoice.

WHY: Invoices are the agency's financial documents:
1. Drafts are created manually or from approved proposals
2. Finalizing requires the externally rendered PDF
3. Sending emails the client a pay link
4. Payments are recorded manually and drive the derived status

HOW: FastAPI router with:
- Agency-scoped queries (multi-tenancy); foreign ids answer 404
- Derived payment fields computed on every response
- Payment endpoints nested under the invoice
"""

from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.deps import get_current_agency
from app.db.session import get_db
from app.models.agency import Agency
from app.models.invoice import InvoiceStatus
from app.schemas.invoice import (
    InvoiceCreate,
    InvoiceUpdate,
    InvoicePdfUpdate,
    InvoiceResponse,
    InvoiceListResponse,
)
from app.schemas.payment import PaymentCreate, PaymentResponse, PaymentListResponse
from app.services.invoice_service import InvoiceService
from app.services.payment_service import PaymentService


router = APIRouter(prefix="/invoices", tags=["invoices"])


# ============================================================================
# Invoice CRUD Endpoints
# ============================================================================


@router.post(
    "",
    response_model=InvoiceResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create invoice",
    description="Create a draft invoice manually (counts against the monthly quota)",
)
async def create_invoice(
    data: InvoiceCreate,
    agency: Agency = Depends(get_current_agency),
    db: AsyncSession = Depends(get_db),
) -> InvoiceResponse:
    """
    Create a new invoice manually.

    Raises:
        ValidationError (400): Invalid items, tax rate or client
        InvoiceLimitReachedError (403): Monthly quota used up
    """
    invoice = await InvoiceService(db).create_invoice(agency, data)
    return InvoiceResponse.from_invoice(invoice)


@router.get(
    "",
    response_model=InvoiceListResponse,
    summary="List invoices",
)
async def list_invoices(
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=500),
    status_filter: Optional[InvoiceStatus] = Query(
        default=None,
        alias="status",
        description="Stored status (draft, sent, void)",
    ),
    client_id: Optional[int] = Query(default=None),
    agency: Agency = Depends(get_current_agency),
    db: AsyncSession = Depends(get_db),
) -> InvoiceListResponse:
    """List the agency's invoices, newest first."""
    invoices, total = await InvoiceService(db).list_invoices(
        agency.id, status=status_filter, client_id=client_id, skip=skip, limit=limit
    )
    return InvoiceListResponse(
        items=[InvoiceResponse.from_invoice(invoice) for invoice in invoices],
        total=total,
        skip=skip,
        limit=limit,
    )


@router.get(
    "/{invoice_id}",
    response_model=InvoiceResponse,
    summary="Get invoice",
)
async def get_invoice(
    invoice_id: int,
    agency: Agency = Depends(get_current_agency),
    db: AsyncSession = Depends(get_db),
) -> InvoiceResponse:
    invoice = await InvoiceService(db).get_invoice(agency.id, invoice_id)
    return InvoiceResponse.from_invoice(invoice)


@router.put(
    "/{invoice_id}",
    response_model=InvoiceResponse,
    summary="Update draft invoice",
)
async def update_invoice(
    invoice_id: int,
    data: InvoiceUpdate,
    agency: Agency = Depends(get_current_agency),
    db: AsyncSession = Depends(get_db),
) -> InvoiceResponse:
    """
    Update a draft invoice.

    WHY: Only provided fields change; replacing items recomputes the total.

    Raises:
        InvalidStateTransitionError (400): Invoice is not a draft
    """
    invoice = await InvoiceService(db).update_draft(
        agency.id, invoice_id, data.model_dump(exclude_unset=True)
    )
    return InvoiceResponse.from_invoice(invoice)


@router.delete(
    "/{invoice_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete draft invoice",
)
async def delete_invoice(
    invoice_id: int,
    agency: Agency = Depends(get_current_agency),
    db: AsyncSession = Depends(get_db),
) -> None:
    await InvoiceService(db).delete_invoice(agency.id, invoice_id)


# ============================================================================
# Workflow Endpoints
# ============================================================================


@router.put(
    "/{invoice_id}/pdf",
    response_model=InvoiceResponse,
    summary="Register PDF",
    description="Record the URL of the PDF produced by the renderer",
)
async def register_pdf(
    invoice_id: int,
    data: InvoicePdfUpdate,
    agency: Agency = Depends(get_current_agency),
    db: AsyncSession = Depends(get_db),
) -> InvoiceResponse:
    invoice = await InvoiceService(db).attach_pdf(agency.id, invoice_id, data.pdf_url)
    return InvoiceResponse.from_invoice(invoice)


@router.post(
    "/{invoice_id}/finalize",
    response_model=InvoiceResponse,
    summary="Finalize invoice",
)
async def finalize_invoice(
    invoice_id: int,
    agency: Agency = Depends(get_current_agency),
    db: AsyncSession = Depends(get_db),
) -> InvoiceResponse:
    """
    Finalize a draft invoice (draft -> sent).

    Raises:
        InvalidStateTransitionError (400): Already finalized
        PreconditionFailedError (400): No PDF registered
    """
    invoice = await InvoiceService(db).finalize(agency.id, invoice_id)
    return InvoiceResponse.from_invoice(invoice)


@router.post(
    "/{invoice_id}/send",
    response_model=InvoiceResponse,
    summary="Send invoice to client",
)
async def send_invoice(
    invoice_id: int,
    agency: Agency = Depends(get_current_agency),
    db: AsyncSession = Depends(get_db),
) -> InvoiceResponse:
    """
    Email the invoice to its client and mark it sent.

    Raises:
        PreconditionFailedError (400): Client has no email
        EmailServiceError (502): Delivery failed (status stays sent)
    """
    invoice = await InvoiceService(db).send_to_customer(agency, invoice_id)
    return InvoiceResponse.from_invoice(invoice)


@router.post(
    "/{invoice_id}/void",
    response_model=InvoiceResponse,
    summary="Void invoice",
)
async def void_invoice(
    invoice_id: int,
    agency: Agency = Depends(get_current_agency),
    db: AsyncSession = Depends(get_db),
) -> InvoiceResponse:
    invoice = await InvoiceService(db).void(agency.id, invoice_id)
    return InvoiceResponse.from_invoice(invoice)


# ============================================================================
# Payment Endpoints
# ============================================================================


@router.get(
    "/{invoice_id}/payments",
    response_model=PaymentListResponse,
    summary="List invoice payments",
)
async def list_invoice_payments(
    invoice_id: int,
    agency: Agency = Depends(get_current_agency),
    db: AsyncSession = Depends(get_db),
) -> PaymentListResponse:
    invoice, payments, balance = await PaymentService(db).list_payments(agency.id, invoice_id)
    return PaymentListResponse(
        payments=[PaymentResponse.model_validate(p) for p in payments],
        total=float(invoice.total),
        paid_amount=float(balance.paid_amount),
        balance_due=float(balance.balance_due),
        payment_status=balance.status,
    )


@router.post(
    "/{invoice_id}/payments",
    response_model=PaymentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Record payment",
)
async def record_payment(
    invoice_id: int,
    data: PaymentCreate,
    agency: Agency = Depends(get_current_agency),
    db: AsyncSession = Depends(get_db),
) -> PaymentResponse:
    """
    Record a manual payment.

    Raises:
        ValidationError (400): Non-positive amount, missing date, amount
            above the balance due
        InvoiceNotFoundError (404): Unknown or foreign invoice
    """
    payment = await PaymentService(db).add_payment(
        agency_id=agency.id,
        invoice_id=invoice_id,
        amount=data.amount,
        payment_date=data.payment_date,
        method=data.method,
        note=data.note,
    )
    return PaymentResponse.model_validate(payment)
