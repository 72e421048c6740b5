"""
Invoice schemas for API request/response validation.

WHAT: Pydantic schemas for invoice data validation.

WHY: Schemas provide:
1. Type-safe request/response handling
2. Automatic validation with clear error messages
3. OpenAPI documentation generation

Derived figures (paid amount, balance due, payment and display status,
overdue flag) are computed on every response by app.services.billing
and are never accepted as input.

HOW: Uses Pydantic v2 with Field validators and model_config.
"""

from datetime import datetime, date
from decimal import Decimal
from typing import Optional, List

from pydantic import BaseModel, Field, ConfigDict

from app.models.invoice import Invoice, InvoiceStatus
from app.services.billing import PaymentStatus, summarize_invoice


# ============================================================================
# Line Items
# ============================================================================


class LineItemInput(BaseModel):
    """
    A line item on an invoice or proposal.

    WHY: Shared by invoices and proposals so both compute totals the
    same way.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(default=None, max_length=5000)
    quantity: Decimal = Field(default=Decimal("1"), ge=0, description="Quantity")
    unit_price: Decimal = Field(..., ge=0, description="Price per unit")


class LineItemResponse(BaseModel):
    """Line item as stored."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: Optional[str]
    quantity: float
    unit_price: float
    position: int


# ============================================================================
# Request Schemas
# ============================================================================


class InvoiceCreate(BaseModel):
    """
    Schema for creating an invoice manually.

    WHY: Invoices are also created by proposal conversion; manual creation
    covers one-off charges. Both paths are counted against the plan's
    monthly invoice quota.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(..., min_length=1, max_length=255, description="Invoice title")
    client_id: Optional[int] = Field(default=None, description="Billed client")
    items: List[LineItemInput] = Field(..., min_length=1, description="Line items")
    tax_rate: Optional[Decimal] = Field(
        default=None,
        ge=0,
        le=1,
        description="Tax rate as a fraction (defaults to the agency's rate)",
    )
    currency: Optional[str] = Field(
        default=None,
        min_length=3,
        max_length=3,
        description="ISO currency code (defaults to the agency's currency)",
    )
    due_date: Optional[date] = Field(default=None, description="Payment due date")
    notes: Optional[str] = Field(default=None, max_length=5000)


class InvoiceUpdate(BaseModel):
    """
    Schema for updating an invoice (draft only).

    WHY: Replacing items recomputes the total; sent invoices are immutable.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    client_id: Optional[int] = None
    items: Optional[List[LineItemInput]] = Field(default=None, min_length=1)
    tax_rate: Optional[Decimal] = Field(default=None, ge=0, le=1)
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)
    due_date: Optional[date] = None
    notes: Optional[str] = Field(default=None, max_length=5000)


class InvoicePdfUpdate(BaseModel):
    """Registers the URL of the PDF produced by the external renderer."""

    pdf_url: str = Field(..., min_length=1, max_length=2048)


# ============================================================================
# Response Schemas
# ============================================================================


class InvoiceResponse(BaseModel):
    """
    Schema for invoice response data.

    WHY: Complete invoice data for display including the derived
    payment figures.
    """

    model_config = ConfigDict(from_attributes=True)

    id: int
    invoice_number: str
    title: str
    status: InvoiceStatus

    client_id: Optional[int]
    client_name: Optional[str] = None
    proposal_id: Optional[int]

    currency: str
    tax_rate: float
    subtotal: float
    tax_amount: float
    total: float

    # Derived
    paid_amount: float
    balance_due: float
    payment_status: PaymentStatus
    display_status: str
    is_overdue: bool
    is_editable: bool

    due_date: Optional[date]
    notes: Optional[str]
    pdf_url: Optional[str]
    public_token: str
    sent_at: Optional[datetime]
    created_at: datetime
    updated_at: datetime

    items: List[LineItemResponse] = []

    @classmethod
    def from_invoice(cls, invoice: Invoice, now: Optional[datetime] = None) -> "InvoiceResponse":
        """
        Build a response from an invoice with items and payments loaded.
        """
        figures = summarize_invoice(invoice, now=now)
        return cls(
            id=invoice.id,
            invoice_number=invoice.invoice_number,
            title=invoice.title,
            status=invoice.status,
            client_id=invoice.client_id,
            client_name=invoice.client.name if invoice.client else None,
            proposal_id=invoice.proposal_id,
            currency=invoice.currency,
            tax_rate=float(invoice.tax_rate),
            subtotal=float(figures.subtotal),
            tax_amount=float(figures.tax_amount),
            total=float(figures.total),
            paid_amount=float(figures.paid_amount),
            balance_due=float(figures.balance_due),
            payment_status=figures.payment_status,
            display_status=figures.display_status,
            is_overdue=figures.is_overdue,
            is_editable=invoice.is_editable,
            due_date=invoice.due_date,
            notes=invoice.notes,
            pdf_url=invoice.pdf_url,
            public_token=invoice.public_token,
            sent_at=invoice.sent_at,
            created_at=invoice.created_at,
            updated_at=invoice.updated_at,
            items=[LineItemResponse.model_validate(item) for item in invoice.items],
        )


class InvoiceListResponse(BaseModel):
    """
    Paginated list response for invoices.
    """

    items: List[InvoiceResponse]
    total: int
    skip: int
    limit: int
