"""
Invoice model for billing and payment tracking.

WHAT: SQLAlchemy models for invoices and their line items.

WHY: Invoices are the financial documents an agency sends to clients:
1. Track amounts owed (total derived from line items and tax rate)
2. Move through a one-way workflow (draft -> sent)
3. Reference the externally rendered PDF artifact
4. Collect payments recorded in the payments ledger

HOW: Only the workflow state is stored. Whether an invoice is paid,
partially paid or overdue is always derived from the payments table
(see app.services.billing), never persisted, so it cannot drift from
the ledger.
"""

import secrets
from datetime import datetime, date
from decimal import Decimal
from enum import Enum
from typing import Optional, List, TYPE_CHECKING
from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    DateTime,
    Date,
    ForeignKey,
    Numeric,
    UniqueConstraint,
    Enum as SQLEnum,
)
from sqlalchemy.orm import relationship, Mapped

from app.models.base import Base

if TYPE_CHECKING:
    from app.models.agency import Agency
    from app.models.client import Client
    from app.models.payment import Payment


class InvoiceStatus(str, Enum):
    """
    Stored invoice workflow status.

    WHAT: Enumeration of persisted invoice states.

    WHY: Only the workflow is stored:
    - DRAFT: Editable, not yet finalized
    - SENT: Finalized (PDF generated) and/or emailed to the client
    - VOID: Cancelled; excluded from reports, accepts no payments

    Paid / partially paid / overdue are derived at read time.
    """

    DRAFT = "draft"
    SENT = "sent"
    VOID = "void"


def generate_public_token() -> str:
    """Random token for the public invoice link."""
    return secrets.token_hex(16)


class Invoice(Base):
    """
    Invoice model for billing and payments.

    Attributes:
        id: Primary key
        agency_id: Owning agency (tenant scope)
        invoice_number: Sequential, agency-scoped (INV-YYYY-NNNN)
        title: Invoice title
        client_id: Billed client (optional)
        status: Stored workflow status
        currency: ISO currency code
        tax_rate: Tax rate as a fraction in [0, 1]
        total: Computed total (subtotal + rounded tax)
        due_date: Optional payment due date
        notes: Free-form notes
        pdf_url: Reference to the rendered PDF artifact
        public_token: Token for the public invoice page
        sent_at: Set exactly once, when the invoice first leaves draft
    """

    __tablename__ = "invoices"
    __table_args__ = (
        UniqueConstraint("agency_id", "invoice_number", name="uq_invoices_agency_number"),
    )

    id: Mapped[int] = Column(Integer, primary_key=True, index=True)

    agency_id: Mapped[int] = Column(
        Integer,
        ForeignKey("agencies.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Agency (for queries and access control)",
    )
    invoice_number: Mapped[str] = Column(
        String(50),
        nullable=False,
        index=True,
        comment="Agency-scoped invoice number (e.g., INV-2024-0001)",
    )
    title: Mapped[str] = Column(
        String(255),
        nullable=False,
        comment="Invoice title",
    )
    client_id: Mapped[Optional[int]] = Column(
        Integer,
        ForeignKey("clients.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
        comment="Billed client",
    )
    proposal_id: Mapped[Optional[int]] = Column(
        Integer,
        nullable=True,
        index=True,
        comment="Source proposal when created by conversion",
    )

    # WHY: values_callable stores the lowercase value, not the enum name
    status: Mapped[InvoiceStatus] = Column(
        SQLEnum(
            InvoiceStatus,
            name="invoicestatus",
            create_type=False,
            values_callable=lambda enum: [e.value for e in enum],
        ),
        nullable=False,
        default=InvoiceStatus.DRAFT,
        index=True,
        comment="Stored workflow status",
    )

    currency: Mapped[str] = Column(
        String(3),
        nullable=False,
        default="USD",
        comment="ISO currency code",
    )
    tax_rate: Mapped[Decimal] = Column(
        Numeric(5, 4),
        nullable=False,
        default=0,
        comment="Tax rate snapshot as a fraction",
    )
    total: Mapped[Decimal] = Column(
        Numeric(12, 2),
        nullable=False,
        default=0,
        comment="round(subtotal + subtotal * tax_rate, 2)",
    )

    due_date: Mapped[Optional[date]] = Column(
        Date,
        nullable=True,
        comment="Payment due date",
    )
    notes: Mapped[Optional[str]] = Column(
        Text,
        nullable=True,
        comment="Notes printed on the invoice",
    )
    pdf_url: Mapped[Optional[str]] = Column(
        Text,
        nullable=True,
        comment="URL of the generated PDF (required to finalize)",
    )
    public_token: Mapped[str] = Column(
        String(64),
        nullable=False,
        unique=True,
        default=generate_public_token,
        comment="Token for the public invoice page",
    )
    sent_at: Mapped[Optional[datetime]] = Column(
        DateTime,
        nullable=True,
        comment="When the invoice was finalized/sent (set once)",
    )

    created_at: Mapped[datetime] = Column(
        DateTime,
        nullable=False,
        default=datetime.utcnow,
        comment="Record creation timestamp",
    )
    updated_at: Mapped[datetime] = Column(
        DateTime,
        nullable=False,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        comment="Last modification timestamp",
    )

    agency: Mapped["Agency"] = relationship("Agency", back_populates="invoices")
    client: Mapped[Optional["Client"]] = relationship("Client", lazy="selectin")
    items: Mapped[List["InvoiceItem"]] = relationship(
        "InvoiceItem",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceItem.position",
        lazy="selectin",
    )
    payments: Mapped[List["Payment"]] = relationship(
        "Payment",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="Payment.payment_date",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        """String representation for debugging."""
        return f"<Invoice(id={self.id}, number={self.invoice_number}, status={self.status})>"

    @property
    def is_editable(self) -> bool:
        """
        Check if invoice can be edited.

        WHY: Once an invoice leaves draft it is a sent financial document
        and must not change.

        Returns:
            True if invoice is in DRAFT status
        """
        return self.status == InvoiceStatus.DRAFT

    @property
    def is_finalized(self) -> bool:
        """True once the invoice has left draft (sent or void)."""
        return self.status != InvoiceStatus.DRAFT

    @classmethod
    def generate_invoice_number(cls, sequence: int, year: Optional[int] = None) -> str:
        """
        Generate a human-readable invoice number.

        HOW: Format INV-YYYY-NNNN where NNNN is the zero-padded agency
        sequence returned by the atomic counter.

        Args:
            sequence: Sequence number allocated for this invoice
            year: Year to stamp (defaults to current UTC year)

        Returns:
            Formatted invoice number string
        """
        year = year or datetime.utcnow().year
        return f"INV-{year}-{sequence:04d}"


class InvoiceItem(Base):
    """
    Invoice line item.

    WHY: Items are snapshots. Items copied from a proposal are independent
    rows, so later proposal edits never affect the invoice.
    """

    __tablename__ = "invoice_items"

    id: Mapped[int] = Column(Integer, primary_key=True, index=True)
    invoice_id: Mapped[int] = Column(
        Integer,
        ForeignKey("invoices.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title: Mapped[str] = Column(String(255), nullable=False)
    description: Mapped[Optional[str]] = Column(Text, nullable=True)
    quantity: Mapped[Decimal] = Column(Numeric(12, 2), nullable=False, default=1)
    unit_price: Mapped[Decimal] = Column(Numeric(12, 2), nullable=False, default=0)
    position: Mapped[int] = Column(Integer, nullable=False, default=0)

    invoice: Mapped["Invoice"] = relationship("Invoice", back_populates="items")

    def __repr__(self) -> str:
        return f"<InvoiceItem(id={self.id}, title={self.title})>"
