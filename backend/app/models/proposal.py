"""
Proposal model for client quotes.

WHAT: SQLAlchemy models for proposals and their line items.

WHY: Proposals precede invoices in the agency workflow:
1. Agency drafts a proposal with line items
2. Proposal is sent to the client (public link)
3. Client approves or rejects it
4. An approved proposal is converted, exactly once, into a draft invoice

HOW: converted_to_invoice_id is a one-way pointer written only by the
conversion; once set, the proposal can never be converted again.
"""

import secrets
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional, List, TYPE_CHECKING
from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    DateTime,
    ForeignKey,
    Numeric,
    Enum as SQLEnum,
)
from sqlalchemy.orm import relationship, Mapped

from app.models.base import Base, TimestampMixin, PrimaryKeyMixin

if TYPE_CHECKING:
    from app.models.agency import Agency
    from app.models.client import Client


class ProposalStatus(str, Enum):
    """
    Proposal workflow status.

    Transitions:
    - DRAFT -> SENT (send)
    - SENT -> APPROVED | REJECTED (agency decision or public acceptance)
    """

    DRAFT = "draft"
    SENT = "sent"
    APPROVED = "approved"
    REJECTED = "rejected"


class Proposal(Base, PrimaryKeyMixin, TimestampMixin):
    """
    Proposal (quote) sent to a client.

    Attributes:
        agency_id: Owning agency
        title: Proposal title
        client_id: Recipient client (optional)
        status: Workflow status
        currency: Currency stored on the proposal (agency default wins
            when converting)
        tax_rate: Tax rate as a fraction
        total: Computed total
        notes: Free-form notes
        public_token: Token for the public acceptance link
        sent_at: When the proposal was sent
        converted_to_invoice_id: Invoice created from this proposal
    """

    __tablename__ = "proposals"

    agency_id: Mapped[int] = Column(
        Integer,
        ForeignKey("agencies.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Owning agency",
    )
    title: Mapped[str] = Column(String(255), nullable=False, comment="Proposal title")
    client_id: Mapped[Optional[int]] = Column(
        Integer,
        ForeignKey("clients.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
        comment="Recipient client",
    )
    status: Mapped[ProposalStatus] = Column(
        SQLEnum(
            ProposalStatus,
            name="proposalstatus",
            create_type=False,
            values_callable=lambda enum: [e.value for e in enum],
        ),
        nullable=False,
        default=ProposalStatus.DRAFT,
        index=True,
        comment="Workflow status",
    )
    currency: Mapped[Optional[str]] = Column(String(3), nullable=True, comment="ISO currency code")
    tax_rate: Mapped[Decimal] = Column(Numeric(5, 4), nullable=False, default=0)
    total: Mapped[Decimal] = Column(Numeric(12, 2), nullable=False, default=0)
    notes: Mapped[Optional[str]] = Column(Text, nullable=True)
    public_token: Mapped[str] = Column(
        String(64),
        nullable=False,
        unique=True,
        default=lambda: secrets.token_hex(16),
        comment="Token for the public acceptance page",
    )
    sent_at: Mapped[Optional[datetime]] = Column(DateTime, nullable=True)
    converted_to_invoice_id: Mapped[Optional[int]] = Column(
        Integer,
        ForeignKey("invoices.id", ondelete="SET NULL"),
        nullable=True,
        unique=True,
        comment="Invoice created from this proposal (set once)",
    )

    agency: Mapped["Agency"] = relationship("Agency", back_populates="proposals")
    client: Mapped[Optional["Client"]] = relationship("Client", lazy="selectin")
    items: Mapped[List["ProposalItem"]] = relationship(
        "ProposalItem",
        back_populates="proposal",
        cascade="all, delete-orphan",
        order_by="ProposalItem.position",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        """String representation for debugging."""
        return f"<Proposal(id={self.id}, title={self.title}, status={self.status})>"

    @property
    def is_editable(self) -> bool:
        """Proposals can only be edited while in draft."""
        return self.status == ProposalStatus.DRAFT

    @property
    def is_converted(self) -> bool:
        return self.converted_to_invoice_id is not None


class ProposalItem(Base):
    """Proposal line item (copied into invoice items on conversion)."""

    __tablename__ = "proposal_items"

    id: Mapped[int] = Column(Integer, primary_key=True, index=True)
    proposal_id: Mapped[int] = Column(
        Integer,
        ForeignKey("proposals.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title: Mapped[str] = Column(String(255), nullable=False)
    description: Mapped[Optional[str]] = Column(Text, nullable=True)
    quantity: Mapped[Decimal] = Column(Numeric(12, 2), nullable=False, default=1)
    unit_price: Mapped[Decimal] = Column(Numeric(12, 2), nullable=False, default=0)
    position: Mapped[int] = Column(Integer, nullable=False, default=0)

    proposal: Mapped["Proposal"] = relationship("Proposal", back_populates="items")
