"""
Payment model.

WHAT: One manually recorded payment against an invoice.

WHY: The payments ledger is the single source of truth for how much of
an invoice has been paid. There is no status column here and nothing
about payments is copied onto the invoice row.
"""

from datetime import datetime, date
from decimal import Decimal
from enum import Enum
from typing import Optional, TYPE_CHECKING
from sqlalchemy import (
    Column,
    Integer,
    Text,
    DateTime,
    Date,
    ForeignKey,
    Numeric,
    Enum as SQLEnum,
)
from sqlalchemy.orm import relationship, Mapped

from app.models.base import Base

if TYPE_CHECKING:
    from app.models.invoice import Invoice


class PaymentMethod(str, Enum):
    """How a payment was received."""

    CASH = "cash"
    BANK_TRANSFER = "bank_transfer"
    CARD = "card"
    OTHER = "other"


class Payment(Base):
    """
    Payment recorded against an invoice.

    Attributes:
        id: Primary key
        invoice_id: Invoice this payment belongs to
        amount: Positive amount, rounded to 2 decimals at storage
        payment_date: Date the money was received
        method: Payment method
        note: Optional free-form note
        created_at: Record creation timestamp
    """

    __tablename__ = "payments"

    id: Mapped[int] = Column(Integer, primary_key=True, index=True)
    invoice_id: Mapped[int] = Column(
        Integer,
        ForeignKey("invoices.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Invoice being paid",
    )
    amount: Mapped[Decimal] = Column(
        Numeric(12, 2),
        nullable=False,
        comment="Payment amount (> 0)",
    )
    payment_date: Mapped[date] = Column(
        Date,
        nullable=False,
        index=True,
        comment="Date the payment was received",
    )
    method: Mapped[PaymentMethod] = Column(
        SQLEnum(
            PaymentMethod,
            name="paymentmethod",
            create_type=False,
            values_callable=lambda enum: [e.value for e in enum],
        ),
        nullable=False,
        default=PaymentMethod.OTHER,
        comment="Payment method",
    )
    note: Mapped[Optional[str]] = Column(Text, nullable=True)
    created_at: Mapped[datetime] = Column(
        DateTime,
        nullable=False,
        default=datetime.utcnow,
    )

    invoice: Mapped["Invoice"] = relationship("Invoice", back_populates="payments")

    def __repr__(self) -> str:
        """String representation for debugging."""
        return f"<Payment(id={self.id}, invoice_id={self.invoice_id}, amount={self.amount})>"
