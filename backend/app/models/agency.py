"""
Agency model (the tenant).

WHAT: SQLAlchemy model holding an agency's settings row.

WHY: Every billing record is scoped by agency id. The agency row also
carries the state that must change atomically at the data layer:
1. invoice_counter - sequential invoice numbering
2. usage_period / usage_count - monthly invoice quota ledger

HOW: One row per authenticated owner (user_id comes from the hosted
auth provider's token subject).
"""

from decimal import Decimal
from typing import Optional, List, TYPE_CHECKING
from sqlalchemy import Column, Integer, String, Numeric
from sqlalchemy.orm import relationship, Mapped

from app.models.base import Base, TimestampMixin, PrimaryKeyMixin

if TYPE_CHECKING:
    from app.models.client import Client
    from app.models.invoice import Invoice
    from app.models.proposal import Proposal


class Agency(Base, PrimaryKeyMixin, TimestampMixin):
    """
    Agency (tenant) settings.

    Attributes:
        id: Primary key
        user_id: Subject of the hosted auth provider's token
        agency_name: Display name used on invoices and emails
        email: Agency contact email
        currency: Default currency for new documents (takes precedence
            over a proposal's stored currency on conversion)
        default_tax_rate: Tax rate (fraction) prefilled on new documents
        subscription_plan: Plan key (freelancer, starter, growth, scale)
        invoice_counter: Last allocated invoice sequence number
        usage_period: Calendar month (YYYY-MM) the usage_count belongs to
        usage_count: Invoices created during usage_period
    """

    __tablename__ = "agencies"

    user_id: Mapped[str] = Column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
        comment="Auth provider subject owning this agency",
    )
    agency_name: Mapped[str] = Column(
        String(255),
        nullable=False,
        comment="Agency display name",
    )
    email: Mapped[Optional[str]] = Column(
        String(255),
        nullable=True,
        comment="Agency contact email",
    )
    currency: Mapped[Optional[str]] = Column(
        String(3),
        nullable=True,
        comment="Default ISO currency code",
    )
    default_tax_rate: Mapped[Decimal] = Column(
        Numeric(5, 4),
        nullable=False,
        default=0,
        comment="Default tax rate as a fraction (0.18 = 18%)",
    )
    subscription_plan: Mapped[Optional[str]] = Column(
        String(50),
        nullable=True,
        comment="Subscription plan key",
    )
    invoice_counter: Mapped[int] = Column(
        Integer,
        nullable=False,
        default=0,
        comment="Monotonic invoice sequence; only changed by atomic increment",
    )
    usage_period: Mapped[Optional[str]] = Column(
        String(7),
        nullable=True,
        comment="Month (YYYY-MM) that usage_count refers to",
    )
    usage_count: Mapped[int] = Column(
        Integer,
        nullable=False,
        default=0,
        comment="Invoices created in usage_period (deletions do not decrement)",
    )

    clients: Mapped[List["Client"]] = relationship(
        "Client",
        back_populates="agency",
        cascade="all, delete-orphan",
    )
    invoices: Mapped[List["Invoice"]] = relationship(
        "Invoice",
        back_populates="agency",
        cascade="all, delete-orphan",
    )
    proposals: Mapped[List["Proposal"]] = relationship(
        "Proposal",
        back_populates="agency",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        """String representation for debugging."""
        return f"<Agency(id={self.id}, name={self.agency_name}, plan={self.subscription_plan})>"

    def invoices_used_in(self, period: str) -> int:
        """
        Invoices counted against the quota for a given month.

        WHY: The ledger is only reset lazily, on the first allocation of a
        new month, so a stale period means nothing was used yet.

        Args:
            period: Month key in YYYY-MM format

        Returns:
            Number of invoices created in that month
        """
        if self.usage_period != period:
            return 0
        return self.usage_count or 0
