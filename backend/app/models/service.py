"""
Service catalogue model.

WHAT: An agency's reusable price templates ("Logo design, 1 project,
800.00").

WHY: Proposal and invoice items are typed from these templates but store
their own copy of title and price, so editing or deactivating a service
never changes an existing document.
"""

from decimal import Decimal
from enum import Enum
from typing import Optional
from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    Numeric,
    Boolean,
    ForeignKey,
    CheckConstraint,
    Enum as SQLEnum,
)
from sqlalchemy.orm import Mapped

from app.models.base import Base, TimestampMixin, PrimaryKeyMixin


class ServiceUnitType(str, Enum):
    """Unit a service is billed in."""

    HOURS = "hours"
    DAYS = "days"
    PROJECT = "project"
    ITEM = "item"


class Service(Base, PrimaryKeyMixin, TimestampMixin):
    """
    Agency-scoped price template.

    Attributes:
        id: Primary key
        agency_id: Owning agency
        name: Display name
        description: Optional longer text copied into item descriptions
        default_unit_price: Price per unit suggested for new items
        unit_type: hours, days, project or item
        currency: ISO currency code of the price
        is_active: Inactive services stay listed but are hidden from pickers
    """

    __tablename__ = "services"

    agency_id: Mapped[int] = Column(
        Integer,
        ForeignKey("agencies.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Owning agency",
    )
    name: Mapped[str] = Column(String(255), nullable=False)
    description: Mapped[Optional[str]] = Column(Text, nullable=True)
    default_unit_price: Mapped[Decimal] = Column(
        Numeric(12, 2),
        nullable=False,
        comment="Suggested price per unit (>= 0)",
    )
    unit_type: Mapped[ServiceUnitType] = Column(
        SQLEnum(
            ServiceUnitType,
            name="serviceunittype",
            create_type=False,
            values_callable=lambda enum: [e.value for e in enum],
        ),
        nullable=False,
    )
    currency: Mapped[str] = Column(String(3), nullable=False, default="USD")
    is_active: Mapped[bool] = Column(Boolean, nullable=False, default=True, index=True)

    __table_args__ = (
        CheckConstraint("default_unit_price >= 0", name="ck_services_price_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<Service(id={self.id}, name={self.name}, unit={self.unit_type})>"
