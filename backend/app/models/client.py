"""
Client model.

WHAT: A customer of an agency; the recipient of proposals and invoices.

WHY: Invoice delivery needs the client's email address, and reports
show client names next to payments.
"""

from typing import Optional, TYPE_CHECKING
from sqlalchemy import Column, Integer, String, ForeignKey
from sqlalchemy.orm import relationship, Mapped

from app.models.base import Base, TimestampMixin, PrimaryKeyMixin

if TYPE_CHECKING:
    from app.models.agency import Agency


class Client(Base, PrimaryKeyMixin, TimestampMixin):
    """Agency-scoped client record."""

    __tablename__ = "clients"

    agency_id: Mapped[int] = Column(
        Integer,
        ForeignKey("agencies.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Owning agency",
    )
    name: Mapped[str] = Column(String(255), nullable=False, comment="Client name")
    email: Mapped[Optional[str]] = Column(
        String(255),
        nullable=True,
        comment="Billing email (required to send invoices)",
    )
    company: Mapped[Optional[str]] = Column(String(255), nullable=True, comment="Company name")

    agency: Mapped["Agency"] = relationship("Agency", back_populates="clients")

    def __repr__(self) -> str:
        """String representation for debugging."""
        return f"<Client(id={self.id}, name={self.name})>"
