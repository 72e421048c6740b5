"""
Support ticket model.

WHAT: A help request an agency owner files from inside the app.

WHY: Tickets are routed to the support inbox with the agency's plan
attached; paying plans (growth, scale) are answered first, so the
priority is derived from the plan when the ticket is filed and kept
even if the plan changes later.
"""

from enum import Enum
from typing import Optional
from sqlalchemy import Column, Integer, String, Text, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import Mapped

from app.models.base import Base, TimestampMixin, PrimaryKeyMixin


class TicketPriority(str, Enum):
    NORMAL = "normal"
    HIGH = "high"


class SupportTicket(Base, PrimaryKeyMixin, TimestampMixin):
    """Support request filed by an agency owner."""

    __tablename__ = "support_tickets"

    agency_id: Mapped[int] = Column(
        Integer,
        ForeignKey("agencies.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Agency that filed the ticket",
    )
    subject: Mapped[str] = Column(String(255), nullable=False)
    description: Mapped[str] = Column(Text, nullable=False)
    priority: Mapped[TicketPriority] = Column(
        SQLEnum(
            TicketPriority,
            name="ticketpriority",
            create_type=False,
            values_callable=lambda enum: [e.value for e in enum],
        ),
        nullable=False,
        default=TicketPriority.NORMAL,
    )
    plan: Mapped[str] = Column(
        String(50),
        nullable=False,
        comment="Plan key at the time the ticket was filed",
    )
    email: Mapped[Optional[str]] = Column(
        String(255),
        nullable=True,
        comment="Contact address for the reply",
    )

    def __repr__(self) -> str:
        return f"<SupportTicket(id={self.id}, priority={self.priority}, subject={self.subject})>"
