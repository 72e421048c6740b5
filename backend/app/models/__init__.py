"""
Database models package.

WHY: Centralizing model imports ensures Alembic can discover all models
for migration generation and makes it easier to import models elsewhere.
"""

from app.models.base import Base, TimestampMixin, PrimaryKeyMixin
from app.models.agency import Agency
from app.models.client import Client
from app.models.invoice import Invoice, InvoiceItem, InvoiceStatus
from app.models.payment import Payment, PaymentMethod
from app.models.proposal import Proposal, ProposalItem, ProposalStatus
from app.models.service import Service, ServiceUnitType
from app.models.support_ticket import SupportTicket, TicketPriority

__all__ = [
    "Base",
    "TimestampMixin",
    "PrimaryKeyMixin",
    "Agency",
    "Client",
    "Invoice",
    "InvoiceItem",
    "InvoiceStatus",
    "Payment",
    "PaymentMethod",
    "Proposal",
    "ProposalItem",
    "ProposalStatus",
    "Service",
    "ServiceUnitType",
    "SupportTicket",
    "TicketPriority",
]
