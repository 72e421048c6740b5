"""
Data Access Object (DAO) package.

WHY: DAOs provide a clean separation between database operations and business logic,
making the codebase more testable and maintainable.
"""

from app.dao.base import BaseDAO
from app.dao.agency import AgencyDAO
from app.dao.client import ClientDAO
from app.dao.invoice import InvoiceDAO
from app.dao.payment import PaymentDAO
from app.dao.proposal import ProposalDAO
from app.dao.service import ServiceDAO
from app.dao.support_ticket import SupportTicketDAO

__all__ = [
    "BaseDAO",
    "AgencyDAO",
    "ClientDAO",
    "InvoiceDAO",
    "PaymentDAO",
    "ProposalDAO",
    "ServiceDAO",
    "SupportTicketDAO",
]
