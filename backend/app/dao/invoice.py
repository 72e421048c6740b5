"""
Invoice Data Access Object (DAO).

WHAT: Database operations for the Invoice model.

WHY: The DAO pattern:
1. Separates data access from business logic
2. Provides a consistent API for invoice operations
3. Enforces agency-scoping for multi-tenancy
4. Encapsulates the report queries

HOW: Extends BaseDAO with invoice-specific queries:
- Status and client filtering for list views
- Finalized (sent, not void) invoices dated in a range for reports
- Status counts for the dashboard

Payment totals are never read from the invoice row; callers use the
loaded payments collection or PaymentDAO.sum_for_invoice.
"""

from datetime import datetime
from typing import Dict, List, Optional
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.dao.base import BaseDAO
from app.models.invoice import Invoice, InvoiceStatus


def invoice_date_column():
    """
    SQL expression for the date an invoice counts under in reports.

    WHY: Finalized invoices are dated when they were sent; older rows
    without sent_at fall back to their creation time.
    """
    return func.coalesce(Invoice.sent_at, Invoice.created_at)


class InvoiceDAO(BaseDAO[Invoice]):
    """
    Data Access Object for Invoice model.

    WHAT: Provides CRUD and query operations for invoices.

    HOW: Extends BaseDAO; items, payments and client are loaded with
    selectin so derived fields can be computed without lazy loads.
    """

    def __init__(self, session: AsyncSession):
        """
        Initialize InvoiceDAO.

        Args:
            session: Async database session
        """
        super().__init__(Invoice, session)

    async def get_by_invoice_number(
        self,
        invoice_number: str,
        agency_id: int,
    ) -> Optional[Invoice]:
        """
        Get an invoice by its invoice number.

        Args:
            invoice_number: The invoice number (e.g., INV-2024-0001)
            agency_id: Agency ID for security

        Returns:
            Invoice if found and belongs to agency, None otherwise
        """
        result = await self.session.execute(
            select(Invoice).where(
                Invoice.invoice_number == invoice_number,
                Invoice.agency_id == agency_id,
            )
        )
        return result.scalar_one_or_none()

    async def list_for_agency(
        self,
        agency_id: int,
        status: Optional[InvoiceStatus] = None,
        client_id: Optional[int] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[Invoice]:
        """
        List an agency's invoices, newest first.

        Args:
            agency_id: Owning agency
            status: Optional stored status filter
            client_id: Optional client filter
            skip: Pagination offset
            limit: Pagination limit

        Returns:
            List of invoices
        """
        query = select(Invoice).where(Invoice.agency_id == agency_id)
        if status is not None:
            query = query.where(Invoice.status == status)
        if client_id is not None:
            query = query.where(Invoice.client_id == client_id)

        result = await self.session.execute(
            query.order_by(Invoice.created_at.desc(), Invoice.id.desc()).offset(skip).limit(limit)
        )
        return list(result.scalars().all())

    async def list_finalized(
        self,
        agency_id: int,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> List[Invoice]:
        """
        Get finalized invoices, optionally dated within [start, end).

        WHAT: Invoices that are neither draft nor void.

        WHY: Drafts are not yet financial documents and voided invoices
        were cancelled, so neither counts towards any report.

        Args:
            agency_id: Owning agency
            start: Inclusive lower bound on the invoice date
            end: Exclusive upper bound on the invoice date

        Returns:
            List of invoices ordered by invoice date
        """
        invoice_date = invoice_date_column()
        query = select(Invoice).where(
            Invoice.agency_id == agency_id,
            Invoice.status == InvoiceStatus.SENT,
        )
        if start is not None:
            query = query.where(invoice_date >= start)
        if end is not None:
            query = query.where(invoice_date < end)

        result = await self.session.execute(query.order_by(invoice_date, Invoice.id))
        return list(result.scalars().all())

    async def count_by_status(self, agency_id: int) -> Dict[str, int]:
        """
        Get count of invoices by stored status for an agency.

        Returns:
            Dict mapping status value to count
        """
        result = await self.session.execute(
            select(Invoice.status, func.count(Invoice.id))
            .where(Invoice.agency_id == agency_id)
            .group_by(Invoice.status)
        )
        return {row[0].value: row[1] for row in result.all()}
