"""
Payment Data Access Object (DAO).

WHAT: Database operations for the payments ledger.

WHY: The ledger guards (amount <= balance) depend on summing the
payments that exist at the moment of the write, so the sums are
computed here in SQL rather than from a possibly stale collection.

HOW: Payments carry no agency_id of their own; ownership is always
resolved through the parent invoice.
"""

from datetime import date
from decimal import Decimal
from typing import List, Optional
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import contains_eager

from app.dao.base import BaseDAO
from app.models.invoice import Invoice, InvoiceStatus
from app.models.payment import Payment, PaymentMethod


class PaymentDAO(BaseDAO[Payment]):
    """
    Data Access Object for Payment model.
    """

    def __init__(self, session: AsyncSession):
        """
        Initialize PaymentDAO.

        Args:
            session: Async database session
        """
        super().__init__(Payment, session)

    async def get_by_id_and_agency(self, id: int, agency_id: int) -> Optional[Payment]:
        """
        Get a payment whose invoice belongs to the agency.

        WHY: A payment on another agency's invoice must look exactly like
        a missing payment.

        Args:
            id: Payment ID
            agency_id: Caller's agency

        Returns:
            Payment with its invoice loaded, or None
        """
        result = await self.session.execute(
            select(Payment)
            .join(Payment.invoice)
            .where(
                Payment.id == id,
                Invoice.agency_id == agency_id,
            )
            .options(contains_eager(Payment.invoice))
        )
        return result.scalar_one_or_none()

    async def list_for_invoice(self, invoice_id: int) -> List[Payment]:
        """
        List payments for an invoice, oldest first.

        Args:
            invoice_id: Invoice ID (ownership already verified)

        Returns:
            List of payments
        """
        result = await self.session.execute(
            select(Payment)
            .where(Payment.invoice_id == invoice_id)
            .order_by(Payment.payment_date, Payment.id)
        )
        return list(result.scalars().all())

    async def sum_for_invoice(
        self,
        invoice_id: int,
        exclude_payment_id: Optional[int] = None,
    ) -> Decimal:
        """
        Sum the recorded payments of an invoice.

        WHAT: Current paid amount, optionally excluding one payment.

        WHY: Editing a payment is validated against the sum of all the
        *other* payments, so the edited row is excluded.

        Args:
            invoice_id: Invoice ID
            exclude_payment_id: Payment to leave out of the sum

        Returns:
            Sum of amounts (0 if there are none)
        """
        query = select(func.coalesce(func.sum(Payment.amount), 0)).where(
            Payment.invoice_id == invoice_id
        )
        if exclude_payment_id is not None:
            query = query.where(Payment.id != exclude_payment_id)

        result = await self.session.execute(query)
        return Decimal(str(result.scalar_one()))

    async def list_for_agency_in_range(
        self,
        agency_id: int,
        start: Optional[date] = None,
        end: Optional[date] = None,
        method: Optional[PaymentMethod] = None,
    ) -> List[Payment]:
        """
        Payments received by an agency between two dates (inclusive).

        WHAT: Ledger rows for the payments and tax reports.

        HOW: Joins the invoice to scope by agency and to leave out
        payments on draft or voided invoices.

        Args:
            agency_id: Owning agency
            start: First payment date to include
            end: Last payment date to include
            method: Optional payment method filter

        Returns:
            List of payments with invoice (and its client) loaded
        """
        query = (
            select(Payment)
            .join(Payment.invoice)
            .where(
                Invoice.agency_id == agency_id,
                Invoice.status == InvoiceStatus.SENT,
            )
            .options(contains_eager(Payment.invoice))
        )
        if start is not None:
            query = query.where(Payment.payment_date >= start)
        if end is not None:
            query = query.where(Payment.payment_date <= end)
        if method is not None:
            query = query.where(Payment.method == method)

        result = await self.session.execute(
            query.order_by(Payment.payment_date.desc(), Payment.id.desc())
        )
        return list(result.unique().scalars().all())
