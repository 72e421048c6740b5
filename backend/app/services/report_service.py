"""
Report Service.

WHAT: Revenue overview, invoice status, payments and tax reports plus
the dashboard statistics.

WHY: Reports answer "what was billed and what came in" for a period.
They only look at finalized invoices: drafts are not financial documents
yet and voided invoices were cancelled. An invoice is dated by sent_at,
or created_at for rows that never recorded a send time.

HOW: Invoices and payments are loaded through the DAOs and every figure
goes through app.services.billing, so a report shows exactly the paid
amount and balance the invoice views show.
"""

import calendar
import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import ValidationError
from app.dao.invoice import InvoiceDAO
from app.dao.payment import PaymentDAO
from app.dao.proposal import ProposalDAO
from app.models.agency import Agency
from app.models.invoice import Invoice
from app.models.payment import PaymentMethod
from app.schemas.report import (
    DashboardStatsResponse,
    InvoiceStatusReportResponse,
    PaymentReportRow,
    PaymentsReportResponse,
    ReportPeriod,
    ReportRange,
    RevenueOverviewResponse,
    StatusBucket,
    TaxReportResponse,
)
from app.services.billing import (
    PaymentStatus,
    ZERO,
    compute_balance,
    round_money,
    summarize_invoice,
    tax_portion,
    to_decimal,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DateWindow:
    """Inclusive date range of a report."""

    range: ReportRange
    start: date
    end: date

    @property
    def start_at(self) -> datetime:
        return datetime.combine(self.start, datetime.min.time())

    @property
    def end_before(self) -> datetime:
        """Exclusive upper bound covering the whole end day."""
        return datetime.combine(self.end + timedelta(days=1), datetime.min.time())

    def as_period(self) -> ReportPeriod:
        return ReportPeriod(range=self.range, start_date=self.start, end_date=self.end)


def resolve_window(
    range: Optional[ReportRange] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    today: Optional[date] = None,
) -> DateWindow:
    """
    Turn a range preset or explicit dates into a DateWindow.

    this_month runs from the 1st to today, last_month covers the whole
    previous month. Explicit dates without a range mean custom.

    Raises:
        ValidationError: Missing custom dates or start_date after end_date
    """
    today = today or datetime.utcnow().date()
    if range is None:
        range = ReportRange.CUSTOM if (start_date or end_date) else ReportRange.THIS_MONTH

    if range == ReportRange.CUSTOM:
        if start_date is None or end_date is None:
            raise ValidationError(message="start_date and end_date required for custom range")
        if start_date > end_date:
            raise ValidationError(
                message="start_date must be before end_date",
                start_date=start_date.isoformat(),
                end_date=end_date.isoformat(),
            )
        return DateWindow(range=range, start=start_date, end=end_date)

    if range == ReportRange.LAST_MONTH:
        year, month = (today.year - 1, 12) if today.month == 1 else (today.year, today.month - 1)
        last_day = calendar.monthrange(year, month)[1]
        return DateWindow(range=range, start=date(year, month, 1), end=date(year, month, last_day))

    return DateWindow(range=range, start=today.replace(day=1), end=today)


class ReportService:
    """
    Service for billing reports.

    Usage:
        service = ReportService(session)
        window = resolve_window(ReportRange.LAST_MONTH)
        overview = await service.revenue_overview(agency, window)
    """

    def __init__(self, session: AsyncSession, now: Optional[datetime] = None):
        """
        Initialize ReportService.

        Args:
            session: Async database session
            now: Clock override (tests)
        """
        self.session = session
        self.invoice_dao = InvoiceDAO(session)
        self.payment_dao = PaymentDAO(session)
        self.proposal_dao = ProposalDAO(session)
        self._now = now

    def _currency(self, agency: Agency) -> str:
        return agency.currency or settings.DEFAULT_CURRENCY

    async def _invoices_in(self, agency: Agency, window: DateWindow) -> List[Invoice]:
        return await self.invoice_dao.list_finalized(
            agency.id, start=window.start_at, end=window.end_before
        )

    async def revenue_overview(self, agency: Agency, window: DateWindow) -> RevenueOverviewResponse:
        """
        Invoiced and collected in the window, plus the current outstanding balance.

        WHAT: total_invoiced sums finalized invoices dated in the window;
        total_collected sums payments dated in the window; outstanding is
        the balance due across all finalized invoices regardless of date.
        """
        in_range = await self._invoices_in(agency, window)
        total_invoiced = sum((round_money(inv.total) for inv in in_range), ZERO)

        payments = await self.payment_dao.list_for_agency_in_range(
            agency.id, start=window.start, end=window.end
        )
        total_collected = sum((to_decimal(p.amount) for p in payments), ZERO)

        outstanding = ZERO
        for invoice in await self.invoice_dao.list_finalized(agency.id):
            outstanding += compute_balance(invoice.total, invoice.payments).balance_due

        return RevenueOverviewResponse(
            period=window.as_period(),
            currency=self._currency(agency),
            total_invoiced=float(total_invoiced),
            total_collected=float(round_money(total_collected)),
            outstanding=float(outstanding),
            invoice_count=len(in_range),
        )

    async def invoice_status(self, agency: Agency, window: DateWindow) -> InvoiceStatusReportResponse:
        """
        Finalized invoices dated in the window grouped by payment status.
        """
        counts: Dict[PaymentStatus, int] = defaultdict(int)
        totals: Dict[PaymentStatus, Decimal] = defaultdict(lambda: ZERO)
        balances: Dict[PaymentStatus, Decimal] = defaultdict(lambda: ZERO)

        for invoice in await self._invoices_in(agency, window):
            balance = compute_balance(invoice.total, invoice.payments)
            counts[balance.status] += 1
            totals[balance.status] += round_money(invoice.total)
            balances[balance.status] += balance.balance_due

        def bucket(status: PaymentStatus) -> StatusBucket:
            return StatusBucket(
                count=counts[status],
                total=float(totals[status]),
                balance_due=float(balances[status]),
            )

        return InvoiceStatusReportResponse(
            period=window.as_period(),
            currency=self._currency(agency),
            unpaid=bucket(PaymentStatus.UNPAID),
            partially_paid=bucket(PaymentStatus.PARTIALLY_PAID),
            paid=bucket(PaymentStatus.PAID),
        )

    async def payments(
        self,
        agency: Agency,
        window: DateWindow,
        method: Optional[str] = None,
    ) -> PaymentsReportResponse:
        """
        Payments dated in the window, newest first.

        Args:
            agency: Caller's agency
            window: Date window
            method: Optional method filter; unknown values are ignored
        """
        method_filter = None
        if method:
            try:
                method_filter = PaymentMethod(method)
            except ValueError:
                method_filter = None

        payments = await self.payment_dao.list_for_agency_in_range(
            agency.id, start=window.start, end=window.end, method=method_filter
        )

        by_method: Dict[str, Decimal] = defaultdict(lambda: ZERO)
        rows = []
        total = ZERO
        for payment in payments:
            amount = round_money(payment.amount)
            total += amount
            by_method[payment.method.value] += amount
            invoice = payment.invoice
            rows.append(
                PaymentReportRow(
                    payment_id=payment.id,
                    invoice_id=invoice.id,
                    invoice_number=invoice.invoice_number,
                    client_name=invoice.client.name if invoice.client else None,
                    amount=float(amount),
                    payment_date=payment.payment_date,
                    method=payment.method.value,
                    note=payment.note,
                )
            )

        return PaymentsReportResponse(
            period=window.as_period(),
            currency=self._currency(agency),
            total_collected=float(total),
            by_method={key: float(value) for key, value in by_method.items()},
            payments=rows,
        )

    async def tax(self, agency: Agency, window: DateWindow) -> TaxReportResponse:
        """
        Tax invoiced and tax collected in the window.

        WHAT: tax_invoiced is the tax portion of each finalized invoice
        dated in the window. tax_collected apportions each payment dated
        in the window by its invoice's tax share, rounded once at the end.
        """
        in_range = await self._invoices_in(agency, window)
        tax_invoiced = sum((tax_portion(inv.total, inv.tax_rate) for inv in in_range), ZERO)
        taxable = sum(1 for inv in in_range if to_decimal(inv.tax_rate) > 0)

        tax_collected = Decimal("0")
        for payment in await self.payment_dao.list_for_agency_in_range(
            agency.id, start=window.start, end=window.end
        ):
            invoice = payment.invoice
            total = to_decimal(invoice.total)
            if total == 0:
                continue
            share = tax_portion(total, invoice.tax_rate) / total
            tax_collected += to_decimal(payment.amount) * share

        return TaxReportResponse(
            period=window.as_period(),
            currency=self._currency(agency),
            tax_invoiced=float(round_money(tax_invoiced)),
            tax_collected=float(round_money(tax_collected)),
            taxable_invoice_count=taxable,
        )

    async def dashboard_stats(self, agency: Agency) -> DashboardStatsResponse:
        """
        Headline numbers: collected, outstanding, overdue count, and
        invoice and proposal counts by status.

        WHAT: Invoice counts use the display status, so paid and partially
        paid invoices are reported as such rather than as "sent".
        """
        now = self._now or datetime.utcnow()
        invoices = await self.invoice_dao.list_for_agency(agency.id, limit=None)

        collected = ZERO
        outstanding = ZERO
        overdue = 0
        by_status: Dict[str, int] = defaultdict(int)
        for invoice in invoices:
            figures = summarize_invoice(invoice, now=now)
            by_status[figures.display_status] += 1
            if not invoice.is_finalized or figures.display_status == "void":
                continue
            collected += figures.paid_amount
            outstanding += figures.balance_due
            if figures.is_overdue:
                overdue += 1

        return DashboardStatsResponse(
            currency=self._currency(agency),
            total_collected=float(collected),
            outstanding_balance=float(outstanding),
            overdue_count=overdue,
            invoices_by_status=dict(by_status),
            proposals_by_status=await self.proposal_dao.count_by_status(agency.id),
        )
