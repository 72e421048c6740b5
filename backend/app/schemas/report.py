"""
Report schemas for the billing reports and the dashboard.

WHAT: Response shapes of the revenue overview, invoice status, payments
and tax reports, and of the dashboard statistics.

WHY: Every report excludes draft and voided invoices and uses the same
derived figures as the invoice views.
"""

from datetime import date
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class ReportRange(str, Enum):
    """Date range presets for reports."""

    THIS_MONTH = "this_month"
    LAST_MONTH = "last_month"
    CUSTOM = "custom"


class ReportPeriod(BaseModel):
    """Resolved reporting period (inclusive dates)."""

    range: ReportRange
    start_date: date
    end_date: date


class RevenueOverviewResponse(BaseModel):
    """Invoiced, collected and outstanding amounts."""

    period: ReportPeriod
    currency: str
    total_invoiced: float = Field(..., description="Totals of finalized invoices dated in range")
    total_collected: float = Field(..., description="Payments dated in range")
    outstanding: float = Field(..., description="Balance due across all finalized invoices")
    invoice_count: int


class StatusBucket(BaseModel):
    """Count and amounts for one payment status."""

    count: int
    total: float
    balance_due: float


class InvoiceStatusReportResponse(BaseModel):
    """Finalized invoices dated in range grouped by payment status."""

    period: ReportPeriod
    currency: str
    unpaid: StatusBucket
    partially_paid: StatusBucket
    paid: StatusBucket


class PaymentReportRow(BaseModel):
    """One payment in the payments report."""

    payment_id: int
    invoice_id: int
    invoice_number: str
    client_name: Optional[str]
    amount: float
    payment_date: date
    method: str
    note: Optional[str]


class PaymentsReportResponse(BaseModel):
    """Payments dated in range."""

    period: ReportPeriod
    currency: str
    total_collected: float
    by_method: Dict[str, float]
    payments: List[PaymentReportRow]


class TaxReportResponse(BaseModel):
    """Tax invoiced and tax collected in range."""

    period: ReportPeriod
    currency: str
    tax_invoiced: float
    tax_collected: float
    taxable_invoice_count: int


class DashboardStatsResponse(BaseModel):
    """Headline numbers for the agency dashboard."""

    currency: str
    total_collected: float
    outstanding_balance: float
    overdue_count: int
    invoices_by_status: Dict[str, int]
    proposals_by_status: Dict[str, int]
