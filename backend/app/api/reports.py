"""
Reports API endpoints.

WHAT: Read-only billing reports and the dashboard statistics:
1. GET /reports/revenue-overview
2. GET /reports/invoice-status
3. GET /reports/payments
4. GET /reports/tax
5. GET /dashboard/stats

WHY: Reports only count finalized invoices (not draft, not void) and use
the same derived payment figures as the invoice views.

HOW: Every report accepts range=this_month|last_month|custom; custom
requires start_date and end_date (inclusive).
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.deps import get_current_agency
from app.db.session import get_db
from app.models.agency import Agency
from app.schemas.report import (
    DashboardStatsResponse,
    InvoiceStatusReportResponse,
    PaymentsReportResponse,
    ReportRange,
    RevenueOverviewResponse,
    TaxReportResponse,
)
from app.services.report_service import DateWindow, ReportService, resolve_window


router = APIRouter(prefix="/reports", tags=["reports"])
dashboard_router = APIRouter(prefix="/dashboard", tags=["dashboard"])


def report_window(
    range: Optional[ReportRange] = Query(default=None, description="Date range preset"),
    start_date: Optional[date] = Query(default=None, description="Custom range start (inclusive)"),
    end_date: Optional[date] = Query(default=None, description="Custom range end (inclusive)"),
) -> DateWindow:
    """Dependency resolving the report's date window."""
    return resolve_window(range=range, start_date=start_date, end_date=end_date)


@router.get("/revenue-overview", response_model=RevenueOverviewResponse)
async def revenue_overview(
    window: DateWindow = Depends(report_window),
    agency: Agency = Depends(get_current_agency),
    db: AsyncSession = Depends(get_db),
) -> RevenueOverviewResponse:
    """Total invoiced, total collected and outstanding balance."""
    return await ReportService(db).revenue_overview(agency, window)


@router.get("/invoice-status", response_model=InvoiceStatusReportResponse)
async def invoice_status_report(
    window: DateWindow = Depends(report_window),
    agency: Agency = Depends(get_current_agency),
    db: AsyncSession = Depends(get_db),
) -> InvoiceStatusReportResponse:
    """Invoices dated in range grouped by unpaid / partially paid / paid."""
    return await ReportService(db).invoice_status(agency, window)


@router.get("/payments", response_model=PaymentsReportResponse)
async def payments_report(
    method: Optional[str] = Query(default=None, description="Payment method filter"),
    window: DateWindow = Depends(report_window),
    agency: Agency = Depends(get_current_agency),
    db: AsyncSession = Depends(get_db),
) -> PaymentsReportResponse:
    """Payments dated in range with a per-method breakdown."""
    return await ReportService(db).payments(agency, window, method=method)


@router.get("/tax", response_model=TaxReportResponse)
async def tax_report(
    window: DateWindow = Depends(report_window),
    agency: Agency = Depends(get_current_agency),
    db: AsyncSession = Depends(get_db),
) -> TaxReportResponse:
    """Tax invoiced and tax collected in range."""
    return await ReportService(db).tax(agency, window)


@dashboard_router.get("/stats", response_model=DashboardStatsResponse)
async def dashboard_stats(
    agency: Agency = Depends(get_current_agency),
    db: AsyncSession = Depends(get_db),
) -> DashboardStatsResponse:
    return await ReportService(db).dashboard_stats(agency)
