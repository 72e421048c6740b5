"""
Integration tests for the reports and dashboard API.

WHAT: Range handling and the figures of each report over HTTP.

WHY: Reports must ignore drafts and voided invoices, and the custom
range must be validated before any query runs.
"""

from datetime import datetime
from decimal import Decimal

import pytest
from httpx import AsyncClient

from app.models.invoice import InvoiceStatus
from app.models.payment import PaymentMethod
from app.models.proposal import ProposalStatus
from tests.factories import InvoiceFactory, PaymentFactory, ProposalFactory


@pytest.fixture
def today():
    return datetime.utcnow().date()


class TestReportRanges:
    @pytest.mark.asyncio
    async def test_custom_range_requires_dates(self, client: AsyncClient, auth_headers):
        response = await client.get(
            "/api/reports/revenue-overview?range=custom&start_date=2024-01-01",
            headers=auth_headers,
        )

        assert response.status_code == 400
        assert response.json()["message"] == "start_date and end_date required for custom range"

    @pytest.mark.asyncio
    async def test_custom_range_order(self, client: AsyncClient, auth_headers):
        response = await client.get(
            "/api/reports/revenue-overview?range=custom&start_date=2024-02-01&end_date=2024-01-01",
            headers=auth_headers,
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_unknown_preset(self, client: AsyncClient, auth_headers):
        response = await client.get("/api/reports/tax?range=forever", headers=auth_headers)

        assert response.status_code == 400
        assert response.json()["error"] == "ValidationError"

    @pytest.mark.asyncio
    async def test_default_is_this_month(self, client: AsyncClient, auth_headers, today):
        response = await client.get("/api/reports/revenue-overview", headers=auth_headers)

        assert response.status_code == 200
        period = response.json()["period"]
        assert period["range"] == "this_month"
        assert period["start_date"] == today.replace(day=1).isoformat()
        assert period["end_date"] == today.isoformat()

    @pytest.mark.asyncio
    async def test_requires_authentication(self, client: AsyncClient, test_agency):
        response = await client.get("/api/reports/revenue-overview")

        assert response.status_code == 401


class TestReportFigures:
    @pytest.mark.asyncio
    async def test_revenue_overview_and_status(
        self, client: AsyncClient, db_session, test_agency, auth_headers, today
    ):
        paid = await InvoiceFactory.create(db_session, test_agency, status=InvoiceStatus.SENT)
        partial = await InvoiceFactory.create(db_session, test_agency, status=InvoiceStatus.SENT)
        await InvoiceFactory.create(db_session, test_agency)
        await InvoiceFactory.create(db_session, test_agency, status=InvoiceStatus.VOID)
        await PaymentFactory.create(db_session, paid, Decimal("1000.00"), payment_date=today)
        await PaymentFactory.create(db_session, partial, Decimal("400.00"), payment_date=today)

        response = await client.get("/api/reports/revenue-overview", headers=auth_headers)
        data = response.json()
        assert data["currency"] == "EUR"
        assert data["invoice_count"] == 2
        assert data["total_invoiced"] == 2000.00
        assert data["total_collected"] == 1400.00
        assert data["outstanding"] == 600.00

        response = await client.get("/api/reports/invoice-status", headers=auth_headers)
        data = response.json()
        assert data["paid"]["count"] == 1
        assert data["partially_paid"] == {"count": 1, "total": 1000.00, "balance_due": 600.00}
        assert data["unpaid"]["count"] == 0

    @pytest.mark.asyncio
    async def test_payments_report_method_filter(
        self, client: AsyncClient, db_session, test_agency, auth_headers, today
    ):
        invoice = await InvoiceFactory.create(db_session, test_agency, status=InvoiceStatus.SENT)
        await PaymentFactory.create(db_session, invoice, Decimal("100.00"), payment_date=today)
        await PaymentFactory.create(
            db_session, invoice, Decimal("50.00"), payment_date=today, method=PaymentMethod.CASH
        )

        response = await client.get("/api/reports/payments", headers=auth_headers)
        data = response.json()
        assert data["total_collected"] == 150.00
        assert data["by_method"] == {"bank_transfer": 100.00, "cash": 50.00}
        assert data["payments"][0]["invoice_number"] == invoice.invoice_number

        response = await client.get("/api/reports/payments?method=cash", headers=auth_headers)
        assert response.json()["total_collected"] == 50.00

        response = await client.get("/api/reports/payments?method=barter", headers=auth_headers)
        assert response.json()["total_collected"] == 150.00

    @pytest.mark.asyncio
    async def test_tax_report(
        self, client: AsyncClient, db_session, test_agency, auth_headers, today
    ):
        invoice = await InvoiceFactory.create(
            db_session,
            test_agency,
            status=InvoiceStatus.SENT,
            items=[{"title": "Retainer", "unit_price": Decimal("1000.00")}],
            tax_rate=Decimal("0.20"),
        )
        await PaymentFactory.create(db_session, invoice, Decimal("600.00"), payment_date=today)

        response = await client.get("/api/reports/tax", headers=auth_headers)

        data = response.json()
        assert data["tax_invoiced"] == 200.00
        assert data["tax_collected"] == 100.00
        assert data["taxable_invoice_count"] == 1

    @pytest.mark.asyncio
    async def test_other_agency_sees_nothing(
        self, client: AsyncClient, db_session, test_agency, other_auth_headers
    ):
        await InvoiceFactory.create(db_session, test_agency, status=InvoiceStatus.SENT)

        response = await client.get("/api/reports/revenue-overview", headers=other_auth_headers)

        assert response.json()["total_invoiced"] == 0
        assert response.json()["currency"] == "USD"


class TestDashboard:
    @pytest.mark.asyncio
    async def test_dashboard_stats(self, client: AsyncClient, db_session, test_agency, auth_headers):
        overdue = await InvoiceFactory.create(
            db_session,
            test_agency,
            status=InvoiceStatus.SENT,
            due_date=datetime(2020, 1, 1).date(),
        )
        paid = await InvoiceFactory.create(db_session, test_agency, status=InvoiceStatus.SENT)
        await InvoiceFactory.create(db_session, test_agency)
        await PaymentFactory.create(db_session, paid, Decimal("1000.00"))
        await ProposalFactory.create(db_session, test_agency, status=ProposalStatus.SENT)

        response = await client.get("/api/dashboard/stats", headers=auth_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["total_collected"] == 1000.00
        assert data["outstanding_balance"] == 1000.00
        assert data["overdue_count"] == 1
        assert data["invoices_by_status"] == {"unpaid": 1, "paid": 1, "draft": 1}
        assert data["proposals_by_status"] == {"sent": 1}
        assert overdue.id != paid.id
