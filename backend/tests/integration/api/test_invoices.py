"""
Integration tests for the invoice API.

WHAT: Invoice CRUD, PDF registration and the finalize / send / void
workflow over HTTP.

WHY: These tests ensure:
1. Derived figures (balance, display status) are in every response
2. Sent invoices cannot be edited
3. Agency scoping hides other tenants' invoices (404, not 403)
4. The monthly quota answers 403 with usage details

HOW: Uses pytest-asyncio with AsyncClient for HTTP testing.
"""

from decimal import Decimal

import pytest
from httpx import AsyncClient

from app.dao.agency import usage_period_for
from app.models.invoice import InvoiceStatus
from app.services.email import MockEmailProvider
from tests.factories import AgencyFactory, ClientFactory, InvoiceFactory, PaymentFactory

INVOICE_PAYLOAD = {
    "title": "Website redesign",
    "items": [
        {"title": "Design", "quantity": 1, "unit_price": "833.33"},
    ],
    "tax_rate": "0.20",
    "due_date": "2030-01-31",
}


class TestInvoiceCreate:
    """Integration tests for invoice creation."""

    @pytest.mark.asyncio
    async def test_create_invoice(self, client: AsyncClient, auth_headers):
        response = await client.post("/api/invoices", headers=auth_headers, json=INVOICE_PAYLOAD)

        assert response.status_code == 201
        data = response.json()
        assert data["invoice_number"].startswith("INV-")
        assert data["status"] == "draft"
        assert data["display_status"] == "draft"
        assert data["subtotal"] == 833.33
        assert data["tax_amount"] == 166.67
        assert data["total"] == 1000.00
        assert data["balance_due"] == 1000.00
        assert data["currency"] == "EUR"
        assert data["is_editable"] is True

    @pytest.mark.asyncio
    async def test_requires_authentication(self, client: AsyncClient, test_agency):
        response = await client.post("/api/invoices", json=INVOICE_PAYLOAD)

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_invalid_token(self, client: AsyncClient, test_agency):
        response = await client.get(
            "/api/invoices", headers={"Authorization": "Bearer not-a-token"}
        )

        assert response.status_code == 401
        assert response.json()["error"] == "TokenInvalidError"

    @pytest.mark.asyncio
    async def test_empty_items_rejected(self, client: AsyncClient, auth_headers):
        response = await client.post(
            "/api/invoices", headers=auth_headers, json={**INVOICE_PAYLOAD, "items": []}
        )

        assert response.status_code == 400
        assert response.json()["error"] == "ValidationError"

    @pytest.mark.asyncio
    async def test_tax_rate_above_one_rejected(self, client: AsyncClient, auth_headers):
        response = await client.post(
            "/api/invoices", headers=auth_headers, json={**INVOICE_PAYLOAD, "tax_rate": "1.5"}
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_quota_exceeded(self, client: AsyncClient, db_session):
        agency = await AgencyFactory.create(
            db_session,
            user_id="user-at-limit",
            usage_period=usage_period_for(),
            usage_count=10,
        )
        from app.core.auth import create_access_token

        headers = {"Authorization": f"Bearer {create_access_token({'sub': agency.user_id})}"}

        response = await client.post("/api/invoices", headers=headers, json=INVOICE_PAYLOAD)

        assert response.status_code == 403
        data = response.json()
        assert data["error"] == "InvoiceLimitReachedError"
        assert data["details"] == {"limit": 10, "used": 10, "plan": "freelancer"}


class TestInvoiceRead:
    @pytest.mark.asyncio
    async def test_get_invoice_with_payments(
        self, client: AsyncClient, db_session, test_agency, auth_headers
    ):
        invoice = await InvoiceFactory.create(db_session, test_agency, status=InvoiceStatus.SENT)
        await PaymentFactory.create(db_session, invoice, Decimal("250.00"))

        response = await client.get(f"/api/invoices/{invoice.id}", headers=auth_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["paid_amount"] == 250.00
        assert data["balance_due"] == 750.00
        assert data["payment_status"] == "partially_paid"
        assert data["display_status"] == "partially_paid"

    @pytest.mark.asyncio
    async def test_other_agency_invoice_is_404(
        self, client: AsyncClient, db_session, test_agency, other_auth_headers
    ):
        invoice = await InvoiceFactory.create(db_session, test_agency)

        response = await client.get(f"/api/invoices/{invoice.id}", headers=other_auth_headers)

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_list_with_status_filter(
        self, client: AsyncClient, db_session, test_agency, other_agency, auth_headers
    ):
        await InvoiceFactory.create(db_session, test_agency)
        await InvoiceFactory.create(db_session, test_agency, status=InvoiceStatus.SENT)
        await InvoiceFactory.create(db_session, other_agency, status=InvoiceStatus.SENT)

        response = await client.get("/api/invoices?status=sent", headers=auth_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        assert data["items"][0]["status"] == "sent"


class TestInvoiceUpdate:
    @pytest.mark.asyncio
    async def test_update_draft_items(
        self, client: AsyncClient, db_session, test_agency, auth_headers
    ):
        invoice = await InvoiceFactory.create(db_session, test_agency)

        response = await client.put(
            f"/api/invoices/{invoice.id}",
            headers=auth_headers,
            json={"items": [{"title": "Hosting", "quantity": 12, "unit_price": "20.00"}]},
        )

        assert response.status_code == 200
        assert response.json()["total"] == 240.00
        assert response.json()["title"] == invoice.title

    @pytest.mark.asyncio
    async def test_sent_invoice_cannot_be_updated(
        self, client: AsyncClient, db_session, test_agency, auth_headers
    ):
        invoice = await InvoiceFactory.create(db_session, test_agency, status=InvoiceStatus.SENT)

        response = await client.put(
            f"/api/invoices/{invoice.id}", headers=auth_headers, json={"title": "Renamed"}
        )

        assert response.status_code == 400
        assert response.json()["error"] == "InvalidStateTransitionError"

    @pytest.mark.asyncio
    async def test_delete_draft(self, client: AsyncClient, db_session, test_agency, auth_headers):
        invoice = await InvoiceFactory.create(db_session, test_agency)

        response = await client.delete(f"/api/invoices/{invoice.id}", headers=auth_headers)
        assert response.status_code == 204

        response = await client.get(f"/api/invoices/{invoice.id}", headers=auth_headers)
        assert response.status_code == 404


class TestInvoiceWorkflow:
    """Finalize, send and void over HTTP."""

    @pytest.mark.asyncio
    async def test_finalize_requires_pdf(
        self, client: AsyncClient, db_session, test_agency, auth_headers
    ):
        invoice = await InvoiceFactory.create(db_session, test_agency)

        response = await client.post(f"/api/invoices/{invoice.id}/finalize", headers=auth_headers)

        assert response.status_code == 400
        assert response.json()["error"] == "PreconditionFailedError"

    @pytest.mark.asyncio
    async def test_pdf_then_finalize(
        self, client: AsyncClient, db_session, test_agency, auth_headers
    ):
        invoice = await InvoiceFactory.create(db_session, test_agency)

        response = await client.put(
            f"/api/invoices/{invoice.id}/pdf",
            headers=auth_headers,
            json={"pdf_url": "https://files.test/invoice.pdf"},
        )
        assert response.status_code == 200

        response = await client.post(f"/api/invoices/{invoice.id}/finalize", headers=auth_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "sent"
        assert data["display_status"] == "unpaid"
        assert data["sent_at"] is not None
        assert data["is_editable"] is False

        response = await client.post(f"/api/invoices/{invoice.id}/finalize", headers=auth_headers)
        assert response.status_code == 400
        assert response.json()["message"] == "Invoice is already finalized"

    @pytest.mark.asyncio
    async def test_send_to_customer(
        self, client: AsyncClient, db_session, test_agency, auth_headers
    ):
        customer = await ClientFactory.create(db_session, test_agency, email="ap@client.test")
        invoice = await InvoiceFactory.create(db_session, test_agency, client=customer)

        response = await client.post(f"/api/invoices/{invoice.id}/send", headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["status"] == "sent"
        assert response.json()["client_name"] == customer.name
        assert [m.to_email for m in MockEmailProvider.sent_emails] == ["ap@client.test"]

    @pytest.mark.asyncio
    async def test_send_without_client_email(
        self, client: AsyncClient, db_session, test_agency, auth_headers
    ):
        invoice = await InvoiceFactory.create(db_session, test_agency)

        response = await client.post(f"/api/invoices/{invoice.id}/send", headers=auth_headers)

        assert response.status_code == 400
        assert response.json()["error"] == "PreconditionFailedError"

    @pytest.mark.asyncio
    async def test_void(self, client: AsyncClient, db_session, test_agency, auth_headers):
        invoice = await InvoiceFactory.create(db_session, test_agency, status=InvoiceStatus.SENT)

        response = await client.post(f"/api/invoices/{invoice.id}/void", headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["display_status"] == "void"
