"""
Integration tests for the proposal API.

WHAT: Proposal CRUD, the send / decision workflow, the public review
link and conversion to an invoice.

WHY: Conversion is the only path that creates an invoice from another
record; it must happen exactly once and respect the monthly quota.
"""

import pytest
from httpx import AsyncClient

from app.dao.agency import usage_period_for
from app.core.auth import create_access_token
from app.models.proposal import ProposalStatus
from app.services.email import MockEmailProvider
from tests.factories import AgencyFactory, ClientFactory, ProposalFactory

PROPOSAL_PAYLOAD = {
    "title": "Brand refresh",
    "items": [
        {"title": "Logo", "quantity": 1, "unit_price": "1200.00"},
        {"title": "Guidelines", "quantity": 1, "unit_price": "300.00"},
    ],
    "tax_rate": "0.10",
    "notes": "Valid for 30 days",
}


class TestProposalCrud:
    @pytest.mark.asyncio
    async def test_create_and_get(self, client: AsyncClient, auth_headers):
        response = await client.post("/api/proposals", headers=auth_headers, json=PROPOSAL_PAYLOAD)

        assert response.status_code == 201
        created = response.json()
        assert created["status"] == "draft"
        assert created["total"] == 1650.00
        assert created["public_token"]
        assert created["converted_to_invoice_id"] is None
        assert len(created["items"]) == 2

        response = await client.get(f"/api/proposals/{created['id']}", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["title"] == "Brand refresh"

    @pytest.mark.asyncio
    async def test_list_is_agency_scoped(
        self, client: AsyncClient, db_session, test_agency, other_agency, auth_headers
    ):
        await ProposalFactory.create(db_session, test_agency)
        await ProposalFactory.create(db_session, test_agency, status=ProposalStatus.SENT)
        await ProposalFactory.create(db_session, other_agency)

        response = await client.get("/api/proposals", headers=auth_headers)
        assert response.json()["total"] == 2

        response = await client.get("/api/proposals?status=sent", headers=auth_headers)
        assert response.json()["total"] == 1

    @pytest.mark.asyncio
    async def test_update_draft(self, client: AsyncClient, db_session, test_agency, auth_headers):
        proposal = await ProposalFactory.create(db_session, test_agency)

        response = await client.put(
            f"/api/proposals/{proposal.id}",
            headers=auth_headers,
            json={"tax_rate": "0.25"},
        )

        assert response.status_code == 200
        assert response.json()["total"] == 1250.00

    @pytest.mark.asyncio
    async def test_sent_proposal_is_read_only(
        self, client: AsyncClient, db_session, test_agency, auth_headers
    ):
        proposal = await ProposalFactory.create(db_session, test_agency, status=ProposalStatus.SENT)

        response = await client.put(
            f"/api/proposals/{proposal.id}", headers=auth_headers, json={"title": "New"}
        )
        assert response.status_code == 400

        response = await client.delete(f"/api/proposals/{proposal.id}", headers=auth_headers)
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_delete_draft(self, client: AsyncClient, db_session, test_agency, auth_headers):
        proposal = await ProposalFactory.create(db_session, test_agency)

        response = await client.delete(f"/api/proposals/{proposal.id}", headers=auth_headers)

        assert response.status_code == 204

    @pytest.mark.asyncio
    async def test_other_agency_is_404(
        self, client: AsyncClient, db_session, test_agency, other_auth_headers
    ):
        proposal = await ProposalFactory.create(db_session, test_agency)

        response = await client.get(f"/api/proposals/{proposal.id}", headers=other_auth_headers)

        assert response.status_code == 404


class TestProposalWorkflow:
    @pytest.mark.asyncio
    async def test_send_emails_review_link(
        self, client: AsyncClient, db_session, test_agency, auth_headers
    ):
        customer = await ClientFactory.create(db_session, test_agency)
        proposal = await ProposalFactory.create(db_session, test_agency, client=customer)

        response = await client.post(f"/api/proposals/{proposal.id}/send", headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["status"] == "sent"
        assert response.json()["sent_at"] is not None
        assert len(MockEmailProvider.sent_emails) == 1
        assert f"/p/{proposal.public_token}" in MockEmailProvider.sent_emails[0].html_content

    @pytest.mark.asyncio
    async def test_send_without_email(
        self, client: AsyncClient, db_session, test_agency, auth_headers
    ):
        customer = await ClientFactory.create(db_session, test_agency)
        proposal = await ProposalFactory.create(db_session, test_agency, client=customer)

        response = await client.post(
            f"/api/proposals/{proposal.id}/send",
            headers=auth_headers,
            json={"send_email": False},
        )

        assert response.status_code == 200
        assert MockEmailProvider.sent_emails == []

    @pytest.mark.asyncio
    async def test_approve_and_reject(
        self, client: AsyncClient, db_session, test_agency, auth_headers
    ):
        approved = await ProposalFactory.create(db_session, test_agency, status=ProposalStatus.SENT)
        rejected = await ProposalFactory.create(db_session, test_agency, status=ProposalStatus.SENT)

        response = await client.post(f"/api/proposals/{approved.id}/approve", headers=auth_headers)
        assert response.json()["status"] == "approved"

        response = await client.post(f"/api/proposals/{rejected.id}/reject", headers=auth_headers)
        assert response.json()["status"] == "rejected"

        response = await client.post(f"/api/proposals/{rejected.id}/approve", headers=auth_headers)
        assert response.status_code == 400


class TestPublicProposal:
    """The unauthenticated review link."""

    @pytest.mark.asyncio
    async def test_view_and_accept(self, client: AsyncClient, db_session, test_agency):
        customer = await ClientFactory.create(db_session, test_agency, name="Jane Client")
        proposal = await ProposalFactory.create(
            db_session, test_agency, status=ProposalStatus.SENT, client=customer
        )

        response = await client.get(f"/api/proposals/public/{proposal.public_token}")
        assert response.status_code == 200
        data = response.json()
        assert data["agency_name"] == "Studio North"
        assert data["client_name"] == "Jane Client"
        assert data["total"] == 1000.00
        assert "id" not in data
        assert "public_token" not in data

        response = await client.post(f"/api/proposals/public/{proposal.public_token}/accept")
        assert response.status_code == 200
        assert response.json()["status"] == "approved"

        response = await client.post(f"/api/proposals/public/{proposal.public_token}/accept")
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_draft_is_hidden(self, client: AsyncClient, db_session, test_agency):
        proposal = await ProposalFactory.create(db_session, test_agency)

        response = await client.get(f"/api/proposals/public/{proposal.public_token}")

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_unknown_token(self, client: AsyncClient, test_agency):
        response = await client.get("/api/proposals/public/does-not-exist")

        assert response.status_code == 404


class TestConvertToInvoice:
    @pytest.mark.asyncio
    async def test_convert_once(self, client: AsyncClient, db_session, test_agency, auth_headers):
        proposal = await ProposalFactory.create(
            db_session, test_agency, status=ProposalStatus.APPROVED, currency="GBP"
        )

        response = await client.post(
            f"/api/proposals/{proposal.id}/convert-to-invoice", headers=auth_headers
        )
        assert response.status_code == 201
        converted = response.json()
        assert converted["proposal_id"] == proposal.id
        assert converted["invoice_number"].startswith("INV-")

        response = await client.get(f"/api/invoices/{converted['invoice_id']}", headers=auth_headers)
        invoice = response.json()
        assert invoice["status"] == "draft"
        assert invoice["total"] == 1000.00
        assert invoice["currency"] == "EUR"

        response = await client.post(
            f"/api/proposals/{proposal.id}/convert-to-invoice", headers=auth_headers
        )
        assert response.status_code == 400
        assert response.json()["error"] == "ProposalAlreadyConvertedError"
        assert response.json()["details"]["invoice_id"] == converted["invoice_id"]

    @pytest.mark.asyncio
    async def test_only_approved(self, client: AsyncClient, db_session, test_agency, auth_headers):
        proposal = await ProposalFactory.create(db_session, test_agency, status=ProposalStatus.SENT)

        response = await client.post(
            f"/api/proposals/{proposal.id}/convert-to-invoice", headers=auth_headers
        )

        assert response.status_code == 400
        assert response.json()["message"] == "Only approved proposals can be converted to invoices"

    @pytest.mark.asyncio
    async def test_quota_blocks_conversion(self, client: AsyncClient, db_session):
        agency = await AgencyFactory.create(
            db_session,
            user_id="user-full",
            usage_period=usage_period_for(),
            usage_count=10,
        )
        proposal = await ProposalFactory.create(db_session, agency, status=ProposalStatus.APPROVED)
        headers = {"Authorization": f"Bearer {create_access_token({'sub': agency.user_id})}"}

        response = await client.post(
            f"/api/proposals/{proposal.id}/convert-to-invoice", headers=headers
        )

        assert response.status_code == 403
        assert response.json()["error"] == "InvoiceLimitReachedError"

        response = await client.get(f"/api/proposals/{proposal.id}", headers=headers)
        assert response.json()["converted_to_invoice_id"] is None
