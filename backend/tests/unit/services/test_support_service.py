"""
Tests for the support ticket service.
"""

import pytest

from app.core.config import settings
from app.core.exceptions import SupportTicketNotFoundError
from app.models.support_ticket import TicketPriority
from app.services.email import EmailResult, EmailService, EmailType, MockEmailProvider
from app.services.support_service import SupportService, priority_for_plan
from tests.factories import AgencyFactory


class FailingProvider(MockEmailProvider):
    async def send(self, message):
        return EmailResult(success=False, error="mailbox unavailable", provider="failing")


@pytest.mark.parametrize(
    "plan,priority",
    [
        ("freelancer", TicketPriority.NORMAL),
        ("starter", TicketPriority.NORMAL),
        ("growth", TicketPriority.HIGH),
        ("scale", TicketPriority.HIGH),
        (None, TicketPriority.NORMAL),
    ],
)
def test_priority_for_plan(plan, priority):
    assert priority_for_plan(plan) == priority


class TestCreateTicket:
    @pytest.mark.asyncio
    async def test_growth_ticket_is_high_priority_and_notifies_inbox(
        self, db_session, monkeypatch
    ):
        monkeypatch.setattr(settings, "SUPPORT_EMAIL", "support@billing.test")
        agency = await AgencyFactory.create(
            db_session, subscription_plan="growth", email="owner@studio.test"
        )

        ticket = await SupportService(db_session).create_ticket(
            agency, "Invoice numbers skipped", "INV-2024-0004 never appeared."
        )

        assert ticket.id is not None
        assert ticket.priority == TicketPriority.HIGH
        assert ticket.plan == "growth"
        assert ticket.email == "owner@studio.test"

        [sent] = MockEmailProvider.sent_emails
        assert sent.to_email == "support@billing.test"
        assert sent.reply_to == "owner@studio.test"
        assert sent.email_type == EmailType.SUPPORT_TICKET
        assert sent.subject == "New Support Ticket: Invoice numbers skipped"
        assert f"Ticket ID: {ticket.id}" in sent.text_content

    @pytest.mark.asyncio
    async def test_unknown_plan_is_recorded_as_freelancer(self, db_session):
        agency = await AgencyFactory.create(db_session, subscription_plan="legacy")

        ticket = await SupportService(db_session).create_ticket(agency, "Help", "Details")

        assert ticket.plan == "freelancer"
        assert ticket.priority == TicketPriority.NORMAL

    @pytest.mark.asyncio
    async def test_no_support_inbox_sends_nothing(self, db_session, monkeypatch):
        monkeypatch.setattr(settings, "SUPPORT_EMAIL", None)
        agency = await AgencyFactory.create(db_session)

        await SupportService(db_session).create_ticket(agency, "Help", "Details")

        assert MockEmailProvider.sent_emails == []

    @pytest.mark.asyncio
    async def test_failed_notification_still_files_ticket(self, db_session, monkeypatch):
        monkeypatch.setattr(settings, "SUPPORT_EMAIL", "support@billing.test")
        agency = await AgencyFactory.create(db_session)
        service = SupportService(db_session, email_service=EmailService(provider=FailingProvider()))

        ticket = await service.create_ticket(agency, "Help", "Details")

        tickets, total = await service.list_tickets(agency.id)
        assert total == 1
        assert tickets[0].id == ticket.id


class TestReadTickets:
    @pytest.mark.asyncio
    async def test_other_agency_ticket_is_not_found(self, db_session):
        owner = await AgencyFactory.create(db_session, user_id="owner")
        other = await AgencyFactory.create(db_session, user_id="other")
        service = SupportService(db_session)
        ticket = await service.create_ticket(owner, "Help", "Details")

        with pytest.raises(SupportTicketNotFoundError):
            await service.get_ticket(other.id, ticket.id)

        assert (await service.get_ticket(owner.id, ticket.id)).subject == "Help"
