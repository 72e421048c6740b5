"""
Tests for the invoice service.

WHY: Covers numbering and quota on creation, the draft-only edits, and
the two paths into sent (finalize and send to customer).
"""

from datetime import datetime
from decimal import Decimal

import pytest

from app.core.exceptions import (
    EmailServiceError,
    InvalidStateTransitionError,
    InvoiceLimitReachedError,
    InvoiceNotFoundError,
    PreconditionFailedError,
    ValidationError,
)
from app.models.invoice import InvoiceStatus
from app.services.email import EmailResult, EmailService, MockEmailProvider
from app.services.invoice_service import InvoiceService, resolve_currency
from tests.factories import AgencyFactory, ClientFactory, InvoiceFactory, PaymentFactory

NOW = datetime(2024, 3, 10, 9, 30)

ITEMS = [
    {"title": "Discovery workshop", "quantity": Decimal("1"), "unit_price": Decimal("833.33")},
]


class FailingProvider(MockEmailProvider):
    """Provider whose sends always fail."""

    async def send(self, message):
        return EmailResult(success=False, error="mailbox unavailable", provider="failing")


class TestResolveCurrency:
    @pytest.mark.asyncio
    async def test_requested_wins(self, test_agency):
        assert resolve_currency("gbp", test_agency) == "GBP"

    @pytest.mark.asyncio
    async def test_agency_default(self, test_agency):
        assert resolve_currency(None, test_agency) == "EUR"


class TestCreateDraft:
    """Tests for numbering, totals and quota on creation."""

    @pytest.mark.asyncio
    async def test_creates_numbered_draft(self, db_session, test_agency):
        service = InvoiceService(db_session, now=NOW)

        invoice = await service.create_draft(
            test_agency, title="Website", items=ITEMS, tax_rate=Decimal("0.20")
        )

        assert invoice.invoice_number == "INV-2024-0001"
        assert invoice.status == InvoiceStatus.DRAFT
        assert invoice.total == Decimal("1000.00")
        assert invoice.currency == "EUR"
        assert [item.title for item in invoice.items] == ["Discovery workshop"]

    @pytest.mark.asyncio
    async def test_numbers_are_sequential(self, db_session, test_agency):
        service = InvoiceService(db_session, now=NOW)

        first = await service.create_draft(test_agency, title="A", items=ITEMS)
        second = await service.create_draft(test_agency, title="B", items=ITEMS)

        assert first.invoice_number == "INV-2024-0001"
        assert second.invoice_number == "INV-2024-0002"

    @pytest.mark.asyncio
    async def test_uses_agency_default_tax_rate(self, db_session):
        agency = await AgencyFactory.create(db_session, default_tax_rate=Decimal("0.10"))

        invoice = await InvoiceService(db_session, now=NOW).create_draft(
            agency, title="Retainer", items=[{"title": "Hours", "quantity": 10, "unit_price": 50}]
        )

        assert invoice.tax_rate == Decimal("0.10")
        assert invoice.total == Decimal("550.00")

    @pytest.mark.asyncio
    async def test_requires_items(self, db_session, test_agency):
        with pytest.raises(ValidationError):
            await InvoiceService(db_session, now=NOW).create_draft(test_agency, title="Empty", items=[])

    @pytest.mark.asyncio
    async def test_foreign_client_rejected(self, db_session, test_agency, other_agency):
        foreign = await ClientFactory.create(db_session, other_agency)

        with pytest.raises(ValidationError) as exc_info:
            await InvoiceService(db_session, now=NOW).create_draft(
                test_agency, title="X", items=ITEMS, client_id=foreign.id
            )

        assert exc_info.value.message == "Client not found"

    @pytest.mark.asyncio
    async def test_quota_blocks_creation(self, db_session):
        agency = await AgencyFactory.create(
            db_session, user_id="user-full", usage_period="2024-03", usage_count=10
        )

        with pytest.raises(InvoiceLimitReachedError):
            await InvoiceService(db_session, now=NOW).create_draft(agency, title="X", items=ITEMS)

    @pytest.mark.asyncio
    async def test_last_invoice_of_the_month_is_allowed(self, db_session):
        agency = await AgencyFactory.create(
            db_session, user_id="user-nine", usage_period="2024-03", usage_count=9
        )
        service = InvoiceService(db_session, now=NOW)

        await service.create_draft(agency, title="Tenth", items=ITEMS)

        with pytest.raises(InvoiceLimitReachedError):
            await service.create_draft(agency, title="Eleventh", items=ITEMS)

    @pytest.mark.asyncio
    async def test_deleting_a_draft_does_not_restore_quota(self, db_session):
        agency = await AgencyFactory.create(
            db_session, user_id="user-nine-b", usage_period="2024-03", usage_count=9
        )
        service = InvoiceService(db_session, now=NOW)

        invoice = await service.create_draft(agency, title="Tenth", items=ITEMS)
        await service.delete_invoice(agency.id, invoice.id)

        with pytest.raises(InvoiceLimitReachedError):
            await service.create_draft(agency, title="Again", items=ITEMS)


class TestDraftOperations:
    @pytest.mark.asyncio
    async def test_update_recomputes_total(self, db_session, test_agency):
        invoice = await InvoiceFactory.create(db_session, test_agency)

        updated = await InvoiceService(db_session, now=NOW).update_draft(
            test_agency.id,
            invoice.id,
            {
                "items": [{"title": "Audit", "quantity": Decimal("4"), "unit_price": Decimal("100")}],
                "tax_rate": Decimal("0.25"),
            },
        )

        assert updated.total == Decimal("500.00")
        assert len(updated.items) == 1

    @pytest.mark.asyncio
    async def test_total_cannot_drop_below_recorded_payments(self, db_session, test_agency):
        invoice = await InvoiceFactory.create(db_session, test_agency)
        await PaymentFactory.create(db_session, invoice, Decimal("900.00"))
        service = InvoiceService(db_session, now=NOW)

        with pytest.raises(ValidationError) as exc_info:
            await service.update_draft(
                test_agency.id,
                invoice.id,
                {"items": [{"title": "Audit", "unit_price": Decimal("100.00")}]},
            )

        assert exc_info.value.message == "Total cannot be less than payments already recorded"
        assert exc_info.value.context == {"total": "100.00", "paid_amount": "900.00"}
        unchanged = await service.get_invoice(test_agency.id, invoice.id)
        assert unchanged.total == Decimal("1000.00")
        assert len(unchanged.items) == 2

    @pytest.mark.asyncio
    async def test_total_may_equal_recorded_payments(self, db_session, test_agency):
        invoice = await InvoiceFactory.create(db_session, test_agency)
        await PaymentFactory.create(db_session, invoice, Decimal("900.00"))

        updated = await InvoiceService(db_session, now=NOW).update_draft(
            test_agency.id,
            invoice.id,
            {"items": [{"title": "Audit", "quantity": Decimal("3"), "unit_price": Decimal("300.00")}]},
        )

        assert updated.total == Decimal("900.00")
        assert updated.total >= sum(p.amount for p in updated.payments)

    @pytest.mark.asyncio
    async def test_sent_invoice_is_immutable(self, db_session, test_agency):
        invoice = await InvoiceFactory.create(db_session, test_agency, status=InvoiceStatus.SENT)
        service = InvoiceService(db_session, now=NOW)

        with pytest.raises(InvalidStateTransitionError):
            await service.update_draft(test_agency.id, invoice.id, {"title": "Changed"})
        with pytest.raises(InvalidStateTransitionError):
            await service.delete_invoice(test_agency.id, invoice.id)
        with pytest.raises(InvalidStateTransitionError):
            await service.attach_pdf(test_agency.id, invoice.id, "https://files.test/x.pdf")

    @pytest.mark.asyncio
    async def test_other_agency_gets_not_found(self, db_session, test_agency, other_agency):
        invoice = await InvoiceFactory.create(db_session, test_agency)

        with pytest.raises(InvoiceNotFoundError):
            await InvoiceService(db_session).get_invoice(other_agency.id, invoice.id)

    @pytest.mark.asyncio
    async def test_list_filters_by_status(self, db_session, test_agency):
        await InvoiceFactory.create(db_session, test_agency)
        await InvoiceFactory.create(db_session, test_agency, status=InvoiceStatus.SENT)

        invoices, total = await InvoiceService(db_session).list_invoices(
            test_agency.id, status=InvoiceStatus.SENT
        )

        assert total == 1
        assert invoices[0].status == InvoiceStatus.SENT


class TestFinalize:
    """Tests for draft -> sent through finalize."""

    @pytest.mark.asyncio
    async def test_requires_pdf(self, db_session, test_agency):
        invoice = await InvoiceFactory.create(db_session, test_agency)

        with pytest.raises(PreconditionFailedError) as exc_info:
            await InvoiceService(db_session, now=NOW).finalize(test_agency.id, invoice.id)

        assert exc_info.value.message.startswith("PDF required")

    @pytest.mark.asyncio
    async def test_finalize_sets_sent_at(self, db_session, test_agency):
        invoice = await InvoiceFactory.create(db_session, test_agency)
        service = InvoiceService(db_session, now=NOW)

        await service.attach_pdf(test_agency.id, invoice.id, "https://files.test/inv.pdf")
        finalized = await service.finalize(test_agency.id, invoice.id)

        assert finalized.status == InvoiceStatus.SENT
        assert finalized.sent_at == NOW

    @pytest.mark.asyncio
    async def test_second_finalize_rejected(self, db_session, test_agency):
        invoice = await InvoiceFactory.create(
            db_session, test_agency, status=InvoiceStatus.SENT, pdf_url="https://files.test/a.pdf"
        )

        with pytest.raises(InvalidStateTransitionError) as exc_info:
            await InvoiceService(db_session, now=NOW).finalize(test_agency.id, invoice.id)

        assert exc_info.value.message == "Invoice is already finalized"


class TestSendToCustomer:
    """Tests for emailing an invoice."""

    @pytest.mark.asyncio
    async def test_sends_email_and_marks_sent(self, db_session, test_agency):
        client = await ClientFactory.create(db_session, test_agency, email="ap@client.test")
        invoice = await InvoiceFactory.create(db_session, test_agency, client=client)

        sent = await InvoiceService(db_session, now=NOW).send_to_customer(test_agency, invoice.id)

        assert sent.status == InvoiceStatus.SENT
        assert sent.sent_at == NOW
        assert len(MockEmailProvider.sent_emails) == 1
        message = MockEmailProvider.sent_emails[0]
        assert message.to_email == "ap@client.test"
        assert invoice.invoice_number in message.subject
        assert message.reply_to == test_agency.email

    @pytest.mark.asyncio
    async def test_resend_keeps_first_sent_at(self, db_session, test_agency):
        client = await ClientFactory.create(db_session, test_agency)
        first_sent = datetime(2024, 1, 2, 8, 0)
        invoice = await InvoiceFactory.create(
            db_session, test_agency, client=client, status=InvoiceStatus.SENT, sent_at=first_sent
        )

        sent = await InvoiceService(db_session, now=NOW).send_to_customer(test_agency, invoice.id)

        assert sent.sent_at == first_sent

    @pytest.mark.asyncio
    async def test_requires_client_email(self, db_session, test_agency):
        client = await ClientFactory.create(db_session, test_agency, email=None)
        invoice = await InvoiceFactory.create(db_session, test_agency, client=client)

        with pytest.raises(PreconditionFailedError):
            await InvoiceService(db_session, now=NOW).send_to_customer(test_agency, invoice.id)

        assert MockEmailProvider.sent_emails == []

    @pytest.mark.asyncio
    async def test_void_invoice_cannot_be_sent(self, db_session, test_agency):
        client = await ClientFactory.create(db_session, test_agency)
        invoice = await InvoiceFactory.create(
            db_session, test_agency, client=client, status=InvoiceStatus.VOID
        )

        with pytest.raises(InvalidStateTransitionError):
            await InvoiceService(db_session, now=NOW).send_to_customer(test_agency, invoice.id)

    @pytest.mark.asyncio
    async def test_delivery_failure_keeps_sent_status(self, db_session, test_agency):
        client = await ClientFactory.create(db_session, test_agency)
        invoice = await InvoiceFactory.create(db_session, test_agency, client=client)
        service = InvoiceService(
            db_session, email_service=EmailService(provider=FailingProvider()), now=NOW
        )

        with pytest.raises(EmailServiceError):
            await service.send_to_customer(test_agency, invoice.id)

        db_session.expunge_all()
        reloaded = await service.get_invoice(test_agency.id, invoice.id)
        assert reloaded.status == InvoiceStatus.SENT


class TestVoid:
    @pytest.mark.asyncio
    async def test_void_keeps_number(self, db_session, test_agency):
        invoice = await InvoiceFactory.create(db_session, test_agency, status=InvoiceStatus.SENT)

        voided = await InvoiceService(db_session).void(test_agency.id, invoice.id)

        assert voided.status == InvoiceStatus.VOID
        assert voided.invoice_number == invoice.invoice_number

    @pytest.mark.asyncio
    async def test_void_twice_rejected(self, db_session, test_agency):
        invoice = await InvoiceFactory.create(db_session, test_agency, status=InvoiceStatus.VOID)

        with pytest.raises(InvalidStateTransitionError):
            await InvoiceService(db_session).void(test_agency.id, invoice.id)
