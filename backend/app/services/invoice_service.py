"""
Invoice lifecycle service.

WHAT: Creation, draft editing, PDF registration, finalization, delivery,
voiding and reads for invoices.

WHY: Invoices move one way through their workflow:
1. draft - editable; created manually or by proposal conversion
2. sent - finalized and/or emailed; immutable from here on
3. void - cancelled; accepts no payments, excluded from reports

Nothing ever moves an invoice back to draft. Paid and overdue are not
workflow states; they are derived from the payments ledger on read.

HOW: finalize() and send_to_customer() each check their own
preconditions and then go through _mark_sent(), the single place the
stored status becomes sent. sent_at is written only the first time.
"""

import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import (
    EmailServiceError,
    InvalidStateTransitionError,
    InvoiceNotFoundError,
    PreconditionFailedError,
    ValidationError,
)
from app.dao.agency import AgencyDAO
from app.dao.client import ClientDAO
from app.dao.invoice import InvoiceDAO
from app.dao.payment import PaymentDAO
from app.models.agency import Agency
from app.models.invoice import Invoice, InvoiceItem, InvoiceStatus
from app.services.billing import compute_totals, round_money, summarize_invoice, to_decimal
from app.services.email import EmailService, get_email_service
from app.services.subscription_service import SubscriptionService, invoice_limit_error

logger = logging.getLogger(__name__)


def _item_value(item: Any, name: str) -> Any:
    if isinstance(item, dict):
        return item.get(name)
    return getattr(item, name)


def build_items(items: Iterable[Any]) -> List[InvoiceItem]:
    """
    Snapshot line items (schemas, dicts or proposal items) as invoice items.

    WHY: Invoice items are independent rows; nothing references the
    source they were copied from.
    """
    rows = []
    for position, item in enumerate(items):
        quantity = _item_value(item, "quantity")
        rows.append(
            InvoiceItem(
                title=_item_value(item, "title"),
                description=_item_value(item, "description"),
                quantity=to_decimal(quantity if quantity is not None else 1),
                unit_price=to_decimal(_item_value(item, "unit_price")),
                position=position,
            )
        )
    return rows


def resolve_currency(requested: Optional[str], agency: Agency) -> str:
    """Currency for a new invoice: request, then agency default, then settings."""
    return (requested or agency.currency or settings.DEFAULT_CURRENCY).upper()


def format_amount(value: Any) -> str:
    return f"{to_decimal(value):,.2f}"


class InvoiceService:
    """
    Service for invoice operations.

    Usage:
        service = InvoiceService(session)
        invoice = await service.create_invoice(agency, data)
        await service.attach_pdf(agency.id, invoice.id, "https://...")
        await service.finalize(agency.id, invoice.id)
    """

    def __init__(
        self,
        session: AsyncSession,
        email_service: Optional[EmailService] = None,
        subscription_service: Optional[SubscriptionService] = None,
        now: Optional[datetime] = None,
    ):
        """
        Initialize InvoiceService.

        Args:
            session: Async database session
            email_service: Email service (defaults to the global instance)
            subscription_service: Quota checks
            now: Clock override (tests)
        """
        self.session = session
        self.invoice_dao = InvoiceDAO(session)
        self.payment_dao = PaymentDAO(session)
        self.agency_dao = AgencyDAO(session)
        self.client_dao = ClientDAO(session)
        self._email_service = email_service
        self._now = now
        self.subscriptions = subscription_service or SubscriptionService(now=now)

    @property
    def email_service(self) -> EmailService:
        if self._email_service is None:
            self._email_service = get_email_service()
        return self._email_service

    def _utcnow(self) -> datetime:
        return self._now or datetime.utcnow()

    # =========================================================================
    # Creation
    # =========================================================================

    async def _validate_client(self, client_id: Optional[int], agency_id: int) -> None:
        if client_id is None:
            return
        client = await self.client_dao.get_by_id_and_agency(client_id, agency_id)
        if client is None:
            raise ValidationError(message="Client not found", client_id=client_id)

    async def allocate_number(self, agency: Agency) -> str:
        """
        Check the quota and allocate the next invoice number.

        WHAT: Pre-checks the plan limit, then bumps the agency counters in
        one UPDATE. The usage returned by that statement is checked again
        so concurrent creations cannot push an agency past its limit; the
        surrounding transaction discards the increment in that case.

        Raises:
            InvoiceLimitReachedError: If the monthly quota is used up
        """
        self.subscriptions.ensure_can_create_invoice(agency)

        sequence, used = await self.agency_dao.allocate_invoice_number(agency.id, now=self._now)
        usage = self.subscriptions.get_invoice_usage(agency)
        if usage.limit is not None and used > usage.limit:
            logger.warning(
                "Concurrent invoice creation exceeded limit for agency %s (%s/%s)",
                agency.id,
                used,
                usage.limit,
            )
            raise invoice_limit_error(usage)

        return Invoice.generate_invoice_number(sequence, year=self._utcnow().year)

    async def create_draft(
        self,
        agency: Agency,
        title: str,
        items: Iterable[Any],
        tax_rate: Optional[Decimal] = None,
        currency: Optional[str] = None,
        client_id: Optional[int] = None,
        due_date: Optional[date] = None,
        notes: Optional[str] = None,
        proposal_id: Optional[int] = None,
    ) -> Invoice:
        """
        Create a draft invoice from line items.

        WHAT: Shared by manual creation and proposal conversion. Counts
        against the monthly quota and allocates the invoice number.

        Args:
            agency: Owning agency
            title: Invoice title
            items: Line items (title, description, quantity, unit_price)
            tax_rate: Fraction in [0, 1] (defaults to the agency's rate)
            currency: Requested currency (see resolve_currency)
            client_id: Billed client
            due_date: Due date
            notes: Notes
            proposal_id: Source proposal for converted invoices

        Returns:
            The created draft Invoice with items loaded

        Raises:
            ValidationError: Empty items, bad tax rate, unknown client
            InvoiceLimitReachedError: Monthly quota used up
        """
        items = list(items)
        if not items:
            raise ValidationError(message="At least one line item is required")

        rate = to_decimal(tax_rate if tax_rate is not None else agency.default_tax_rate)
        totals = compute_totals(items, rate)
        await self._validate_client(client_id, agency.id)

        invoice_number = await self.allocate_number(agency)

        invoice = Invoice(
            agency_id=agency.id,
            invoice_number=invoice_number,
            title=title,
            client_id=client_id,
            proposal_id=proposal_id,
            status=InvoiceStatus.DRAFT,
            currency=resolve_currency(currency, agency),
            tax_rate=rate,
            total=totals.total,
            due_date=due_date,
            notes=notes,
            items=build_items(items),
        )
        self.session.add(invoice)
        await self.session.flush()

        logger.info(
            "Created draft invoice %s for agency %s (total %s %s)",
            invoice_number,
            agency.id,
            invoice.currency,
            totals.total,
        )
        return await self.invoice_dao.reload(invoice.id)

    async def create_invoice(self, agency: Agency, data: Any) -> Invoice:
        """
        Create an invoice manually from an InvoiceCreate payload.
        """
        return await self.create_draft(
            agency,
            title=data.title,
            items=data.items,
            tax_rate=data.tax_rate,
            currency=data.currency,
            client_id=data.client_id,
            due_date=data.due_date,
            notes=data.notes,
        )

    # =========================================================================
    # Reads
    # =========================================================================

    async def get_invoice(self, agency_id: int, invoice_id: int) -> Invoice:
        """
        Get an agency's invoice.

        Raises:
            InvoiceNotFoundError: Missing or owned by another agency
        """
        invoice = await self.invoice_dao.get_by_id_and_agency(invoice_id, agency_id)
        if invoice is None:
            raise InvoiceNotFoundError(invoice_id=invoice_id)
        return invoice

    async def list_invoices(
        self,
        agency_id: int,
        status: Optional[InvoiceStatus] = None,
        client_id: Optional[int] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> Tuple[List[Invoice], int]:
        """
        List invoices with the total count for pagination.

        Returns:
            Tuple of (invoices, total matching)
        """
        invoices = await self.invoice_dao.list_for_agency(
            agency_id, status=status, client_id=client_id, skip=skip, limit=limit
        )
        filters: Dict[str, Any] = {"agency_id": agency_id}
        if status is not None:
            filters["status"] = status
        if client_id is not None:
            filters["client_id"] = client_id
        total = await self.invoice_dao.count(**filters)
        return invoices, total

    # =========================================================================
    # Draft operations
    # =========================================================================

    def _require_draft(self, invoice: Invoice, action: str) -> None:
        if not invoice.is_editable:
            raise InvalidStateTransitionError(
                message=f"Only draft invoices can be {action}",
                invoice_id=invoice.id,
                status=invoice.status.value,
            )

    async def update_draft(
        self,
        agency_id: int,
        invoice_id: int,
        changes: Dict[str, Any],
    ) -> Invoice:
        """
        Update a draft invoice. Only keys present in changes are applied.

        WHAT: Replacing items or changing the tax rate recomputes the total.
        Drafts may already carry payments, so the new total may not drop
        below what has been paid.

        Raises:
            InvoiceNotFoundError: Missing or owned by another agency
            InvalidStateTransitionError: Invoice is not a draft
            ValidationError: Invalid values, or a total below the payments
                already recorded
        """
        invoice = await self.get_invoice(agency_id, invoice_id)
        self._require_draft(invoice, "edited")

        if "title" in changes and not changes["title"]:
            raise ValidationError(message="Title is required")
        if "client_id" in changes:
            await self._validate_client(changes["client_id"], agency_id)

        items = changes.get("items")
        if items is not None and not items:
            raise ValidationError(message="At least one line item is required")
        tax_rate = (
            to_decimal(changes["tax_rate"])
            if changes.get("tax_rate") is not None
            else invoice.tax_rate
        )
        totals = compute_totals(items if items is not None else invoice.items, tax_rate)

        paid = round_money(await self.payment_dao.sum_for_invoice(invoice.id))
        if totals.total < paid:
            raise ValidationError(
                message="Total cannot be less than payments already recorded",
                total=str(totals.total),
                paid_amount=str(paid),
            )

        if "client_id" in changes:
            invoice.client_id = changes["client_id"]
        for field in ("title", "due_date", "notes"):
            if field in changes:
                setattr(invoice, field, changes[field])
        if changes.get("currency"):
            invoice.currency = changes["currency"].upper()
        invoice.tax_rate = tax_rate
        if items is not None:
            invoice.items = build_items(items)
        invoice.total = totals.total

        await self.session.flush()
        logger.info("Updated draft invoice %s", invoice.invoice_number)
        return await self.invoice_dao.reload(invoice.id)

    async def delete_invoice(self, agency_id: int, invoice_id: int) -> None:
        """
        Delete a draft invoice. Quota already used is not given back.

        Raises:
            InvoiceNotFoundError: Missing or owned by another agency
            InvalidStateTransitionError: Invoice is not a draft
        """
        invoice = await self.get_invoice(agency_id, invoice_id)
        self._require_draft(invoice, "deleted")
        await self.session.delete(invoice)
        await self.session.flush()
        logger.info("Deleted draft invoice %s (agency %s)", invoice.invoice_number, agency_id)

    async def attach_pdf(self, agency_id: int, invoice_id: int, pdf_url: str) -> Invoice:
        """
        Register the URL of the externally rendered PDF.

        Raises:
            InvoiceNotFoundError: Missing or owned by another agency
            InvalidStateTransitionError: Invoice is not a draft
        """
        invoice = await self.get_invoice(agency_id, invoice_id)
        self._require_draft(invoice, "given a new PDF")
        invoice.pdf_url = pdf_url
        await self.session.flush()
        return await self.invoice_dao.reload(invoice.id)

    # =========================================================================
    # Workflow transitions
    # =========================================================================

    def _mark_sent(self, invoice: Invoice) -> None:
        """
        The only transition into sent.

        sent_at is written the first time and kept on later calls.
        """
        invoice.status = InvoiceStatus.SENT
        if invoice.sent_at is None:
            invoice.sent_at = self._utcnow()

    async def finalize(self, agency_id: int, invoice_id: int) -> Invoice:
        """
        Finalize a draft invoice (draft -> sent).

        Raises:
            InvoiceNotFoundError: Missing or owned by another agency
            InvalidStateTransitionError: Invoice already finalized
            PreconditionFailedError: No PDF registered
        """
        invoice = await self.get_invoice(agency_id, invoice_id)
        if invoice.status != InvoiceStatus.DRAFT:
            raise InvalidStateTransitionError(
                message="Invoice is already finalized",
                invoice_id=invoice.id,
                status=invoice.status.value,
            )
        if not invoice.pdf_url:
            raise PreconditionFailedError(
                message="PDF required: generate the invoice PDF before finalizing",
                invoice_id=invoice.id,
            )

        self._mark_sent(invoice)
        await self.session.flush()
        logger.info("Finalized invoice %s (agency %s)", invoice.invoice_number, agency_id)
        return await self.invoice_dao.reload(invoice.id)

    async def send_to_customer(self, agency: Agency, invoice_id: int) -> Invoice:
        """
        Email an invoice to its client and mark it sent.

        WHAT: May be called any number of times. The status change is
        committed before the email goes out; a delivery failure after
        that is reported but does not undo the status.

        Raises:
            InvoiceNotFoundError: Missing or owned by another agency
            InvalidStateTransitionError: Invoice is void
            PreconditionFailedError: Client has no email address
            EmailServiceError: Delivery failed
        """
        invoice = await self.get_invoice(agency.id, invoice_id)
        if invoice.status == InvoiceStatus.VOID:
            raise InvalidStateTransitionError(
                message="A void invoice cannot be sent",
                invoice_id=invoice.id,
            )
        client = invoice.client
        if client is None or not client.email:
            raise PreconditionFailedError(
                message="Client email is required to send an invoice",
                invoice_id=invoice.id,
            )

        self._mark_sent(invoice)
        await self.session.commit()
        invoice = await self.invoice_dao.reload(invoice.id)

        figures = summarize_invoice(invoice, now=self._utcnow())
        result = await self.email_service.send_invoice_email(
            to_email=client.email,
            client_name=client.name,
            agency_name=agency.agency_name,
            invoice_id=invoice.id,
            invoice_number=invoice.invoice_number,
            total_amount=format_amount(figures.total),
            balance_due=format_amount(figures.balance_due),
            currency=invoice.currency,
            title=invoice.title,
            due_date=invoice.due_date.isoformat() if invoice.due_date else None,
            line_items=[
                {
                    "title": item.title,
                    "quantity": item.quantity,
                    "amount": format_amount(to_decimal(item.quantity) * to_decimal(item.unit_price)),
                }
                for item in invoice.items
            ],
            reply_to=agency.email,
        )
        if not result.success:
            logger.error(
                "Invoice %s marked sent but email delivery failed: %s",
                invoice.invoice_number,
                result.error,
            )
            raise EmailServiceError(
                message="Invoice was marked as sent but the email could not be delivered",
                invoice_id=invoice.id,
                provider=result.provider,
            )

        logger.info("Sent invoice %s to client %s", invoice.invoice_number, client.id)
        return invoice

    async def void(self, agency_id: int, invoice_id: int) -> Invoice:
        """
        Void an invoice. Voided invoices keep their number and payments.

        Raises:
            InvoiceNotFoundError: Missing or owned by another agency
            InvalidStateTransitionError: Invoice is already void
        """
        invoice = await self.get_invoice(agency_id, invoice_id)
        if invoice.status == InvoiceStatus.VOID:
            raise InvalidStateTransitionError(
                message="Invoice is already void",
                invoice_id=invoice.id,
            )
        invoice.status = InvoiceStatus.VOID
        await self.session.flush()
        logger.info("Voided invoice %s (agency %s)", invoice.invoice_number, agency_id)
        return await self.invoice_dao.reload(invoice.id)
