"""
Proposal service.

WHAT: Proposal CRUD, the proposal workflow, the public review page and
the one-way conversion of an approved proposal into a draft invoice.

WHY: Proposals are quotes. Once a client approves one, the agency turns
it into an invoice exactly once:
1. Ownership, status, prior conversion and quota are checked in order
2. A new invoice number is allocated atomically
3. A draft invoice is created with a snapshot of the proposal's items
4. The proposal is linked to the invoice

HOW: Steps 2-4 run in the request's single transaction, so a failure at
any point leaves neither an orphan invoice nor a used invoice number.
The link is a compare-and-set, so the second of two racing conversions
fails with ProposalAlreadyConvertedError instead of creating a duplicate.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import (
    EmailServiceError,
    InvalidStateTransitionError,
    ProposalAlreadyConvertedError,
    ProposalNotFoundError,
    ValidationError,
)
from app.dao.client import ClientDAO
from app.dao.proposal import ProposalDAO
from app.models.agency import Agency
from app.models.invoice import Invoice
from app.models.proposal import Proposal, ProposalItem, ProposalStatus
from app.services.billing import compute_totals, to_decimal
from app.services.email import EmailService, get_email_service
from app.services.invoice_service import InvoiceService, format_amount

logger = logging.getLogger(__name__)


def build_proposal_items(items: List[Any]) -> List[ProposalItem]:
    rows = []
    for position, item in enumerate(items):
        data = item if isinstance(item, dict) else item.model_dump()
        rows.append(
            ProposalItem(
                title=data["title"],
                description=data.get("description"),
                quantity=to_decimal(data.get("quantity", 1)),
                unit_price=to_decimal(data["unit_price"]),
                position=position,
            )
        )
    return rows


class ProposalService:
    """
    Service for proposal operations.

    Usage:
        service = ProposalService(session)
        proposal = await service.create_proposal(agency, data)
        await service.send(agency, proposal.id)
        await service.approve(agency.id, proposal.id)
        invoice = await service.convert_to_invoice(agency, proposal.id)
    """

    def __init__(
        self,
        session: AsyncSession,
        email_service: Optional[EmailService] = None,
        invoice_service: Optional[InvoiceService] = None,
        now: Optional[datetime] = None,
    ):
        """
        Initialize ProposalService.

        Args:
            session: Async database session
            email_service: Email service (defaults to the global instance)
            invoice_service: Creates the converted invoice
            now: Clock override (tests)
        """
        self.session = session
        self.proposal_dao = ProposalDAO(session)
        self.client_dao = ClientDAO(session)
        self._email_service = email_service
        self._now = now
        self.invoice_service = invoice_service or InvoiceService(session, now=now)

    @property
    def email_service(self) -> EmailService:
        if self._email_service is None:
            self._email_service = get_email_service()
        return self._email_service

    def _utcnow(self) -> datetime:
        return self._now or datetime.utcnow()

    async def _validate_client(self, client_id: Optional[int], agency_id: int) -> None:
        if client_id is None:
            return
        if await self.client_dao.get_by_id_and_agency(client_id, agency_id) is None:
            raise ValidationError(message="Client not found", client_id=client_id)

    # =========================================================================
    # CRUD
    # =========================================================================

    async def create_proposal(self, agency: Agency, data: Any) -> Proposal:
        """
        Create a draft proposal from a ProposalCreate payload.

        Raises:
            ValidationError: Bad tax rate, negative amounts, unknown client
        """
        rate = to_decimal(data.tax_rate if data.tax_rate is not None else agency.default_tax_rate)
        totals = compute_totals(data.items, rate)
        await self._validate_client(data.client_id, agency.id)

        proposal = Proposal(
            agency_id=agency.id,
            title=data.title,
            client_id=data.client_id,
            status=ProposalStatus.DRAFT,
            currency=(data.currency or agency.currency),
            tax_rate=rate,
            total=totals.total,
            notes=data.notes,
            items=build_proposal_items(data.items),
        )
        self.session.add(proposal)
        await self.session.flush()
        logger.info("Created proposal %s for agency %s", proposal.id, agency.id)
        return await self.proposal_dao.reload(proposal.id)

    async def get_proposal(self, agency_id: int, proposal_id: int) -> Proposal:
        """
        Raises:
            ProposalNotFoundError: Missing or owned by another agency
        """
        proposal = await self.proposal_dao.get_by_id_and_agency(proposal_id, agency_id)
        if proposal is None:
            raise ProposalNotFoundError(proposal_id=proposal_id)
        return proposal

    async def list_proposals(
        self,
        agency_id: int,
        status: Optional[ProposalStatus] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> Tuple[List[Proposal], int]:
        proposals = await self.proposal_dao.list_for_agency(
            agency_id, status=status, skip=skip, limit=limit
        )
        filters: Dict[str, Any] = {"agency_id": agency_id}
        if status is not None:
            filters["status"] = status
        return proposals, await self.proposal_dao.count(**filters)

    async def update_proposal(
        self,
        agency_id: int,
        proposal_id: int,
        changes: Dict[str, Any],
    ) -> Proposal:
        """
        Update a draft proposal; items or tax rate changes recompute the total.

        Raises:
            ProposalNotFoundError: Missing or owned by another agency
            InvalidStateTransitionError: Proposal is not a draft
        """
        proposal = await self.get_proposal(agency_id, proposal_id)
        if not proposal.is_editable:
            raise InvalidStateTransitionError(
                message="Only draft proposals can be edited",
                proposal_id=proposal.id,
                status=proposal.status.value,
            )

        if "client_id" in changes:
            await self._validate_client(changes["client_id"], agency_id)
            proposal.client_id = changes["client_id"]
        if changes.get("title"):
            proposal.title = changes["title"]
        if "notes" in changes:
            proposal.notes = changes["notes"]
        if changes.get("currency"):
            proposal.currency = changes["currency"].upper()
        if changes.get("tax_rate") is not None:
            proposal.tax_rate = to_decimal(changes["tax_rate"])

        items = changes.get("items")
        if items is not None:
            totals = compute_totals(items, proposal.tax_rate)
            proposal.items = build_proposal_items(items)
        else:
            totals = compute_totals(proposal.items, proposal.tax_rate)
        proposal.total = totals.total

        await self.session.flush()
        return await self.proposal_dao.reload(proposal.id)

    async def delete_proposal(self, agency_id: int, proposal_id: int) -> None:
        """
        Delete a draft proposal.

        Raises:
            ProposalNotFoundError: Missing or owned by another agency
            InvalidStateTransitionError: Proposal is not a draft
        """
        proposal = await self.get_proposal(agency_id, proposal_id)
        if not proposal.is_editable:
            raise InvalidStateTransitionError(
                message="Only draft proposals can be deleted",
                proposal_id=proposal.id,
            )
        await self.session.delete(proposal)
        await self.session.flush()
        logger.info("Deleted proposal %s (agency %s)", proposal_id, agency_id)

    # =========================================================================
    # Workflow
    # =========================================================================

    async def send(self, agency: Agency, proposal_id: int, send_email: bool = True) -> Proposal:
        """
        Send a draft proposal (draft -> sent) and email the review link.

        WHAT: The email is skipped when the client has no address. As with
        invoices, the status change is committed before delivery.

        Raises:
            ProposalNotFoundError: Missing or owned by another agency
            InvalidStateTransitionError: Proposal is not a draft
            EmailServiceError: Delivery failed
        """
        proposal = await self.get_proposal(agency.id, proposal_id)
        if proposal.status != ProposalStatus.DRAFT:
            raise InvalidStateTransitionError(
                message="Only draft proposals can be sent",
                proposal_id=proposal.id,
                status=proposal.status.value,
            )

        proposal.status = ProposalStatus.SENT
        if proposal.sent_at is None:
            proposal.sent_at = self._utcnow()
        await self.session.commit()
        proposal = await self.proposal_dao.reload(proposal.id)
        logger.info("Proposal %s sent (agency %s)", proposal.id, agency.id)

        client = proposal.client
        if send_email and client is not None and client.email:
            result = await self.email_service.send_proposal_email(
                to_email=client.email,
                client_name=client.name,
                agency_name=agency.agency_name,
                proposal_id=proposal.id,
                proposal_title=proposal.title,
                public_token=proposal.public_token,
                total_amount=format_amount(proposal.total),
                currency=proposal.currency or agency.currency or "USD",
                reply_to=agency.email,
            )
            if not result.success:
                raise EmailServiceError(
                    message="Proposal was marked as sent but the email could not be delivered",
                    proposal_id=proposal.id,
                    provider=result.provider,
                )

        return proposal

    async def _decide(self, proposal: Proposal, status: ProposalStatus) -> Proposal:
        if proposal.status != ProposalStatus.SENT:
            raise InvalidStateTransitionError(
                message=f"Only sent proposals can be {status.value}",
                proposal_id=proposal.id,
                status=proposal.status.value,
            )
        proposal.status = status
        await self.session.flush()
        logger.info("Proposal %s %s", proposal.id, status.value)
        return await self.proposal_dao.reload(proposal.id)

    async def approve(self, agency_id: int, proposal_id: int) -> Proposal:
        """Mark a sent proposal approved."""
        return await self._decide(await self.get_proposal(agency_id, proposal_id), ProposalStatus.APPROVED)

    async def reject(self, agency_id: int, proposal_id: int) -> Proposal:
        """Mark a sent proposal rejected."""
        return await self._decide(await self.get_proposal(agency_id, proposal_id), ProposalStatus.REJECTED)

    # =========================================================================
    # Public review page
    # =========================================================================

    async def get_public(self, token: str) -> Proposal:
        """
        Proposal for the public review page. Drafts are never shown.

        Raises:
            ProposalNotFoundError: Unknown token or draft proposal
        """
        proposal = await self.proposal_dao.get_by_public_token(token)
        if proposal is None or proposal.status == ProposalStatus.DRAFT:
            raise ProposalNotFoundError()
        return proposal

    async def accept_public(self, token: str) -> Proposal:
        """
        Client acceptance through the public link (sent -> approved).

        Raises:
            ProposalNotFoundError: Unknown token or draft proposal
            InvalidStateTransitionError: Proposal is not awaiting a decision
        """
        proposal = await self.get_public(token)
        if proposal.status != ProposalStatus.SENT:
            raise InvalidStateTransitionError(
                message="Proposal cannot be accepted in current state",
                status=proposal.status.value,
            )
        proposal.status = ProposalStatus.APPROVED
        await self.session.flush()
        logger.info("Proposal %s accepted through public link", proposal.id)
        return proposal

    # =========================================================================
    # Conversion
    # =========================================================================

    async def convert_to_invoice(self, agency: Agency, proposal_id: int) -> Invoice:
        """
        Convert an approved proposal into a draft invoice, exactly once.

        WHAT: Checks, in order: ownership, approved status, not already
        converted, monthly quota. The invoice copies title, total, tax
        rate, client and notes; the agency's default currency takes
        precedence over the proposal's.

        The invoice total is the proposal's stored total, the amount the
        client approved. When recomputing the copied items gives a
        different figure, the mismatch is logged and the stored total is
        kept on the invoice anyway.

        Args:
            agency: Caller's agency
            proposal_id: Proposal to convert

        Returns:
            The created draft Invoice

        Raises:
            ProposalNotFoundError: Missing or owned by another agency
            InvalidStateTransitionError: Proposal is not approved
            ProposalAlreadyConvertedError: Details carry the existing invoice_id
            InvoiceLimitReachedError: Monthly quota used up
        """
        proposal = await self.get_proposal(agency.id, proposal_id)
        if proposal.status != ProposalStatus.APPROVED:
            raise InvalidStateTransitionError(
                message="Only approved proposals can be converted to invoices",
                proposal_id=proposal.id,
                status=proposal.status.value,
            )
        if proposal.converted_to_invoice_id is not None:
            raise ProposalAlreadyConvertedError(
                proposal_id=proposal.id,
                invoice_id=proposal.converted_to_invoice_id,
            )

        invoice = await self.invoice_service.create_draft(
            agency,
            title=proposal.title,
            items=proposal.items,
            tax_rate=proposal.tax_rate,
            currency=agency.currency or proposal.currency,
            client_id=proposal.client_id,
            notes=proposal.notes,
            proposal_id=proposal.id,
        )
        if invoice.total != proposal.total:
            logger.warning(
                "Proposal %s total %s differs from recomputed invoice total %s",
                proposal.id,
                proposal.total,
                invoice.total,
            )
            invoice.total = proposal.total
            await self.session.flush()

        linked = await self.proposal_dao.link_invoice(proposal.id, invoice.id)
        if not linked:
            current = await self.proposal_dao.reload(proposal.id)
            raise ProposalAlreadyConvertedError(
                proposal_id=proposal.id,
                invoice_id=current.converted_to_invoice_id if current else None,
            )

        logger.info(
            "Converted proposal %s to invoice %s (agency %s)",
            proposal.id,
            invoice.invoice_number,
            agency.id,
        )
        return invoice
