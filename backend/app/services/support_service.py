"""
Support ticket service.

WHAT: Files support tickets for an agency and notifies the support inbox.

WHY: Agencies on the growth and scale plans get priority support, so
the ticket's priority is fixed from the plan at filing time.

HOW: The ticket row is written first. The inbox notification goes to
SUPPORT_EMAIL when it is configured; a failed notification is logged
and the ticket is still filed, since support also works from the
ticket list.
"""

import logging
from typing import List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import SupportTicketNotFoundError
from app.dao.support_ticket import SupportTicketDAO
from app.models.agency import Agency
from app.models.support_ticket import SupportTicket, TicketPriority
from app.services.email import EmailService, get_email_service
from app.services.subscription_service import normalize_plan_key

logger = logging.getLogger(__name__)

PRIORITY_SUPPORT_PLANS = ("growth", "scale")


def priority_for_plan(plan: Optional[str]) -> TicketPriority:
    if normalize_plan_key(plan) in PRIORITY_SUPPORT_PLANS:
        return TicketPriority.HIGH
    return TicketPriority.NORMAL


class SupportService:
    """Support tickets for one request."""

    def __init__(self, session: AsyncSession, email_service: Optional[EmailService] = None):
        self.session = session
        self.ticket_dao = SupportTicketDAO(session)
        self._email_service = email_service

    @property
    def email_service(self) -> EmailService:
        if self._email_service is None:
            self._email_service = get_email_service()
        return self._email_service

    async def create_ticket(self, agency: Agency, subject: str, description: str) -> SupportTicket:
        """
        File a ticket and notify the support inbox.

        Args:
            agency: Caller's agency (plan and contact email are copied)
            subject: Trimmed, non-empty subject
            description: Trimmed, non-empty description

        Returns:
            The created SupportTicket
        """
        plan = normalize_plan_key(agency.subscription_plan)
        ticket = await self.ticket_dao.create(
            agency_id=agency.id,
            subject=subject,
            description=description,
            priority=priority_for_plan(plan),
            plan=plan,
            email=agency.email,
        )
        logger.info(
            "Support ticket %s filed by agency %s (%s priority)",
            ticket.id,
            agency.id,
            ticket.priority.value,
        )

        if settings.SUPPORT_EMAIL:
            result = await self.email_service.send_support_ticket_email(
                to_email=settings.SUPPORT_EMAIL,
                ticket_id=ticket.id,
                agency_name=agency.agency_name,
                subject=subject,
                description=description,
                priority=ticket.priority.value,
                plan=plan,
                contact_email=agency.email,
            )
            if not result.success:
                logger.warning(
                    "Support inbox was not notified of ticket %s: %s", ticket.id, result.error
                )
        else:
            logger.warning("SUPPORT_EMAIL is not set; ticket %s has no notification", ticket.id)

        return ticket

    async def list_tickets(
        self, agency_id: int, skip: int = 0, limit: int = 50
    ) -> Tuple[List[SupportTicket], int]:
        tickets = await self.ticket_dao.list_for_agency(agency_id, skip=skip, limit=limit)
        return tickets, await self.ticket_dao.count(agency_id=agency_id)

    async def get_ticket(self, agency_id: int, ticket_id: int) -> SupportTicket:
        ticket = await self.ticket_dao.get_by_id_and_agency(ticket_id, agency_id)
        if ticket is None:
            raise SupportTicketNotFoundError(ticket_id=ticket_id)
        return ticket
