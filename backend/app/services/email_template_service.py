"""
Email Template Service for rendering Jinja2 email templates.

WHAT: Service for loading and rendering the client-facing invoice and
proposal emails, plus the support inbox notification for new tickets.

WHY: Template-based emails provide:
- Consistent branding across the agency's outgoing mail
- Content updates without code changes
- Auto-escaping of client-supplied text (titles, names)

HOW: Uses a Jinja2 environment with FileSystemLoader over
app/templates/email. Each render method returns
(subject, html_content, text_content).
"""

import logging
from pathlib import Path
from typing import Dict, Any, Optional, List
from datetime import datetime

from jinja2 import Environment, FileSystemLoader, select_autoescape, TemplateNotFound

from app.core.config import settings
from app.core.exceptions import EmailServiceError


logger = logging.getLogger(__name__)


class EmailTemplateService:
    """
    Service for rendering email templates.

    Example:
        template_service = EmailTemplateService()
        subject, html, text = template_service.render_invoice_sent_email(
            client_name="Acme",
            agency_name="Studio",
            invoice_id=1,
            invoice_number="INV-2024-0001",
            total_amount="1000.00",
            balance_due="1000.00",
        )
    """

    def __init__(self, template_dir: Optional[Path] = None):
        """
        Initialize template service.

        Args:
            template_dir: Path to templates directory (defaults to app/templates/email)
        """
        if template_dir is None:
            template_dir = Path(__file__).parent.parent / "templates" / "email"

        self._template_dir = template_dir
        self._env = Environment(
            loader=FileSystemLoader(str(self._template_dir)),
            autoescape=select_autoescape(["html", "xml"]),
            trim_blocks=True,
            lstrip_blocks=True,
        )

    def render_template(
        self,
        template_name: str,
        context: Dict[str, Any],
    ) -> str:
        """
        Render a template with given context.

        HOW: Merges base context, loads template, renders with context.

        Args:
            template_name: Name of template file (e.g., "invoice_sent.html")
            context: Template variables

        Returns:
            Rendered HTML string

        Raises:
            EmailServiceError: If template not found or render fails
        """
        try:
            template = self._env.get_template(template_name)
            full_context = {"year": datetime.utcnow().year, **context}
            return template.render(**full_context)
        except TemplateNotFound:
            logger.error("Email template not found: %s", template_name)
            raise EmailServiceError(
                message=f"Email template not found: {template_name}",
                template=template_name,
            )

    def render_invoice_sent_email(
        self,
        client_name: str,
        agency_name: str,
        invoice_id: int,
        invoice_number: str,
        total_amount: str,
        balance_due: str,
        currency: str = "USD",
        title: Optional[str] = None,
        due_date: Optional[str] = None,
        line_items: Optional[List[Dict[str, Any]]] = None,
    ) -> tuple[str, str, str]:
        """
        Render the invoice email sent to a client.

        WHY: The pay link points at the frontend's public pay page for the
        invoice id; payment itself happens there.

        Args:
            client_name: Recipient display name
            agency_name: Sending agency
            invoice_id: Invoice ID (used in the pay link)
            invoice_number: Display invoice number
            total_amount: Total amount (formatted)
            balance_due: Remaining balance (formatted)
            currency: Currency code
            title: Invoice title
            due_date: Payment due date (formatted)
            line_items: Rows with title, quantity and amount

        Returns:
            Tuple of (subject, html_content, text_content)
        """
        payment_url = f"{settings.FRONTEND_URL}/pay/{invoice_id}"
        context = {
            "client_name": client_name,
            "agency_name": agency_name,
            "invoice_number": invoice_number,
            "title": title,
            "total_amount": total_amount,
            "balance_due": balance_due,
            "currency": currency,
            "due_date": due_date,
            "line_items": line_items,
            "payment_url": payment_url,
        }

        html = self.render_template("invoice_sent.html", context)
        text = self._generate_text_version(
            f"Hi {client_name},\n\n"
            f"{agency_name} has sent you invoice {invoice_number}.\n\n"
            f"Amount: {currency} {total_amount}\n"
            f"Balance due: {currency} {balance_due}\n"
            + (f"Due: {due_date}\n" if due_date else "")
            + f"\nView and pay: {payment_url}",
            agency_name,
        )

        return f"Invoice {invoice_number} from {agency_name}", html, text

    def render_proposal_sent_email(
        self,
        client_name: str,
        agency_name: str,
        proposal_title: str,
        public_token: str,
        total_amount: str,
        currency: str = "USD",
    ) -> tuple[str, str, str]:
        """
        Render the proposal email sent to a client.

        Returns:
            Tuple of (subject, html_content, text_content)
        """
        proposal_url = f"{settings.FRONTEND_URL}/p/{public_token}"
        context = {
            "client_name": client_name,
            "agency_name": agency_name,
            "proposal_title": proposal_title,
            "proposal_url": proposal_url,
            "total_amount": total_amount,
            "currency": currency,
        }

        html = self.render_template("proposal_sent.html", context)
        text = self._generate_text_version(
            f"Hi {client_name},\n\n"
            f"{agency_name} has sent you a proposal.\n\n"
            f"Proposal: {proposal_title}\n"
            f"Amount: {currency} {total_amount}\n\n"
            f"Review proposal: {proposal_url}",
            agency_name,
        )

        return f"New proposal from {agency_name}: {proposal_title}", html, text

    def render_support_ticket_email(
        self,
        ticket_id: int,
        agency_name: str,
        subject: str,
        description: str,
        priority: str,
        plan: str,
        contact_email: Optional[str] = None,
    ) -> tuple[str, str, str]:
        """
        Render the notification sent to the support inbox for a new ticket.

        Returns:
            Tuple of (subject, html_content, text_content)
        """
        context = {
            "ticket_id": ticket_id,
            "agency_name": agency_name,
            "subject": subject,
            "description": description,
            "priority": priority,
            "plan": plan,
            "contact_email": contact_email or "unknown",
        }

        html = self.render_template("support_ticket.html", context)
        text = self._generate_text_version(
            f"Ticket ID: {ticket_id}\n"
            f"Subject: {subject}\n"
            f"Description: {description}\n"
            f"User Email: {context['contact_email']}\n"
            f"Priority: {priority}\n"
            f"Plan: {plan}",
            agency_name,
        )

        return f"New Support Ticket: {subject}", html, text

    @staticmethod
    def _generate_text_version(content: str, agency_name: str) -> str:
        """Plain text fallback with a short footer."""
        return content.strip() + f"\n\n---\n{agency_name}"


# Module-level singleton
_template_service: Optional[EmailTemplateService] = None


def get_email_template_service() -> EmailTemplateService:
    """
    Get or create the global template service instance.

    WHY: One Environment means compiled templates are cached.

    Returns:
        EmailTemplateService instance
    """
    global _template_service

    if _template_service is None:
        _template_service = EmailTemplateService()

    return _template_service
