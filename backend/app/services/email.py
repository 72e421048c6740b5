"""
Email service for sending client-facing billing emails.

WHAT: This service provides a unified interface for sending invoice and
proposal emails through an email provider.

WHY: Email delivery is an external collaborator of the billing engine:
1. Invoice delivery - the client receives a pay link
2. Proposal delivery - the client receives the public review link
3. Support tickets - the support inbox hears about new tickets

HOW: Uses the Resend API over httpx when RESEND_API_KEY is configured,
otherwise a mock provider that records messages (development and tests).
Send failures are returned as an EmailResult; callers that must report
them raise EmailServiceError. Nothing here retries.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Dict, Any, List
from datetime import datetime

import httpx

from app.core.config import settings
from app.services.email_template_service import get_email_template_service, EmailTemplateService

logger = logging.getLogger(__name__)

RESEND_API_URL = "https://api.resend.com/emails"


# ============================================================================
# Email Types and Messages
# ============================================================================


class EmailType(str, Enum):
    """Types of client-facing emails."""

    INVOICE = "invoice"
    """Invoice delivery with pay link."""

    PROPOSAL = "proposal"
    """Proposal delivery with review link."""

    SUPPORT_TICKET = "support_ticket"
    """New ticket notification to the support inbox."""


@dataclass
class EmailMessage:
    """
    Represents an email to be sent.

    WHAT: Data container for email content and metadata.
    """

    to_email: str
    """Recipient email address."""

    subject: str
    """Email subject line."""

    html_content: str
    """HTML email body."""

    text_content: Optional[str] = None
    """Plain text fallback."""

    from_email: Optional[str] = None
    """Sender (defaults to EMAIL_FROM)."""

    reply_to: Optional[str] = None
    """Reply-to address (the agency's email)."""

    email_type: EmailType = EmailType.INVOICE
    """Type of email for logging."""

    metadata: Optional[Dict[str, Any]] = None
    """Additional metadata for logging."""


@dataclass
class EmailResult:
    """
    Result of an email send operation.
    """

    success: bool
    """Whether email was sent successfully."""

    message_id: Optional[str] = None
    """Provider message ID for tracking."""

    error: Optional[str] = None
    """Error message if send failed."""

    provider: Optional[str] = None
    """Which provider was used."""


# ============================================================================
# Email Provider Interface
# ============================================================================


class EmailProvider(ABC):
    """
    Abstract base class for email providers.

    WHY: Provider abstraction allows testing with a mock provider and
    swapping the delivery service without touching billing code.
    """

    @abstractmethod
    async def send(self, message: EmailMessage) -> EmailResult:
        """
        Send an email message.

        Args:
            message: The email message to send

        Returns:
            EmailResult with success status and provider details
        """
        pass

    @abstractmethod
    def is_configured(self) -> bool:
        """
        Check if this provider is properly configured.

        Returns:
            True if API keys/credentials are present
        """
        pass


class ResendProvider(EmailProvider):
    """
    Resend email provider implementation.
    """

    def __init__(self, api_key: Optional[str] = None, timeout: float = 30.0):
        """
        Initialize Resend provider.

        Args:
            api_key: Resend API key (defaults to settings)
            timeout: Request timeout in seconds
        """
        self._api_key = api_key or settings.RESEND_API_KEY
        self._timeout = timeout

    def is_configured(self) -> bool:
        """Check if Resend API key is configured."""
        return bool(self._api_key)

    async def send(self, message: EmailMessage) -> EmailResult:
        """
        Send email via Resend API.

        HOW: Uses httpx for async HTTP requests to Resend API. Transport
        errors and non-2xx responses both come back as a failed result.

        Args:
            message: Email message to send

        Returns:
            EmailResult with send status
        """
        if not self.is_configured():
            return EmailResult(
                success=False,
                error="Resend API key not configured",
                provider="resend",
            )

        payload = {
            "from": message.from_email or settings.EMAIL_FROM,
            "to": [message.to_email],
            "subject": message.subject,
            "html": message.html_content,
        }
        if message.text_content:
            payload["text"] = message.text_content
        if message.reply_to:
            payload["reply_to"] = message.reply_to

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(
                    RESEND_API_URL,
                    headers={
                        "Authorization": f"Bearer {self._api_key}",
                        "Content-Type": "application/json",
                    },
                    json=payload,
                )
        except httpx.HTTPError as e:
            logger.error("Resend request failed: %s", e)
            return EmailResult(success=False, error=str(e), provider="resend")

        if response.status_code in (200, 201):
            data = response.json()
            return EmailResult(
                success=True,
                message_id=data.get("id"),
                provider="resend",
            )

        return EmailResult(
            success=False,
            error=f"Resend API error: {response.status_code} - {response.text}",
            provider="resend",
        )


class MockEmailProvider(EmailProvider):
    """
    Mock email provider for testing and development.

    WHY: Allows exercising the send flow without sending real emails.
    Logs emails instead of sending them.
    """

    sent_emails: List[EmailMessage] = []
    """Class-level list to track sent emails for testing."""

    def is_configured(self) -> bool:
        """Mock provider is always configured."""
        return True

    async def send(self, message: EmailMessage) -> EmailResult:
        """
        Mock send - logs email instead of sending.

        Returns:
            Always returns success
        """
        logger.info(
            "[MOCK EMAIL] To: %s, Subject: %s, Type: %s",
            message.to_email,
            message.subject,
            message.email_type.value,
        )

        MockEmailProvider.sent_emails.append(message)

        return EmailResult(
            success=True,
            message_id=f"mock-{datetime.utcnow().timestamp()}",
            provider="mock",
        )

    @classmethod
    def clear_sent_emails(cls):
        """Clear sent emails list (for test cleanup)."""
        cls.sent_emails = []


# ============================================================================
# Email Service
# ============================================================================


class EmailService:
    """
    High-level email service for billing emails.

    HOW: Renders a Jinja2 template, applies the optional recipient
    override, and hands the message to the provider.
    """

    def __init__(
        self,
        provider: Optional[EmailProvider] = None,
        template_service: Optional[EmailTemplateService] = None,
    ):
        """
        Initialize email service.

        Args:
            provider: Email provider to use (auto-detected if not provided)
            template_service: Template service for rendering
        """
        if provider:
            self._provider = provider
        elif settings.RESEND_API_KEY:
            self._provider = ResendProvider()
        else:
            logger.warning("No email provider configured, using mock provider")
            self._provider = MockEmailProvider()

        self._template_service = template_service or get_email_template_service()

    @property
    def provider(self) -> EmailProvider:
        return self._provider

    async def send_email(self, message: EmailMessage) -> EmailResult:
        """
        Send an email message.

        WHY: EMAIL_OVERRIDE_TO redirects every message to one inbox so a
        staging deployment never mails real clients.

        Args:
            message: Email message to send

        Returns:
            EmailResult with send status
        """
        if settings.EMAIL_OVERRIDE_TO:
            message.to_email = settings.EMAIL_OVERRIDE_TO

        logger.info(
            "Sending %s email to %s",
            message.email_type.value,
            message.to_email,
        )

        result = await self._provider.send(message)

        if result.success:
            logger.info("Email sent successfully: %s (%s)", result.message_id, result.provider)
        else:
            logger.error(
                "Email send failed: %s",
                result.error,
                extra={"email_type": message.email_type.value, "metadata": message.metadata},
            )

        return result

    async def send_invoice_email(
        self,
        to_email: str,
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
        reply_to: Optional[str] = None,
    ) -> EmailResult:
        """
        Send an invoice to a client.

        Args:
            to_email: Client email address
            client_name: Client display name
            agency_name: Sending agency
            invoice_id: Invoice ID
            invoice_number: Display invoice number
            total_amount: Total (formatted)
            balance_due: Balance due (formatted)
            currency: Currency code
            title: Invoice title
            due_date: Due date (formatted)
            line_items: Rows for the items table
            reply_to: Agency email for replies

        Returns:
            EmailResult with send status
        """
        subject, html_content, text_content = self._template_service.render_invoice_sent_email(
            client_name=client_name,
            agency_name=agency_name,
            invoice_id=invoice_id,
            invoice_number=invoice_number,
            total_amount=total_amount,
            balance_due=balance_due,
            currency=currency,
            title=title,
            due_date=due_date,
            line_items=line_items,
        )

        message = EmailMessage(
            to_email=to_email,
            subject=subject,
            html_content=html_content,
            text_content=text_content,
            reply_to=reply_to,
            email_type=EmailType.INVOICE,
            metadata={"invoice_id": invoice_id, "invoice_number": invoice_number},
        )

        return await self.send_email(message)

    async def send_proposal_email(
        self,
        to_email: str,
        client_name: str,
        agency_name: str,
        proposal_id: int,
        proposal_title: str,
        public_token: str,
        total_amount: str,
        currency: str = "USD",
        reply_to: Optional[str] = None,
    ) -> EmailResult:
        """
        Send a proposal review link to a client.

        Returns:
            EmailResult with send status
        """
        subject, html_content, text_content = self._template_service.render_proposal_sent_email(
            client_name=client_name,
            agency_name=agency_name,
            proposal_title=proposal_title,
            public_token=public_token,
            total_amount=total_amount,
            currency=currency,
        )

        message = EmailMessage(
            to_email=to_email,
            subject=subject,
            html_content=html_content,
            text_content=text_content,
            reply_to=reply_to,
            email_type=EmailType.PROPOSAL,
            metadata={"proposal_id": proposal_id},
        )

        return await self.send_email(message)

    async def send_support_ticket_email(
        self,
        to_email: str,
        ticket_id: int,
        agency_name: str,
        subject: str,
        description: str,
        priority: str,
        plan: str,
        contact_email: Optional[str] = None,
    ) -> EmailResult:
        """
        Notify the support inbox of a new ticket.

        Replies go straight to the agency owner when their address is known.
        """
        mail_subject, html_content, text_content = (
            self._template_service.render_support_ticket_email(
                ticket_id=ticket_id,
                agency_name=agency_name,
                subject=subject,
                description=description,
                priority=priority,
                plan=plan,
                contact_email=contact_email,
            )
        )

        message = EmailMessage(
            to_email=to_email,
            subject=mail_subject,
            html_content=html_content,
            text_content=text_content,
            reply_to=contact_email,
            email_type=EmailType.SUPPORT_TICKET,
            metadata={"ticket_id": ticket_id, "priority": priority},
        )

        return await self.send_email(message)


# Module-level singleton
_email_service: Optional[EmailService] = None


def get_email_service() -> EmailService:
    """
    Get or create the global email service instance.

    Returns:
        EmailService instance
    """
    global _email_service

    if _email_service is None:
        _email_service = EmailService()

    return _email_service


def reset_email_service() -> None:
    """Drop the cached instance so the next call re-reads settings."""
    global _email_service
    _email_service = None
