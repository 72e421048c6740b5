"""
Custom exception hierarchy for structured error handling.

WHY: Custom exceptions provide:
1. Consistent error handling across the API
2. HTTP status code mapping for FastAPI
3. Structured error responses with contextual data
4. No sensitive data leaks in error messages (OWASP A04)

Services raise these; app.core.exception_handlers turns them into JSON.
Nothing in the billing engine is retried, so every error surfaces to
the caller exactly once.

IMPORTANT: NEVER use base Exception class. Always use custom exceptions.
"""

from typing import Any, Dict, Optional


class AppException(Exception):
    """
    Base exception class for all application exceptions.

    WHY: Centralizing exception handling in a base class ensures consistent
    error responses, HTTP status code mapping, and prevents sensitive data
    leaks in error messages.

    All custom exceptions should inherit from this class.
    """

    status_code: int = 500
    default_message: str = "An unexpected error occurred"

    def __init__(
        self,
        message: Optional[str] = None,
        status_code: Optional[int] = None,
        **context: Any,
    ):
        """
        Initialize exception with message and context.

        Args:
            message: Human-readable error message
            status_code: HTTP status code (overrides class default)
            **context: Additional context returned as "details"
                (sensitive keys are filtered in to_dict)
        """
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        self.context = context
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """
        Serialize exception to dictionary for JSON response.

        Returns:
            Dictionary with error details (sensitive fields filtered out)
        """
        # WHY: Filter out sensitive fields to prevent data leaks
        sensitive_fields = {"password", "token", "secret", "key", "api_key", "public_token"}
        filtered_context = {
            k: v for k, v in self.context.items() if k.lower() not in sensitive_fields
        }

        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "status_code": self.status_code,
            "details": filtered_context if filtered_context else None,
        }


# ============================================================================
# Authentication & Authorization Exceptions (OWASP A07)
# ============================================================================


class AuthenticationError(AppException):
    """
    Raised when authentication fails.

    HTTP Status: 401 Unauthorized
    """

    status_code = 401
    default_message = "Authentication failed"


class AuthorizationError(AppException):
    """
    Raised when the caller lacks permissions for an action.

    HTTP Status: 403 Forbidden
    """

    status_code = 403
    default_message = "You do not have permission to perform this action"


class TokenExpiredError(AuthenticationError):
    """
    Raised when the auth provider's JWT has expired.

    WHY: Lets the frontend refresh its session instead of logging out.

    HTTP Status: 401 Unauthorized
    """

    default_message = "Token has expired"


class TokenInvalidError(AuthenticationError):
    """
    Raised when JWT token is malformed or has invalid signature.

    HTTP Status: 401 Unauthorized
    """

    default_message = "Token is invalid"


# ============================================================================
# Validation & Input Exceptions
# ============================================================================


class ValidationError(AppException):
    """
    Raised when input validation fails.

    WHY: Malformed or out-of-range input (non-positive amount, missing
    payment date, amount above the balance due) is echoed back to the
    caller with a 400 so the form can be corrected.

    HTTP Status: 400 Bad Request
    """

    status_code = 400
    default_message = "Validation failed"


# ============================================================================
# Resource Exceptions
# ============================================================================


class ResourceNotFoundError(AppException):
    """
    Raised when a requested resource doesn't exist.

    WHY: Also raised when the resource belongs to another agency.
    Tenants must not learn which ids another agency uses, so
    "forbidden" is never distinguished from "missing".

    HTTP Status: 404 Not Found
    """

    status_code = 404
    default_message = "Resource not found"


class AgencyNotFoundError(ResourceNotFoundError):
    """Authenticated user has no agency settings row."""

    default_message = "Agency not found"


class ClientNotFoundError(ResourceNotFoundError):
    default_message = "Client not found"


class InvoiceNotFoundError(ResourceNotFoundError):
    default_message = "Invoice not found"


class PaymentNotFoundError(ResourceNotFoundError):
    default_message = "Payment not found"


class ProposalNotFoundError(ResourceNotFoundError):
    default_message = "Proposal not found"


class ServiceNotFoundError(ResourceNotFoundError):
    default_message = "Service not found"


class SupportTicketNotFoundError(ResourceNotFoundError):
    default_message = "Support ticket not found"


# ============================================================================
# Business Logic Exceptions
# ============================================================================


class BusinessRuleViolation(AppException):
    """
    Raised when an operation violates a billing rule.

    HTTP Status: 400 Bad Request
    """

    status_code = 400
    default_message = "Business rule violation"


class InvalidStateTransitionError(BusinessRuleViolation):
    """
    Raised when an operation is attempted from a disallowed state.

    Examples: finalizing an invoice that is no longer a draft, editing a
    sent invoice, converting a proposal that is not approved.

    HTTP Status: 400 Bad Request
    """

    default_message = "Invalid state transition"


class PreconditionFailedError(BusinessRuleViolation):
    """
    Raised when a required artifact or field is missing.

    Examples: finalizing without a generated PDF, sending to a client
    without an email address.

    HTTP Status: 400 Bad Request
    """

    default_message = "Precondition failed"


class ProposalAlreadyConvertedError(BusinessRuleViolation):
    """
    Raised when converting a proposal that already has an invoice.

    WHY: The details carry invoice_id so the frontend can redirect to
    the existing invoice instead of retrying.

    HTTP Status: 400 Bad Request
    """

    default_message = "Proposal has already been converted to an invoice"


class InvoiceLimitReachedError(AuthorizationError):
    """
    Raised when the agency has used its monthly invoice quota.

    WHY: A 403 distinct from plain authorization failures (error name and
    limit/used/plan details) so the UI can show an upgrade prompt.

    HTTP Status: 403 Forbidden
    """

    default_message = "Monthly invoice limit reached for your plan"


# ============================================================================
# External Service Exceptions
# ============================================================================


class ExternalServiceError(AppException):
    """
    Raised when an external service call fails.

    WHY: Reported to the caller and never retried. A state change that
    was already committed before the call is kept.

    HTTP Status: 502 Bad Gateway
    """

    status_code = 502
    default_message = "External service error"


class EmailServiceError(ExternalServiceError):
    """
    Raised when the email provider rejects or fails a send.

    HTTP Status: 502 Bad Gateway
    """

    default_message = "Email service error"

