"""
Request context middleware for request correlation and access logging.

WHAT: Middleware that assigns every request an id and logs one line per
request (method, path, status, duration).

WHY: Billing operations are reported to the caller and never retried, so
the only trail of a failed send or a rejected payment is the log. A
request id that appears in the response header and on every log line
lets support match a user's report to the server-side events.

HOW: The id is taken from an incoming X-Request-ID header (set by a
proxy or the frontend) or generated. It is stored in request.state and
in a ContextVar so services can log it without the request object.
"""

import logging
import time
import uuid
from contextvars import ContextVar
from dataclasses import dataclass
from typing import Optional, Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


@dataclass
class RequestContext:
    """
    Container for request-scoped context data.

    Fields:
    - request_id: Identifier for log correlation
    - ip_address: Client IP (first X-Forwarded-For hop when proxied)
    - path: Request path
    - method: HTTP method
    """

    request_id: str
    ip_address: str
    path: str
    method: str


# WHY: ContextVar gives each concurrent request its own isolated context
_request_context: ContextVar[Optional[RequestContext]] = ContextVar(
    "request_context", default=None
)


def get_request_context() -> Optional[RequestContext]:
    """
    Get the current request context.

    Returns:
        RequestContext if within a request, None otherwise
    """
    return _request_context.get()


def get_client_ip(request: Request) -> str:
    """
    Extract the client IP address, honouring X-Forwarded-For.

    Security Note:
        The header can be spoofed when not behind a trusted proxy; the
        value is only used for logging.
    """
    x_forwarded_for = request.headers.get("X-Forwarded-For")
    if x_forwarded_for:
        return x_forwarded_for.split(",")[0].strip()

    if request.client and request.client.host:
        return request.client.host

    return "unknown"


class RequestIdLogFilter(logging.Filter):
    """
    Logging filter that stamps records with the current request id.

    Usage:
        handler.addFilter(RequestIdLogFilter())
        formatter = logging.Formatter("%(request_id)s %(message)s")
    """

    def filter(self, record: logging.LogRecord) -> bool:
        context = get_request_context()
        record.request_id = context.request_id if context else "-"
        return True


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Middleware that captures request context and logs each request.

    HOW: Stores context in both:
    - request.state (for access from request handlers)
    - ContextVar (for access from services/DAOs without request object)
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """
        Process request and add context.

        Args:
            request: Incoming request
            call_next: Next middleware/handler

        Returns:
            Response with request ID header added
        """
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())

        context = RequestContext(
            request_id=request_id,
            ip_address=get_client_ip(request),
            path=request.url.path,
            method=request.method,
        )
        request.state.context = context
        token = _request_context.set(context)

        started = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            duration_ms = (time.perf_counter() - started) * 1000
            logger.info(
                "%s %s -> %s (%.1f ms)",
                context.method,
                context.path,
                status_code,
                duration_ms,
            )
            _request_context.reset(token)
