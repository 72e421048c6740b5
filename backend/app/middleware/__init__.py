"""
Middleware package.

WHY: Middleware provides cross-cutting concerns (request correlation and
access logging) that apply to all requests.
"""

from app.middleware.request_context import (
    RequestContextMiddleware,
    RequestIdLogFilter,
    RequestContext,
    get_request_context,
    get_client_ip,
)

__all__ = [
    "RequestContextMiddleware",
    "RequestIdLogFilter",
    "RequestContext",
    "get_request_context",
    "get_client_ip",
]
