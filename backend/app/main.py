"""
Main FastAPI application.

WHY: This is the entry point for the application. It configures logging,
middleware, routes and exception handlers.
"""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core.config import settings
from app.core.exception_handlers import register_exception_handlers
from app.middleware import RequestContextMiddleware, RequestIdLogFilter
from app.api import (
    clients,
    invoices,
    payments,
    proposals,
    reports,
    services,
    subscriptions,
    support,
)

LOG_FORMAT = "%(asctime)s %(levelname)s [%(request_id)s] %(name)s: %(message)s"


def configure_logging() -> None:
    """
    Configure the root logger from LOG_LEVEL.

    Every record is stamped with the current request id.
    """
    root = logging.getLogger()
    root.setLevel(settings.LOG_LEVEL.upper())

    if not any(getattr(h, "_billing_handler", False) for h in root.handlers):
        handler = logging.StreamHandler()
        handler._billing_handler = True
        handler.addFilter(RequestIdLogFilter())
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)


def create_app() -> FastAPI:
    """
    Create and configure FastAPI application.

    WHY: Factory pattern allows easier testing with different configurations
    and makes it possible to create multiple app instances if needed.

    Returns:
        Configured FastAPI application instance
    """
    configure_logging()

    app = FastAPI(
        title=settings.PROJECT_NAME,
        description="Agency Billing API",
        version=settings.VERSION,
        docs_url=f"{settings.API_V1_PREFIX}/docs",
        redoc_url=f"{settings.API_V1_PREFIX}/redoc",
        openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
    )

    register_exception_handlers(app)

    # Request id propagation and one access log line per request
    app.add_middleware(RequestContextMiddleware)

    # Configure CORS
    # WHY: The frontend runs on a different origin. In production, restrict
    # CORS_ORIGINS to specific domains.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health", tags=["health"])
    async def health_check() -> dict:
        """
        Health check endpoint.

        WHY: Allows load balancers and monitoring to verify service health
        without checking authentication or database connectivity.
        """
        return {"status": "healthy", "version": settings.VERSION}

    # Register API routers
    app.include_router(clients.router, prefix=settings.API_V1_PREFIX)
    app.include_router(invoices.router, prefix=settings.API_V1_PREFIX)
    app.include_router(payments.router, prefix=settings.API_V1_PREFIX)
    app.include_router(proposals.router, prefix=settings.API_V1_PREFIX)
    app.include_router(reports.router, prefix=settings.API_V1_PREFIX)
    app.include_router(reports.dashboard_router, prefix=settings.API_V1_PREFIX)
    app.include_router(services.router, prefix=settings.API_V1_PREFIX)
    app.include_router(subscriptions.router, prefix=settings.API_V1_PREFIX)
    app.include_router(support.router, prefix=settings.API_V1_PREFIX)

    return app


# Create app instance
# WHY: Creating the app instance here allows it to be imported by uvicorn.
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower(),
    )
