"""
FastAPI dependencies for authentication and tenant resolution.

WHY: Every billing operation is scoped by the caller's agency id. Resolving
the agency here, before any route body runs, means no service ever sees a
request without a verified tenant.
"""

from typing import Optional
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import verify_token
from app.core.exceptions import AuthenticationError, AgencyNotFoundError
from app.dao.agency import AgencyDAO
from app.db.session import get_db
from app.models.agency import Agency


# HTTP Bearer token security scheme
# Format: "Authorization: Bearer <token>"
security = HTTPBearer(auto_error=False)


async def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> str:
    """
    Get the authenticated user id from the bearer token.

    Raises:
        AuthenticationError: If the header is missing
        TokenExpiredError / TokenInvalidError: If the token fails verification
    """
    if credentials is None:
        raise AuthenticationError(message="Not authenticated")

    payload = verify_token(credentials.credentials)
    return str(payload["sub"])


async def get_current_agency(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> Agency:
    """
    Resolve the caller's agency.

    Usage:
        @router.get("/invoices")
        async def list_invoices(agency: Agency = Depends(get_current_agency)):
            ...

    Args:
        user_id: Subject of the verified token
        db: Database session

    Returns:
        The Agency owned by the caller

    Raises:
        AgencyNotFoundError: If the user has not set up an agency yet
    """
    agency = await AgencyDAO(db).get_by_user_id(user_id)
    if agency is None:
        raise AgencyNotFoundError(message="Agency settings not found for this user")
    return agency
