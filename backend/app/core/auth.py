"""
JWT verification for the hosted auth provider.

WHY: Sign-up, login and sessions are owned by the hosted auth provider.
This service only needs to:
1. Verify the provider's JWTs (signature, expiry, optional audience)
2. Read the subject claim identifying the agency owner
3. Mint compatible tokens for tests and local development
"""

from datetime import datetime, timedelta
from typing import Dict, Any, Optional
from jose import jwt, JWTError

from app.core.config import settings
from app.core.exceptions import (
    TokenExpiredError,
    TokenInvalidError,
)


def create_access_token(
    data: Dict[str, Any],
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Create a JWT access token shaped like the auth provider's.

    Token includes:
    - sub: User id (must be provided in data)
    - exp: Expiration time
    - iat: Issued at time
    - aud: Audience, when AUTH_JWT_AUDIENCE is configured

    Args:
        data: Claims to encode (at least "sub")
        expires_delta: Optional custom expiration time

    Returns:
        JWT token string

    Example:
        >>> token = create_access_token({"sub": "user-1"})
        >>> verify_token(token)["sub"]
        'user-1'
    """
    to_encode = data.copy()
    now = datetime.utcnow()
    expire = now + (expires_delta or timedelta(minutes=settings.AUTH_JWT_EXPIRATION_MINUTES))

    to_encode.update({"exp": expire, "iat": now})
    if settings.AUTH_JWT_AUDIENCE and "aud" not in to_encode:
        to_encode["aud"] = settings.AUTH_JWT_AUDIENCE

    return jwt.encode(
        to_encode,
        settings.AUTH_JWT_SECRET,
        algorithm=settings.AUTH_JWT_ALGORITHM,
    )


def verify_token(token: str) -> Dict[str, Any]:
    """
    Verify and decode a JWT token.

    WHY: Token verification ensures:
    1. Signature is valid (token not tampered with)
    2. Token hasn't expired
    3. Token was issued for this audience (when configured)

    Args:
        token: JWT token string

    Returns:
        Decoded token payload

    Raises:
        TokenExpiredError: If token has expired
        TokenInvalidError: If token is malformed, signature invalid,
            or the subject claim is missing
    """
    options = {"verify_aud": bool(settings.AUTH_JWT_AUDIENCE)}
    try:
        payload = jwt.decode(
            token,
            settings.AUTH_JWT_SECRET,
            algorithms=[settings.AUTH_JWT_ALGORITHM],
            audience=settings.AUTH_JWT_AUDIENCE,
            options=options,
        )
    except jwt.ExpiredSignatureError:
        raise TokenExpiredError(message="Token has expired")
    except JWTError as e:
        raise TokenInvalidError(message="Invalid token", error=str(e))

    if not payload.get("sub"):
        raise TokenInvalidError(message="Invalid token: missing subject")

    return payload
