"""
Tubely Authentication Module

Bearer token verification for the upload endpoints. Tokens are HS256 JWTs
signed with the process-wide ``secret_key``; the ``sub`` claim carries the
user's UUID. Issuing tokens (login, refresh) belongs to the identity
subsystem and is out of scope here, apart from :func:`create_access_token`
which tooling and tests use to mint tokens.

Usage:
    ```python
    from uuid import UUID
    from fastapi import Depends
    from tubely.core.auth import get_current_user_id

    @router.post("/protected")
    async def protected_route(user_id: UUID = Depends(get_current_user_id)):
        return {"user_id": str(user_id)}
    ```
"""

import logging

from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import UUID

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from tubely.config import Settings, get_settings
from tubely.core.errors import Unauthenticated


logger = logging.getLogger(__name__)


# =============================================================================
# Security Scheme
# =============================================================================

# auto_error is off so a missing header goes through the Unauthenticated envelope
security = HTTPBearer(
    scheme_name="Bearer",
    description="JWT Bearer token signed with the server secret.",
    auto_error=False,
)

TOKEN_TYPE = "access"


# =============================================================================
# JWT Functions
# =============================================================================


def create_access_token(
    user_id: UUID | str,
    settings: Settings | None = None,
    expires_in: timedelta | None = None,
) -> str:
    """
    Create an access token for the given user.

    Token claims:
    - sub: User ID (subject)
    - exp: Expiration timestamp
    - iat: Issued at timestamp
    - type: "access"

    Args:
        user_id: The user's unique identifier.
        settings: Optional Settings instance. If not provided, uses get_settings().
        expires_in: Override for the configured jwt_expiration_hours.

    Returns:
        str: The encoded JWT access token.
    """
    if settings is None:
        settings = get_settings()

    now = datetime.now(UTC)
    expire = now + (expires_in or timedelta(hours=settings.jwt_expiration_hours))

    payload = {
        "sub": str(user_id),
        "exp": expire,
        "iat": now,
        "type": TOKEN_TYPE,
    }

    token = jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)
    logger.debug("Created access token for user: %s (expires: %s)", user_id, expire.isoformat())
    return token


def validate_access_token(token: str, settings: Settings) -> dict[str, Any]:
    """
    Validate a JWT and return its payload.

    Raises:
        JWTError: If the token is invalid, expired, or signature verification fails.
    """
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
        logger.debug("JWT validated for subject: %s", payload.get("sub", "unknown"))
        return payload
    except jwt.ExpiredSignatureError:
        logger.warning("JWT has expired")
        raise
    except JWTError as e:
        logger.warning("JWT validation failed: %s", str(e))
        raise


def user_id_from_token(token: str, settings: Settings) -> UUID:
    """
    Resolve the authenticated user ID carried by a bearer token.

    Args:
        token: Raw JWT string (without the "Bearer " prefix).
        settings: Settings holding the signing secret.

    Returns:
        UUID: The ``sub`` claim parsed as a UUID.

    Raises:
        Unauthenticated: If the token fails verification or its subject
            is not a UUID.
    """
    try:
        payload = validate_access_token(token, settings)
    except JWTError as e:
        raise Unauthenticated("Couldn't validate JWT") from e

    subject = payload.get("sub")
    if not subject:
        raise Unauthenticated("Token has no subject")
    try:
        return UUID(str(subject))
    except ValueError as e:
        raise Unauthenticated("Token subject is not a valid user ID") from e


# =============================================================================
# Authentication Dependencies
# =============================================================================


async def get_current_user_id(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    settings: Settings = Depends(get_settings),
) -> UUID:
    """
    FastAPI dependency returning the caller's user ID.

    Raises:
        Unauthenticated: With 401 status if the header is missing, is not a
            Bearer credential, or the token does not validate.
    """
    if credentials is None or not credentials.credentials:
        raise Unauthenticated("Couldn't find JWT")
    return user_id_from_token(credentials.credentials, settings)


__all__ = [
    "security",
    "create_access_token",
    "validate_access_token",
    "user_id_from_token",
    "get_current_user_id",
]
