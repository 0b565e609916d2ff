"""Bearer token authentication for API routes."""

from dataclasses import dataclass

import jwt
import structlog
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from librarian.config import settings

logger = structlog.get_logger(__name__)

bearer_scheme = HTTPBearer(auto_error=False, description="JWT issued by the auth service")


@dataclass(frozen=True)
class CurrentUser:
    """Identity carried by a verified bearer token."""

    id: str
    email: str | None = None
    username: str | None = None


def _unauthorized(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"error": "Access denied", "message": message},
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),  # noqa: B008
) -> CurrentUser:
    """
    Verify the bearer token and return the user it identifies.

    Tokens are issued elsewhere; this only checks the signature, expiry and
    the presence of an ``id`` (or ``userId``) claim.

    Raises:
        HTTPException: 401 if the token is missing, invalid or expired;
            500 if no JWT secret is configured
    """
    if credentials is None or not credentials.credentials:
        logger.warning("auth_token_missing")
        raise _unauthorized("No authorization token provided")

    if not settings.jwt_secret:
        logger.error("jwt_secret_not_configured")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="API authentication is not properly configured",
        )

    try:
        claims = jwt.decode(
            credentials.credentials,
            settings.jwt_secret.get_secret_value(),
            algorithms=[settings.jwt_algorithm],
        )
    except jwt.ExpiredSignatureError:
        logger.warning("auth_token_expired")
        raise _unauthorized("Token has expired") from None
    except jwt.InvalidTokenError:
        logger.warning("auth_token_invalid")
        raise _unauthorized("Invalid token") from None

    user_id = claims.get("id") or claims.get("userId")
    if not user_id:
        logger.warning("auth_token_without_user")
        raise _unauthorized("Token validation failed")
    if ":" in str(user_id):
        # Store keys are namespace:user:stamp; a colon would reach another user's keys
        logger.warning("auth_token_invalid_user_id")
        raise _unauthorized("Invalid user id in token")

    structlog.contextvars.bind_contextvars(user_id=str(user_id))
    return CurrentUser(
        id=str(user_id),
        email=claims.get("email"),
        username=claims.get("username"),
    )
