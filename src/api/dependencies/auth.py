"""Authentication dependencies for FastAPI."""

from functools import lru_cache
from typing import Annotated

import structlog
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from core.exceptions import AuthenticationError, ErrorCode, InsufficientPermissionsError
from infrastructure.auth.jwt_provider import JWTAuthProvider
from infrastructure.auth.provider import IAuthProvider, TokenUser

logger = structlog.get_logger()

# auto_error is off so a missing header renders in the standard error body
bearer_scheme = HTTPBearer(auto_error=False)


@lru_cache
def get_auth_provider() -> IAuthProvider:
    """Get the token validator configured from settings."""
    return JWTAuthProvider()


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
    auth_provider: IAuthProvider = Depends(get_auth_provider),
) -> TokenUser:
    """
    Resolve the caller from the bearer token.

    Raises:
        AuthenticationError: UNAUTHORIZED without a token, INVALID_TOKEN when
            the token fails validation or has expired.
    """
    if credentials is None:
        raise AuthenticationError(
            message="Authorization header required",
            error_code=ErrorCode.UNAUTHORIZED,
        )

    user = await auth_provider.validate_token(credentials.credentials)
    if user is None:
        logger.info("token_rejected")
        raise AuthenticationError(
            message="Invalid or expired token",
            error_code=ErrorCode.INVALID_TOKEN,
        )

    structlog.contextvars.bind_contextvars(user_id=str(user.id))
    return user


async def require_admin(
    user: Annotated[TokenUser, Depends(get_current_user)],
) -> TokenUser:
    """
    Restrict a route to the admin and superAdmin roles.

    Raises:
        InsufficientPermissionsError: The caller holds neither role.
    """
    if not user.is_admin:
        logger.info("admin_route_denied", role=user.role)
        raise InsufficientPermissionsError(required_role="admin")
    return user


CurrentUser = Annotated[TokenUser, Depends(get_current_user)]
AdminUser = Annotated[TokenUser, Depends(require_admin)]
