"""JWT authentication provider implementation.

Tokens are HS256-signed by the identity service this API sits behind.

Payload structure:
    {
        "sub": "user-uuid",
        "email": "admin@example.com",
        "role": "superAdmin",
        "username": "jane",
        "exp": 1234567890
    }
"""

from datetime import datetime, timedelta
from typing import Optional
from uuid import UUID

import structlog
from jose import JWTError, jwt

from core.config import settings
from domain.entities.activity import USER_ROLE_VALUES, UserRole
from infrastructure.auth.provider import TokenUser

logger = structlog.get_logger()


class JWTAuthProvider:
    """JWT-based authentication provider."""

    def __init__(
        self,
        secret_key: str = settings.jwt_secret_key,
        algorithm: str = settings.jwt_algorithm,
        expire_minutes: int = settings.jwt_expire_minutes,
    ) -> None:
        self._secret_key = secret_key
        self._algorithm = algorithm
        self._expire_minutes = expire_minutes

    async def validate_token(self, token: str) -> Optional[TokenUser]:
        """
        Validate a JWT token and extract user info.

        Args:
            token: The JWT to validate

        Returns:
            TokenUser if valid, None if invalid or expired
        """
        try:
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[self._algorithm],
                options={"verify_aud": False},
            )
        except JWTError:
            return None

        user_id = payload.get("sub")
        email = payload.get("email")
        if not user_id or not email:
            return None

        try:
            parsed_id = UUID(user_id)
        except ValueError:
            return None

        role = payload.get("role")
        if role not in USER_ROLE_VALUES:
            # Identity-provider roles ("authenticated", ...) carry no app privileges
            role = UserRole.USER.value

        return TokenUser(
            id=parsed_id,
            email=email,
            display_name=payload.get("username") or payload.get("name"),
            role=role,
        )

    def create_token(self, user: TokenUser) -> str:
        """
        Create a JWT token for a user (used by tests and local tooling).

        Args:
            user: The user to create a token for

        Returns:
            The generated JWT string
        """
        expire = datetime.utcnow() + timedelta(minutes=self._expire_minutes)

        payload: dict = {
            "sub": str(user.id),
            "email": user.email,
            "role": user.role,
            "username": user.display_name,
            "exp": expire,
        }

        logger.debug("jwt_issued", user_id=str(user.id), role=payload["role"])
        return jwt.encode(payload, self._secret_key, algorithm=self._algorithm)
