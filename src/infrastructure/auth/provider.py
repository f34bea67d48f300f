"""Caller identity and the auth provider protocol."""

from dataclasses import dataclass
from typing import Optional, Protocol
from uuid import UUID

from domain.entities.activity import ADMIN_ROLES, UserRole
from domain.entities.profile import Profile


@dataclass
class TokenUser:
    """The caller as described by a validated bearer token.

    ``role`` is already normalized to one of the application roles; the
    token is authoritative for authorization even when the stored profile
    says otherwise.
    """

    id: UUID
    email: str
    display_name: Optional[str] = None
    role: str = UserRole.USER.value

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES

    def as_profile(self) -> Profile:
        """Stand-in profile for callers the profile store does not know."""
        return Profile(
            id=self.id,
            email=self.email,
            username=self.display_name or self.email,
            role=self.role,
        )


class IAuthProvider(Protocol):
    """Validates and issues bearer tokens."""

    async def validate_token(self, token: str) -> Optional[TokenUser]:
        """Return the caller, or None when the token is invalid or expired."""
        ...

    def create_token(self, user: TokenUser) -> str:
        """Issue a token for ``user`` (tests and local tooling)."""
        ...
