"""Profile repository protocol."""

from collections.abc import Iterable
from typing import Protocol
from uuid import UUID

from domain.entities.profile import Profile


class IProfileRepository(Protocol):
    """Repository interface for Profile entities."""

    async def get(self, profile_id: UUID) -> Profile | None:
        """Get a profile by ID."""
        ...

    async def get_many(self, profile_ids: Iterable[UUID]) -> list[Profile]:
        """Get all profiles whose ID is in ``profile_ids`` (order unspecified)."""
        ...

    async def get_by_roles(self, roles: Iterable[str], active_only: bool = True) -> list[Profile]:
        """Get profiles holding any of ``roles``."""
        ...

    async def create(self, profile: Profile) -> Profile:
        """Create a new profile."""
        ...
