"""SQLAlchemy implementation of Profile repository."""

from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from domain.entities.profile import Profile
from infrastructure.database.models import ProfileModel


class SQLAlchemyProfileRepository:
    """SQLAlchemy implementation of IProfileRepository."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, profile_id: UUID) -> Profile | None:
        """Get a profile by ID."""
        model = await self._session.get(ProfileModel, profile_id)
        return self._to_entity(model) if model else None

    async def get_many(self, profile_ids: Iterable[UUID]) -> list[Profile]:
        """Get every profile whose ID is in ``profile_ids``."""
        ids = list(profile_ids)
        if not ids:
            return []
        stmt = select(ProfileModel).where(ProfileModel.id.in_(ids))
        result = await self._session.execute(stmt)
        return [self._to_entity(m) for m in result.scalars()]

    async def get_by_roles(self, roles: Iterable[str], active_only: bool = True) -> list[Profile]:
        """Get profiles holding any of ``roles``, oldest account first."""
        stmt = select(ProfileModel).where(ProfileModel.role.in_(list(roles)))
        if active_only:
            stmt = stmt.where(ProfileModel.is_active.is_(True))
        stmt = stmt.order_by(ProfileModel.created_at, ProfileModel.username)
        result = await self._session.execute(stmt)
        return [self._to_entity(m) for m in result.scalars()]

    async def create(self, profile: Profile) -> Profile:
        """Create a new profile."""
        model = ProfileModel(
            id=profile.id,
            email=profile.email,
            username=profile.username,
            role=profile.role,
            first_name=profile.first_name,
            last_name=profile.last_name,
            is_active=profile.is_active,
            created_at=profile.created_at,
        )
        self._session.add(model)
        await self._session.flush()
        return self._to_entity(model)

    def _to_entity(self, model: ProfileModel) -> Profile:
        """Convert ORM model to domain entity."""
        return Profile(
            id=model.id,
            email=model.email,
            username=model.username,
            role=model.role,
            first_name=model.first_name,
            last_name=model.last_name,
            is_active=model.is_active,
            created_at=model.created_at,
        )
