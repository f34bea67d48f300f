"""SQLAlchemy implementation of Activity Log repository."""

from datetime import datetime
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from domain.entities.activity import ActivityEvent
from infrastructure.database.models import ActivityLogModel


class SQLAlchemyActivityRepository:
    """SQLAlchemy implementation of IActivityRepository."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, event: ActivityEvent) -> ActivityEvent:
        """Create a new activity log entry."""
        model = self._to_model(event)
        self._session.add(model)
        await self._session.flush()
        await self._session.refresh(model)
        return self._to_entity(model)

    def _filters(
        self,
        start: datetime | None,
        end: datetime | None,
        resource_type: str | None,
        action_type: str | None,
    ) -> list[Any]:
        conditions: list[Any] = []
        if start is not None:
            conditions.append(ActivityLogModel.timestamp >= start)
        if end is not None:
            conditions.append(ActivityLogModel.timestamp <= end)
        if resource_type is not None:
            conditions.append(ActivityLogModel.resource_type == resource_type)
        if action_type is not None:
            conditions.append(ActivityLogModel.action_type == action_type)
        return conditions

    async def list(
        self,
        start: datetime | None = None,
        end: datetime | None = None,
        resource_type: str | None = None,
        action_type: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[ActivityEvent]:
        """Get activity log entries, ordered by newest first."""
        stmt = (
            select(ActivityLogModel)
            .where(*self._filters(start, end, resource_type, action_type))
            .order_by(ActivityLogModel.timestamp.desc(), ActivityLogModel.id)
            .offset(offset)
            .limit(limit)
        )
        result = await self._session.execute(stmt)
        return [self._to_entity(model) for model in result.scalars()]

    async def count(
        self,
        start: datetime | None = None,
        end: datetime | None = None,
        resource_type: str | None = None,
        action_type: str | None = None,
    ) -> int:
        """Count activity log entries matching the filters."""
        stmt = (
            select(func.count())
            .select_from(ActivityLogModel)
            .where(*self._filters(start, end, resource_type, action_type))
        )
        result = await self._session.execute(stmt)
        return result.scalar_one()

    def _to_entity(self, model: ActivityLogModel) -> ActivityEvent:
        """Convert ORM model to domain entity."""
        return ActivityEvent(
            id=model.id,
            action_type=model.action_type,
            resource_type=model.resource_type,
            resource_id=model.resource_id,
            resource_slug=model.resource_slug,
            resource_title=model.resource_title,
            actor_id=model.actor_id,
            actor_username=model.actor_username,
            actor_role=model.actor_role,
            details=model.details,
            timestamp=model.timestamp,
        )

    def _to_model(self, entity: ActivityEvent) -> ActivityLogModel:
        """Convert domain entity to ORM model."""
        return ActivityLogModel(
            id=entity.id,
            action_type=entity.action_type,
            resource_type=entity.resource_type,
            resource_id=entity.resource_id,
            resource_slug=entity.resource_slug,
            resource_title=entity.resource_title,
            actor_id=entity.actor_id,
            actor_username=entity.actor_username,
            actor_role=entity.actor_role,
            details=entity.details,
            timestamp=entity.timestamp,
        )
