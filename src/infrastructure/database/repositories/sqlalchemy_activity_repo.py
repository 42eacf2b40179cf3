"""SQLAlchemy activity log repository."""

from uuid import UUID

from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession

from domain.entities.activity import ActivityLog
from infrastructure.database.models import ActivityLogModel


def _newest_first(stmt: Select[tuple[ActivityLogModel]]) -> Select[tuple[ActivityLogModel]]:
    # id breaks ties so offset pagination is stable
    return stmt.order_by(ActivityLogModel.created_at.desc(), ActivityLogModel.id.desc())


class SQLAlchemyActivityRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, activity: ActivityLog) -> ActivityLog:
        self._session.add(
            ActivityLogModel(
                id=activity.id,
                workspace_id=activity.workspace_id,
                actor_id=activity.actor_id,
                action=activity.action,
                entity_type=activity.entity_type,
                entity_id=activity.entity_id,
                summary=activity.summary,
                changes=activity.changes,
                metadata_=activity.metadata,
                created_at=activity.created_at,
            )
        )
        await self._session.flush()
        return activity

    async def get_for_workspace(
        self,
        workspace_id: UUID,
        limit: int = 50,
        offset: int = 0,
        entity_type: str | None = None,
    ) -> list[ActivityLog]:
        stmt = select(ActivityLogModel).where(ActivityLogModel.workspace_id == workspace_id)
        if entity_type is not None:
            stmt = stmt.where(ActivityLogModel.entity_type == entity_type)
        return await self._fetch(_newest_first(stmt).offset(offset).limit(limit))

    async def get_for_entity(
        self,
        workspace_id: UUID,
        entity_type: str,
        entity_id: UUID,
        limit: int = 50,
    ) -> list[ActivityLog]:
        stmt = select(ActivityLogModel).where(
            ActivityLogModel.workspace_id == workspace_id,
            ActivityLogModel.entity_type == entity_type,
            ActivityLogModel.entity_id == entity_id,
        )
        return await self._fetch(_newest_first(stmt).limit(limit))

    async def _fetch(self, stmt: Select[tuple[ActivityLogModel]]) -> list[ActivityLog]:
        result = await self._session.execute(stmt)
        return [
            ActivityLog(
                id=row.id,
                workspace_id=row.workspace_id,
                actor_id=row.actor_id,
                action=row.action,
                entity_type=row.entity_type,
                entity_id=row.entity_id,
                summary=row.summary,
                changes=row.changes,
                metadata=row.metadata_,
                created_at=row.created_at,
            )
            for row in result.scalars()
        ]
