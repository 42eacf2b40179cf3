"""Schemas for the workspace audit trail."""

from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, Field

from domain.entities.activity import ActivityLog

EntityType = Literal["workspace", "member", "invitation"]


class FieldChange(BaseModel):
    """Before and after values of one changed field."""

    old: Any = None
    new: Any = None


class ActivityEntry(BaseModel):
    """One line of the audit trail, e.g. ``member.role_changed``."""

    id: UUID
    workspace_id: UUID
    actor_id: UUID
    action: str = Field(..., examples=["invitation.accepted"])
    entity_type: EntityType
    entity_id: UUID
    summary: str = Field("", examples=["bob@example.com accepted an invitation as member"])
    changes: dict[str, FieldChange] | None = None
    metadata: dict[str, Any] | None = None
    created_at: datetime

    @classmethod
    def from_entity(cls, activity: ActivityLog) -> "ActivityEntry":
        return cls(
            id=activity.id,
            workspace_id=activity.workspace_id,
            actor_id=activity.actor_id,
            action=activity.action,
            entity_type=activity.entity_type,  # type: ignore[arg-type]
            entity_id=activity.entity_id,
            summary=activity.summary,
            changes=(
                {name: FieldChange(**diff) for name, diff in activity.changes.items()}
                if activity.changes
                else None
            ),
            metadata=activity.metadata,
            created_at=activity.created_at,
        )


class ActivityFeed(BaseModel):
    """Newest-first page of audit entries."""

    data: list[ActivityEntry]
    meta: dict[str, int] = Field(default_factory=dict)
