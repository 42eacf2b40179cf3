"""Activity log domain entity and action constants."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import UUID, uuid4

# --- Activity Action Constants ---
# Format: {entity_type}.{action}


class Actions:
    """Activity action constants using dot-notation."""

    # Workspace actions
    WORKSPACE_CREATED = "workspace.created"
    WORKSPACE_UPDATED = "workspace.updated"
    WORKSPACE_TRASHED = "workspace.trashed"
    WORKSPACE_RESTORED = "workspace.restored"
    WORKSPACE_DELETED = "workspace.deleted"

    # Member actions
    MEMBER_ADDED = "member.added"
    MEMBER_REMOVED = "member.removed"
    MEMBER_LEFT = "member.left"
    MEMBER_ROLE_CHANGED = "member.role_changed"
    MEMBER_PERMISSIONS_CHANGED = "member.permissions_changed"
    MEMBER_STATUS_CHANGED = "member.status_changed"
    MEMBER_OWNERSHIP_TRANSFERRED = "member.ownership_transferred"

    # Invitation actions
    INVITATION_CREATED = "invitation.created"
    INVITATION_ACCEPTED = "invitation.accepted"
    INVITATION_REJECTED = "invitation.rejected"
    INVITATION_REVOKED = "invitation.revoked"
    INVITATION_REMINDED = "invitation.reminded"


@dataclass
class ActivityLog:
    """Domain entity for an activity log entry."""

    workspace_id: UUID
    actor_id: UUID
    action: str
    entity_type: str
    entity_id: UUID
    summary: str = ""
    id: UUID = field(default_factory=uuid4)
    changes: dict[str, Any] | None = None
    metadata: dict[str, Any] | None = None
    created_at: datetime = field(default_factory=datetime.utcnow)
