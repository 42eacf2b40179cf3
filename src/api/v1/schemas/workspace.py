"""Pydantic schemas for Workspace and Member API."""

from datetime import datetime
from typing import Any, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from domain.entities.workspace import Workspace, WorkspaceMember


class WorkspaceCreate(BaseModel):
    """Schema for creating a Workspace."""

    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=1000)


class WorkspaceUpdate(BaseModel):
    """Schema for updating a Workspace (all fields optional)."""

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=1000)


class WorkspaceResponse(BaseModel):
    """Schema for Workspace response."""

    model_config = ConfigDict(
        from_attributes=True,
        json_schema_extra={
            "example": {
                "id": "123e4567-e89b-12d3-a456-426614174000",
                "name": "My Team",
                "description": "Team workspace for project management",
                "owner_id": "456e4567-e89b-12d3-a456-426614174000",
                "member_count": 3,
                "is_deleted": False,
                "deleted_at": None,
                "version": 4,
                "created_at": "2026-02-01T10:00:00",
                "updated_at": "2026-02-01T10:00:00",
            }
        },
    )

    id: UUID
    name: str
    description: Optional[str]
    owner_id: UUID
    member_count: int = 0
    is_deleted: bool = False
    deleted_at: Optional[datetime] = None
    version: int
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_entity(cls, workspace: Workspace) -> "WorkspaceResponse":
        return cls(
            id=workspace.id,
            name=workspace.name,
            description=workspace.description,
            owner_id=workspace.owner_id,
            member_count=len(workspace.active_members()),
            is_deleted=workspace.is_deleted,
            deleted_at=workspace.deleted_at,
            version=workspace.version,
            created_at=workspace.created_at,
            updated_at=workspace.updated_at,
        )


class WorkspaceListResponse(BaseModel):
    """Schema for list of Workspaces response."""

    data: List[WorkspaceResponse]
    meta: dict[str, Any] = Field(default_factory=dict)


class WorkspaceDetailResponse(BaseModel):
    """Schema for single Workspace response."""

    data: WorkspaceResponse


class MemberPermissionsSchema(BaseModel):
    """Per-member permission override flags."""

    edit_workspace: bool = False
    delete_workspace: bool = False
    invite_members: bool = False
    remove_members: bool = False
    manage_roles: bool = False
    move_to_trash: bool = False


class WorkspaceMemberResponse(BaseModel):
    """Schema for Workspace Member response."""

    model_config = ConfigDict(from_attributes=True)

    user_id: UUID
    role: str
    permissions: MemberPermissionsSchema
    is_active: bool
    joined_at: datetime
    invited_by: Optional[UUID] = None

    @classmethod
    def from_entity(cls, member: WorkspaceMember) -> "WorkspaceMemberResponse":
        return cls(
            user_id=member.user_id,
            role=member.role.label,
            permissions=MemberPermissionsSchema(**member.permissions.as_dict()),
            is_active=member.is_active,
            joined_at=member.joined_at,
            invited_by=member.invited_by,
        )


class WorkspaceMemberListResponse(BaseModel):
    """Schema for list of Workspace Members response."""

    data: List[WorkspaceMemberResponse]
    meta: dict[str, Any] = Field(default_factory=dict)


class AddMemberRequest(BaseModel):
    """Schema for adding a member to a workspace."""

    user_id: UUID
    role: str = Field("member", pattern="^(admin|member)$")


class UpdateMemberRoleRequest(BaseModel):
    """Schema for updating a member's role.

    Granting ``owner`` transfers ownership and is reserved to the owner.
    """

    role: str = Field(..., pattern="^(owner|admin|member)$")


class UpdateMemberPermissionsRequest(BaseModel):
    """Partial override bag; omitted flags are left unchanged."""

    edit_workspace: Optional[bool] = None
    delete_workspace: Optional[bool] = None
    invite_members: Optional[bool] = None
    remove_members: Optional[bool] = None
    manage_roles: Optional[bool] = None
    move_to_trash: Optional[bool] = None

    def overrides(self) -> dict[str, bool]:
        return self.model_dump(exclude_none=True)


class UpdateMemberStatusRequest(BaseModel):
    """Schema for activating or deactivating a member."""

    is_active: bool


class TransferOwnershipRequest(BaseModel):
    """Schema for transferring workspace ownership."""

    new_owner_id: UUID


class PermissionCheckResponse(BaseModel):
    """Outcome of a capability check for the calling user."""

    capability: str
    allowed: bool
    role: Optional[str] = None
    reason: Optional[str] = None
