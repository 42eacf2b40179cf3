"""Workspace membership API routes."""

from uuid import UUID

from fastapi import APIRouter, Depends, Request, status

from api.dependencies.auth import CurrentUser
from api.v1.dependencies import get_workspace_service
from api.v1.schemas.workspace import (
    AddMemberRequest,
    UpdateMemberPermissionsRequest,
    UpdateMemberRoleRequest,
    UpdateMemberStatusRequest,
    WorkspaceMemberListResponse,
    WorkspaceMemberResponse,
)
from core.rate_limit import READ_LIMIT, WRITE_LIMIT, limiter
from domain.policies.roles import normalize_role
from domain.services.workspace_service import WorkspaceService

router = APIRouter(prefix="/workspaces/{workspace_id}/members", tags=["members"])


@router.get(
    "",
    response_model=WorkspaceMemberListResponse,
    summary="List workspace members",
    responses={
        200: {"description": "List of workspace members"},
        403: {"description": "Not a member"},
        404: {"description": "Workspace not found"},
    },
)
@limiter.limit(READ_LIMIT)  # type: ignore[untyped-decorator]
async def list_members(
    request: Request,
    workspace_id: UUID,
    user: CurrentUser,
    service: WorkspaceService = Depends(get_workspace_service),
) -> WorkspaceMemberListResponse:
    """Get all members of a workspace. Requires view-team."""
    members = await service.get_members(workspace_id, user.id)
    data = [WorkspaceMemberResponse.from_entity(m) for m in members]
    return WorkspaceMemberListResponse(data=data, meta={"total": len(data)})


@router.post(
    "",
    response_model=WorkspaceMemberResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add workspace member",
    responses={
        201: {"description": "Member added"},
        403: {"description": "Insufficient permissions or role not assignable"},
        404: {"description": "Workspace not found"},
        409: {"description": "User is already a member"},
    },
)
@limiter.limit(WRITE_LIMIT)  # type: ignore[untyped-decorator]
async def add_member(
    request: Request,
    workspace_id: UUID,
    body: AddMemberRequest,
    user: CurrentUser,
    service: WorkspaceService = Depends(get_workspace_service),
) -> WorkspaceMemberResponse:
    """Add a user to a workspace directly. Requires invite-members."""
    member = await service.add_member(
        workspace_id=workspace_id,
        user_id=user.id,
        target_user_id=body.user_id,
        role=normalize_role(body.role),
    )
    return WorkspaceMemberResponse.from_entity(member)


@router.patch(
    "/{member_user_id}/role",
    response_model=WorkspaceMemberResponse,
    summary="Update member role",
    responses={
        200: {"description": "Role updated"},
        403: {"description": "Insufficient permissions, owner immutable or role not assignable"},
        404: {"description": "Workspace or member not found"},
    },
)
@limiter.limit(WRITE_LIMIT)  # type: ignore[untyped-decorator]
async def update_member_role(
    request: Request,
    workspace_id: UUID,
    member_user_id: UUID,
    body: UpdateMemberRoleRequest,
    user: CurrentUser,
    service: WorkspaceService = Depends(get_workspace_service),
) -> WorkspaceMemberResponse:
    """Change a member's role. Requires manage-roles."""
    member = await service.update_member_role(
        workspace_id=workspace_id,
        user_id=user.id,
        target_user_id=member_user_id,
        role=normalize_role(body.role),
    )
    return WorkspaceMemberResponse.from_entity(member)


@router.patch(
    "/{member_user_id}/permissions",
    response_model=WorkspaceMemberResponse,
    summary="Update member permission overrides",
    responses={
        200: {"description": "Permissions updated"},
        403: {"description": "Insufficient permissions or owner immutable"},
        404: {"description": "Workspace or member not found"},
    },
)
@limiter.limit(WRITE_LIMIT)  # type: ignore[untyped-decorator]
async def update_member_permissions(
    request: Request,
    workspace_id: UUID,
    member_user_id: UUID,
    body: UpdateMemberPermissionsRequest,
    user: CurrentUser,
    service: WorkspaceService = Depends(get_workspace_service),
) -> WorkspaceMemberResponse:
    """Merge permission override flags for a member. Requires manage-roles."""
    member = await service.update_member_permissions(
        workspace_id=workspace_id,
        user_id=user.id,
        target_user_id=member_user_id,
        overrides=body.overrides(),
    )
    return WorkspaceMemberResponse.from_entity(member)


@router.patch(
    "/{member_user_id}/status",
    response_model=WorkspaceMemberResponse,
    summary="Activate or deactivate a member",
    responses={
        200: {"description": "Status updated"},
        403: {"description": "Insufficient permissions or owner immutable"},
        404: {"description": "Workspace or member not found"},
    },
)
@limiter.limit(WRITE_LIMIT)  # type: ignore[untyped-decorator]
async def update_member_status(
    request: Request,
    workspace_id: UUID,
    member_user_id: UUID,
    body: UpdateMemberStatusRequest,
    user: CurrentUser,
    service: WorkspaceService = Depends(get_workspace_service),
) -> WorkspaceMemberResponse:
    """Activate or deactivate a member. Requires remove-members."""
    member = await service.update_member_status(
        workspace_id=workspace_id,
        user_id=user.id,
        target_user_id=member_user_id,
        is_active=body.is_active,
    )
    return WorkspaceMemberResponse.from_entity(member)


@router.delete(
    "/{member_user_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Remove workspace member",
    responses={
        204: {"description": "Member removed"},
        403: {"description": "Insufficient permissions or owner immutable"},
        404: {"description": "Workspace or member not found"},
    },
)
@limiter.limit(WRITE_LIMIT)  # type: ignore[untyped-decorator]
async def remove_member(
    request: Request,
    workspace_id: UUID,
    member_user_id: UUID,
    user: CurrentUser,
    service: WorkspaceService = Depends(get_workspace_service),
) -> None:
    """Remove a member from a workspace or leave the workspace."""
    await service.remove_member(
        workspace_id=workspace_id,
        user_id=user.id,
        target_user_id=member_user_id,
    )
    return None
