"""Workspace API routes."""

from uuid import UUID

from fastapi import APIRouter, Depends, Request, status

from api.dependencies.auth import CurrentUser
from api.v1.dependencies import get_workspace_service
from api.v1.schemas.workspace import (
    PermissionCheckResponse,
    TransferOwnershipRequest,
    WorkspaceCreate,
    WorkspaceDetailResponse,
    WorkspaceListResponse,
    WorkspaceResponse,
    WorkspaceUpdate,
)
from core.rate_limit import READ_LIMIT, WRITE_LIMIT, limiter
from domain.entities.workspace import Capability
from domain.services.workspace_service import WorkspaceService

router = APIRouter(prefix="/workspaces", tags=["workspaces"])


@router.get(
    "",
    response_model=WorkspaceListResponse,
    summary="List user's workspaces",
    responses={200: {"description": "List of workspaces the user belongs to"}},
)
@limiter.limit(READ_LIMIT)  # type: ignore[untyped-decorator]
async def list_workspaces(
    request: Request,
    user: CurrentUser,
    service: WorkspaceService = Depends(get_workspace_service),
) -> WorkspaceListResponse:
    """Get all non-trashed workspaces the authenticated user is a member of."""
    workspaces = await service.get_all_for_user(user.id)
    data = [WorkspaceResponse.from_entity(ws) for ws in workspaces]
    return WorkspaceListResponse(data=data, meta={"total": len(data)})


@router.post(
    "",
    response_model=WorkspaceDetailResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a workspace",
    responses={
        201: {"description": "Workspace created successfully"},
        422: {"description": "Invalid name"},
    },
)
@limiter.limit(WRITE_LIMIT)  # type: ignore[untyped-decorator]
async def create_workspace(
    request: Request,
    body: WorkspaceCreate,
    user: CurrentUser,
    service: WorkspaceService = Depends(get_workspace_service),
) -> WorkspaceDetailResponse:
    """Create a new workspace. The creator is automatically added as Owner."""
    workspace = await service.create(
        user_id=user.id,
        name=body.name,
        description=body.description,
    )
    return WorkspaceDetailResponse(data=WorkspaceResponse.from_entity(workspace))


@router.get(
    "/trash",
    response_model=WorkspaceListResponse,
    summary="List trashed workspaces",
    responses={200: {"description": "Trashed workspaces the user may restore"}},
)
@limiter.limit(READ_LIMIT)  # type: ignore[untyped-decorator]
async def list_trashed_workspaces(
    request: Request,
    user: CurrentUser,
    service: WorkspaceService = Depends(get_workspace_service),
) -> WorkspaceListResponse:
    """Get trashed workspaces the user is allowed to restore."""
    workspaces = await service.get_trashed_for_user(user.id)
    data = [WorkspaceResponse.from_entity(ws) for ws in workspaces]
    return WorkspaceListResponse(data=data, meta={"total": len(data)})


@router.get(
    "/{workspace_id}",
    response_model=WorkspaceDetailResponse,
    summary="Get workspace details",
    responses={
        200: {"description": "Workspace details"},
        403: {"description": "Not a member"},
        404: {"description": "Workspace not found"},
    },
)
@limiter.limit(READ_LIMIT)  # type: ignore[untyped-decorator]
async def get_workspace(
    request: Request,
    workspace_id: UUID,
    user: CurrentUser,
    service: WorkspaceService = Depends(get_workspace_service),
) -> WorkspaceDetailResponse:
    """Get a specific workspace by ID. Requires membership."""
    workspace = await service.get_by_id(workspace_id, user.id)
    return WorkspaceDetailResponse(data=WorkspaceResponse.from_entity(workspace))


@router.patch(
    "/{workspace_id}",
    response_model=WorkspaceDetailResponse,
    summary="Update workspace",
    responses={
        200: {"description": "Workspace updated"},
        403: {"description": "Insufficient permissions"},
        404: {"description": "Workspace not found"},
        409: {"description": "Workspace is in trash or was modified concurrently"},
    },
)
@limiter.limit(WRITE_LIMIT)  # type: ignore[untyped-decorator]
async def update_workspace(
    request: Request,
    workspace_id: UUID,
    body: WorkspaceUpdate,
    user: CurrentUser,
    service: WorkspaceService = Depends(get_workspace_service),
) -> WorkspaceDetailResponse:
    """Update a workspace. Requires edit-workspace."""
    workspace = await service.update(
        workspace_id=workspace_id,
        user_id=user.id,
        name=body.name,
        description=body.description,
    )
    return WorkspaceDetailResponse(data=WorkspaceResponse.from_entity(workspace))


@router.delete(
    "/{workspace_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete workspace permanently",
    responses={
        204: {"description": "Workspace deleted"},
        403: {"description": "Insufficient permissions (Owner only)"},
        404: {"description": "Workspace not found"},
    },
)
@limiter.limit(WRITE_LIMIT)  # type: ignore[untyped-decorator]
async def delete_workspace(
    request: Request,
    workspace_id: UUID,
    user: CurrentUser,
    service: WorkspaceService = Depends(get_workspace_service),
) -> None:
    """Delete a workspace and its members. Requires Owner role."""
    await service.delete_permanently(workspace_id, user.id)
    return None


@router.post(
    "/{workspace_id}/trash",
    response_model=WorkspaceDetailResponse,
    summary="Move workspace to trash",
    responses={
        200: {"description": "Workspace moved to trash"},
        403: {"description": "Insufficient permissions"},
        409: {"description": "Workspace already in trash"},
    },
)
@limiter.limit(WRITE_LIMIT)  # type: ignore[untyped-decorator]
async def move_to_trash(
    request: Request,
    workspace_id: UUID,
    user: CurrentUser,
    service: WorkspaceService = Depends(get_workspace_service),
) -> WorkspaceDetailResponse:
    """Soft-delete a workspace. Requires move-to-trash."""
    workspace = await service.move_to_trash(workspace_id, user.id)
    return WorkspaceDetailResponse(data=WorkspaceResponse.from_entity(workspace))


@router.post(
    "/{workspace_id}/restore",
    response_model=WorkspaceDetailResponse,
    summary="Restore workspace from trash",
    responses={
        200: {"description": "Workspace restored"},
        403: {"description": "Insufficient permissions"},
        409: {"description": "Workspace is not in trash"},
    },
)
@limiter.limit(WRITE_LIMIT)  # type: ignore[untyped-decorator]
async def restore_workspace(
    request: Request,
    workspace_id: UUID,
    user: CurrentUser,
    service: WorkspaceService = Depends(get_workspace_service),
) -> WorkspaceDetailResponse:
    """Restore a trashed workspace. Requires move-to-trash."""
    workspace = await service.restore(workspace_id, user.id)
    return WorkspaceDetailResponse(data=WorkspaceResponse.from_entity(workspace))


@router.post(
    "/{workspace_id}/transfer-ownership",
    response_model=WorkspaceDetailResponse,
    summary="Transfer workspace ownership",
    responses={
        200: {"description": "Ownership transferred"},
        403: {"description": "Must be workspace owner"},
        404: {"description": "Workspace not found or target not a member"},
    },
)
@limiter.limit(WRITE_LIMIT)  # type: ignore[untyped-decorator]
async def transfer_ownership(
    request: Request,
    workspace_id: UUID,
    body: TransferOwnershipRequest,
    user: CurrentUser,
    service: WorkspaceService = Depends(get_workspace_service),
) -> WorkspaceDetailResponse:
    """Transfer workspace ownership to another active member. Requires Owner role."""
    workspace = await service.transfer_ownership(
        workspace_id=workspace_id,
        current_owner_id=user.id,
        new_owner_id=body.new_owner_id,
    )
    return WorkspaceDetailResponse(data=WorkspaceResponse.from_entity(workspace))


@router.get(
    "/{workspace_id}/permissions/{capability}",
    response_model=PermissionCheckResponse,
    summary="Check a capability for the current user",
    responses={
        200: {"description": "Permission decision"},
        404: {"description": "Workspace not found"},
    },
)
@limiter.limit(READ_LIMIT)  # type: ignore[untyped-decorator]
async def check_permission(
    request: Request,
    workspace_id: UUID,
    capability: Capability,
    user: CurrentUser,
    service: WorkspaceService = Depends(get_workspace_service),
) -> PermissionCheckResponse:
    """Evaluate whether the caller holds a capability in the workspace."""
    decision = await service.check_permission(workspace_id, user.id, capability)
    return PermissionCheckResponse(
        capability=decision.capability.value,
        allowed=decision.allowed,
        role=decision.role.label if decision.role else None,
        reason=decision.reason.value if decision.reason else None,
    )
