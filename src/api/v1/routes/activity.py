"""Activity log API routes."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request

from api.dependencies.auth import CurrentUser
from api.v1.dependencies import get_activity_service
from api.v1.schemas.activity import ActivityEntry, ActivityFeed, EntityType
from core.rate_limit import READ_LIMIT, limiter
from domain.services.activity_service import ActivityService

router = APIRouter(
    prefix="/workspaces/{workspace_id}/activity",
    tags=["activity"],
)


@router.get(
    "",
    response_model=ActivityFeed,
    summary="Get workspace activity feed",
    responses={
        200: {"description": "Paginated activity feed"},
        403: {"description": "Not a member"},
        404: {"description": "Workspace not found"},
    },
)
@limiter.limit(READ_LIMIT)  # type: ignore[untyped-decorator]
async def get_workspace_activity(
    request: Request,
    workspace_id: UUID,
    user: CurrentUser,
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    entity_type: EntityType | None = Query(None),
    service: ActivityService = Depends(get_activity_service),
) -> ActivityFeed:
    """Newest-first activity feed, optionally for one entity type. Requires view-team."""
    activities = await service.get_workspace_activity(
        workspace_id=workspace_id,
        user_id=user.id,
        limit=limit,
        offset=offset,
        entity_type=entity_type,
    )
    data = [ActivityEntry.from_entity(a) for a in activities]
    return ActivityFeed(data=data, meta={"limit": limit, "offset": offset})


@router.get(
    "/{entity_type}/{entity_id}",
    response_model=ActivityFeed,
    summary="Get entity activity history",
    responses={
        200: {"description": "Entity-specific activity history"},
        403: {"description": "Not a member"},
        404: {"description": "Workspace not found"},
    },
)
@limiter.limit(READ_LIMIT)  # type: ignore[untyped-decorator]
async def get_entity_history(
    request: Request,
    workspace_id: UUID,
    entity_type: EntityType,
    entity_id: UUID,
    user: CurrentUser,
    limit: int = Query(50, ge=1, le=100),
    service: ActivityService = Depends(get_activity_service),
) -> ActivityFeed:
    """Get activity history for a member or invitation. Requires view-team."""
    activities = await service.get_entity_history(
        workspace_id=workspace_id,
        user_id=user.id,
        entity_type=entity_type,
        entity_id=entity_id,
        limit=limit,
    )
    data = [ActivityEntry.from_entity(a) for a in activities]
    return ActivityFeed(data=data, meta={"limit": limit})
