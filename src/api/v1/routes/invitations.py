"""Invitation API routes."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, status

from api.dependencies.auth import CurrentUser
from api.v1.dependencies import get_invitation_service, get_referral_service
from api.v1.schemas.invitation import (
    AchievementResponse,
    CreateInvitationRequest,
    InvitationCreatedResponse,
    InvitationDetailsResponse,
    InvitationListResponse,
    InvitationResponse,
    LeaderboardEntryResponse,
    LeaderboardResponse,
    RespondInvitationRequest,
    RespondInvitationResponse,
)
from api.v1.schemas.workspace import WorkspaceMemberResponse, WorkspaceResponse
from core.rate_limit import READ_LIMIT, WRITE_LIMIT, limiter
from domain.entities.invitation import InvitationAction
from domain.services.invitation_service import InvitationService
from domain.services.referral_service import ReferralService

# Workspace-scoped invitation routes
workspace_invitations_router = APIRouter(
    prefix="/workspaces/{workspace_id}/invitations",
    tags=["invitations"],
)

# User-scoped invitation routes (respond, pending, referrals)
invitations_router = APIRouter(
    prefix="/invitations",
    tags=["invitations"],
)


@workspace_invitations_router.post(
    "",
    response_model=InvitationCreatedResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create workspace invitation",
    responses={
        201: {"description": "Invitation created"},
        403: {"description": "Insufficient permissions or role not assignable"},
        404: {"description": "Workspace not found"},
        409: {"description": "A pending invitation already exists for this email"},
        422: {"description": "Invalid email or role"},
    },
)
@limiter.limit(WRITE_LIMIT)  # type: ignore[untyped-decorator]
async def create_invitation(
    request: Request,
    workspace_id: UUID,
    body: CreateInvitationRequest,
    user: CurrentUser,
    service: InvitationService = Depends(get_invitation_service),
) -> InvitationCreatedResponse:
    """Invite an email address to a workspace. Requires invite-members."""
    invitation, raw_token = await service.create_invitation(
        workspace_id=workspace_id,
        inviter=user,
        email=body.email,
        role=body.role,
        referral_code=body.referral_code,
    )
    return InvitationCreatedResponse(
        data=InvitationResponse.from_entity(invitation),
        token=raw_token,
    )


@workspace_invitations_router.get(
    "",
    response_model=InvitationListResponse,
    summary="List workspace invitations",
    responses={
        200: {"description": "List of workspace invitations"},
        403: {"description": "Not a member"},
        404: {"description": "Workspace not found"},
    },
)
@limiter.limit(READ_LIMIT)  # type: ignore[untyped-decorator]
async def list_workspace_invitations(
    request: Request,
    workspace_id: UUID,
    user: CurrentUser,
    service: InvitationService = Depends(get_invitation_service),
) -> InvitationListResponse:
    """List all invitations for a workspace. Requires view-team."""
    invitations = await service.get_workspace_invitations(workspace_id, user.id)
    data = [InvitationResponse.from_entity(inv) for inv in invitations]
    return InvitationListResponse(data=data, meta={"total": len(data)})


@workspace_invitations_router.delete(
    "/{invitation_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Revoke invitation",
    responses={
        204: {"description": "Invitation revoked"},
        403: {"description": "Insufficient permissions"},
        404: {"description": "Invitation not found"},
        410: {"description": "Invitation is no longer pending"},
    },
)
@limiter.limit(WRITE_LIMIT)  # type: ignore[untyped-decorator]
async def revoke_invitation(
    request: Request,
    workspace_id: UUID,
    invitation_id: UUID,
    user: CurrentUser,
    service: InvitationService = Depends(get_invitation_service),
) -> None:
    """Revoke a pending invitation. Requires invite-members."""
    await service.revoke_invitation(
        workspace_id=workspace_id,
        invitation_id=invitation_id,
        user_id=user.id,
    )
    return None


@workspace_invitations_router.post(
    "/{invitation_id}/remind",
    response_model=InvitationResponse,
    summary="Send invitation reminder",
    responses={
        200: {"description": "Reminder sent"},
        403: {"description": "Insufficient permissions"},
        404: {"description": "Invitation not found"},
        410: {"description": "Invitation is no longer pending"},
        429: {"description": "Reminder limit reached"},
    },
)
@limiter.limit(WRITE_LIMIT)  # type: ignore[untyped-decorator]
async def send_reminder(
    request: Request,
    workspace_id: UUID,
    invitation_id: UUID,
    user: CurrentUser,
    service: InvitationService = Depends(get_invitation_service),
) -> InvitationResponse:
    """Re-notify the invitee of a pending invitation. Requires invite-members."""
    invitation = await service.send_reminder(
        workspace_id=workspace_id,
        invitation_id=invitation_id,
        user_id=user.id,
    )
    return InvitationResponse.from_entity(invitation)


# --- User-scoped routes ---


@invitations_router.get(
    "/pending",
    response_model=InvitationListResponse,
    summary="Get pending invitations",
    responses={
        200: {"description": "List of pending invitations for the current user"},
    },
)
@limiter.limit(READ_LIMIT)  # type: ignore[untyped-decorator]
async def get_pending_invitations(
    request: Request,
    user: CurrentUser,
    service: InvitationService = Depends(get_invitation_service),
) -> InvitationListResponse:
    """Get all valid pending invitations for the current user's email."""
    invitations = await service.get_user_pending_invitations(user)
    data = [InvitationResponse.from_entity(inv) for inv in invitations]
    return InvitationListResponse(data=data, meta={"total": len(data)})


@invitations_router.get(
    "/leaderboard",
    response_model=LeaderboardResponse,
    summary="Referral leaderboard",
    responses={200: {"description": "Top inviters by referrals"}},
)
@limiter.limit(READ_LIMIT)  # type: ignore[untyped-decorator]
async def get_leaderboard(
    request: Request,
    user: CurrentUser,
    limit: int | None = Query(None, ge=1, le=100),
    service: ReferralService = Depends(get_referral_service),
) -> LeaderboardResponse:
    """Top inviters by total referrals, then by successful invites."""
    entries = await service.leaderboard(limit)
    data = [
        LeaderboardEntryResponse.from_entry(rank, entry)
        for rank, entry in enumerate(entries, start=1)
    ]
    return LeaderboardResponse(data=data, meta={"total": len(data)})


@invitations_router.post(
    "/respond",
    response_model=RespondInvitationResponse,
    summary="Accept or reject an invitation",
    responses={
        200: {"description": "Invitation accepted or rejected"},
        403: {"description": "Email mismatch"},
        404: {"description": "Invitation not found"},
        409: {"description": "Workspace was modified concurrently, retry"},
        410: {"description": "Invitation expired or already used"},
    },
)
@limiter.limit(WRITE_LIMIT)  # type: ignore[untyped-decorator]
async def respond_to_invitation(
    request: Request,
    body: RespondInvitationRequest,
    user: CurrentUser,
    service: InvitationService = Depends(get_invitation_service),
) -> RespondInvitationResponse:
    """Accept or reject an invitation addressed to the current user's email."""
    result = await service.respond_to_invitation(
        identity=user,
        action=InvitationAction(body.action),
        token=body.token,
        invitation_id=body.invitation_id,
    )
    return RespondInvitationResponse(
        status=result.status.value,
        workspace=WorkspaceResponse.from_entity(result.workspace),
        member=WorkspaceMemberResponse.from_entity(result.member) if result.member else None,
        tier=result.tier,
        perks=[perk.value for perk in result.perks],
        achievements=[AchievementResponse.from_entity(a) for a in result.achievements],
        referral_code=result.referral_code,
    )


@invitations_router.get(
    "/token/{token}",
    response_model=InvitationDetailsResponse,
    summary="Preview invitation by token",
    responses={
        200: {"description": "Invitation preview"},
        404: {"description": "Invitation not found"},
        410: {"description": "Invitation expired or already used"},
    },
)
@limiter.limit(READ_LIMIT)  # type: ignore[untyped-decorator]
async def get_invitation_details(
    request: Request,
    token: str,
    service: InvitationService = Depends(get_invitation_service),
) -> InvitationDetailsResponse:
    """Public preview of a pending invitation. Counts as a link click."""
    details = await service.get_invitation_details(token)
    invitation = details.invitation
    return InvitationDetailsResponse(
        workspace_id=invitation.workspace_id,
        workspace_name=details.workspace_name,
        role=invitation.role.label,
        tier=details.tier,
        perks=[perk.value for perk in invitation.perks],
        achievements=[AchievementResponse.from_entity(a) for a in invitation.achievements],
        expires_at=invitation.expires_at,
        time_remaining_seconds=int(details.time_remaining.total_seconds()),
    )


@invitations_router.post(
    "/token/{token}/click",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Record an invitation link click",
    responses={
        204: {"description": "Click recorded"},
        404: {"description": "Invitation not found"},
    },
)
@limiter.limit(WRITE_LIMIT)  # type: ignore[untyped-decorator]
async def record_click(
    request: Request,
    token: str,
    service: InvitationService = Depends(get_invitation_service),
) -> None:
    """Count a click on an invitation link, whatever its status."""
    await service.record_click(token)
    return None


@invitations_router.get(
    "/{invitation_id}/referral-chain",
    response_model=InvitationListResponse,
    summary="Get referral chain",
    responses={
        200: {"description": "Invitations from the given one up to its root referrer"},
        403: {"description": "Not a member of the invitation's workspace"},
        404: {"description": "Invitation not found"},
    },
)
@limiter.limit(READ_LIMIT)  # type: ignore[untyped-decorator]
async def get_referral_chain(
    request: Request,
    invitation_id: UUID,
    user: CurrentUser,
    service: ReferralService = Depends(get_referral_service),
) -> InvitationListResponse:
    """Walk referred-by links from an invitation to the root referrer."""
    chain = await service.get_referral_chain(invitation_id, user.id)
    data = [InvitationResponse.from_entity(inv) for inv in chain]
    return InvitationListResponse(data=data, meta={"depth": len(data)})
