"""Pydantic schemas for Invitation API."""

from datetime import datetime
from typing import Any, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from api.v1.schemas.workspace import WorkspaceMemberResponse, WorkspaceResponse
from domain.entities.invitation import Achievement, Invitation, LeaderboardEntry
from domain.policies import gamification


class CreateInvitationRequest(BaseModel):
    """Schema for creating a workspace invitation.

    Email format and role are validated by the invitation service so that
    both surface as domain errors.
    """

    email: str = Field(..., min_length=3, max_length=255)
    role: str = Field("member", max_length=20)
    referral_code: Optional[str] = Field(None, max_length=16)


class RespondInvitationRequest(BaseModel):
    """Accept or reject an invitation, identified by token or id."""

    action: Literal["accept", "reject"]
    token: Optional[str] = Field(None, min_length=1)
    invitation_id: Optional[UUID] = None

    @model_validator(mode="after")
    def require_reference(self) -> "RespondInvitationRequest":
        if not self.token and not self.invitation_id:
            raise ValueError("Either token or invitation_id is required")
        return self


class AchievementResponse(BaseModel):
    """An unlocked achievement badge."""

    name: str
    icon: str
    unlocked_at: datetime

    @classmethod
    def from_entity(cls, achievement: Achievement) -> "AchievementResponse":
        return cls(
            name=achievement.name,
            icon=achievement.icon,
            unlocked_at=achievement.unlocked_at,
        )


class InvitationResponse(BaseModel):
    """Schema for Invitation response."""

    model_config = ConfigDict(
        from_attributes=True,
        json_schema_extra={
            "example": {
                "id": "123e4567-e89b-12d3-a456-426614174000",
                "workspace_id": "456e4567-e89b-12d3-a456-426614174000",
                "email": "user@example.com",
                "role": "member",
                "status": "pending",
                "invited_by": "789e4567-e89b-12d3-a456-426614174000",
                "created_at": "2026-02-01T10:00:00",
                "expires_at": "2026-02-08T10:00:00",
                "tier": "bronze",
                "perks": ["early_access"],
                "invitation_level": 1,
            }
        },
    )

    id: UUID
    workspace_id: UUID
    email: str
    role: str
    status: str
    invited_by: UUID
    created_at: datetime
    expires_at: datetime
    responded_at: Optional[datetime] = None
    clicks: int = 0
    reminders_sent: int = 0
    tier: str
    perks: list[str] = Field(default_factory=list)
    achievements: list[AchievementResponse] = Field(default_factory=list)
    streak_count: int = 0
    invitation_level: int = 1
    referral_code: Optional[str] = None
    referred_by: Optional[UUID] = None
    referral_count: int = 0

    @classmethod
    def from_entity(cls, invitation: Invitation) -> "InvitationResponse":
        return cls(
            id=invitation.id,
            workspace_id=invitation.workspace_id,
            email=invitation.email,
            role=invitation.role.label,
            status=invitation.status.value,
            invited_by=invitation.invited_by,
            created_at=invitation.created_at,
            expires_at=invitation.expires_at,
            responded_at=invitation.responded_at,
            clicks=invitation.clicks,
            reminders_sent=len(invitation.reminders_sent),
            tier=gamification.tier(len(invitation.perks)),
            perks=[perk.value for perk in invitation.perks],
            achievements=[AchievementResponse.from_entity(a) for a in invitation.achievements],
            streak_count=invitation.streak_count,
            invitation_level=invitation.invitation_level,
            referral_code=invitation.referral_code,
            referred_by=invitation.referred_by,
            referral_count=invitation.referral_count,
        )


class InvitationListResponse(BaseModel):
    """Schema for list of Invitations response."""

    data: list[InvitationResponse]
    meta: dict[str, Any] = Field(default_factory=dict)


class InvitationCreatedResponse(BaseModel):
    """Schema for invitation creation response (includes raw token)."""

    data: InvitationResponse
    token: str = Field(
        ...,
        description="Raw invitation token. Share this with the invitee. "
        "This value is only shown once.",
    )


class InvitationDetailsResponse(BaseModel):
    """Public preview of a pending invitation."""

    workspace_id: UUID
    workspace_name: str
    role: str
    tier: str
    perks: list[str] = Field(default_factory=list)
    achievements: list[AchievementResponse] = Field(default_factory=list)
    expires_at: datetime
    time_remaining_seconds: int


class RespondInvitationResponse(BaseModel):
    """Outcome of accepting or rejecting an invitation."""

    status: str
    workspace: WorkspaceResponse
    member: Optional[WorkspaceMemberResponse] = None
    tier: str
    perks: list[str] = Field(default_factory=list)
    achievements: list[AchievementResponse] = Field(default_factory=list)
    referral_code: Optional[str] = None


class LeaderboardEntryResponse(BaseModel):
    """One inviter's standing on the referral leaderboard."""

    rank: int
    user_id: UUID
    total_referrals: int
    successful_invites: int

    @classmethod
    def from_entry(cls, rank: int, entry: LeaderboardEntry) -> "LeaderboardEntryResponse":
        return cls(
            rank=rank,
            user_id=entry.user_id,
            total_referrals=entry.total_referrals,
            successful_invites=entry.successful_invites,
        )


class LeaderboardResponse(BaseModel):
    """Referral leaderboard."""

    data: list[LeaderboardEntryResponse]
    meta: dict[str, Any] = Field(default_factory=dict)
