"""Invitation service layer: the invitation lifecycle and its side effects."""

import hashlib
import re
import secrets
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Optional
from uuid import UUID

import structlog

from core.config import settings
from core.exceptions import (
    DuplicateInvitationError,
    InvalidOrExpiredInvitationError,
    InvalidRoleAssignmentError,
    InvitationEmailMismatchError,
    InvitationNotFoundError,
    ReminderLimitReachedError,
    ValidationError,
    WorkspaceInTrashError,
    WorkspaceNotFoundError,
)
from domain.entities.activity import Actions
from domain.entities.identity import Identity
from domain.entities.invitation import (
    Achievement,
    Invitation,
    InvitationAction,
    InvitationStatus,
    Perk,
)
from domain.entities.workspace import (
    Capability,
    Workspace,
    WorkspaceMember,
    WorkspaceRole,
)
from domain.policies import gamification, permissions
from domain.policies.gamification import AchievementKind
from domain.policies.roles import can_assign_role, default_permissions, ensure_invariants
from domain.repositories.notification_sender import INotificationSender, NotificationTemplates
from domain.repositories.unit_of_work import IUnitOfWork
from domain.services.activity_service import ActivityService

logger = structlog.get_logger()

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
INVITABLE_ROLES = {role.label: role for role in (WorkspaceRole.ADMIN, WorkspaceRole.MEMBER)}
REFERRAL_CODE_ATTEMPTS = 5


@dataclass
class InvitationResponse:
    """Outcome of accepting or rejecting an invitation."""

    invitation: Invitation
    workspace: Workspace
    member: WorkspaceMember | None
    status: InvitationStatus
    tier: str
    perks: list[Perk] = field(default_factory=list)
    achievements: list[Achievement] = field(default_factory=list)
    referral_code: str | None = None


@dataclass
class InvitationDetails:
    """Public preview of a pending invitation, looked up by token."""

    invitation: Invitation
    workspace_name: str
    tier: str
    time_remaining: timedelta


class InvitationService:
    """Service layer for workspace invitation business logic."""

    def __init__(
        self,
        uow_factory: Callable[[], IUnitOfWork],
        activity_service: Optional["ActivityService"] = None,
        notification_sender: Optional["INotificationSender"] = None,
        expiry_days: int = settings.invitation_expiry_days,
        max_reminders: int = settings.invitation_max_reminders,
        streak_window_hours: int = settings.streak_window_hours,
    ) -> None:
        self._uow_factory = uow_factory
        self._activity = activity_service
        self._sender = notification_sender
        self._expiry = timedelta(days=expiry_days)
        self._max_reminders = max_reminders
        self._streak_window = timedelta(hours=streak_window_hours)

    # --- Creation ---

    async def create_invitation(
        self,
        workspace_id: UUID,
        inviter: Identity,
        email: str,
        role: str | WorkspaceRole = "member",
        referral_code: str | None = None,
    ) -> tuple[Invitation, str]:
        """Create a workspace invitation.

        Args:
            workspace_id: The workspace to invite to.
            inviter: The identity creating the invitation.
            email: The email address to invite.
            role: ``admin`` or ``member``.
            referral_code: Optional code of an accepted invitation that referred
                this one.

        Returns:
            Tuple of (Invitation, raw_token). The raw_token is only available
            at creation time and should be shared with the invitee.

        Raises:
            ValidationError: If the email or role is malformed.
            InvalidRoleAssignmentError: If the role is owner, or ranks too high
                for the inviter to grant.
            WorkspaceNotFoundError: If workspace does not exist.
            NotAMemberError / InsufficientPermissionsError: If the inviter fails
                the invite-members check.
            DuplicateInvitationError: If a pending invitation already exists.
        """
        email = self._normalize_email(email)
        invited_role = self._parse_role(role)
        now = datetime.utcnow()

        async with self._uow_factory() as uow:
            workspace = await self._load_workspace(uow, workspace_id)
            permissions.require(workspace, inviter.id, Capability.INVITE_MEMBERS)

            actor_role = self._actor_role(workspace, inviter.id)
            if not can_assign_role(actor_role, invited_role):
                raise InvalidRoleAssignmentError(invited_role.label, actor_role.label)

            if await self._resolve_pending_for_workspace(uow, workspace_id, email, now):
                raise DuplicateInvitationError(email)

            raw_token = secrets.token_urlsafe(32)
            invitation = Invitation(
                workspace_id=workspace_id,
                email=email,
                role=invited_role,
                token_hash=self._hash_token(raw_token),
                invited_by=inviter.id,
                inviter_email=inviter.normalized_email,
                created_at=now,
                expires_at=now + self._expiry,
                perks=list(gamification.INITIAL_PERKS),
            )

            if referral_code:
                await self._credit_referrer(uow, invitation, referral_code)

            accepted_count = await uow.invitations.count_accepted_by_inviter(inviter.id)
            if accepted_count == AchievementKind.FIRST_STEPS.threshold:
                gamification.add_achievement(invitation, AchievementKind.FIRST_STEPS, now)
            if accepted_count >= AchievementKind.POWER_INVITER.threshold:
                gamification.add_achievement(invitation, AchievementKind.POWER_INVITER, now)

            created = await uow.invitations.create(invitation)

            if self._activity:
                await self._activity.log(
                    uow=uow,
                    workspace_id=workspace_id,
                    actor_id=inviter.id,
                    action=Actions.INVITATION_CREATED,
                    entity_type="invitation",
                    entity_id=created.id,
                    summary=f"invited {email} as {invited_role.label}",
                    metadata={"email": email, "role": invited_role.label},
                )

            await uow.commit()

        logger.info(
            "invitation_created",
            invitation_id=str(created.id),
            workspace_id=str(workspace_id),
            role=invited_role.label,
        )
        await self._notify(
            email,
            NotificationTemplates.INVITATION_CREATED,
            {
                "workspace_id": str(workspace_id),
                "workspace_name": workspace.name,
                "role": invited_role.label,
                "token": raw_token,
                "invited_by": inviter.display_name or inviter.email,
                "expires_at": created.expires_at.isoformat(),
            },
        )
        return created, raw_token

    # --- Reads ---

    async def resolve_pending(self, email: str) -> list[Invitation]:
        """Return the still-valid pending invitations for an email.

        Pending invitations found past their expiry are persisted as expired.
        """
        async with self._uow_factory() as uow:
            valid = await self._resolve_pending_for_email(
                uow, self._normalize_email(email), datetime.utcnow()
            )
            await uow.commit()
            return valid

    async def get_user_pending_invitations(self, identity: Identity) -> list[Invitation]:
        """Pending invitations for the caller's email.

        Viewing counts as activity: the streak of each invitation advances,
        and a long enough streak unlocks an achievement.
        """
        now = datetime.utcnow()
        async with self._uow_factory() as uow:
            valid = await self._resolve_pending_for_email(uow, identity.normalized_email, now)
            for invitation in valid:
                gamification.touch_streak(invitation, now, self._streak_window)
                if invitation.streak_count >= AchievementKind.STREAK_MASTER.threshold:
                    gamification.add_achievement(invitation, AchievementKind.STREAK_MASTER, now)
                gamification.refresh_progress(invitation)
                await uow.invitations.update_engagement(invitation)
            await uow.commit()
            return valid

    async def get_workspace_invitations(
        self,
        workspace_id: UUID,
        user_id: UUID,
    ) -> list[Invitation]:
        """Get all invitations for a workspace. Requires view-team."""
        now = datetime.utcnow()
        async with self._uow_factory() as uow:
            workspace = await uow.workspaces.get(workspace_id)
            if not workspace:
                raise WorkspaceNotFoundError(str(workspace_id))
            permissions.require(workspace, user_id, Capability.VIEW_TEAM)

            invitations = await uow.invitations.get_for_workspace(workspace_id)
            for invitation in invitations:
                if invitation.resolve_expiry(now):
                    await uow.invitations.transition_status(
                        invitation.id, InvitationStatus.EXPIRED
                    )
            await uow.commit()
            return invitations  # type: ignore[no-any-return]

    async def get_invitation_details(self, token: str) -> InvitationDetails:
        """Preview a pending invitation by its raw token and record a click."""
        now = datetime.utcnow()
        async with self._uow_factory() as uow:
            invitation = await uow.invitations.get_by_token_hash(self._hash_token(token))
            if not invitation:
                raise InvitationNotFoundError()

            await self._ensure_actionable(uow, invitation, now)

            await uow.invitations.increment_clicks(invitation.token_hash, now)
            invitation.clicks += 1
            invitation.last_clicked_at = now

            workspace = await uow.workspaces.get(invitation.workspace_id)
            if not workspace:
                raise WorkspaceNotFoundError(str(invitation.workspace_id))

            await uow.commit()
            return InvitationDetails(
                invitation=invitation,
                workspace_name=workspace.name,
                tier=gamification.tier(len(invitation.perks)),
                time_remaining=invitation.time_remaining(now),
            )

    async def record_click(self, token: str) -> None:
        """Count a click on an invitation link, whatever its status."""
        async with self._uow_factory() as uow:
            found = await uow.invitations.increment_clicks(
                self._hash_token(token), datetime.utcnow()
            )
            if not found:
                raise InvitationNotFoundError()
            await uow.commit()

    # --- Transitions ---

    async def respond_to_invitation(
        self,
        identity: Identity,
        action: InvitationAction,
        token: str | None = None,
        invitation_id: UUID | None = None,
    ) -> InvitationResponse:
        """Accept or reject an invitation, by raw token or by ID.

        Membership, invitation status and gamification fields change
        together or not at all.

        Raises:
            InvitationNotFoundError: If the invitation does not exist.
            InvalidOrExpiredInvitationError: If it is not pending, has
                expired, or a concurrent response won.
            InvitationEmailMismatchError: If the identity's email differs.
            ConcurrentModificationError: If the workspace changed underneath.
        """
        if not token and not invitation_id:
            raise ValidationError("Either token or invitation_id is required")

        now = datetime.utcnow()
        async with self._uow_factory() as uow:
            if token:
                invitation = await uow.invitations.get_by_token_hash(self._hash_token(token))
            else:
                invitation = await uow.invitations.get_by_id(invitation_id)  # type: ignore[arg-type]
            if not invitation:
                raise InvitationNotFoundError(str(invitation_id or ""))

            await self._ensure_actionable(uow, invitation, now)

            if identity.normalized_email != invitation.email.strip().lower():
                raise InvitationEmailMismatchError()

            workspace = await self._load_workspace(uow, invitation.workspace_id)

            new_status = (
                InvitationStatus.ACCEPTED
                if action == InvitationAction.ACCEPT
                else InvitationStatus.REJECTED
            )
            code = await self._new_referral_code(uow) if new_status == InvitationStatus.ACCEPTED else None

            won = await uow.invitations.transition_status(
                invitation.id, new_status, responded_at=now, referral_code=code
            )
            if not won:
                current = await uow.invitations.get_by_id(invitation.id)
                raise InvalidOrExpiredInvitationError(
                    current.status.value if current else InvitationStatus.PENDING.value,
                    invitation.expires_at,
                )
            invitation.status = new_status
            invitation.responded_at = now
            invitation.referral_code = code

            if new_status == InvitationStatus.ACCEPTED:
                member = await self._admit_member(uow, workspace, invitation, identity.id)
                await self._reward_referrer(uow, invitation, now)
            else:
                member = None
                await self._withdraw_member(uow, workspace, invitation, identity.id)

            gamification.refresh_progress(invitation)
            await uow.invitations.update_engagement(invitation)

            if self._activity:
                verb = "accepted" if member is not None else "rejected"
                await self._activity.log(
                    uow=uow,
                    workspace_id=workspace.id,
                    actor_id=identity.id,
                    action=(
                        Actions.INVITATION_ACCEPTED
                        if member is not None
                        else Actions.INVITATION_REJECTED
                    ),
                    entity_type="invitation",
                    entity_id=invitation.id,
                    summary=f"{invitation.email} {verb} an invitation as {invitation.role.label}",
                )

            await uow.commit()

        logger.info(
            "invitation_responded",
            invitation_id=str(invitation.id),
            workspace_id=str(workspace.id),
            status=new_status.value,
        )
        if invitation.inviter_email:
            await self._notify(
                invitation.inviter_email,
                (
                    NotificationTemplates.INVITATION_ACCEPTED
                    if new_status == InvitationStatus.ACCEPTED
                    else NotificationTemplates.INVITATION_REJECTED
                ),
                {
                    "workspace_id": str(workspace.id),
                    "workspace_name": workspace.name,
                    "invitee_email": invitation.email,
                    "role": invitation.role.label,
                },
            )

        return InvitationResponse(
            invitation=invitation,
            workspace=workspace,
            member=member,
            status=new_status,
            tier=gamification.tier(len(invitation.perks)),
            perks=list(invitation.perks),
            achievements=list(invitation.achievements),
            referral_code=code,
        )

    async def revoke_invitation(
        self,
        workspace_id: UUID,
        invitation_id: UUID,
        user_id: UUID,
    ) -> Invitation:
        """Revoke a pending invitation. Requires invite-members."""
        now = datetime.utcnow()
        async with self._uow_factory() as uow:
            invitation = await self._load_workspace_invitation(
                uow, workspace_id, invitation_id, user_id
            )
            await self._ensure_actionable(uow, invitation, now)

            if not await uow.invitations.transition_status(
                invitation.id, InvitationStatus.REVOKED, responded_at=now
            ):
                raise InvalidOrExpiredInvitationError(
                    InvitationStatus.PENDING.value, invitation.expires_at
                )
            invitation.status = InvitationStatus.REVOKED
            invitation.responded_at = now

            if self._activity:
                await self._activity.log(
                    uow=uow,
                    workspace_id=workspace_id,
                    actor_id=user_id,
                    action=Actions.INVITATION_REVOKED,
                    entity_type="invitation",
                    entity_id=invitation.id,
                    summary=f"revoked the invitation for {invitation.email}",
                )

            await uow.commit()
            logger.info("invitation_revoked", invitation_id=str(invitation_id))
            return invitation

    async def send_reminder(
        self,
        workspace_id: UUID,
        invitation_id: UUID,
        user_id: UUID,
    ) -> Invitation:
        """Re-notify the invitee of a pending invitation. Requires invite-members."""
        now = datetime.utcnow()
        async with self._uow_factory() as uow:
            invitation = await self._load_workspace_invitation(
                uow, workspace_id, invitation_id, user_id
            )
            await self._ensure_actionable(uow, invitation, now)

            if len(invitation.reminders_sent) >= self._max_reminders:
                raise ReminderLimitReachedError(self._max_reminders)

            invitation.reminders_sent.append(now)
            await uow.invitations.update_engagement(invitation)

            if self._activity:
                await self._activity.log(
                    uow=uow,
                    workspace_id=workspace_id,
                    actor_id=user_id,
                    action=Actions.INVITATION_REMINDED,
                    entity_type="invitation",
                    entity_id=invitation.id,
                    summary=f"sent a reminder to {invitation.email}",
                    metadata={"reminder": len(invitation.reminders_sent)},
                )

            workspace = await uow.workspaces.get(workspace_id)
            await uow.commit()

        await self._notify(
            invitation.email,
            NotificationTemplates.INVITATION_REMINDER,
            {
                "workspace_id": str(workspace_id),
                "workspace_name": workspace.name if workspace else "",
                "role": invitation.role.label,
                "expires_at": invitation.expires_at.isoformat(),
            },
        )
        return invitation

    async def expire_stale_invitations(self) -> int:
        """Mark every overdue pending invitation expired. Hygiene only."""
        async with self._uow_factory() as uow:
            count = await uow.invitations.expire_old_invitations(datetime.utcnow())
            await uow.commit()
        if count:
            logger.info("invitations_expired", count=count)
        return count  # type: ignore[no-any-return]

    # --- Internal helpers ---

    @staticmethod
    async def _load_workspace(uow: IUnitOfWork, workspace_id: UUID) -> Workspace:
        workspace = await uow.workspaces.get(workspace_id)
        if not workspace:
            raise WorkspaceNotFoundError(str(workspace_id))
        if workspace.is_deleted:
            raise WorkspaceInTrashError(str(workspace_id))
        ensure_invariants(workspace)
        return workspace

    async def _load_workspace_invitation(
        self,
        uow: IUnitOfWork,
        workspace_id: UUID,
        invitation_id: UUID,
        user_id: UUID,
    ) -> Invitation:
        workspace = await self._load_workspace(uow, workspace_id)
        permissions.require(workspace, user_id, Capability.INVITE_MEMBERS)
        invitation = await uow.invitations.get_by_id(invitation_id)
        if not invitation or invitation.workspace_id != workspace_id:
            raise InvitationNotFoundError(str(invitation_id))
        return invitation

    @staticmethod
    def _actor_role(workspace: Workspace, user_id: UUID) -> WorkspaceRole:
        if workspace.is_owner(user_id):
            return WorkspaceRole.OWNER
        member = workspace.get_member(user_id)
        return member.role if member else WorkspaceRole.MEMBER

    @staticmethod
    async def _ensure_actionable(
        uow: IUnitOfWork, invitation: Invitation, now: datetime
    ) -> None:
        """Raise unless the invitation is pending and unexpired.

        A lazily detected expiry is persisted before raising.
        """
        if invitation.resolve_expiry(now):
            await uow.invitations.transition_status(invitation.id, InvitationStatus.EXPIRED)
            await uow.commit()
        if invitation.status != InvitationStatus.PENDING:
            raise InvalidOrExpiredInvitationError(invitation.status.value, invitation.expires_at)

    @staticmethod
    async def _resolve_pending_for_email(
        uow: IUnitOfWork, email: str, now: datetime
    ) -> list[Invitation]:
        valid = []
        for invitation in await uow.invitations.get_pending_for_email(email):
            if invitation.resolve_expiry(now):
                await uow.invitations.transition_status(invitation.id, InvitationStatus.EXPIRED)
            else:
                valid.append(invitation)
        return valid

    @staticmethod
    async def _resolve_pending_for_workspace(
        uow: IUnitOfWork, workspace_id: UUID, email: str, now: datetime
    ) -> list[Invitation]:
        valid = []
        for invitation in await uow.invitations.get_pending_for_workspace_email(
            workspace_id, email
        ):
            if invitation.resolve_expiry(now):
                await uow.invitations.transition_status(invitation.id, InvitationStatus.EXPIRED)
            else:
                valid.append(invitation)
        return valid

    @staticmethod
    async def _credit_referrer(uow: IUnitOfWork, invitation: Invitation, code: str) -> None:
        """Link a new invitation to the accepted invitation owning ``code``."""
        referrer = await uow.invitations.get_by_referral_code(code.strip().upper())
        if not referrer or referrer.status != InvitationStatus.ACCEPTED:
            logger.info("referral_code_ignored", referral_code=code)
            return
        invitation.referred_by = referrer.id
        referrer.referral_count = await uow.invitations.increment_referral_count(referrer.id)
        gamification.refresh_progress(referrer)
        await uow.invitations.update_engagement(referrer)

    @staticmethod
    async def _reward_referrer(uow: IUnitOfWork, invitation: Invitation, now: datetime) -> None:
        if not invitation.referred_by:
            return
        referrer = await uow.invitations.get_by_id(invitation.referred_by)
        if not referrer:
            return
        if referrer.referral_count >= AchievementKind.REFERRAL_KING.threshold:
            if gamification.add_achievement(referrer, AchievementKind.REFERRAL_KING, now):
                await uow.invitations.update_engagement(referrer)

    @staticmethod
    async def _admit_member(
        uow: IUnitOfWork, workspace: Workspace, invitation: Invitation, user_id: UUID
    ) -> WorkspaceMember:
        """Add or reactivate the invitee. An active member is left as is."""
        member = workspace.get_member(user_id)
        if member is not None and member.is_active:
            return member
        if member is None:
            member = WorkspaceMember(
                user_id=user_id,
                role=invitation.role,
                permissions=default_permissions(invitation.role),
                invited_by=invitation.invited_by,
                invitation_id=invitation.id,
            )
            workspace.members.append(member)
        else:
            member.is_active = True
            member.role = invitation.role
            member.permissions = default_permissions(invitation.role)
            member.invitation_id = invitation.id
        ensure_invariants(workspace)
        workspace.updated_at = datetime.utcnow()
        await uow.workspaces.save(workspace)
        return member

    @staticmethod
    async def _withdraw_member(
        uow: IUnitOfWork, workspace: Workspace, invitation: Invitation, user_id: UUID
    ) -> None:
        """Drop a membership this invitation created, if any."""
        member = workspace.get_member(user_id)
        if member is None or member.invitation_id != invitation.id:
            return
        if workspace.is_owner(user_id):
            return
        workspace.remove_member(user_id)
        ensure_invariants(workspace)
        await uow.workspaces.save(workspace)

    @staticmethod
    async def _new_referral_code(uow: IUnitOfWork) -> str:
        for _ in range(REFERRAL_CODE_ATTEMPTS):
            code = secrets.token_hex(4).upper()
            if not await uow.invitations.referral_code_exists(code):
                return code
        raise ValidationError("Could not allocate a unique referral code")

    async def _notify(self, email: str, template: str, data: dict[str, Any]) -> None:
        """Send after commit; delivery problems never undo a transition."""
        if not self._sender:
            return
        try:
            delivered = await self._sender.send(email, template, data)
        except Exception:
            logger.exception("notification_failed", template=template)
            return
        if not delivered:
            logger.warning("notification_not_delivered", template=template)

    @staticmethod
    def _normalize_email(email: str) -> str:
        normalized = (email or "").strip().lower()
        if not EMAIL_PATTERN.match(normalized):
            raise ValidationError("Invalid email address", details={"field": "email"})
        return normalized

    @staticmethod
    def _parse_role(role: str | WorkspaceRole) -> WorkspaceRole:
        label = role.label if isinstance(role, WorkspaceRole) else str(role).strip().lower()
        if label == WorkspaceRole.OWNER.label:
            raise InvalidRoleAssignmentError(label)
        if label not in INVITABLE_ROLES:
            raise ValidationError(
                "Role must be 'admin' or 'member'", details={"field": "role", "value": label}
            )
        return INVITABLE_ROLES[label]

    @staticmethod
    def _hash_token(token: str) -> str:
        """Hash a raw invitation token using SHA-256."""
        return hashlib.sha256(token.encode()).hexdigest()
