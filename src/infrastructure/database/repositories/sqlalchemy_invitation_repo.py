"""SQLAlchemy implementation of Invitation repository."""

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import Select, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from domain.entities.invitation import (
    Achievement,
    Invitation,
    InvitationStatus,
    LeaderboardEntry,
    Perk,
)
from domain.policies.roles import normalize_role
from infrastructure.database.models import InvitationModel

_PENDING = InvitationStatus.PENDING.value
_PERK_VALUES = {perk.value for perk in Perk}


class SQLAlchemyInvitationRepository:
    """SQLAlchemy implementation of IInvitationRepository.

    Status changes and counters are single conditional UPDATE statements so
    that concurrent writers cannot both win.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, invitation: Invitation) -> Invitation:
        """Create a new invitation."""
        model = self._to_model(invitation)
        self._session.add(model)
        await self._session.flush()
        return self._to_entity(model)

    async def get_by_id(self, id: UUID) -> Invitation | None:
        """Get an invitation by its primary key."""
        return await self._one(self._select().where(InvitationModel.id == id))

    async def get_by_token_hash(self, token_hash: str) -> Invitation | None:
        """Get an invitation by its hashed token."""
        return await self._one(self._select().where(InvitationModel.token_hash == token_hash))

    async def get_by_referral_code(self, code: str) -> Invitation | None:
        """Get an invitation by its referral code."""
        return await self._one(self._select().where(InvitationModel.referral_code == code))

    async def get_for_workspace(self, workspace_id: UUID) -> list[Invitation]:
        """Get all invitations for a workspace."""
        return await self._many(
            self._select()
            .where(InvitationModel.workspace_id == workspace_id)
            .order_by(InvitationModel.created_at.desc())
        )

    async def get_pending_for_email(self, email: str) -> list[Invitation]:
        """Get invitations for an email still stored as pending."""
        return await self._many(
            self._select()
            .where(
                InvitationModel.email == email,
                InvitationModel.status == _PENDING,
            )
            .order_by(InvitationModel.created_at.desc())
        )

    async def get_pending_for_workspace_email(
        self, workspace_id: UUID, email: str
    ) -> list[Invitation]:
        """Get invitations stored as pending for a workspace and email."""
        return await self._many(
            self._select().where(
                InvitationModel.workspace_id == workspace_id,
                InvitationModel.email == email,
                InvitationModel.status == _PENDING,
            )
        )

    async def transition_status(
        self,
        id: UUID,
        new_status: InvitationStatus,
        responded_at: datetime | None = None,
        referral_code: str | None = None,
    ) -> bool:
        """Compare-and-swap ``pending -> new_status``."""
        values: dict[str, Any] = {"status": new_status.value}
        if responded_at is not None:
            values["responded_at"] = responded_at
        if referral_code is not None:
            values["referral_code"] = referral_code
        stmt = (
            update(InvitationModel)
            .where(InvitationModel.id == id, InvitationModel.status == _PENDING)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return bool(result.rowcount)  # type: ignore[attr-defined]

    async def update_engagement(self, invitation: Invitation) -> None:
        """Persist gamification and engagement fields."""
        stmt = (
            update(InvitationModel)
            .where(InvitationModel.id == invitation.id)
            .values(
                reminders_sent=[ts.isoformat() for ts in invitation.reminders_sent],
                perks=[perk.value for perk in invitation.perks],
                achievements=[self._achievement_to_json(a) for a in invitation.achievements],
                streak_count=invitation.streak_count,
                last_active_at=invitation.last_active_at,
                invitation_level=invitation.invitation_level,
            )
            .execution_options(synchronize_session=False)
        )
        await self._session.execute(stmt)

    async def increment_clicks(self, token_hash: str, at: datetime) -> bool:
        """Atomically bump the click counter."""
        stmt = (
            update(InvitationModel)
            .where(InvitationModel.token_hash == token_hash)
            .values(clicks=InvitationModel.clicks + 1, last_clicked_at=at)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return bool(result.rowcount)  # type: ignore[attr-defined]

    async def increment_referral_count(self, id: UUID) -> int:
        """Atomically bump ``referral_count`` and return the new value."""
        await self._session.execute(
            update(InvitationModel)
            .where(InvitationModel.id == id)
            .values(referral_count=InvitationModel.referral_count + 1)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(
            select(InvitationModel.referral_count).where(InvitationModel.id == id)
        )
        return int(result.scalar_one())

    async def count_accepted_by_inviter(self, inviter_id: UUID) -> int:
        """Count accepted invitations sent by a user."""
        stmt = select(func.count(InvitationModel.id)).where(
            InvitationModel.invited_by == inviter_id,
            InvitationModel.status == InvitationStatus.ACCEPTED.value,
        )
        result = await self._session.execute(stmt)
        return int(result.scalar_one())

    async def referral_code_exists(self, code: str) -> bool:
        """Check whether a referral code is already taken."""
        stmt = select(InvitationModel.id).where(InvitationModel.referral_code == code).limit(1)
        result = await self._session.execute(stmt)
        return result.first() is not None

    async def get_leaderboard(self, limit: int = 10) -> list[LeaderboardEntry]:
        """Aggregate accepted invitations per inviter, best first."""
        total = func.coalesce(func.sum(InvitationModel.referral_count), 0).label("total")
        successful = func.count(InvitationModel.id).label("successful")
        stmt = (
            select(InvitationModel.invited_by, total, successful)
            .where(InvitationModel.status == InvitationStatus.ACCEPTED.value)
            .group_by(InvitationModel.invited_by)
            .order_by(total.desc(), successful.desc())
            .limit(limit)
        )
        result = await self._session.execute(stmt)
        return [
            LeaderboardEntry(
                user_id=row.invited_by,
                total_referrals=int(row.total),
                successful_invites=int(row.successful),
            )
            for row in result
        ]

    async def expire_old_invitations(self, now: datetime | None = None) -> int:
        """Mark all expired pending invitations. Returns count of updated rows."""
        now = now or datetime.utcnow()
        stmt = (
            update(InvitationModel)
            .where(
                InvitationModel.status == _PENDING,
                InvitationModel.expires_at <= now,
            )
            .values(status=InvitationStatus.EXPIRED.value)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return result.rowcount  # type: ignore[attr-defined, no-any-return]

    # --- Internal helpers ---

    @staticmethod
    def _select() -> Select[tuple[InvitationModel]]:
        # Conditional UPDATEs bypass the identity map, so always re-read rows
        return select(InvitationModel).execution_options(populate_existing=True)

    async def _one(self, stmt: Select[tuple[InvitationModel]]) -> Invitation | None:
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return self._to_entity(model) if model else None

    async def _many(self, stmt: Select[tuple[InvitationModel]]) -> list[Invitation]:
        result = await self._session.execute(stmt)
        return [self._to_entity(model) for model in result.scalars()]

    @staticmethod
    def _achievement_to_json(achievement: Achievement) -> dict[str, Any]:
        return {
            "name": achievement.name,
            "icon": achievement.icon,
            "unlocked_at": achievement.unlocked_at.isoformat(),
        }

    def _to_entity(self, model: InvitationModel) -> Invitation:
        """Convert ORM model to domain entity."""
        return Invitation(
            id=model.id,
            workspace_id=model.workspace_id,
            email=model.email,
            role=normalize_role(model.role),
            token_hash=model.token_hash,
            invited_by=model.invited_by,
            inviter_email=model.inviter_email,
            status=InvitationStatus(model.status),
            created_at=model.created_at,
            expires_at=model.expires_at,
            responded_at=model.responded_at,
            clicks=model.clicks or 0,
            last_clicked_at=model.last_clicked_at,
            reminders_sent=[datetime.fromisoformat(ts) for ts in model.reminders_sent or []],
            perks=[Perk(p) for p in model.perks or [] if p in _PERK_VALUES],
            achievements=[
                Achievement(
                    name=a["name"],
                    icon=a.get("icon", ""),
                    unlocked_at=datetime.fromisoformat(a["unlocked_at"]),
                )
                for a in model.achievements or []
            ],
            streak_count=model.streak_count or 0,
            last_active_at=model.last_active_at,
            invitation_level=model.invitation_level or 1,
            referral_code=model.referral_code,
            referred_by=model.referred_by,
            referral_count=model.referral_count or 0,
        )

    def _to_model(self, entity: Invitation) -> InvitationModel:
        """Convert domain entity to ORM model."""
        return InvitationModel(
            id=entity.id,
            workspace_id=entity.workspace_id,
            email=entity.email,
            role=entity.role.label,
            token_hash=entity.token_hash,
            invited_by=entity.invited_by,
            inviter_email=entity.inviter_email,
            status=entity.status.value,
            created_at=entity.created_at,
            expires_at=entity.expires_at,
            responded_at=entity.responded_at,
            clicks=entity.clicks,
            last_clicked_at=entity.last_clicked_at,
            reminders_sent=[ts.isoformat() for ts in entity.reminders_sent],
            perks=[perk.value for perk in entity.perks],
            achievements=[self._achievement_to_json(a) for a in entity.achievements],
            streak_count=entity.streak_count,
            last_active_at=entity.last_active_at,
            invitation_level=entity.invitation_level,
            referral_code=entity.referral_code,
            referred_by=entity.referred_by,
            referral_count=entity.referral_count,
        )
