"""Referral ledger queries: leaderboard and referral chains."""

from collections.abc import Callable
from uuid import UUID

from core.config import settings
from core.exceptions import InvitationNotFoundError, WorkspaceNotFoundError
from domain.entities.invitation import Invitation, LeaderboardEntry
from domain.entities.workspace import Capability
from domain.policies import permissions
from domain.repositories.unit_of_work import IUnitOfWork

# Upper bound on chain length, in case stored pointers ever loop
MAX_CHAIN_DEPTH = 100


class ReferralService:
    """Read-side service over ``referred_by`` edges between invitations."""

    def __init__(
        self,
        uow_factory: Callable[[], IUnitOfWork],
        leaderboard_size: int = settings.leaderboard_size,
    ) -> None:
        self._uow_factory = uow_factory
        self._leaderboard_size = leaderboard_size

    async def leaderboard(self, limit: int | None = None) -> list[LeaderboardEntry]:
        """Top inviters by total referrals, then by successful invites.

        Recomputed from accepted invitations on every call.
        """
        async with self._uow_factory() as uow:
            return await uow.invitations.get_leaderboard(  # type: ignore[no-any-return]
                limit or self._leaderboard_size
            )

    async def get_referral_chain(self, invitation_id: UUID, user_id: UUID) -> list[Invitation]:
        """Walk ``referred_by`` pointers from an invitation up to its root.

        The caller needs view-team on the starting invitation's workspace.
        The chain starts with the requested invitation.
        """
        async with self._uow_factory() as uow:
            invitation = await uow.invitations.get_by_id(invitation_id)
            if not invitation:
                raise InvitationNotFoundError(str(invitation_id))

            workspace = await uow.workspaces.get(invitation.workspace_id)
            if not workspace:
                raise WorkspaceNotFoundError(str(invitation.workspace_id))
            permissions.require(workspace, user_id, Capability.VIEW_TEAM)

            chain = [invitation]
            seen = {invitation.id}
            current = invitation
            while current.referred_by and len(chain) < MAX_CHAIN_DEPTH:
                if current.referred_by in seen:
                    break
                parent = await uow.invitations.get_by_id(current.referred_by)
                if not parent:
                    break
                chain.append(parent)
                seen.add(parent.id)
                current = parent
            return chain
