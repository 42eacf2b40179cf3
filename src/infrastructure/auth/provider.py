"""Seam between the API and whatever issues bearer tokens."""

from typing import Optional, Protocol

from domain.entities.identity import Identity


class IAuthProvider(Protocol):
    """Turns bearer tokens into identities and back.

    Membership and roles are never read from the token; a provider only
    vouches for who the caller is.
    """

    async def validate_token(self, token: str) -> Optional[Identity]:
        """Return the identity for a valid token, or None."""
        ...

    def create_token(self, identity: Identity) -> str: ...
