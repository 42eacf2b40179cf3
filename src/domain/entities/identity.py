"""Authenticated caller identity."""

from dataclasses import dataclass
from uuid import UUID


@dataclass(frozen=True)
class Identity:
    """A user as seen by the engine: an id and a verified email."""

    id: UUID
    email: str
    display_name: str | None = None

    @property
    def normalized_email(self) -> str:
        return self.email.strip().lower()
