"""JWT authentication provider implementation.

Tokens are HS256-signed with a shared secret. Expected payload:
    {
        "sub": "user-uuid",
        "email": "user@example.com",
        "aud": "<optional audience>",
        "user_metadata": { "display_name": "Ada" },
        "exp": 1234567890
    }
"""

from datetime import datetime, timedelta
from typing import Any, Optional
from uuid import UUID

import structlog
from jose import JWTError, jwt

from core.config import settings
from domain.entities.identity import Identity

logger = structlog.get_logger()


class JWTAuthProvider:
    """JWT-based authentication provider."""

    def __init__(
        self,
        secret_key: str = settings.jwt_secret_key,
        algorithm: str = settings.jwt_algorithm,
        expire_minutes: int = settings.jwt_expire_minutes,
        audience: Optional[str] = settings.jwt_audience,
    ) -> None:
        self._secret_key = secret_key
        self._algorithm = algorithm
        self._expire_minutes = expire_minutes
        self._audience = audience

    async def validate_token(self, token: str) -> Optional[Identity]:
        """
        Validate a JWT token and extract the caller's identity.

        Args:
            token: The JWT to validate

        Returns:
            Identity if valid, None if invalid or expired
        """
        try:
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[self._algorithm],
                audience=self._audience,
                options={"verify_aud": self._audience is not None},
            )
        except JWTError as exc:
            logger.debug("token_rejected", reason=str(exc))
            return None

        user_id = payload.get("sub")
        email = payload.get("email")
        if not user_id or not email:
            return None

        try:
            subject = UUID(user_id)
        except ValueError:
            return None

        user_metadata = payload.get("user_metadata") or {}
        display_name = (
            user_metadata.get("display_name")
            or user_metadata.get("name")
            or payload.get("name")
        )

        return Identity(id=subject, email=email, display_name=display_name)

    def create_token(self, identity: Identity) -> str:
        """
        Create a JWT token for an identity.

        Args:
            identity: The identity to create a token for

        Returns:
            The generated JWT string
        """
        expire = datetime.utcnow() + timedelta(minutes=self._expire_minutes)

        payload: dict[str, Any] = {
            "sub": str(identity.id),
            "email": identity.email,
            "exp": expire,
            "user_metadata": {
                "display_name": identity.display_name,
            },
        }
        if self._audience:
            payload["aud"] = self._audience

        return jwt.encode(payload, self._secret_key, algorithm=self._algorithm)
