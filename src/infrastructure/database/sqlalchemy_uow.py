"""SQLAlchemy Unit of Work implementation."""

from typing import Any, Optional

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.exceptions import PersistenceError
from infrastructure.database.repositories.sqlalchemy_activity_repo import SQLAlchemyActivityRepository
from infrastructure.database.repositories.sqlalchemy_invitation_repo import SQLAlchemyInvitationRepository
from infrastructure.database.repositories.sqlalchemy_workspace_repo import SQLAlchemyWorkspaceRepository

logger = structlog.get_logger()

# Raised inside the context, these become a retryable PersistenceError.
TRANSIENT_ERRORS = (SQLAlchemyError, TimeoutError)


class SQLAlchemyUnitOfWork:
    """One session, one transaction.

    Repositories share the session opened on ``__aenter__``. Anything not
    committed is rolled back on exit, and driver or connection faults are
    re-raised as PersistenceError so callers can tell them apart from
    domain errors.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory
        self._session: Optional[AsyncSession] = None

    @property
    def session(self) -> AsyncSession:
        if self._session is None:
            raise RuntimeError("UnitOfWork not initialized. Use as context manager.")
        return self._session

    @property
    def workspaces(self) -> SQLAlchemyWorkspaceRepository:
        return SQLAlchemyWorkspaceRepository(self.session)

    @property
    def invitations(self) -> SQLAlchemyInvitationRepository:
        return SQLAlchemyInvitationRepository(self.session)

    @property
    def activities(self) -> SQLAlchemyActivityRepository:
        return SQLAlchemyActivityRepository(self.session)

    async def commit(self) -> None:
        await self.session.commit()

    async def rollback(self) -> None:
        if self._session is not None:
            await self._session.rollback()

    async def __aenter__(self) -> "SQLAlchemyUnitOfWork":
        self._session = self._session_factory()
        return self

    async def __aexit__(
        self,
        exc_type: Optional[type],
        exc_val: Optional[BaseException],
        exc_tb: Any,
    ) -> None:
        session, self._session = self._session, None
        if session is None:
            return
        try:
            if exc_type is not None:
                await session.rollback()
        finally:
            await session.close()

        if isinstance(exc_val, TRANSIENT_ERRORS):
            logger.error(
                "persistence_error",
                error_type=type(exc_val).__name__,
                error=str(exc_val),
            )
            raise PersistenceError() from exc_val
