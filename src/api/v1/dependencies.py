"""Dependency injection factories for API v1."""

from functools import lru_cache
from typing import Callable

from domain.repositories.notification_sender import INotificationSender
from domain.services.activity_service import ActivityService
from domain.services.invitation_service import InvitationService
from domain.services.referral_service import ReferralService
from domain.services.workspace_service import WorkspaceService
from infrastructure.database.session import async_session_factory
from infrastructure.database.sqlalchemy_uow import SQLAlchemyUnitOfWork
from infrastructure.notifications.webhook_sender import build_notification_sender


def get_uow_factory() -> Callable[[], SQLAlchemyUnitOfWork]:
    """Factory for creating Unit of Work instances."""

    def factory() -> SQLAlchemyUnitOfWork:
        return SQLAlchemyUnitOfWork(async_session_factory)

    return factory


@lru_cache
def get_notification_sender() -> INotificationSender:
    """Get the outbound notification sender."""
    return build_notification_sender()


@lru_cache
def get_activity_service() -> ActivityService:
    """Get Activity service instance."""
    return ActivityService(get_uow_factory())


@lru_cache
def get_workspace_service() -> WorkspaceService:
    """Get Workspace service instance."""
    return WorkspaceService(
        get_uow_factory(),
        activity_service=get_activity_service(),
    )


@lru_cache
def get_invitation_service() -> InvitationService:
    """Get Invitation service instance."""
    return InvitationService(
        get_uow_factory(),
        activity_service=get_activity_service(),
        notification_sender=get_notification_sender(),
    )


@lru_cache
def get_referral_service() -> ReferralService:
    """Get Referral service instance."""
    return ReferralService(get_uow_factory())
