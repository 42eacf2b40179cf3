"""Custom exceptions and error codes."""

from datetime import datetime
from enum import StrEnum
from typing import Any


class ErrorCode(StrEnum):
    """Standardized error codes for the API."""

    # Authentication errors (401)
    UNAUTHORIZED = "UNAUTHORIZED"
    INVALID_TOKEN = "INVALID_TOKEN"

    # Not found errors (404)
    WORKSPACE_NOT_FOUND = "WORKSPACE_NOT_FOUND"
    MEMBER_NOT_FOUND = "MEMBER_NOT_FOUND"
    INVITATION_NOT_FOUND = "INVITATION_NOT_FOUND"

    # Validation errors (422)
    VALIDATION_ERROR = "VALIDATION_ERROR"

    # Authorization errors (403) - workspace-specific
    NOT_A_MEMBER = "NOT_A_MEMBER"
    INSUFFICIENT_PERMISSIONS = "INSUFFICIENT_PERMISSIONS"
    INVALID_ROLE_ASSIGNMENT = "INVALID_ROLE_ASSIGNMENT"
    OWNER_IMMUTABLE = "OWNER_IMMUTABLE"

    # Invitation errors
    INVALID_OR_EXPIRED_INVITATION = "INVALID_OR_EXPIRED_INVITATION"
    DUPLICATE_INVITATION = "DUPLICATE_INVITATION"
    INVITATION_EMAIL_MISMATCH = "INVITATION_EMAIL_MISMATCH"
    REMINDER_LIMIT_REACHED = "REMINDER_LIMIT_REACHED"

    # Conflict errors (409)
    ALREADY_A_MEMBER = "ALREADY_A_MEMBER"
    WORKSPACE_IN_TRASH = "WORKSPACE_IN_TRASH"
    WORKSPACE_NOT_IN_TRASH = "WORKSPACE_NOT_IN_TRASH"
    CONCURRENT_MODIFICATION = "CONCURRENT_MODIFICATION"

    # Rate limiting (429)
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"

    # Server errors (5xx)
    INTERNAL_ERROR = "INTERNAL_ERROR"
    DATABASE_ERROR = "DATABASE_ERROR"


class AppException(Exception):
    """Base application exception.

    Subclasses are recoverable, caller-facing conditions. ``retryable`` marks
    transient faults where re-running the whole operation may succeed.
    """

    retryable: bool = False

    def __init__(
        self,
        error_code: ErrorCode,
        message: str,
        status_code: int = 400,
        details: Any | None = None,
    ) -> None:
        self.error_code = error_code
        self.message = message
        self.status_code = status_code
        self.details = details
        super().__init__(self.message)


class AuthenticationError(AppException):
    """Authentication failed."""

    def __init__(
        self,
        message: str = "Authentication required",
        error_code: ErrorCode = ErrorCode.UNAUTHORIZED,
    ) -> None:
        super().__init__(
            error_code=error_code,
            message=message,
            status_code=401,
        )


class ValidationError(AppException):
    """Malformed input or a broken workspace invariant."""

    def __init__(self, message: str, details: Any | None = None) -> None:
        super().__init__(
            error_code=ErrorCode.VALIDATION_ERROR,
            message=message,
            status_code=422,
            details=details,
        )


class WorkspaceNotFoundError(AppException):
    """Workspace not found."""

    def __init__(self, workspace_id: str) -> None:
        super().__init__(
            error_code=ErrorCode.WORKSPACE_NOT_FOUND,
            message=f"Workspace not found: {workspace_id}",
            status_code=404,
            details={"workspace_id": workspace_id},
        )


class MemberNotFoundError(AppException):
    """Target user is not a member of the workspace."""

    def __init__(self, user_id: str) -> None:
        super().__init__(
            error_code=ErrorCode.MEMBER_NOT_FOUND,
            message="Member not found in this workspace",
            status_code=404,
            details={"user_id": user_id},
        )


class NotAMemberError(AppException):
    """User is not a member of the workspace."""

    def __init__(self, workspace_id: str) -> None:
        super().__init__(
            error_code=ErrorCode.NOT_A_MEMBER,
            message="You are not a member of this workspace",
            status_code=403,
            details={"workspace_id": workspace_id},
        )


class InsufficientPermissionsError(AppException):
    """User does not hold the capability required for the operation."""

    def __init__(self, capability: str, current_role: str | None = None) -> None:
        super().__init__(
            error_code=ErrorCode.INSUFFICIENT_PERMISSIONS,
            message=f"Insufficient permissions. Required capability: {capability}",
            status_code=403,
            details={"required": capability, "current_role": current_role},
        )


class InvalidRoleAssignmentError(AppException):
    """Attempt to grant a role the actor is not allowed to grant."""

    def __init__(self, role: str, actor_role: str | None = None) -> None:
        super().__init__(
            error_code=ErrorCode.INVALID_ROLE_ASSIGNMENT,
            message=f"You cannot assign the '{role}' role",
            status_code=403,
            details={"role": role, "actor_role": actor_role},
        )


class OwnerImmutableError(AppException):
    """The workspace owner cannot be demoted, removed or edited."""

    def __init__(self) -> None:
        super().__init__(
            error_code=ErrorCode.OWNER_IMMUTABLE,
            message="The workspace owner cannot be demoted, removed or edited",
            status_code=403,
        )


class AlreadyAMemberError(AppException):
    """User is already a member of the workspace."""

    def __init__(self, user_id: str) -> None:
        super().__init__(
            error_code=ErrorCode.ALREADY_A_MEMBER,
            message="User is already a member of this workspace",
            status_code=409,
            details={"user_id": user_id},
        )


class WorkspaceInTrashError(AppException):
    """Workspace is in the trash and cannot be used."""

    def __init__(self, workspace_id: str) -> None:
        super().__init__(
            error_code=ErrorCode.WORKSPACE_IN_TRASH,
            message="Workspace is in the trash",
            status_code=409,
            details={"workspace_id": workspace_id},
        )


class WorkspaceNotInTrashError(AppException):
    """Workspace is not in the trash."""

    def __init__(self, workspace_id: str) -> None:
        super().__init__(
            error_code=ErrorCode.WORKSPACE_NOT_IN_TRASH,
            message="Workspace is not in the trash",
            status_code=409,
            details={"workspace_id": workspace_id},
        )


class InvitationNotFoundError(AppException):
    """Invitation not found."""

    def __init__(self, invitation_id: str = "") -> None:
        super().__init__(
            error_code=ErrorCode.INVITATION_NOT_FOUND,
            message="Invitation not found",
            status_code=404,
            details={"invitation_id": invitation_id} if invitation_id else None,
        )


class InvalidOrExpiredInvitationError(AppException):
    """Invitation is no longer pending or has passed its expiry."""

    def __init__(self, status: str, expires_at: datetime | None = None) -> None:
        super().__init__(
            error_code=ErrorCode.INVALID_OR_EXPIRED_INVITATION,
            message="Invalid or expired invitation",
            status_code=410,
            details={
                "status": status,
                "expires_at": expires_at.isoformat() if expires_at else None,
            },
        )


class DuplicateInvitationError(AppException):
    """A pending invitation already exists for this email and workspace."""

    def __init__(self, email: str) -> None:
        super().__init__(
            error_code=ErrorCode.DUPLICATE_INVITATION,
            message="A pending invitation already exists for this email",
            status_code=409,
            details={"email": email},
        )


class InvitationEmailMismatchError(AppException):
    """The user's email does not match the invitation email."""

    def __init__(self) -> None:
        super().__init__(
            error_code=ErrorCode.INVITATION_EMAIL_MISMATCH,
            message="Your email does not match the invitation email",
            status_code=403,
        )


class ReminderLimitReachedError(AppException):
    """No more reminders may be sent for this invitation."""

    def __init__(self, limit: int) -> None:
        super().__init__(
            error_code=ErrorCode.REMINDER_LIMIT_REACHED,
            message=f"Reminder limit reached ({limit})",
            status_code=429,
            details={"limit": limit},
        )


class ConcurrentModificationError(AppException):
    """A concurrent writer changed the record first."""

    retryable = True

    def __init__(self, entity_type: str, entity_id: str) -> None:
        super().__init__(
            error_code=ErrorCode.CONCURRENT_MODIFICATION,
            message=f"The {entity_type} was modified concurrently, retry the operation",
            status_code=409,
            details={"entity_type": entity_type, "entity_id": entity_id},
        )


class PersistenceError(AppException):
    """The storage layer failed or timed out; nothing was committed."""

    retryable = True

    def __init__(self, message: str = "Storage unavailable") -> None:
        super().__init__(
            error_code=ErrorCode.DATABASE_ERROR,
            message=message,
            status_code=503,
        )
