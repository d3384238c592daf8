"""
Error taxonomy.

Every error the service raises on purpose derives from AppError and carries
the HTTP status it maps to. The exception handlers in ``orgauth.main`` turn
them into the ``{success: false, message}`` envelope.
"""

from __future__ import annotations

from typing import Optional


class AppError(Exception):
    """Base class for operational errors surfaced to API clients."""

    status_code: int = 500
    default_message: str = "Server error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


# ---------------------------------------------------------------------------
# 400
# ---------------------------------------------------------------------------

class ValidationError(AppError):
    status_code = 400
    default_message = "Validation failed"


class MissingOrganization(ValidationError):
    default_message = "Organization ID is required"


# ---------------------------------------------------------------------------
# 401
# ---------------------------------------------------------------------------

class AuthenticationError(AppError):
    status_code = 401
    default_message = "Authentication required"


class NoCredential(AuthenticationError):
    default_message = "No token provided"


class InvalidCredential(AuthenticationError):
    default_message = "Invalid or expired token"


class NotAuthenticated(AuthenticationError):
    default_message = "User not authenticated"


class InvalidCredentials(AuthenticationError):
    default_message = "Invalid email or password"


# ---------------------------------------------------------------------------
# 403
# ---------------------------------------------------------------------------

class AuthorizationError(AppError):
    status_code = 403
    default_message = "Access denied"


class NotAMember(AuthorizationError):
    default_message = "Access denied: Not a member of this organization"


class RoleUndetermined(AuthorizationError):
    default_message = "Access denied: Role not determined"


class InsufficientRole(AuthorizationError):
    default_message = "Access denied: Insufficient role"


# ---------------------------------------------------------------------------
# 404
# ---------------------------------------------------------------------------

class NotFoundError(AppError):
    status_code = 404
    default_message = "Not found"


class UserNotFound(NotFoundError):
    default_message = "User not found"


class OrganizationNotFound(NotFoundError):
    default_message = "Organization not found"


class MemberNotFound(NotFoundError):
    default_message = "Member not found"


# ---------------------------------------------------------------------------
# 409
# ---------------------------------------------------------------------------

class ConflictError(AppError):
    status_code = 409
    default_message = "Conflict"


class EmailTaken(ConflictError):
    default_message = "User with this email already exists"


class SlugTaken(ConflictError):
    default_message = "Organization with this name already exists"


class AlreadyMember(ConflictError):
    default_message = "User is already a member"
