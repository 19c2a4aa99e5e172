"""
core/errors.py -- Error taxonomy shared by every layer.

Core operations (auth/, registry/) raise AppError subclasses; they never build
HTTP responses. The boundary (api/main.py) has one exception handler that turns
any AppError into the JSON envelope

    {"error": <message>, "code": <machine code>, "details": <object or null>}

using the status code carried by the error. Each error belongs to exactly one
ErrorKind, and the kind decides the default status.

Layer rule: core/ is the kernel. No imports from api/, auth/, or registry/.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    validation = "validation"
    conflict = "conflict"
    unauthorized = "unauthorized"
    forbidden = "forbidden"
    not_found = "not_found"
    internal = "internal"


_KIND_STATUS: dict[ErrorKind, int] = {
    ErrorKind.validation: 400,
    ErrorKind.conflict: 409,
    ErrorKind.unauthorized: 401,
    ErrorKind.forbidden: 403,
    ErrorKind.not_found: 404,
    ErrorKind.internal: 500,
}


class AppError(Exception):
    """Base class for every error the API reports to its callers.

    Subclasses set kind, code and a default message as class attributes.
    status_code is derived from kind unless the subclass pins it explicitly.
    """

    kind: ErrorKind = ErrorKind.internal
    code: str = "INTERNAL_ERROR"
    message: str = "An unexpected error occurred."
    status: int | None = None

    def __init__(self, message: str | None = None, details: dict[str, Any] | None = None) -> None:
        self.message = message or self.message
        self.details = details
        super().__init__(self.message)

    @property
    def status_code(self) -> int:
        if self.status is not None:
            return self.status
        return _KIND_STATUS[self.kind]


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class ValidationFailed(AppError):
    kind = ErrorKind.validation
    code = "VALIDATION_ERROR"
    message = "Request validation failed."


class MissingFields(ValidationFailed):
    code = "MISSING_FIELDS"
    message = "Username and password are required."


class MissingCredentials(ValidationFailed):
    code = "MISSING_CREDENTIALS"
    message = "Username and password are required."


class PasswordTooShort(ValidationFailed):
    code = "PASSWORD_TOO_SHORT"
    message = "New password is too short."


class PasswordTooLong(ValidationFailed):
    code = "PASSWORD_TOO_LONG"
    message = "Password must be at most 72 bytes."


class UnknownReference(ValidationFailed):
    code = "UNKNOWN_REFERENCE"
    message = "Referenced record does not exist."


class InvalidExpand(ValidationFailed):
    code = "INVALID_EXPAND"
    message = "Unknown field in expand parameter."


# ---------------------------------------------------------------------------
# Conflict
# ---------------------------------------------------------------------------


class Conflict(AppError):
    kind = ErrorKind.conflict
    code = "DUPLICATE_VALUE"
    message = "A record with this value already exists."


class UserExists(Conflict):
    code = "USER_EXISTS"
    message = "User with this username already exists."


# ---------------------------------------------------------------------------
# Unauthorized
# ---------------------------------------------------------------------------


class Unauthorized(AppError):
    kind = ErrorKind.unauthorized
    code = "UNAUTHORIZED"
    message = "Authentication required."


class NoToken(Unauthorized):
    code = "NO_TOKEN"
    message = "Access denied. No valid token provided."


class TokenRequired(Unauthorized):
    code = "TOKEN_REQUIRED"
    message = "Token required for user creation when users exist."


class InvalidToken(Unauthorized):
    code = "INVALID_TOKEN"
    message = "Invalid token."


class TokenExpired(Unauthorized):
    code = "TOKEN_EXPIRED"
    message = "Token has expired."


class UserNotFound(Unauthorized):
    code = "USER_NOT_FOUND"
    message = "User no longer exists."


class UserInactive(Unauthorized):
    code = "USER_INACTIVE"
    message = "User account is deactivated."


class InvalidCredentials(Unauthorized):
    # Reported as 400 on the wire: a failed login is a bad request, not a
    # missing session.
    code = "INVALID_CREDENTIALS"
    message = "Invalid credentials."
    status = 400


# ---------------------------------------------------------------------------
# Forbidden
# ---------------------------------------------------------------------------


class Forbidden(AppError):
    kind = ErrorKind.forbidden
    code = "FORBIDDEN"
    message = "Operation not allowed."


class AccountDeactivated(Forbidden):
    code = "ACCOUNT_DEACTIVATED"
    message = "Account is deactivated."


class ReferencedByUsers(Forbidden):
    code = "REFERENCED_BY_USERS"

    def __init__(self, count: int) -> None:
        super().__init__(
            f"Cannot delete this role: {count} user(s) still reference it.",
            details={"count": count},
        )
        self.count = count


class ReferencedByCountries(Forbidden):
    code = "REFERENCED_BY_COUNTRIES"

    def __init__(self, count: int) -> None:
        super().__init__(
            f"Cannot delete this area: {count} country(ies) still reference it.",
            details={"count": count},
        )
        self.count = count


# ---------------------------------------------------------------------------
# Not found / internal
# ---------------------------------------------------------------------------


class NotFound(AppError):
    kind = ErrorKind.not_found
    code = "NOT_FOUND"
    message = "Not found."


class InternalError(AppError):
    kind = ErrorKind.internal
    code = "INTERNAL_ERROR"
    message = "An unexpected error occurred."
