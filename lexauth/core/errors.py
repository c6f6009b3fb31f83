"""Error taxonomy for the auth core. Callers match on ``kind`` / ``reason``, never on message text."""

from enum import Enum
from typing import ClassVar


class ErrorKind(str, Enum):
    """One tag per error family surfaced to callers."""

    VALIDATION = "validation"
    CONFLICT = "conflict"
    AUTHENTICATION = "authentication"
    AUTHORIZATION = "authorization"
    NOT_FOUND = "not_found"
    CONFIGURATION = "configuration"


class AuthFailure(str, Enum):
    """Why an authentication attempt was rejected."""

    MISSING_TOKEN = "missing_token"
    MALFORMED_TOKEN = "malformed_token"
    EXPIRED_TOKEN = "expired_token"
    INVALID_SIGNATURE = "invalid_signature"
    INVALID_TOKEN = "invalid_token"
    BAD_CREDENTIALS = "bad_credentials"
    ACCOUNT_DISABLED = "account_disabled"


class LexAuthError(Exception):
    """Base class. Messages are safe to return to clients verbatim."""

    kind: ClassVar[ErrorKind]
    status_code: ClassVar[int] = 500

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    @property
    def reason(self) -> str | None:
        return None


class ValidationError(LexAuthError):
    """Malformed input (lengths, email syntax, unknown enum values)."""

    kind = ErrorKind.VALIDATION
    status_code = 400


class ConflictError(LexAuthError):
    """Username or email already taken."""

    kind = ErrorKind.CONFLICT
    status_code = 400


class AuthenticationError(LexAuthError):
    """Bad credentials, or a missing / malformed / expired / invalid token."""

    kind = ErrorKind.AUTHENTICATION
    status_code = 401

    def __init__(self, message: str, failure: AuthFailure) -> None:
        self.failure = failure
        super().__init__(message)

    @property
    def reason(self) -> str:
        return self.failure.value


class AuthorizationError(LexAuthError):
    """Authenticated principal lacks the required role."""

    kind = ErrorKind.AUTHORIZATION
    status_code = 403


class NotFoundError(LexAuthError):
    """Account referenced by an authenticated request no longer exists."""

    kind = ErrorKind.NOT_FOUND
    status_code = 404


class ConfigurationError(LexAuthError):
    """Fatal startup problem: missing secret, malformed expiry duration."""

    kind = ErrorKind.CONFIGURATION
    status_code = 500
