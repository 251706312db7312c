"""
Error taxonomy shared by the API and the client.
Kept free of web-framework imports: the server renders these as the response
envelope, the client rebuilds them from it.
"""
from __future__ import annotations

from typing import Any


class ApiError(Exception):
    """Base error carrying the envelope fields (statusCode, message, errors)."""

    status_code: int = 500
    message: str = "Internal server error"

    def __init__(
        self,
        message: str | None = None,
        errors: list[str] | None = None,
        status_code: int | None = None,
    ) -> None:
        self.message = message or self.message
        self.errors = list(errors or [])
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)

    def to_envelope(self) -> dict[str, Any]:
        return {
            "success": False,
            "statusCode": self.status_code,
            "message": self.message,
            "errors": self.errors,
        }


class AuthError(ApiError):
    """Credential verification failure. Always 401; `reason` tells why."""

    status_code = 401
    message = "Unauthorized request"
    reason = "invalid"


class InvalidCredentials(AuthError):
    message = "Invalid credentials"
    reason = "credentials"


class TokenExpired(AuthError):
    message = "Token expired"
    reason = "expired"


class TokenInvalid(AuthError):
    message = "Invalid token"
    reason = "invalid"


class TokenRevoked(AuthError):
    message = "Token revoked"
    reason = "revoked"


class SessionExpired(AuthError):
    """Client side: the refresh cycle failed and the session was dropped."""

    message = "Session expired"
    reason = "expired"


class ValidationError(ApiError):
    """Malformed input. `errors` holds one message per offending field."""

    status_code = 400
    message = "Validation error"

    def __init__(self, fields: dict[str, str] | None = None, message: str | None = None) -> None:
        self.fields = dict(fields or {})
        super().__init__(message, errors=list(self.fields.values()))


class DuplicateIdentity(ApiError):
    status_code = 409
    message = "User with email or username already exists"


class NetworkFailure(ApiError):
    """Transport-level failure (no HTTP response). Retryable; not an auth failure."""

    status_code = 0
    message = "Network error, please try again"


_AUTH_ERRORS_BY_MESSAGE: dict[str, type[AuthError]] = {
    cls.message: cls for cls in (InvalidCredentials, TokenExpired, TokenInvalid, TokenRevoked)
}


def error_from_envelope(status_code: int, payload: Any) -> ApiError:
    """Rebuild the matching ApiError subclass from an error response."""
    body = payload if isinstance(payload, dict) else {}
    message = str(body.get("message") or "") or None
    errors = [str(e) for e in body.get("errors") or []]
    if status_code == 401:
        cls = _AUTH_ERRORS_BY_MESSAGE.get(message or "", TokenInvalid)
        return cls(message, errors=errors)
    if status_code == 400:
        err = ValidationError(message=message)
        err.errors = errors
        return err
    if status_code == 409:
        return DuplicateIdentity(message, errors=errors)
    return ApiError(message or "Request failed", errors=errors, status_code=status_code)
