"""
core/errors.py -- Service-layer exception taxonomy.

Every domain failure raised by auth/, users/ and posts/ is a ServiceError
subclass carrying an HTTP status code and a stable machine-readable error code.
api/main.py renders all of them through one exception handler, so route
handlers never translate exceptions by hand.

Propagation policy:
  4xx errors (credentials, conflict, not found, unauthenticated) travel to
  the client unchanged.
  5xx errors (configuration, storage, upstream) are logged with their cause.
  500s are rendered with a generic message; a 502 keeps its code. The
  original exception stays on __cause__ and never reaches the response body.
"""

from __future__ import annotations

from typing import Optional


class ServiceError(Exception):
    """Base class for service-layer exceptions mapped to HTTP responses."""

    status_code: int = 400
    error_code: str = "bad_request"

    def __init__(self, message: str, *, detail: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail


class BadRequestError(ServiceError):
    """The request is well-formed but cannot be applied (400)."""

    status_code = 400
    error_code = "bad_request"


class InvalidCredentialsError(BadRequestError):
    """Unknown email or wrong password. Never says which."""

    error_code = "invalid_credentials"


class NotLoggedInError(BadRequestError):
    """Logout requested for a user without an active session."""

    error_code = "not_logged_in"


class UnauthenticatedError(ServiceError):
    """Missing, invalid or expired credentials with no viable refresh (401)."""

    status_code = 401
    error_code = "unauthorized"


class InvalidRefreshTokenError(UnauthenticatedError):
    error_code = "invalid_refresh_token"


class NotFoundError(ServiceError):
    """Requested record does not exist (404)."""

    status_code = 404
    error_code = "not_found"


class UserNotFoundError(NotFoundError):
    error_code = "user_not_found"


class ConflictError(ServiceError):
    """Unique constraint violated: duplicate email or token (409)."""

    status_code = 409
    error_code = "conflict"


class ConfigurationError(ServiceError):
    """A required setting is missing or malformed (500)."""

    status_code = 500
    error_code = "configuration_error"


class StorageError(ServiceError):
    """Unexpected database failure (500)."""

    status_code = 500
    error_code = "storage_error"


class UpstreamUnavailableError(ServiceError):
    """An external data source could not be reached (502)."""

    status_code = 502
    error_code = "upstream_unavailable"
