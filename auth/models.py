"""
auth/models.py -- Domain dataclasses for session and token entities.

Pattern: Data class (pure data container, zero logic). Stores and the session
manager do the work.

Trust levels are encoded in the types:
  UnverifiedClaims -- decoded WITHOUT signature or expiry checks. Only good
                      for picking which user's records to look up.
  AccessClaims     -- returned by auth.tokens.verify_access_token() after a
                      full verification. This is the request identity.
  RefreshClaims    -- returned by auth.tokens.verify_refresh_token().
Nothing accepts an UnverifiedClaims where an AccessClaims is expected.

Layer rule: no imports from api/, users/ or posts/.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class TokenKind(str, Enum):
    ACCESS = "access"
    REFRESH = "refresh"


@dataclass
class TokenRecord:
    """A stored access or refresh token. At most one per (kind, user_id).

    Timestamps are ISO 8601 UTC strings, the same representation the users
    table uses. id is None before the record is written.
    """

    user_id: int
    token: str
    expires_at: str
    created_at: str = ""
    id: int | None = None


@dataclass(frozen=True)
class UnverifiedClaims:
    """Claims read from a token whose signature has NOT been checked."""

    user_id: int | None


@dataclass(frozen=True)
class AccessClaims:
    """Verified identity carried by an access token."""

    id: int
    email: str
    issued_at: int


@dataclass(frozen=True)
class RefreshClaims:
    """Verified subject of a refresh token."""

    subject: int


@dataclass(frozen=True)
class LoginResult:
    user_id: int
    email: str
    access_token: str
    refresh_token: str
