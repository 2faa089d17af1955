"""
auth/tokens.py -- JWT issuance and verification for access and refresh tokens.

Security design decisions:
  JWT: python-jose with HS256. Both token kinds are signed with SECRET_KEY.
       A "typ" claim separates them, so a refresh token is never accepted
       where an access token is expected and vice versa.

       Access token claims:  id, email, iat, exp, typ="access", jti
       Refresh token claims: sub (user id as str), iat, exp, typ="refresh", jti

       jti is random. Two tokens minted for the same user in the same second
       would otherwise be byte-identical and collide on the UNIQUE token
       column in auth/store.py.

  Verification raises instead of returning None. The request guard has to
  tell "expired" (try the refresh path) apart from "invalid" (reject), so
  TokenExpiredError and InvalidTokenError are distinct subclasses of
  TokenVerificationError.

  A valid signature is necessary but not sufficient: auth/sessions.py also
  requires the token to be the one currently held in the TokenStore.

  SECRET_KEY and lifetimes: read through core.config.get_settings() on each
  call (an lru_cache singleton, so this is a dict lookup).

Layer rule: no imports from api/, users/ or posts/.
"""

from __future__ import annotations

import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import ExpiredSignatureError, JWTError, jwt

from auth.models import AccessClaims, RefreshClaims, UnverifiedClaims
from core.config import get_settings

_ALGORITHM = "HS256"
_ACCESS = "access"
_REFRESH = "refresh"


class TokenVerificationError(Exception):
    """Signature invalid, token malformed, or token expired."""


class TokenExpiredError(TokenVerificationError):
    """Signature is valid but exp is in the past."""


class InvalidTokenError(TokenVerificationError):
    """Bad signature, malformed token, wrong typ or missing claims."""


# ---------------------------------------------------------------------------
# Issue
# ---------------------------------------------------------------------------


def _encode(claims: dict, expire_seconds: int) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        **claims,
        "iat": int(now.timestamp()),
        "exp": now + timedelta(seconds=expire_seconds),
        "jti": secrets.token_hex(8),
    }
    return jwt.encode(payload, get_settings().secret_key, algorithm=_ALGORITHM)


def issue_access_token(user_id: int, email: str, expire_seconds: Optional[int] = None) -> str:
    """Encode a signed access token for user_id.

    Args:
        user_id:        Numeric user ID stored in the DB.
        email:          Email at issue time; part of the request identity.
        expire_seconds: Lifetime in seconds. Defaults to
                        Settings.access_token_expire_seconds.
    """
    duration = expire_seconds if expire_seconds is not None else get_settings().access_token_expire_seconds
    return _encode({"id": user_id, "email": email, "typ": _ACCESS}, duration)


def issue_refresh_token(user_id: int, expire_seconds: Optional[int] = None) -> str:
    """Encode a signed refresh token whose subject is user_id."""
    duration = expire_seconds if expire_seconds is not None else get_settings().refresh_token_expire_seconds
    return _encode({"sub": str(user_id), "typ": _REFRESH}, duration)


# ---------------------------------------------------------------------------
# Verify
# ---------------------------------------------------------------------------


def _decode(token: str, expected_typ: str) -> dict:
    try:
        payload = jwt.decode(token, get_settings().secret_key, algorithms=[_ALGORITHM])
    except ExpiredSignatureError as exc:
        raise TokenExpiredError("Token has expired") from exc
    except JWTError as exc:
        raise InvalidTokenError(f"Token verification failed: {exc}") from exc
    if payload.get("typ") != expected_typ:
        raise InvalidTokenError(f"Expected a {expected_typ} token")
    return payload


def verify_access_token(token: str) -> AccessClaims:
    """Fully verify an access token and return its claims.

    Raises TokenExpiredError when only the expiry check fails, and
    InvalidTokenError for everything else.
    """
    payload = _decode(token, _ACCESS)
    user_id = _as_user_id(payload.get("id"))
    email = payload.get("email")
    if user_id is None or not isinstance(email, str):
        raise InvalidTokenError("Access token is missing id or email")
    return AccessClaims(id=user_id, email=email, issued_at=int(payload.get("iat", 0)))


def verify_refresh_token(token: str) -> RefreshClaims:
    """Fully verify a refresh token and return its subject."""
    payload = _decode(token, _REFRESH)
    subject = _as_user_id(payload.get("sub"))
    if subject is None:
        raise InvalidTokenError("Refresh token has no usable subject")
    return RefreshClaims(subject=subject)


def decode_unverified(token: str) -> UnverifiedClaims | None:
    """Read the user id from a token WITHOUT checking signature or expiry.

    Returns None for anything that is not a decodable JWT. The result is only
    fit for choosing which stored records to look up.
    """
    try:
        claims = jwt.get_unverified_claims(token)
    except JWTError:
        return None
    return UnverifiedClaims(user_id=_as_user_id(claims.get("id")))


# Largest value a signed 64-bit INTEGER column holds; anything above it is
# rejected by the database driver itself.
_MAX_USER_ID = 2**63 - 1


def _as_user_id(value) -> int | None:
    """Coerce a claim to a positive user id that fits the id column, or None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, str) and value.isascii() and value.isdigit():
        value = int(value)
    if isinstance(value, int) and 0 < value <= _MAX_USER_ID:
        return value
    return None
