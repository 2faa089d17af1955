"""
auth/passwords.py -- Password hashing and credential verification.

Security design decisions:
  bcrypt directly (no passlib wrapper). The cost factor comes from
  PASSWORD_SALT_ROUNDS. It is resolved on every hash_password() call, so a
  missing or non-numeric value is a ConfigurationError at registration or
  password-change time, never at login time: verify_password() reads the cost
  from the stored hash itself.

  authenticate() always runs bcrypt, even for unknown emails, against a dummy
  hash. Response time then does not reveal whether an email is registered.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import TYPE_CHECKING, Optional

import bcrypt

from core.config import get_settings
from core.errors import ConfigurationError

if TYPE_CHECKING:
    from users.models import User
    from users.store import UserStore

logger = logging.getLogger("sessiongate.passwords")

# bcrypt's own default, used for the dummy hash when the configured cost is
# unusable so that login keeps working.
_FALLBACK_ROUNDS = 12


def _salt_rounds(raw: Optional[str]) -> int:
    if raw is None or not str(raw).strip():
        raise ConfigurationError("[.env] PASSWORD_SALT_ROUNDS not configured")
    try:
        return int(str(raw).strip())
    except ValueError as exc:
        raise ConfigurationError("[.env] PASSWORD_SALT_ROUNDS must be a valid number") from exc


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password.

    Raises ConfigurationError if PASSWORD_SALT_ROUNDS is missing or not a
    number. bcrypt itself rejects rounds outside 4..31 with ValueError, which
    is reported the same way.
    """
    rounds = _salt_rounds(get_settings().password_salt_rounds)
    try:
        salt = bcrypt.gensalt(rounds=rounds)
    except ValueError as exc:
        raise ConfigurationError("[.env] PASSWORD_SALT_ROUNDS is out of range") from exc
    return bcrypt.hashpw(plain.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Malformed stored hash
        return False


@lru_cache(maxsize=1)
def _dummy_hash() -> str:
    """Hash used to equalize timing for unknown emails.

    Computed once, lazily, with the configured cost when it is usable so the
    dummy check costs the same as a real one.
    """
    try:
        salt = bcrypt.gensalt(rounds=_salt_rounds(get_settings().password_salt_rounds))
    except (ConfigurationError, ValueError):
        # Unusable cost; bcrypt only accepts 4..31
        salt = bcrypt.gensalt(rounds=_FALLBACK_ROUNDS)
    return bcrypt.hashpw(b"sessiongate_timing_dummy", salt).decode("utf-8")


def authenticate(store: UserStore, email: str, password: str) -> User | None:
    """Return the User whose email and password match, or None.

    Always runs bcrypt whether or not the user exists:
    - Unknown email: bcrypt runs against the dummy hash
    - Wrong password: bcrypt runs against the real hash
    """
    user = store.get_by_email(email)
    if user is None:
        verify_password(password, _dummy_hash())
        return None
    if not verify_password(password, user.hashed_password):
        return None
    return user
