"""
users/models.py -- Domain dataclass for user identities.

Pattern: Data class (pure data container, zero logic). The session core only
ever reads id, email and hashed_password; everything else is owned by the
account operations in users/accounts.py.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class User:
    """A registered account.

    hashed_password is the bcrypt hash and must never be serialized into an
    API response -- api/models.UserResponse has no field for it.
    """

    email: str
    hashed_password: str
    id: int | None = None
    created_at: str | None = None
