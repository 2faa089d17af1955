"""
auth/sessions.py -- Login, logout and access-token refresh.

SessionManager is the only component that decides when token records are
created or destroyed. It composes the leaf pieces:

  UserStore   (users/store.py)   -- who the user is
  passwords   (auth/passwords.py) -- is the password right
  tokens      (auth/tokens.py)    -- mint and verify JWTs
  TokenStore  (auth/store.py)     -- which JWTs are currently live

Per-user states:

  LoggedOut      no access record, no refresh record
  LoggedIn       both records present
  AccessExpired  refresh record present, access token expired
                 (refresh_access_token() moves back to LoggedIn)

Policies:
  Single active session. login() on an already logged-in user forces a
  logout first, so another device holding the old pair is signed out.

  The refresh token is NOT rotated by refresh_access_token(). The same
  refresh token stays valid until it expires or the user logs in again.
"""

from __future__ import annotations

import hmac
import logging
from datetime import datetime, timedelta, timezone

from auth import passwords, tokens
from auth.models import LoginResult, TokenKind, TokenRecord
from auth.store import TokenStore
from core.config import Settings
from core.errors import (
    InvalidCredentialsError,
    InvalidRefreshTokenError,
    NotFoundError,
    NotLoggedInError,
    UserNotFoundError,
)
from users.store import UserStore

logger = logging.getLogger("sessiongate.sessions")


def _expires_in(seconds: int) -> str:
    return (datetime.now(timezone.utc) + timedelta(seconds=seconds)).isoformat()


class SessionManager:
    """Orchestrates the session lifecycle for every user.

    Usage:
        sessions = SessionManager(users, token_store, get_settings())
        result = sessions.login("a@x.com", "password1")
        new_access = sessions.refresh_access_token(result.refresh_token)
        sessions.logout(result.user_id)
    """

    def __init__(self, users: UserStore, token_store: TokenStore, settings: Settings) -> None:
        self.users = users
        self.tokens = token_store
        self.settings = settings

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def login(self, email: str, password: str) -> LoginResult:
        """Check credentials and start a fresh session.

        Raises InvalidCredentialsError for an unknown email and for a wrong
        password alike.
        """
        user = passwords.authenticate(self.users, email, password)
        if user is None:
            logger.warning("Failed to login (email: %s / error: Wrong email or password)", email)
            raise InvalidCredentialsError("Wrong email or password")

        if self.is_logged_in(user.id):
            try:
                self.logout(user.id)
            except NotLoggedInError:
                # Half a session (one record missing) is still cleared by logout()
                pass

        access_token = tokens.issue_access_token(user.id, user.email)
        refresh_token = tokens.issue_refresh_token(user.id)
        self._save(TokenKind.ACCESS, user.id, access_token, self.settings.access_token_expire_seconds)
        self._save(TokenKind.REFRESH, user.id, refresh_token, self.settings.refresh_token_expire_seconds)

        logger.info("Signed in as user (user: %s / userId: %s)", user.email, user.id)
        return LoginResult(
            user_id=user.id,
            email=user.email,
            access_token=access_token,
            refresh_token=refresh_token,
        )

    def logout(self, user_id: int) -> None:
        """Destroy both token records for user_id.

        Both deletions are always attempted. If either record was already
        missing the user was not in a full session and NotLoggedInError is
        raised; storage failures propagate unchanged.
        """
        missing = False
        for kind in (TokenKind.ACCESS, TokenKind.REFRESH):
            try:
                self.tokens.delete_by_user_id(kind, user_id)
                logger.info("%s token deleted (userId: %s)", kind.value.capitalize(), user_id)
            except NotFoundError:
                missing = True
        if missing:
            logger.warning("Failed to logout (userId: %s / error: This user is not logged in)", user_id)
            raise NotLoggedInError("This user is not logged in")
        logger.info("User logged out (userId: %s)", user_id)

    def refresh_access_token(self, refresh_token: str) -> str:
        """Mint and store a new access token for the owner of refresh_token.

        Raises InvalidRefreshTokenError if the token fails verification or is
        not the refresh token currently stored for its subject, and
        UserNotFoundError if the user was deleted after the token was issued.
        """
        try:
            claims = tokens.verify_refresh_token(refresh_token)
        except tokens.TokenVerificationError as exc:
            raise InvalidRefreshTokenError("Invalid refresh token") from exc

        stored = self.tokens.find_by_user_id(TokenKind.REFRESH, claims.subject)
        if stored is None or not hmac.compare_digest(stored.token, refresh_token):
            logger.warning("Refresh token not found or superseded (userId: %s)", claims.subject)
            raise InvalidRefreshTokenError("Invalid refresh token / not found")

        user = self.users.get_by_id(claims.subject)
        if user is None:
            raise UserNotFoundError("User not found")

        access_token = tokens.issue_access_token(user.id, user.email)
        self._save(TokenKind.ACCESS, user.id, access_token, self.settings.access_token_expire_seconds)
        logger.info("Access token refreshed (userId: %s)", user.id)
        return access_token

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def is_logged_in(self, user_id: int) -> bool:
        """True if the user holds an access record or a refresh record."""
        if self.tokens.find_by_user_id(TokenKind.ACCESS, user_id) is not None:
            return True
        logger.debug("Access token not found in database, fetching refresh token (userId: %s)", user_id)
        return self.tokens.find_by_user_id(TokenKind.REFRESH, user_id) is not None

    def get_refresh_record(self, user_id: int) -> TokenRecord | None:
        return self.tokens.find_by_user_id(TokenKind.REFRESH, user_id)

    def is_current_access_token(self, user_id: int, token: str) -> bool:
        """True if token is the access token stored for user_id right now."""
        stored = self.tokens.find_by_user_id(TokenKind.ACCESS, user_id)
        return stored is not None and hmac.compare_digest(stored.token, token)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _save(self, kind: TokenKind, user_id: int, token: str, lifetime_seconds: int) -> TokenRecord:
        record = self.tokens.save(
            kind,
            TokenRecord(user_id=user_id, token=token, expires_at=_expires_in(lifetime_seconds)),
        )
        logger.info("%s token saved (userId: %s)", kind.value.capitalize(), user_id)
        return record
