"""Unit tests for auth/sessions.py -- SessionManager login/logout/refresh.

Covers:
- login issues a verifiable pair and stores both records
- repeated login leaves exactly one record of each kind (single session)
- logout clears both records; logout without a session is NotLoggedInError
- refresh_access_token accepts only the stored, valid refresh token
"""

from __future__ import annotations

import pytest

from auth import tokens
from auth.models import TokenKind, TokenRecord
from core.errors import InvalidCredentialsError, InvalidRefreshTokenError, NotLoggedInError, UserNotFoundError
from users.accounts import register_user


@pytest.fixture
def user(user_store):
    return register_user(user_store, "a@x.com", "password1")


class TestLogin:
    def test_login_returns_verifiable_tokens(self, sessions, user):
        result = sessions.login("a@x.com", "password1")

        assert result.user_id == user.id
        assert result.email == "a@x.com"
        assert tokens.verify_access_token(result.access_token).id == user.id
        assert tokens.verify_refresh_token(result.refresh_token).subject == user.id

    def test_login_stores_both_records(self, sessions, token_store, user):
        result = sessions.login("a@x.com", "password1")

        assert token_store.find_by_user_id(TokenKind.ACCESS, user.id).token == result.access_token
        assert token_store.find_by_user_id(TokenKind.REFRESH, user.id).token == result.refresh_token
        assert sessions.is_logged_in(user.id)

    def test_second_login_replaces_first_session(self, sessions, token_store, user):
        first = sessions.login("a@x.com", "password1")
        second = sessions.login("a@x.com", "password1")

        assert len(token_store.find_all(TokenKind.ACCESS)) == 1
        assert len(token_store.find_all(TokenKind.REFRESH)) == 1
        assert not sessions.is_current_access_token(user.id, first.access_token)
        assert sessions.is_current_access_token(user.id, second.access_token)

    def test_wrong_password(self, sessions, user):
        with pytest.raises(InvalidCredentialsError, match="Wrong email or password"):
            sessions.login("a@x.com", "password2")
        assert not sessions.is_logged_in(user.id)

    def test_unknown_email(self, sessions):
        with pytest.raises(InvalidCredentialsError):
            sessions.login("nobody@x.com", "password1")

    def test_login_recovers_half_session(self, sessions, token_store, user):
        sessions.login("a@x.com", "password1")
        token_store.delete_by_user_id(TokenKind.ACCESS, user.id)

        result = sessions.login("a@x.com", "password1")
        assert sessions.is_current_access_token(user.id, result.access_token)


class TestLogout:
    def test_logout_clears_both_records(self, sessions, token_store, user):
        sessions.login("a@x.com", "password1")
        sessions.logout(user.id)

        assert token_store.find_by_user_id(TokenKind.ACCESS, user.id) is None
        assert token_store.find_by_user_id(TokenKind.REFRESH, user.id) is None
        assert not sessions.is_logged_in(user.id)

    def test_logout_without_session(self, sessions, user):
        with pytest.raises(NotLoggedInError):
            sessions.logout(user.id)

    def test_logout_half_session_still_clears_remaining_record(self, sessions, token_store, user):
        sessions.login("a@x.com", "password1")
        token_store.delete_by_user_id(TokenKind.ACCESS, user.id)

        with pytest.raises(NotLoggedInError):
            sessions.logout(user.id)
        assert token_store.find_by_user_id(TokenKind.REFRESH, user.id) is None


class TestRefresh:
    def test_refresh_issues_and_stores_new_access_token(self, sessions, user):
        result = sessions.login("a@x.com", "password1")
        new_access = sessions.refresh_access_token(result.refresh_token)

        assert new_access != result.access_token
        assert tokens.verify_access_token(new_access).email == "a@x.com"
        assert sessions.is_current_access_token(user.id, new_access)

    def test_refresh_token_is_not_rotated(self, sessions, user):
        result = sessions.login("a@x.com", "password1")
        sessions.refresh_access_token(result.refresh_token)
        assert sessions.get_refresh_record(user.id).token == result.refresh_token

    def test_tampered_refresh_token(self, sessions, user):
        result = sessions.login("a@x.com", "password1")
        with pytest.raises(InvalidRefreshTokenError):
            sessions.refresh_access_token(result.refresh_token[:-2] + "xx")

    def test_access_token_is_not_a_refresh_token(self, sessions, user):
        result = sessions.login("a@x.com", "password1")
        with pytest.raises(InvalidRefreshTokenError):
            sessions.refresh_access_token(result.access_token)

    def test_valid_token_for_wrong_subject(self, sessions, user):
        """Signature-valid refresh token that is not the one stored for its subject."""
        sessions.login("a@x.com", "password1")
        with pytest.raises(InvalidRefreshTokenError, match="not found"):
            sessions.refresh_access_token(tokens.issue_refresh_token(user.id + 100))

    def test_superseded_refresh_token(self, sessions, user):
        first = sessions.login("a@x.com", "password1")
        sessions.login("a@x.com", "password1")
        with pytest.raises(InvalidRefreshTokenError):
            sessions.refresh_access_token(first.refresh_token)

    def test_refresh_after_logout(self, sessions, user):
        result = sessions.login("a@x.com", "password1")
        sessions.logout(user.id)
        with pytest.raises(InvalidRefreshTokenError):
            sessions.refresh_access_token(result.refresh_token)

    def test_expired_refresh_token(self, sessions, token_store, user):
        expired = tokens.issue_refresh_token(user.id, expire_seconds=-30)
        token_store.save(
            TokenKind.REFRESH,
            TokenRecord(user_id=user.id, token=expired, expires_at="2000-01-01T00:00:00+00:00"),
        )
        with pytest.raises(InvalidRefreshTokenError):
            sessions.refresh_access_token(expired)

    def test_deleted_user(self, sessions, user_store, user):
        result = sessions.login("a@x.com", "password1")
        user_store.delete_user(user.id)
        with pytest.raises(UserNotFoundError):
            sessions.refresh_access_token(result.refresh_token)
