"""
tests/test_request_guard.py -- Integration tests for the request guard.

Exercises auth.dependencies.authenticate_request through real routes:
  - missing / malformed / forged / superseded tokens -> 401
  - expired access token + valid stored refresh token -> request succeeds and
    the new token comes back in the X-Access-Token header
  - expired access token + missing or expired refresh token -> 401
  - @public routes ignore the Authorization header entirely
  - /docs, /redoc and /openapi.json are guarded

Fixtures used (from conftest.py):
  - api_client: module-scoped TestClient over an isolated shared-memory DB
  - unique_email: fresh address per test
"""

from __future__ import annotations

from fastapi.testclient import TestClient
from jose import jwt

from auth import tokens
from auth.dependencies import ACCESS_TOKEN_HEADER
from auth.models import TokenKind, TokenRecord
from conftest import bearer, register_and_login

ME = "/api/v1/auth/me"


def _expired_access_token(login: dict) -> str:
    return tokens.issue_access_token(login["id"], login["email"], expire_seconds=-30)


class TestGuardRejects:
    """Requests the guard must turn away with 401."""

    def test_missing_header(self, api_client: TestClient) -> None:
        resp = api_client.get(ME)
        assert resp.status_code == 401
        body = resp.json()
        assert body["error"]["code"] == "unauthorized"
        assert body["error"]["message"] == "User is not identified. Access token is missing"
        assert resp.headers["WWW-Authenticate"] == "Bearer"

    def test_wrong_scheme(self, api_client: TestClient, unique_email: str) -> None:
        login = register_and_login(api_client, unique_email)
        resp = api_client.get(ME, headers={"Authorization": f"Token {login['access_token']}"})
        assert resp.status_code == 401

    def test_garbage_token(self, api_client: TestClient) -> None:
        resp = api_client.get(ME, headers=bearer("not-a-jwt"))
        assert resp.status_code == 401
        assert resp.json()["error"]["message"] == "Invalid token format"

    def test_refresh_token_used_as_bearer(self, api_client: TestClient, unique_email: str) -> None:
        login = register_and_login(api_client, unique_email)
        resp = api_client.get(ME, headers=bearer(login["refresh_token"]))
        assert resp.status_code == 401

    def test_user_id_beyond_column_range(self, api_client: TestClient) -> None:
        oversized = jwt.encode({"id": 10**30, "email": "x@example.com", "typ": "access"}, "f" * 40, algorithm="HS256")
        resp = api_client.get(ME, headers=bearer(oversized))
        assert resp.status_code == 401
        assert resp.json()["error"]["message"] == "Invalid token format"

    def test_user_without_session(self, api_client: TestClient) -> None:
        token = tokens.issue_access_token(987654, "ghost@example.com")
        resp = api_client.get(ME, headers=bearer(token))
        assert resp.status_code == 401
        assert resp.json()["error"]["message"] == "User is not logged in"

    def test_forged_token_for_logged_in_user(self, api_client: TestClient, unique_email: str) -> None:
        login = register_and_login(api_client, unique_email)
        forged = jwt.encode(
            {"id": login["id"], "email": login["email"], "typ": "access"},
            "f" * 40,
            algorithm="HS256",
        )
        resp = api_client.get(ME, headers=bearer(forged))
        assert resp.status_code == 401
        assert resp.json()["error"]["message"] == "Invalid access token"

    def test_superseded_token(self, api_client: TestClient, unique_email: str) -> None:
        """A second login invalidates the first access token even though its signature is fine."""
        first = register_and_login(api_client, unique_email)
        second = api_client.post(
            "/api/v1/auth/login", json={"email": unique_email, "password": "password1"}
        ).json()

        assert api_client.get(ME, headers=bearer(first["access_token"])).status_code == 401
        assert api_client.get(ME, headers=bearer(second["access_token"])).status_code == 200

    def test_token_after_logout(self, api_client: TestClient, unique_email: str) -> None:
        login = register_and_login(api_client, unique_email)
        assert api_client.delete("/api/v1/auth/logout", headers=bearer(login["access_token"])).status_code == 200
        resp = api_client.get(ME, headers=bearer(login["access_token"]))
        assert resp.status_code == 401


class TestExpiredAccessToken:
    """In-request rotation of an expired access token."""

    def test_rotates_with_stored_refresh_token(self, api_client: TestClient, unique_email: str) -> None:
        login = register_and_login(api_client, unique_email)
        expired = _expired_access_token(login)

        resp = api_client.get(ME, headers=bearer(expired))
        assert resp.status_code == 200, resp.text
        assert resp.json()["id"] == login["id"]

        new_token = resp.headers[ACCESS_TOKEN_HEADER]
        assert new_token not in (expired, login["access_token"])
        assert tokens.verify_access_token(new_token).id == login["id"]

        store = api_client.app.state.token_store
        assert store.find_by_user_id(TokenKind.ACCESS, login["id"]).token == new_token

        # The rotated token is now the session's access token
        assert api_client.get(ME, headers=bearer(new_token)).status_code == 200
        assert api_client.get(ME, headers=bearer(login["access_token"])).status_code == 401

    def test_no_header_when_token_is_fresh(self, api_client: TestClient, unique_email: str) -> None:
        login = register_and_login(api_client, unique_email)
        resp = api_client.get(ME, headers=bearer(login["access_token"]))
        assert resp.status_code == 200
        assert ACCESS_TOKEN_HEADER not in resp.headers

    def test_missing_refresh_record(self, api_client: TestClient, unique_email: str) -> None:
        login = register_and_login(api_client, unique_email)
        api_client.app.state.token_store.delete_by_user_id(TokenKind.REFRESH, login["id"])

        resp = api_client.get(ME, headers=bearer(_expired_access_token(login)))
        assert resp.status_code == 401
        assert resp.json()["error"]["message"] == "Refresh token is missing"

    def test_expired_refresh_token(self, api_client: TestClient, unique_email: str) -> None:
        login = register_and_login(api_client, unique_email)
        api_client.app.state.token_store.save(
            TokenKind.REFRESH,
            TokenRecord(
                user_id=login["id"],
                token=tokens.issue_refresh_token(login["id"], expire_seconds=-30),
                expires_at="2000-01-01T00:00:00+00:00",
            ),
        )

        resp = api_client.get(ME, headers=bearer(_expired_access_token(login)))
        assert resp.status_code == 401
        assert resp.json()["error"]["message"] == "Invalid refresh token"


class TestPublicAndDocs:
    def test_public_route_ignores_bad_token(self, api_client: TestClient, unique_email: str) -> None:
        resp = api_client.post(
            "/api/v1/auth/register",
            json={"email": unique_email, "password": "password1"},
            headers=bearer("not-a-jwt"),
        )
        assert resp.status_code == 201

    def test_docs_require_token(self, api_client: TestClient) -> None:
        assert api_client.get("/docs").status_code == 401
        assert api_client.get("/redoc").status_code == 401

    def test_docs_with_token(self, api_client: TestClient, unique_email: str) -> None:
        login = register_and_login(api_client, unique_email)
        resp = api_client.get("/docs", headers=bearer(login["access_token"]))
        assert resp.status_code == 200
        assert "swagger" in resp.text.lower()

    def test_openapi_schema_requires_token(self, api_client: TestClient, unique_email: str) -> None:
        assert api_client.get("/openapi.json").status_code == 401

        login = register_and_login(api_client, unique_email)
        resp = api_client.get("/openapi.json", headers=bearer(login["access_token"]))
        assert resp.status_code == 200
        assert "/api/v1/auth/login" in resp.json()["paths"]

    def test_docs_with_expired_token_returns_rotated_token(self, api_client: TestClient, unique_email: str) -> None:
        """/docs returns its own HTMLResponse; the rotated token must still reach the client."""
        login = register_and_login(api_client, unique_email)
        resp = api_client.get("/docs", headers=bearer(_expired_access_token(login)))
        assert resp.status_code == 200

        new_token = resp.headers[ACCESS_TOKEN_HEADER]
        assert tokens.verify_access_token(new_token).id == login["id"]
        assert api_client.get(ME, headers=bearer(new_token)).status_code == 200
