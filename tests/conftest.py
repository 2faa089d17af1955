"""
tests/conftest.py -- Shared test fixtures for SessionGate.

This module provides:
  - engine / user_store / token_store / sessions: unit-test fixtures over a
    private in-memory SQLite database
  - _make_engine(): named shared-memory engine for TestClient tests
  - _patch_lifespan(): wires test stores into app.state, bypassing real startup
  - api_client: module-scoped TestClient over the real FastAPI app
  - register_and_login(), bearer(): request helpers

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
for TestClient because route handlers run in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker
thread. The named URI format (file:name?mode=memory&cache=shared&uri=true)
shares one in-memory instance across all connections in the same process.

Environment variables must be set before any core/auth import so
get_settings() sees them on its first (cached) call.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager

# CRITICAL: set before any core/auth import -- get_settings() is cached.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("SECRET_KEY", "test-secret-key-0123456789abcdef0123456789")
os.environ.setdefault("PASSWORD_SALT_ROUNDS", "4")
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000/minute")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.engine import Engine

from api.main import app
from auth.sessions import SessionManager
from auth.store import TokenStore
from core.config import get_settings
from core.db import create_db_engine
from posts.store import PostStore
from users.store import UserStore

DEFAULT_PASSWORD = "password1"


# ---------------------------------------------------------------------------
# Unit-test fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def engine() -> Generator[Engine, None, None]:
    """Fresh private in-memory database per test."""
    eng = create_db_engine("sqlite:///:memory:")
    yield eng
    eng.dispose()


@pytest.fixture
def user_store(engine: Engine) -> UserStore:
    return UserStore(engine)


@pytest.fixture
def token_store(engine: Engine) -> TokenStore:
    return TokenStore(engine)


@pytest.fixture
def sessions(user_store: UserStore, token_store: TokenStore) -> SessionManager:
    return SessionManager(user_store, token_store, get_settings())


# ---------------------------------------------------------------------------
# App helpers
# ---------------------------------------------------------------------------


def _make_engine(db_suffix: str) -> Engine:
    """Create a named shared-memory engine.

    Args:
        db_suffix: Appended to the DB name so test modules don't share state.
    """
    return create_db_engine(f"sqlite:///file:test_sessiongate_{db_suffix}?mode=memory&cache=shared&uri=true")


def _patch_lifespan(engine: Engine):
    """Return an async context manager that replaces the real lifespan.

    Wires stores built on the test engine into app.state so TestClient routes
    see an isolated database instead of the configured DATABASE_URL.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        settings = get_settings()
        app.state.engine = engine
        app.state.settings = settings
        app.state.users = UserStore(engine)
        app.state.token_store = TokenStore(engine)
        app.state.sessions = SessionManager(app.state.users, app.state.token_store, settings)
        app.state.posts = PostStore(engine)
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api_client() -> Generator[TestClient, None, None]:
    """Yield a TestClient over the real app with an isolated database.

    One database per test module; tests inside a module use distinct emails
    (see unique_email) so they don't collide.
    """
    eng = _make_engine(uuid.uuid4().hex[:8])
    app.router.lifespan_context = _patch_lifespan(eng)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client

    eng.dispose()


@pytest.fixture
def unique_email() -> str:
    return f"user-{uuid.uuid4().hex[:10]}@example.com"


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def register_and_login(client: TestClient, email: str, password: str = DEFAULT_PASSWORD) -> dict:
    """Register email/password and log in. Returns the login response body."""
    resp = client.post("/api/v1/auth/register", json={"email": email, "password": password})
    assert resp.status_code == 201, resp.text
    resp = client.post("/api/v1/auth/login", json={"email": email, "password": password})
    assert resp.status_code == 200, resp.text
    return resp.json()
