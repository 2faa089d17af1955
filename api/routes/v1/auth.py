"""
api/routes/v1/auth.py -- Registration, login, logout and token refresh endpoints.

Routes:
  POST   /api/v1/auth/register  -- create an account (public)
  POST   /api/v1/auth/login     -- password login; returns access + refresh tokens (public)
  DELETE /api/v1/auth/logout    -- end the caller's session
  POST   /api/v1/auth/refresh   -- trade a refresh token for a new access token (public)
  GET    /api/v1/auth/me        -- identity carried by the caller's access token

Security:
  POST /login is rate-limited per IP (LOGIN_RATE_LIMIT, default 10/minute).
  SessionManager.login() goes through passwords.authenticate(), which
  equalizes timing for unknown emails -- never inline the lookup here.
  Cache-Control: no-store on every response that carries a token.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response

from api.limiter import limiter
from api.models import (
    AccessTokenResponse,
    IdentityResponse,
    LoginRequest,
    LoginResponse,
    RefreshRequest,
    RegisterRequest,
    UserActionResponse,
    UserResponse,
)
from auth.dependencies import authenticate_request, public, require_identity
from auth.models import AccessClaims
from auth.sessions import SessionManager
from core.config import get_settings
from core.errors import InvalidRefreshTokenError
from users import accounts
from users.store import UserStore

# Auth policy:
# - POST   /api/v1/auth/register: public -- a new user has no token yet
# - POST   /api/v1/auth/login:    public -- login endpoint must be unauthenticated
# - POST   /api/v1/auth/refresh:  public -- the refresh token in the body is the credential
# - DELETE /api/v1/auth/logout:   guarded
# - GET    /api/v1/auth/me:       guarded
router = APIRouter(dependencies=[Depends(authenticate_request)])


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/register", response_model=UserResponse, status_code=201)
@public
def register(request: Request, body: RegisterRequest) -> UserResponse:
    """Create a user account. The response never includes the password hash."""
    users: UserStore = request.app.state.users
    return UserResponse.from_user(accounts.register_user(users, body.email, body.password))


@limiter.limit(lambda: get_settings().login_rate_limit)  # must be ABOVE @router to preserve FastAPI introspection
@router.post("/auth/login", response_model=LoginResponse)
@public
def login(request: Request, response: Response, body: LoginRequest) -> LoginResponse:
    """Authenticate with email and password and start a new session.

    Any session the user already had is closed first. Unknown email and wrong
    password produce the same 400 invalid_credentials.
    """
    sessions: SessionManager = request.app.state.sessions
    result = sessions.login(body.email, body.password)
    response.headers["Cache-Control"] = "no-store"
    return LoginResponse.from_result(result)


@router.post("/auth/refresh", response_model=AccessTokenResponse)
@public
def refresh(request: Request, response: Response, body: RefreshRequest) -> AccessTokenResponse:
    """Issue a new access token. The refresh token itself stays the same."""
    if not body.refresh_token:
        raise InvalidRefreshTokenError("Refresh token is required")
    sessions: SessionManager = request.app.state.sessions
    access_token = sessions.refresh_access_token(body.refresh_token)
    response.headers["Cache-Control"] = "no-store"
    return AccessTokenResponse(access_token=access_token)


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.delete("/auth/logout", response_model=UserActionResponse)
def logout(request: Request, identity: AccessClaims = Depends(require_identity)) -> UserActionResponse:
    """Destroy the caller's access and refresh records."""
    sessions: SessionManager = request.app.state.sessions
    sessions.logout(identity.id)
    return UserActionResponse(user_id=identity.id, message="User logged out")


@router.get("/auth/me", response_model=IdentityResponse)
def me(identity: AccessClaims = Depends(require_identity)) -> IdentityResponse:
    return IdentityResponse.from_claims(identity)
