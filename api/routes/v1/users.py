"""
api/routes/v1/users.py -- User account REST endpoints.

Routes (all guarded):
  POST   /api/v1/users                  -- create a user
  GET    /api/v1/users                  -- list users with a count
  GET    /api/v1/users/by-email?email=  -- look a user up by email
  GET    /api/v1/users/{user_id}        -- look a user up by id
  PUT    /api/v1/users/me/email         -- change the caller's email
  PUT    /api/v1/users/me/password      -- change the caller's password
  DELETE /api/v1/users/{user_id}        -- delete a user

/users/by-email and /users/me/* are registered before the {user_id} routes so
the literal segments win the match.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request

from api.models import (
    ChangeEmailRequest,
    ChangePasswordRequest,
    RegisterRequest,
    UserActionResponse,
    UserListResponse,
    UserResponse,
)
from auth.dependencies import authenticate_request, require_identity
from auth.models import AccessClaims
from auth.sessions import SessionManager
from core.errors import NotLoggedInError
from users import accounts
from users.store import UserStore

router = APIRouter(dependencies=[Depends(authenticate_request)])


def _users(request: Request) -> UserStore:
    return request.app.state.users


@router.post("/users", response_model=UserResponse, status_code=201)
def create_user(request: Request, body: RegisterRequest) -> UserResponse:
    return UserResponse.from_user(accounts.register_user(_users(request), body.email, body.password))


@router.get("/users", response_model=UserListResponse)
def list_users(request: Request) -> UserListResponse:
    users = _users(request).list_users()
    return UserListResponse(amount=len(users), users=[UserResponse.from_user(u) for u in users])


@router.get("/users/by-email", response_model=UserResponse)
def get_user_by_email(request: Request, email: str = Query(min_length=3, max_length=320)) -> UserResponse:
    return UserResponse.from_user(accounts.get_user_by_email(_users(request), email))


@router.put("/users/me/email", response_model=UserResponse)
def change_email(
    request: Request,
    body: ChangeEmailRequest,
    identity: AccessClaims = Depends(require_identity),
) -> UserResponse:
    """Change the caller's email.

    The caller's current access token still carries the old email until it is
    refreshed or the user logs in again.
    """
    return UserResponse.from_user(accounts.change_email(_users(request), identity.id, body.new_email))


@router.put("/users/me/password", response_model=UserResponse)
def change_password(
    request: Request,
    body: ChangePasswordRequest,
    identity: AccessClaims = Depends(require_identity),
) -> UserResponse:
    user = accounts.change_password(_users(request), identity.id, body.old_password, body.new_password)
    return UserResponse.from_user(user)


@router.get("/users/{user_id}", response_model=UserResponse)
def get_user(request: Request, user_id: int) -> UserResponse:
    return UserResponse.from_user(accounts.get_user_by_id(_users(request), user_id))


@router.delete("/users/{user_id}", response_model=UserActionResponse)
def delete_user(request: Request, user_id: int) -> UserActionResponse:
    """Delete a user and close any session they still hold."""
    accounts.delete_user(_users(request), user_id)
    sessions: SessionManager = request.app.state.sessions
    try:
        sessions.logout(user_id)
    except NotLoggedInError:
        pass  # never logged in, or only half a session left
    return UserActionResponse(user_id=user_id, message="User successfully deleted")
