"""
API request and response models for SessionGate REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in users/models.py,
auth/models.py and posts/models.py, which own the internal domain
representation. Route handlers map between the two.

No response model has a password or hash field -- the factory methods below
are the only place a User becomes JSON.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from auth.models import AccessClaims, LoginResult
from posts.models import Post
from users.models import User

# ---------------------------------------------------------------------------
# Auth -- requests
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /auth/register and POST /users."""

    model_config = ConfigDict(str_strip_whitespace=True)

    email: EmailStr
    password: str = Field(min_length=8, max_length=255)


class LoginRequest(BaseModel):
    """Request body for POST /auth/login."""

    model_config = ConfigDict(str_strip_whitespace=True)

    email: EmailStr
    password: str = Field(min_length=8, max_length=255)


class RefreshRequest(BaseModel):
    """Request body for POST /auth/refresh.

    refresh_token is optional at the schema level so a missing token is a 401
    from the route, not a 422 from validation.
    """

    refresh_token: Optional[str] = Field(default=None, max_length=4096)


# ---------------------------------------------------------------------------
# Auth -- responses
# ---------------------------------------------------------------------------


class LoginResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    email: str
    access_token: str
    refresh_token: str
    token_type: str = "bearer"

    @classmethod
    def from_result(cls, result: LoginResult) -> "LoginResponse":
        return cls(
            id=result.user_id,
            email=result.email,
            access_token=result.access_token,
            refresh_token=result.refresh_token,
        )


class AccessTokenResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    access_token: str
    token_type: str = "bearer"


class IdentityResponse(BaseModel):
    """Response for GET /auth/me -- the verified token identity."""

    model_config = ConfigDict(frozen=True)

    id: int
    email: str
    issued_at: int

    @classmethod
    def from_claims(cls, claims: AccessClaims) -> "IdentityResponse":
        return cls(id=claims.id, email=claims.email, issued_at=claims.issued_at)


class UserActionResponse(BaseModel):
    """Confirmation for logout and user deletion."""

    model_config = ConfigDict(frozen=True)

    user_id: int
    message: str


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class ChangeEmailRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    new_email: EmailStr


class ChangePasswordRequest(BaseModel):
    old_password: str = Field(min_length=8, max_length=255)
    new_password: str = Field(min_length=8, max_length=255)


class UserResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    email: str
    created_at: str

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(id=user.id, email=user.email, created_at=user.created_at or "")


class UserListResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    amount: int
    users: list[UserResponse]


# ---------------------------------------------------------------------------
# Posts
# ---------------------------------------------------------------------------


class PostResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    user_id: int
    title: str
    body: str

    @classmethod
    def from_post(cls, post: Post) -> "PostResponse":
        return cls(id=post.id, user_id=post.user_id, title=post.title, body=post.body)


class PostListResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    posts_count: int
    posts: list[PostResponse]

    @classmethod
    def from_posts(cls, posts: list[Post]) -> "PostListResponse":
        return cls(posts_count=len(posts), posts=[PostResponse.from_post(p) for p in posts])


class PostsDeletedResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str
    deleted: int


# ---------------------------------------------------------------------------
# Errors and health
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str
