"""
auth/dependencies.py -- The request guard: FastAPI Depends() helpers for authentication.

Every protected router installs authenticate_request() as a router-level
dependency:

    router = APIRouter(dependencies=[Depends(authenticate_request)])

Endpoints that must stay reachable without a token are marked with @public.
Handlers that need the caller's identity add Depends(require_identity); FastAPI
caches dependencies per request, so the guard still runs once.

Guard algorithm:
  1. @public endpoint -> allow, no token required.
  2. Authorization: Bearer <token> missing -> 401.
  3. Decode WITHOUT verification to get a candidate user id; none, or one
     outside the id column's range -> 401.
  4. SessionManager.is_logged_in(user_id) false -> 401. This is a cheap DB
     lookup done before any signature check, so revoked and never-existing
     sessions are turned away early.
  5. Verify the access token:
       valid    -> it must also be the stored access token, then proceed;
       expired  -> rotate: refresh with the stored refresh token, rewrite the
                   request's Authorization header, return the new token in
                   the X-Access-Token response header (also kept on
                   request.state.rotated_access_token), proceed;
       anything else -> 401.

Token expiry never escapes this module as a raw error -- the refresh path is
always tried first, and then the guard fails closed.

Layer rule: no imports from api/, users/ or posts/.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional, TypeVar

from fastapi import Depends, Request, Response
from starlette.datastructures import MutableHeaders

from auth import tokens
from auth.models import AccessClaims
from auth.sessions import SessionManager
from core.errors import InvalidRefreshTokenError, UnauthenticatedError, UserNotFoundError

logger = logging.getLogger("sessiongate.guard")

ACCESS_TOKEN_HEADER = "X-Access-Token"

_PUBLIC_ATTR = "__sessiongate_public__"

_F = TypeVar("_F", bound=Callable)


def public(endpoint: _F) -> _F:
    """Mark a route handler as reachable without authentication.

    Apply it below the @router decorator so the flag lands on the function
    FastAPI registers:

        @router.post("/auth/login")
        @public
        def login(...): ...
    """
    setattr(endpoint, _PUBLIC_ATTR, True)
    return endpoint


def _is_public(request: Request) -> bool:
    endpoint = request.scope.get("endpoint")
    return bool(getattr(endpoint, _PUBLIC_ATTR, False))


def _bearer_token(request: Request) -> Optional[str]:
    auth_header = request.headers.get("Authorization", "")
    scheme, _, token = auth_header.partition(" ")
    if scheme != "Bearer" or not token.strip():
        return None
    return token.strip()


def authenticate_request(request: Request, response: Response) -> Optional[AccessClaims]:
    """Authenticate the request, rotating an expired access token if possible.

    Returns the verified identity, or None for @public endpoints. Raises
    UnauthenticatedError on every failure.
    """
    if _is_public(request):
        return None

    token = _bearer_token(request)
    if token is None:
        logger.warning("User is not identified. Access token is missing")
        raise UnauthenticatedError("User is not identified. Access token is missing")

    candidate = tokens.decode_unverified(token)
    if candidate is None or candidate.user_id is None:
        logger.warning("Invalid token format")
        raise UnauthenticatedError("Invalid token format")
    user_id = candidate.user_id

    sessions: SessionManager = request.app.state.sessions
    if not sessions.is_logged_in(user_id):
        logger.warning("User is not logged in (userId: %s)", user_id)
        raise UnauthenticatedError("User is not logged in")

    try:
        identity = tokens.verify_access_token(token)
    except tokens.TokenExpiredError:
        identity = _rotate_access_token(request, response, sessions, user_id)
    except tokens.InvalidTokenError as exc:
        logger.warning("Invalid access token (userId: %s): %s", user_id, exc)
        raise UnauthenticatedError("Invalid access token") from exc
    else:
        if identity.id != user_id or not sessions.is_current_access_token(user_id, token):
            logger.warning("Access token superseded (userId: %s)", user_id)
            raise UnauthenticatedError("Invalid access token")

    request.state.identity = identity
    logger.debug("Authenticated user (id: %s, email: %s)", identity.id, identity.email)
    return identity


def _rotate_access_token(
    request: Request,
    response: Response,
    sessions: SessionManager,
    user_id: int,
) -> AccessClaims:
    """Replace an expired access token using the user's stored refresh token.

    This has a server-side side effect: the new access token is persisted by
    SessionManager.refresh_access_token() before the handler runs.
    """
    record = sessions.get_refresh_record(user_id)
    if record is None:
        logger.warning("Refresh token is missing (userId: %s)", user_id)
        raise UnauthenticatedError("Refresh token is missing")

    try:
        new_token = sessions.refresh_access_token(record.token)
        identity = tokens.verify_access_token(new_token)
    except (InvalidRefreshTokenError, UserNotFoundError, tokens.TokenVerificationError) as exc:
        logger.warning("Invalid refresh token (userId: %s): %s", user_id, exc)
        raise UnauthenticatedError("Invalid refresh token") from exc

    # Request.headers is backed by this same list, so handlers reading
    # Authorization see the new token.
    MutableHeaders(raw=request.scope["headers"])["authorization"] = f"Bearer {new_token}"
    response.headers[ACCESS_TOKEN_HEADER] = new_token
    # Handlers returning a Response directly drop the injected headers;
    # api.main.attach_rotated_token copies this onto those responses.
    request.state.rotated_access_token = new_token
    logger.info("Access token rotated in-request (userId: %s)", user_id)
    return identity


def require_identity(identity: Optional[AccessClaims] = Depends(authenticate_request)) -> AccessClaims:
    """Return the authenticated identity. Raises 401 if there is none.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(identity: AccessClaims = Depends(require_identity)): ...
    """
    if identity is None:
        raise UnauthenticatedError("Authentication required.")
    return identity
