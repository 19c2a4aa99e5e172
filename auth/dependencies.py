"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

get_identity() is the Access Guard. Every protected route depends on it:
  1. Authorization: Bearer <token> must be present        -> else NoToken
  2. The token must verify                                 -> InvalidToken / TokenExpired
  3. The user it names must still exist                    -> else UserNotFound
  4. That user must be active                              -> else UserInactive
  5. An IdentityContext is attached to request.state.identity and returned.

bootstrap_gate() guards POST /user only. While the store is empty it lets the
request through without a token (first-run exception). Once any credential
exists it requires a token that verifies -- but deliberately skips steps 3
and 4, so an initial admin-creation flow keeps working with the token it
was given.

Every failure raises an AppError before any store mutation happens.

Layer rule: no imports from api/ or registry/.
  auth/dependencies.py may import from fastapi (for Request) because this
  module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

import logging

from fastapi import Request

from auth.models import IdentityContext
from auth.store import UserStore
from auth.tokens import TokenExpired as _TokenExpired
from auth.tokens import TokenMalformed, verify_token
from core.errors import InvalidToken, NoToken, TokenExpired, TokenRequired, UserInactive, UserNotFound

logger = logging.getLogger("registry.auth")

_BEARER_PREFIX = "Bearer "


def extract_bearer_token(authorization: str | None) -> str | None:
    """Return the token from an Authorization header value, or None if absent/malformed."""
    if not authorization or not authorization.startswith(_BEARER_PREFIX):
        return None
    token = authorization[len(_BEARER_PREFIX) :].strip()
    return token or None


def authenticate(store: UserStore, authorization: str | None) -> IdentityContext:
    """Run the full Access Guard against a raw Authorization header value.

    Split out from get_identity() so the guard can be exercised without a
    Request object.
    """
    token = extract_bearer_token(authorization)
    if token is None:
        raise NoToken()

    try:
        user_id = verify_token(token)
    except _TokenExpired as exc:
        raise TokenExpired() from exc
    except TokenMalformed as exc:
        raise InvalidToken() from exc

    user = store.get_by_id(user_id)
    if user is None:
        logger.info("Rejected token for missing user %s", user_id)
        raise UserNotFound()
    if not user.is_active:
        logger.info("Rejected token for inactive user %s", user.username)
        raise UserInactive()
    return IdentityContext.from_credential(user)


def get_identity(request: Request) -> IdentityContext:
    """Require an authenticated, active user. Use as a FastAPI dependency:

        @router.get("/protected")
        def route(identity: IdentityContext = Depends(get_identity)): ...
    """
    user_store: UserStore = request.app.state.user_store
    identity = authenticate(user_store, request.headers.get("Authorization"))
    request.state.identity = identity
    return identity


def bootstrap_gate(request: Request) -> bool:
    """Apply the Bootstrap Policy. Returns True when this is the first user.

    Declared as a route dependency, so it runs before the request body is
    validated.

    The count is read per request and the check is not transactional with the
    insert. Two concurrent first-user requests may both see zero and both
    succeed without a token; the username UNIQUE constraint only rejects the
    second one when the usernames are identical.
    """
    user_store: UserStore = request.app.state.user_store
    if user_store.count_users() == 0:
        return True

    token = extract_bearer_token(request.headers.get("Authorization"))
    if token is None:
        raise TokenRequired()
    try:
        verify_token(token)
    except (TokenMalformed, _TokenExpired) as exc:
        raise InvalidToken("Invalid or expired token.") from exc
    return False
