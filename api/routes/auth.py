"""
api/routes/auth.py -- Session endpoints.

Routes:
  POST /auth/login              -- password login; returns a bearer token
  GET  /auth/verify             -- echo the identity behind the presented token
  PUT  /auth/change-password    -- replace the caller's password
  POST /auth/refresh            -- mint a fresh token for the caller
  POST /auth/logout             -- acknowledge; tokens are stateless and stay valid
  GET  /auth/setup-status       -- whether the first user still has to be created

Security:
  POST /login is rate-limited per client IP (LOGIN_RATE_LIMIT, read from
  the settings on each request).
  Login responses carry Cache-Control: no-store.
  auth/credentials.login() pays for a bcrypt comparison even for unknown
  usernames -- call it, never inline the lookup and the verify.

The login handler is wrapped by slowapi, so FastAPI reads its annotations
through the wrapper; this module keeps them as real objects (no postponed
evaluation).
"""

import logging

from fastapi import APIRouter, Depends, Request, Response

from api.limiter import limiter
from api.models import (
    ChangePasswordRequest,
    IdentityResponse,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    RefreshResponse,
    SetupStatusResponse,
    UserResponse,
    VerifyResponse,
)
from auth import credentials
from auth.dependencies import get_identity
from auth.models import IdentityContext
from auth.store import UserStore
from auth.tokens import token_lifetime_seconds
from core.config import get_settings

logger = logging.getLogger("registry.api")

# Auth policy:
# - POST /auth/login:           public -- obtains the token
# - GET  /auth/setup-status:    public -- the first-run screen calls it before any user exists
# - everything else:            requires auth (get_identity)
router = APIRouter(prefix="/auth", tags=["auth"])


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/login", response_model=LoginResponse)
@limiter.limit(lambda: get_settings().login_rate_limit)
def login(request: Request, response: Response, body: LoginRequest) -> LoginResponse:
    """Authenticate with username and password and return a session token.

    Unknown username and wrong password produce the same INVALID_CREDENTIALS
    error so the endpoint does not reveal which usernames exist.
    """
    user_store: UserStore = request.app.state.user_store
    token, user = credentials.login(user_store, body.username, body.password)
    response.headers["Cache-Control"] = "no-store"
    return LoginResponse(
        token=token,
        expires_in=token_lifetime_seconds(),
        user=UserResponse.model_validate(user),
    )


@router.get("/setup-status", response_model=SetupStatusResponse)
def setup_status(request: Request) -> SetupStatusResponse:
    """Report whether POST /user will currently accept a request without a token."""
    user_store: UserStore = request.app.state.user_store
    count = user_store.count_users()
    return SetupStatusResponse(first_user_required=count == 0, user_count=count)


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/verify", response_model=VerifyResponse)
def verify(identity: IdentityContext = Depends(get_identity)) -> VerifyResponse:
    """Return the identity the Access Guard resolved for this token."""
    return VerifyResponse(user=IdentityResponse.model_validate(identity))


@router.put("/change-password", response_model=MessageResponse)
def change_password(
    request: Request,
    body: ChangePasswordRequest,
    identity: IdentityContext = Depends(get_identity),
) -> MessageResponse:
    """Replace the caller's password. Tokens issued earlier remain valid until they expire."""
    user_store: UserStore = request.app.state.user_store
    credentials.change_password(user_store, identity, body.current_password, body.new_password)
    return MessageResponse(message="Password changed successfully")


@router.post("/refresh", response_model=RefreshResponse)
def refresh(response: Response, identity: IdentityContext = Depends(get_identity)) -> RefreshResponse:
    """Issue a new token with a fresh expiry. The presented token is not revoked."""
    token = credentials.refresh(identity)
    response.headers["Cache-Control"] = "no-store"
    return RefreshResponse(token=token, expires_in=token_lifetime_seconds())


@router.post("/logout", response_model=MessageResponse)
def logout(identity: IdentityContext = Depends(get_identity)) -> MessageResponse:
    """Acknowledge a logout. The client is expected to discard its token."""
    logger.info("Logout acknowledged for %s", identity.username)
    return MessageResponse(message="Logged out successfully")
