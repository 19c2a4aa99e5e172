"""
api/routes/users.py -- Credential management endpoints.

Routes:
  POST   /user          -- create a user (Bootstrap Policy: no token needed for the first one)
  GET    /user          -- list users                       (requires auth)
  GET    /user/{id}     -- one user                         (requires auth)
  PUT    /user/{id}     -- update profile / username / is_active (requires auth)
  DELETE /user/{id}     -- delete a user                    (requires auth)

No response ever carries a password or its hash: every handler serializes
through UserResponse, which has no field for either. Passwords change only
through PUT /auth/change-password.

?expand=role_id,assessor_id replaces those identifiers with the referenced
registry records.
"""

from __future__ import annotations

import logging
from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, Depends, Path, Query, Request
from sqlalchemy.exc import IntegrityError

from api.models import MessageResponse, UserCreate, UserCreatedResponse, UserResponse, UserUpdate
from auth import credentials
from auth.dependencies import bootstrap_gate, get_identity
from auth.models import Credential
from auth.store import UserStore
from core.errors import NotFound, UserExists, ValidationFailed
from core.identifiers import OBJECT_ID_PATTERN
from registry.expansion import expand_record, parse_expand
from registry.store import USER_REFERENCES, RegistryStore
from registry.validation import ensure_references

logger = logging.getLogger("registry.api")

# Auth policy:
# - POST /user:  bootstrap_gate -- public while no user exists, then requires a verifying token
# - all others:  requires auth (get_identity)
router = APIRouter(prefix="/user", tags=["user"])


def _to_response(registry: RegistryStore, user: Credential, expand: list[str]) -> UserResponse:
    data = asdict(user)
    data.pop("hashed_password", None)
    if expand:
        data = expand_record(registry, data, expand, USER_REFERENCES)
    return UserResponse.model_validate(data)


def _get_or_404(user_store: UserStore, user_id: str) -> Credential:
    user = user_store.get_by_id(user_id)
    if user is None:
        raise NotFound("User not found.")
    return user


# ---------------------------------------------------------------------------
# POST /user -- create (Bootstrap Policy)
# ---------------------------------------------------------------------------


@router.post("", response_model=UserCreatedResponse, status_code=201)
def create_user(
    request: Request,
    body: UserCreate,
    first_user: bool = Depends(bootstrap_gate),
) -> UserCreatedResponse:
    """Create a user.

    While the credential store is empty this endpoint is open so the first
    administrator can be created. After that a valid token is required; the
    token's user does not have to still exist or be active. The gate is a
    dependency so it runs before the body is validated.
    """
    user_store: UserStore = request.app.state.user_store
    registry: RegistryStore = request.app.state.registry

    username = credentials.require_username_password(body.username, body.password)
    ensure_references(registry, USER_REFERENCES, body.model_dump())
    created = credentials.create_credential(
        user_store,
        username,
        body.password,
        first_name=body.first_name,
        last_name=body.last_name,
        role_id=body.role_id,
        assessor_id=body.assessor_id,
        is_active=body.is_active,
    )
    if first_user:
        logger.warning("First user %s created without authentication", created.username)
    message = "First user created successfully" if first_user else "User created successfully"
    return UserCreatedResponse(message=message, user=_to_response(registry, created, []))


# ---------------------------------------------------------------------------
# Authenticated reads and writes
# ---------------------------------------------------------------------------


@router.get("", response_model=list[UserResponse], dependencies=[Depends(get_identity)])
def list_users(
    request: Request,
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    expand: Optional[str] = None,
) -> list[UserResponse]:
    """Return users ordered by username."""
    user_store: UserStore = request.app.state.user_store
    registry: RegistryStore = request.app.state.registry
    fields = parse_expand(expand, USER_REFERENCES)
    return [_to_response(registry, u, fields) for u in user_store.list_users(skip=skip, limit=limit)]


@router.get("/{user_id}", response_model=UserResponse, dependencies=[Depends(get_identity)])
def get_user(
    request: Request,
    user_id: str = Path(pattern=OBJECT_ID_PATTERN),
    expand: Optional[str] = None,
) -> UserResponse:
    user_store: UserStore = request.app.state.user_store
    registry: RegistryStore = request.app.state.registry
    fields = parse_expand(expand, USER_REFERENCES)
    return _to_response(registry, _get_or_404(user_store, user_id), fields)


@router.put("/{user_id}", response_model=UserResponse, dependencies=[Depends(get_identity)])
def update_user(
    request: Request,
    body: UserUpdate,
    user_id: str = Path(pattern=OBJECT_ID_PATTERN),
) -> UserResponse:
    """Apply the supplied fields. A password in the body is ignored."""
    user_store: UserStore = request.app.state.user_store
    registry: RegistryStore = request.app.state.registry
    user = _get_or_404(user_store, user_id)

    changes = body.model_dump(exclude_unset=True)
    for field in ("username", "is_active"):
        if field in changes and changes[field] is None:
            raise ValidationFailed(f"{field} cannot be null.", details={"field": field})

    ensure_references(registry, USER_REFERENCES, changes)
    new_username = changes.get("username")
    if new_username is not None and new_username != user.username:
        if user_store.get_by_username(new_username) is not None:
            raise UserExists()

    if changes:
        try:
            user_store.update_user(user.id, **changes)
        except IntegrityError as exc:
            raise UserExists() from exc
        logger.info("Updated user %s fields=%s", user.id, sorted(changes))
    return _to_response(registry, _get_or_404(user_store, user.id), [])


@router.delete("/{user_id}", response_model=MessageResponse, dependencies=[Depends(get_identity)])
def delete_user(request: Request, user_id: str = Path(pattern=OBJECT_ID_PATTERN)) -> MessageResponse:
    user_store: UserStore = request.app.state.user_store
    if not user_store.delete_user(user_id):
        raise NotFound("User not found.")
    logger.info("Deleted user %s", user_id.lower())
    return MessageResponse(message="Deleted successfully")
