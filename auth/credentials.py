"""
auth/credentials.py -- Credential lifecycle: create, login, change password, refresh.

These functions hold the rules; api/routes/ only adapts them to HTTP. Each
one either returns its result or raises a core.errors.AppError -- nothing is
retried and nothing is swallowed.

Login ordering: the password is checked before the activation flag, so a
deactivated account only reveals its state to someone who knows the
password. Unknown usernames still pay for one bcrypt comparison.

Layer rule: no imports from api/ or registry/.
"""

from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError

from auth.models import Credential, IdentityContext
from auth.store import UserStore
from auth.tokens import MAX_PASSWORD_BYTES, burn_password_check, hash_password, issue_token, verify_password
from core.config import get_settings
from core.errors import (
    AccountDeactivated,
    InternalError,
    InvalidCredentials,
    MissingCredentials,
    MissingFields,
    PasswordTooLong,
    PasswordTooShort,
    UserExists,
    UserNotFound,
)

logger = logging.getLogger("registry.auth")


def _check_password_bytes(password: str) -> None:
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise PasswordTooLong()


def require_username_password(username: str | None, password: str | None) -> str:
    """Return the trimmed username, or raise MissingFields if either value is blank."""
    username = (username or "").strip()
    if not username or not password:
        raise MissingFields()
    _check_password_bytes(password)
    return username


def create_credential(
    store: UserStore,
    username: str | None,
    password: str | None,
    *,
    first_name: str | None = None,
    last_name: str | None = None,
    role_id: str | None = None,
    assessor_id: str | None = None,
    is_active: bool = True,
) -> Credential:
    """Persist a new credential and return it as stored.

    The caller has already applied the Bootstrap Policy token gate. The
    returned Credential still carries hashed_password; the API layer strips it.
    """
    username = require_username_password(username, password)

    if store.get_by_username(username) is not None:
        raise UserExists()

    new_user = Credential(
        username=username,
        hashed_password=hash_password(password),
        first_name=first_name,
        last_name=last_name,
        role_id=role_id,
        assessor_id=assessor_id,
        is_active=is_active,
    )
    try:
        user_id = store.create_user(new_user)
    except IntegrityError as exc:
        # A concurrent request created the same username between the check and the insert
        raise UserExists() from exc

    created = store.get_by_id(user_id)
    if created is None:
        raise InternalError("User not found after write.")
    logger.info("Created user %s", created.username)
    return created


def login(store: UserStore, username: str | None, password: str | None) -> tuple[str, Credential]:
    """Authenticate a username/password pair and mint a session token."""
    if not username or not password:
        raise MissingCredentials()

    user = store.get_by_username(username)
    if user is None:
        burn_password_check(password)
        logger.info("Login failed for unknown user")
        raise InvalidCredentials()
    if not verify_password(password, user.hashed_password or ""):
        logger.info("Login failed for %s: bad password", username)
        raise InvalidCredentials()
    if not user.is_active:
        logger.info("Login refused for deactivated user %s", username)
        raise AccountDeactivated()

    token = issue_token(user.id, user.username)
    logger.info("Login succeeded for %s", username)
    return token, user


def change_password(
    store: UserStore,
    identity: IdentityContext,
    current_password: str | None,
    new_password: str | None,
) -> None:
    """Replace the caller's password after re-checking the current one.

    Tokens issued before the change stay valid until they expire.
    """
    if not current_password or not new_password:
        raise MissingFields("Current and new password are required.")

    min_length = get_settings().min_password_length
    if len(new_password) < min_length:
        raise PasswordTooShort(f"New password must be at least {min_length} characters long.")
    _check_password_bytes(new_password)

    user = store.get_by_id(identity.id)
    if user is None:
        raise UserNotFound()
    if not verify_password(current_password, user.hashed_password or ""):
        raise InvalidCredentials("Current password is incorrect.")

    store.update_user(user.id, hashed_password=hash_password(new_password))
    logger.info("Password changed for %s", user.username)


def refresh(identity: IdentityContext) -> str:
    """Mint a fresh token for an already-authenticated identity.

    The presented token is not invalidated; both remain usable until expiry.
    """
    return issue_token(identity.id, identity.username)
