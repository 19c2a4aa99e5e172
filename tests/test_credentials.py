"""Unit tests for auth/credentials.py and auth/dependencies.authenticate().

Covers:
- require_username_password(), create_credential(): MISSING_FIELDS, USER_EXISTS, over-long passwords, secret hashed
- login(): MISSING_CREDENTIALS, INVALID_CREDENTIALS (unknown user / bad password),
  ACCOUNT_DEACTIVATED only after the password matches
- change_password(): required fields, minimum length, current password check
- authenticate(): the Access Guard decision table
"""

from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from auth import credentials
from auth.dependencies import authenticate, extract_bearer_token
from auth.models import IdentityContext
from auth.store import UserStore
from auth.tokens import issue_token, verify_password, verify_token
from core.config import get_settings
from core.errors import (
    AccountDeactivated,
    InvalidCredentials,
    InvalidToken,
    MissingCredentials,
    MissingFields,
    NoToken,
    PasswordTooLong,
    PasswordTooShort,
    TokenExpired,
    UserExists,
    UserInactive,
    UserNotFound,
)


@pytest.fixture
def alice(user_store: UserStore):
    return credentials.create_credential(user_store, "alice", "wonderland", first_name="Alice", last_name="Liddell")


class TestCreateCredential:
    def test_password_is_hashed(self, alice) -> None:
        assert alice.hashed_password != "wonderland"
        assert verify_password("wonderland", alice.hashed_password)

    def test_username_is_trimmed(self, user_store: UserStore) -> None:
        created = credentials.create_credential(user_store, "  bob ", "builder1")
        assert created.username == "bob"

    @pytest.mark.parametrize("username,password", [(None, "pw"), ("", "pw"), ("   ", "pw"), ("carol", None), ("carol", "")])
    def test_missing_fields(self, user_store: UserStore, username, password) -> None:
        with pytest.raises(MissingFields):
            credentials.create_credential(user_store, username, password)
        assert user_store.count_users() == 0

    def test_duplicate_username(self, user_store: UserStore, alice) -> None:
        with pytest.raises(UserExists) as info:
            credentials.create_credential(user_store, "alice", "another1")
        assert info.value.status_code == 409
        assert user_store.count_users() == 1

    def test_password_over_72_bytes(self, user_store: UserStore) -> None:
        with pytest.raises(PasswordTooLong):
            credentials.create_credential(user_store, "dave", "é" * 40)

    def test_require_username_password(self) -> None:
        assert credentials.require_username_password("  erin ", "secret1") == "erin"
        with pytest.raises(MissingFields):
            credentials.require_username_password(None, None)


class TestLogin:
    def test_success_returns_verifiable_token(self, user_store: UserStore, alice) -> None:
        token, user = credentials.login(user_store, "alice", "wonderland")
        assert user.id == alice.id
        assert verify_token(token) == alice.id

    def test_missing_credentials(self, user_store: UserStore) -> None:
        with pytest.raises(MissingCredentials):
            credentials.login(user_store, "alice", None)

    def test_unknown_user(self, user_store: UserStore) -> None:
        with pytest.raises(InvalidCredentials) as info:
            credentials.login(user_store, "nobody", "whatever")
        assert info.value.status_code == 400

    def test_wrong_password(self, user_store: UserStore, alice) -> None:
        with pytest.raises(InvalidCredentials):
            credentials.login(user_store, "alice", "wrong-password")

    def test_deactivated_with_correct_password(self, user_store: UserStore, alice) -> None:
        user_store.update_user(alice.id, is_active=False)
        with pytest.raises(AccountDeactivated) as info:
            credentials.login(user_store, "alice", "wonderland")
        assert info.value.status_code == 403

    def test_deactivated_with_wrong_password_stays_generic(self, user_store: UserStore, alice) -> None:
        user_store.update_user(alice.id, is_active=False)
        with pytest.raises(InvalidCredentials):
            credentials.login(user_store, "alice", "wrong-password")


class TestChangePassword:
    def test_success(self, user_store: UserStore, alice) -> None:
        identity = IdentityContext.from_credential(alice)
        credentials.change_password(user_store, identity, "wonderland", "looking-glass")
        credentials.login(user_store, "alice", "looking-glass")
        with pytest.raises(InvalidCredentials):
            credentials.login(user_store, "alice", "wonderland")

    def test_missing_fields(self, user_store: UserStore, alice) -> None:
        with pytest.raises(MissingFields):
            credentials.change_password(user_store, IdentityContext.from_credential(alice), "", "newpass")

    def test_too_short(self, user_store: UserStore, alice) -> None:
        short = "x" * (get_settings().min_password_length - 1)
        with pytest.raises(PasswordTooShort):
            credentials.change_password(user_store, IdentityContext.from_credential(alice), "wonderland", short)

    def test_wrong_current_password(self, user_store: UserStore, alice) -> None:
        with pytest.raises(InvalidCredentials):
            credentials.change_password(user_store, IdentityContext.from_credential(alice), "nope", "newpass1")


class TestAccessGuard:
    def test_extract_bearer_token(self) -> None:
        assert extract_bearer_token("Bearer abc") == "abc"
        assert extract_bearer_token("Basic abc") is None
        assert extract_bearer_token("Bearer ") is None
        assert extract_bearer_token(None) is None

    def test_valid_token_yields_identity(self, user_store: UserStore, alice) -> None:
        identity = authenticate(user_store, f"Bearer {issue_token(alice.id, 'alice')}")
        assert identity.id == alice.id
        assert identity.username == "alice"
        assert identity.display_name == "Alice Liddell"

    def test_no_token(self, user_store: UserStore) -> None:
        with pytest.raises(NoToken):
            authenticate(user_store, None)

    def test_garbage_token(self, user_store: UserStore) -> None:
        with pytest.raises(InvalidToken):
            authenticate(user_store, "Bearer garbage")

    def test_expired_token(self, user_store: UserStore, alice) -> None:
        past = datetime.now(timezone.utc) - timedelta(days=2)
        token = jwt.encode(
            {"sub": alice.id, "iat": past, "exp": past + timedelta(days=1)},
            get_settings().secret_key,
            algorithm="HS256",
        )
        with pytest.raises(TokenExpired):
            authenticate(user_store, f"Bearer {token}")

    def test_deleted_user(self, user_store: UserStore, alice) -> None:
        token = issue_token(alice.id, "alice")
        user_store.delete_user(alice.id)
        with pytest.raises(UserNotFound):
            authenticate(user_store, f"Bearer {token}")

    def test_deactivated_user(self, user_store: UserStore, alice) -> None:
        token = issue_token(alice.id, "alice")
        user_store.update_user(alice.id, is_active=False)
        with pytest.raises(UserInactive):
            authenticate(user_store, f"Bearer {token}")
