"""Unit tests for auth/tokens.py -- token issue/verify and password hashing.

Covers:
- issue_token() / verify_token() round trip returns the subject
- Expired tokens raise TokenExpired, not TokenMalformed
- Wrong signature, garbage input and a missing sub raise TokenMalformed
- bcrypt hash/verify, including malformed stored hashes
"""

from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from auth.tokens import (
    TokenExpired,
    TokenMalformed,
    burn_password_check,
    hash_password,
    issue_token,
    token_lifetime_seconds,
    verify_password,
    verify_token,
)
from core.config import get_settings

_UID = "0123456789abcdef01234567"


def _encode(claims: dict, key: str | None = None) -> str:
    return jwt.encode(claims, key or get_settings().secret_key, algorithm="HS256")


class TestIssueVerify:
    def test_round_trip_returns_subject(self) -> None:
        token = issue_token(_UID, "alice")
        assert verify_token(token) == _UID

    def test_claims_carry_username_and_expiry(self) -> None:
        token = issue_token(_UID, "alice", expire_seconds=120)
        claims = jwt.get_unverified_claims(token)
        assert claims["username"] == "alice"
        assert claims["exp"] - claims["iat"] == 120

    def test_default_lifetime_comes_from_settings(self) -> None:
        token = issue_token(_UID, "alice")
        claims = jwt.get_unverified_claims(token)
        assert claims["exp"] - claims["iat"] == token_lifetime_seconds()
        assert token_lifetime_seconds() == get_settings().token_expire_seconds

    def test_expired_token_raises_token_expired(self) -> None:
        past = datetime.now(timezone.utc) - timedelta(hours=2)
        token = _encode({"sub": _UID, "iat": past, "exp": past + timedelta(minutes=5)})
        with pytest.raises(TokenExpired):
            verify_token(token)

    def test_wrong_signature_is_malformed(self) -> None:
        future = datetime.now(timezone.utc) + timedelta(hours=1)
        token = _encode({"sub": _UID, "exp": future}, key="x" * 40)
        with pytest.raises(TokenMalformed):
            verify_token(token)

    def test_garbage_is_malformed(self) -> None:
        with pytest.raises(TokenMalformed):
            verify_token("not-a-jwt")

    def test_missing_subject_is_malformed(self) -> None:
        future = datetime.now(timezone.utc) + timedelta(hours=1)
        token = _encode({"username": "alice", "exp": future})
        with pytest.raises(TokenMalformed):
            verify_token(token)


class TestPasswords:
    def test_hash_and_verify(self) -> None:
        hashed = hash_password("s3cret!")
        assert hashed != "s3cret!"
        assert verify_password("s3cret!", hashed) is True
        assert verify_password("wrong", hashed) is False

    def test_malformed_stored_hash_does_not_raise(self) -> None:
        assert verify_password("anything", "not-a-bcrypt-hash") is False

    def test_burn_password_check_returns_nothing(self) -> None:
        assert burn_password_check("whatever") is None
