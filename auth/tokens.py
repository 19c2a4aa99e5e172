"""
auth/tokens.py -- Session tokens and password hashing.

Security design decisions:
  JWT: python-jose with HS256. Tokens are signed with SECRET_KEY and carry
       the user id (sub), username, issue time and expiry. Tokens are never
       persisted and there is no revocation list: logout and password change
       leave outstanding tokens valid until they expire.

       verify_token() distinguishes two failures because the Access Guard
       reports them with different codes: TokenExpired for a token that was
       valid but is past its exp claim, TokenMalformed for everything else
       (bad signature, garbage input, missing sub).

  Passwords: bcrypt used directly, no passlib wrapper. The _DUMMY_HASH
       constant enables timing equalization in the login path so response
       time does not reveal whether a username exists.

  SECRET_KEY: sourced from core.config.get_settings(), validated at startup.

Layer rule: no imports from api/ or registry/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

import bcrypt
from jose import ExpiredSignatureError, JWTError, jwt

from core.config import get_settings

logger = logging.getLogger("registry.auth")

# ---------------------------------------------------------------------------
# Config -- read once at module load via the lru_cache singleton
# ---------------------------------------------------------------------------

_settings = get_settings()

_ALGORITHM = "HS256"

# bcrypt only looks at the first 72 bytes of its input.
MAX_PASSWORD_BYTES = 72


class TokenMalformed(Exception):
    """The token could not be decoded or its signature does not verify."""


class TokenExpired(Exception):
    """The token verified but its validity window has passed."""


# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password.

    Callers reject inputs longer than MAX_PASSWORD_BYTES before hashing;
    recent bcrypt releases raise on them instead of truncating.
    """
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Malformed stored hash or over-long input
        return False


# Computed once at module load so the first login attempt is not measurably
# slower than subsequent ones.
_DUMMY_HASH: str = hash_password("registry_timing_dummy")


def burn_password_check(plain: str) -> None:
    """Run a bcrypt comparison whose result is discarded.

    Called on the unknown-username login path so it costs the same as a
    wrong-password attempt.
    """
    verify_password(plain, _DUMMY_HASH)


# ---------------------------------------------------------------------------
# JWT issue / verify
# ---------------------------------------------------------------------------


def token_lifetime_seconds() -> int:
    return _settings.token_expire_seconds


def issue_token(user_id: str, username: str, expire_seconds: int = 0) -> str:
    """Encode a signed JWT for the given identity.

    Args:
        user_id:        Credential identifier, stored as the sub claim.
        username:       Carried as a convenience claim for clients.
        expire_seconds: Validity window in seconds. If 0 (default), uses
                        Settings.token_expire_seconds.
    """
    duration = expire_seconds if expire_seconds > 0 else _settings.token_expire_seconds
    issued = datetime.now(timezone.utc)
    payload = {
        "sub": user_id,
        "username": username,
        "iat": issued,
        "exp": issued + timedelta(seconds=duration),
    }
    return jwt.encode(payload, _settings.secret_key, algorithm=_ALGORITHM)


def verify_token(token: str) -> str:
    """Verify a JWT and return the identity reference it carries.

    Raises:
        TokenExpired:   signature is valid but exp is in the past.
        TokenMalformed: anything else -- undecodable, wrong signature,
                        wrong algorithm, or no sub claim.
    """
    try:
        payload = jwt.decode(token, _settings.secret_key, algorithms=[_ALGORITHM])
    except ExpiredSignatureError as exc:
        raise TokenExpired(str(exc)) from exc
    except JWTError as exc:
        raise TokenMalformed(str(exc)) from exc
    subject = payload.get("sub")
    if not isinstance(subject, str) or not subject:
        raise TokenMalformed("Token has no subject claim.")
    return subject
