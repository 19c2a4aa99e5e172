"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Mirrors the approach
in registry/models.py -- dataclasses own domain shape; stores and routes do
the work.

Layer rule: no imports from api/ or registry/.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class Credential:
    """A stored user identity.

    hashed_password is the bcrypt hash and is the only secret on the record.
    It must never reach a response body -- api/models.UserResponse has no
    field for it, so serializing through that model strips it.

    role_id / assessor_id are plain identifiers of registry records. The
    Referential Guard counts credentials by role_id before a role is deleted.
    """

    username: str
    id: str | None = None
    hashed_password: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    role_id: str | None = None
    assessor_id: str | None = None
    is_active: bool = True
    created_at: str | None = None
    updated_at: str | None = None


@dataclass(frozen=True)
class IdentityContext:
    """Read-only identity attached to a request after the Access Guard passes."""

    id: str
    username: str
    display_name: str
    role_id: str | None = None

    @classmethod
    def from_credential(cls, credential: Credential) -> IdentityContext:
        full_name = " ".join(p for p in (credential.first_name, credential.last_name) if p)
        return cls(
            id=credential.id,
            username=credential.username,
            display_name=full_name or credential.username,
            role_id=credential.role_id,
        )
