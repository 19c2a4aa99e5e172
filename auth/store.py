"""
auth/store.py -- SQLAlchemy Core persistence layer for credentials.

Pattern: Repository + Data Mapper (same as registry/store.py).
UserStore is the repository; _row_to_credential is the mapper.
Route and dependency code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

  The UNIQUE constraint on username is a race backstop only. Callers check
  get_by_username() first so a duplicate is reported before any write; two
  concurrent creations that both pass that check still collide on the
  constraint and surface as sqlalchemy.exc.IntegrityError.

Layer rule: no imports from api/ or registry/.
"""

from __future__ import annotations

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, func, select
from sqlalchemy.engine import Engine

from auth.models import Credential
from core.config import get_settings
from core.database import create_store_engine, now_iso
from core.identifiers import new_object_id, normalize_object_id

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", String(24), primary_key=True),
    Column("username", String(255), nullable=False, unique=True),
    Column("hashed_password", Text, nullable=False),
    Column("first_name", String(100)),
    Column("last_name", String(100)),
    Column("role_id", String(24), index=True),
    Column("assessor_id", String(24)),
    Column("is_active", Integer, nullable=False, server_default="1"),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

# Columns update_user() accepts. id, created_at and updated_at are managed here.
_MUTABLE_FIELDS = frozenset(
    {"username", "hashed_password", "first_name", "last_name", "role_id", "assessor_id", "is_active"}
)


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for Credential records.

    Usage:
        store = UserStore()
        user_id = store.create_user(Credential(username="admin", hashed_password=hash_password("secret")))
        user = store.get_by_username("admin")
        store.close()
    """

    def __init__(self, db_url: str | None = None) -> None:
        self.engine: Engine = create_store_engine(db_url or get_settings().database_url)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def count_users(self) -> int:
        """Return the number of credentials. Drives the Bootstrap Policy."""
        with self.engine.connect() as conn:
            result = conn.execute(select(func.count()).select_from(_users)).scalar()
        return result or 0

    def has_users(self) -> bool:
        return self.count_users() > 0

    def count_by_role(self, role_id: str) -> int:
        """Return how many credentials reference role_id (Referential Guard)."""
        with self.engine.connect() as conn:
            result = conn.execute(
                select(func.count()).select_from(_users).where(_users.c.role_id == normalize_object_id(role_id))
            ).scalar()
        return result or 0

    def get_by_username(self, username: str) -> Credential | None:
        """Look up a credential by exact username (case-sensitive). Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.username == username)).fetchone()
        return _row_to_credential(row) if row is not None else None

    def get_by_id(self, user_id: str) -> Credential | None:
        """Look up a credential by primary key. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == normalize_object_id(user_id))).fetchone()
        return _row_to_credential(row) if row is not None else None

    def list_users(self, skip: int = 0, limit: int = 100) -> list[Credential]:
        """Return credentials ordered by username."""
        with self.engine.connect() as conn:
            rows = conn.execute(_users.select().order_by(_users.c.username).offset(skip).limit(limit)).fetchall()
        return [_row_to_credential(r) for r in rows]

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create_user(self, user: Credential) -> str:
        """Insert a new credential and return its generated identifier.

        Raises sqlalchemy.exc.IntegrityError if the username already exists.
        """
        user_id = new_object_id()
        stamp = now_iso()
        with self.engine.connect() as conn:
            conn.execute(
                _users.insert().values(
                    id=user_id,
                    username=user.username,
                    hashed_password=user.hashed_password,
                    first_name=user.first_name,
                    last_name=user.last_name,
                    role_id=user.role_id,
                    assessor_id=user.assessor_id,
                    is_active=1 if user.is_active else 0,
                    created_at=stamp,
                    updated_at=stamp,
                )
            )
            conn.commit()
        return user_id

    def update_user(self, user_id: str, **fields) -> bool:
        """Update mutable fields on an existing credential.

        Unknown field names raise ValueError rather than being silently
        dropped. is_active must be passed as bool; it is stored as 0/1.

        Returns True if a row was updated, False if user_id was not found.
        """
        unknown = set(fields) - _MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown user fields: {unknown!r}")
        if "is_active" in fields:
            fields["is_active"] = 1 if fields["is_active"] else 0
        fields["updated_at"] = now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.update().where(_users.c.id == normalize_object_id(user_id)).values(**fields)
            )
            conn.commit()
        return result.rowcount > 0

    def delete_user(self, user_id: str) -> bool:
        """Permanently delete a credential. Returns True if deleted, False if not found."""
        with self.engine.connect() as conn:
            result = conn.execute(_users.delete().where(_users.c.id == normalize_object_id(user_id)))
            conn.commit()
        return result.rowcount > 0

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        with self.engine.connect() as conn:
            conn.execute(select(1))
        return True

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_credential(row) -> Credential:
    return Credential(
        id=row.id,
        username=row.username,
        hashed_password=row.hashed_password,
        first_name=row.first_name,
        last_name=row.last_name,
        role_id=row.role_id,
        assessor_id=row.assessor_id,
        is_active=bool(row.is_active),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
