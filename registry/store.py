"""
registry/store.py -- SQLAlchemy-backed persistence layer for reference data.

Uses SQLAlchemy Core (not ORM) so the dataclasses in registry/models.py remain
the authoritative domain representation. Swapping SQLite for PostgreSQL is a
connection string change, not a rewrite.

Pattern: Repository + Data Mapper. Every reference entity (role, area,
country, ...) has the same CRUD shape, so RegistryStore exposes one set of
methods keyed by entity name; ENTITIES describes each entity (table, domain
class, natural keys, outgoing references). _row_to_record is the mapper.

The store performs no validation beyond what the schema enforces. Uniqueness
and reference checks run in registry/validation.py before a write; the UNIQUE
constraints declared here are only the backstop for concurrent writers and
surface as sqlalchemy.exc.IntegrityError.

Security: all queries use bound parameters. Field names used in filters are
checked against the table's columns before use.

Usage:
    store = RegistryStore()                                # DATABASE_URL
    store = RegistryStore("postgresql://user:pw@host/db")  # explicit URL
    role_id = store.create_record("role", Role(code="ADMIN", name="Administrator"))
    store.count_records("country", area_id=area_id)
    store.close()
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Optional

from sqlalchemy import Column, Integer, MetaData, String, Table, func, select
from sqlalchemy.engine import Engine

from core.config import get_settings
from core.database import create_store_engine, now_iso
from core.identifiers import new_object_id, normalize_object_id
from registry.models import (
    Activity,
    Area,
    Assessor,
    BusinessUnit,
    Company,
    Country,
    Language,
    Privilege,
    Role,
    Site,
)

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()


def _timestamps() -> list[Column]:
    return [
        Column("created_at", String(32), nullable=False),
        Column("updated_at", String(32), nullable=False),
    ]


_roles = Table(
    "roles",
    metadata,
    Column("id", String(24), primary_key=True),
    Column("code", String(50), nullable=False, unique=True),
    Column("name", String(100), nullable=False),
    Column("description", String(500)),
    *_timestamps(),
)

_areas = Table(
    "areas",
    metadata,
    Column("id", String(24), primary_key=True),
    Column("name", String(100), nullable=False, unique=True),
    *_timestamps(),
)

_countries = Table(
    "countries",
    metadata,
    Column("id", String(24), primary_key=True),
    Column("area_id", String(24), nullable=False, index=True),
    Column("code", String(2), nullable=False, unique=True),
    Column("name", String(100), nullable=False),
    Column("name_en", String(100), nullable=False),
    *_timestamps(),
)

_companies = Table(
    "companies",
    metadata,
    Column("id", String(24), primary_key=True),
    Column("name", String(255), nullable=False, unique=True),
    Column("country_id", String(24), index=True),
    *_timestamps(),
)

_sites = Table(
    "sites",
    metadata,
    Column("id", String(24), primary_key=True),
    Column("code", String(50), unique=True),
    Column("name", String(255), nullable=False),
    Column("internal_code", String(50)),
    Column("country_id", String(24), index=True),
    Column("company_id", String(24), index=True),
    Column("city", String(100)),
    Column("address", String(500)),
    *_timestamps(),
)

_activities = Table(
    "activities",
    metadata,
    Column("id", String(24), primary_key=True),
    Column("code", String(50), unique=True),
    Column("name", String(255), nullable=False),
    *_timestamps(),
)

_business_units = Table(
    "business_units",
    metadata,
    Column("id", String(24), primary_key=True),
    Column("name", String(255), nullable=False, unique=True),
    Column("description", String(500)),
    Column("activity_id", String(24), index=True),
    *_timestamps(),
)

_assessors = Table(
    "assessors",
    metadata,
    Column("id", String(24), primary_key=True),
    Column("first_name", String(100), nullable=False),
    Column("last_name", String(100), nullable=False),
    Column("email", String(255), nullable=False, unique=True),
    Column("phone", String(50)),
    Column("type", String(50)),
    Column("is_suzuki", Integer, nullable=False, server_default="0"),
    *_timestamps(),
)

_privileges = Table(
    "privileges",
    metadata,
    Column("id", String(24), primary_key=True),
    Column("code", String(50), nullable=False, unique=True),
    Column("name", String(100), nullable=False),
    Column("description", String(500)),
    *_timestamps(),
)

_languages = Table(
    "languages",
    metadata,
    Column("id", String(24), primary_key=True),
    Column("code", String(10), unique=True),
    Column("name", String(100), nullable=False),
    *_timestamps(),
)


# ---------------------------------------------------------------------------
# Entity catalogue
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class EntityDef:
    """Describes one reference entity.

    unique     -- natural-key fields that must not repeat across records
    references -- outgoing reference field -> target entity name ("user" is
                  never a target here; credentials live in auth/)
    booleans   -- fields stored as 0/1 integers
    """

    name: str
    table: Table
    model: type
    unique: tuple[str, ...] = ()
    references: dict[str, str] = field(default_factory=dict)
    booleans: tuple[str, ...] = ()


ENTITIES: dict[str, EntityDef] = {
    d.name: d
    for d in (
        EntityDef("role", _roles, Role, unique=("code",)),
        EntityDef("area", _areas, Area, unique=("name",)),
        EntityDef("country", _countries, Country, unique=("code",), references={"area_id": "area"}),
        EntityDef("company", _companies, Company, unique=("name",), references={"country_id": "country"}),
        EntityDef(
            "site",
            _sites,
            Site,
            unique=("code",),
            references={"country_id": "country", "company_id": "company"},
        ),
        EntityDef("activity", _activities, Activity, unique=("code",)),
        EntityDef(
            "businessunit",
            _business_units,
            BusinessUnit,
            unique=("name",),
            references={"activity_id": "activity"},
        ),
        EntityDef("assessor", _assessors, Assessor, unique=("email",), booleans=("is_suzuki",)),
        EntityDef("privilege", _privileges, Privilege, unique=("code",)),
        EntityDef("language", _languages, Language, unique=("code",)),
    )
}

_MANAGED_FIELDS = ("id", "created_at", "updated_at")


def get_entity(name: str) -> EntityDef:
    try:
        return ENTITIES[name]
    except KeyError:
        raise ValueError(f"Unknown entity: {name!r}") from None


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class RegistryStore:
    """Repository for every reference entity in ENTITIES."""

    def __init__(self, db_url: Optional[str] = None) -> None:
        self.engine: Engine = create_store_engine(db_url or get_settings().database_url)
        metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_record(self, entity: str, record_id: str) -> Optional[Any]:
        """Return the record with record_id, or None if it does not exist."""
        defn = get_entity(entity)
        table = defn.table
        with self.engine.connect() as conn:
            row = conn.execute(table.select().where(table.c.id == normalize_object_id(record_id))).fetchone()
        return _row_to_record(defn, row) if row is not None else None

    def exists(self, entity: str, record_id: str) -> bool:
        return self.count_records(entity, id=normalize_object_id(record_id)) > 0

    def find_record(self, entity: str, **where) -> Optional[Any]:
        """Return the first record whose fields equal every value in where."""
        defn = get_entity(entity)
        with self.engine.connect() as conn:
            row = conn.execute(defn.table.select().where(*_conditions(defn, where)).limit(1)).fetchone()
        return _row_to_record(defn, row) if row is not None else None

    def list_records(self, entity: str, skip: int = 0, limit: int = 100, **filters) -> list[Any]:
        """Return records matching filters, oldest first. None-valued filters are ignored."""
        defn = get_entity(entity)
        table = defn.table
        active = {k: v for k, v in filters.items() if v is not None}
        stmt = (
            table.select()
            .where(*_conditions(defn, active))
            .order_by(table.c.created_at, table.c.id)
            .offset(skip)
            .limit(limit)
        )
        with self.engine.connect() as conn:
            rows = conn.execute(stmt).fetchall()
        return [_row_to_record(defn, r) for r in rows]

    def count_records(self, entity: str, **where) -> int:
        """Return the number of records whose fields equal every value in where."""
        defn = get_entity(entity)
        stmt = select(func.count()).select_from(defn.table).where(*_conditions(defn, where))
        with self.engine.connect() as conn:
            result = conn.execute(stmt).scalar()
        return result or 0

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create_record(self, entity: str, record: Any) -> str:
        """Insert a domain record and return its generated identifier.

        Raises sqlalchemy.exc.IntegrityError on a UNIQUE violation.
        """
        defn = get_entity(entity)
        values = {k: v for k, v in asdict(record).items() if k not in _MANAGED_FIELDS}
        values = _to_db(defn, values)
        record_id = new_object_id()
        stamp = now_iso()
        with self.engine.connect() as conn:
            conn.execute(defn.table.insert().values(id=record_id, created_at=stamp, updated_at=stamp, **values))
            conn.commit()
        return record_id

    def update_record(self, entity: str, record_id: str, **fields) -> bool:
        """Update the given fields on an existing record.

        Returns True if a row was updated, False if record_id was not found.
        Raises ValueError for unknown or store-managed field names.
        """
        defn = get_entity(entity)
        table = defn.table
        bad = [k for k in fields if k in _MANAGED_FIELDS or k not in table.c]
        if bad:
            raise ValueError(f"Cannot update {entity} fields: {bad!r}")
        values = _to_db(defn, fields)
        values["updated_at"] = now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(table.update().where(table.c.id == normalize_object_id(record_id)).values(**values))
            conn.commit()
        return result.rowcount > 0

    def delete_record(self, entity: str, record_id: str) -> bool:
        """Delete a record. Returns True if deleted, False if not found.

        Callers run registry.guards.ReferentialGuard first -- the store itself
        never checks for dependents and never cascades.
        """
        defn = get_entity(entity)
        table = defn.table
        with self.engine.connect() as conn:
            result = conn.execute(table.delete().where(table.c.id == normalize_object_id(record_id)))
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
# Helpers
# ---------------------------------------------------------------------------


def _conditions(defn: EntityDef, where: dict) -> list:
    table = defn.table
    unknown = [k for k in where if k not in table.c]
    if unknown:
        raise ValueError(f"Unknown {defn.name} fields: {unknown!r}")
    return [table.c[k] == v for k, v in _to_db(defn, where).items()]


def _to_db(defn: EntityDef, values: dict) -> dict:
    out = dict(values)
    for name in defn.booleans:
        if name in out and out[name] is not None:
            out[name] = 1 if out[name] else 0
    return out


def _row_to_record(defn: EntityDef, row) -> Any:
    values = dict(row._mapping)
    for name in defn.booleans:
        values[name] = bool(values[name])
    return defn.model(**values)


# Credentials live in auth/, but their outgoing references point into this
# registry and are validated and expanded against it.
USER_REFERENCES: dict[str, str] = {"role_id": "role", "assessor_id": "assessor"}
