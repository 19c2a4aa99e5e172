"""
registry/validation.py -- Application-layer checks run before every write.

The store's UNIQUE constraints are a backstop; these helpers are the rule.
They turn "would this write be valid?" into an AppError with a precise code
and the offending field in details, which a raw IntegrityError cannot give.

All helpers only read from the store.

Layer rule: no imports from api/ or auth/.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

from core.errors import Conflict, NotFound, UnknownReference
from registry.store import RegistryStore, get_entity

logger = logging.getLogger("registry.store")


def ensure_unique(
    store: RegistryStore,
    entity: str,
    values: Mapping[str, Any],
    exclude_id: str | None = None,
) -> None:
    """Raise Conflict if any natural key in values is already taken.

    Keys absent from values or set to None are not checked. exclude_id is the
    record being updated, which may keep its own values.
    """
    for field in get_entity(entity).unique:
        value = values.get(field)
        if value is None:
            continue
        existing = store.find_record(entity, **{field: value})
        if existing is not None and existing.id != (exclude_id or "").lower():
            logger.info("Rejected duplicate %s.%s", entity, field)
            raise Conflict(
                f"A {entity} with this {field} already exists.",
                details={"field": field},
            )


def ensure_references(
    store: RegistryStore,
    references: Mapping[str, str],
    values: Mapping[str, Any],
) -> None:
    """Raise UnknownReference if a reference field names a missing record.

    references maps field name -> target entity, e.g. {"area_id": "area"}.
    """
    for field, target in references.items():
        value = values.get(field)
        if value is None:
            continue
        if not store.exists(target, value):
            raise UnknownReference(
                f"{field} does not point at an existing {target}.",
                details={"field": field},
            )


def validate_write(
    store: RegistryStore,
    entity: str,
    values: Mapping[str, Any],
    exclude_id: str | None = None,
) -> None:
    """Run every pre-write check for entity: references first, then uniqueness."""
    ensure_references(store, get_entity(entity).references, values)
    ensure_unique(store, entity, values, exclude_id=exclude_id)


def ensure_exists(store: RegistryStore, entity: str, record_id: str) -> Any:
    """Return the record or raise NotFound."""
    record = store.get_record(entity, record_id)
    if record is None:
        raise NotFound(f"{entity.capitalize()} not found.")
    return record
