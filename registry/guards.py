"""
registry/guards.py -- Referential Guard: blocks deletes that would orphan records.

Rules:
  role  -> refused while any credential has role_id == id  (ReferencedByUsers)
  area  -> refused while any country has area_id == id    (ReferencedByCountries)
  other -> always allowed

The guard never cascades and never deletes anything itself. Counting and the
subsequent delete are two separate store calls, so a referrer inserted in
between is not caught.

Layer rule: no imports from api/ or auth/. The credential store is passed in
and only needs a count_by_role(role_id) -> int method.
"""

from __future__ import annotations

import logging
from typing import Protocol

from core.errors import ReferencedByCountries, ReferencedByUsers
from core.identifiers import normalize_object_id
from registry.store import RegistryStore

logger = logging.getLogger("registry.guard")


class RoleHolderCounter(Protocol):
    def count_by_role(self, role_id: str) -> int: ...


class ReferentialGuard:
    def __init__(self, user_store: RoleHolderCounter, registry: RegistryStore) -> None:
        self._users = user_store
        self._registry = registry

    def check_delete(self, entity: str, record_id: str) -> None:
        """Raise a Forbidden error if record_id is still referenced."""
        record_id = normalize_object_id(record_id)
        if entity == "role":
            count = self._users.count_by_role(record_id)
            if count > 0:
                logger.warning("Blocked delete of role %s: %d user(s) reference it", record_id, count)
                raise ReferencedByUsers(count)
        elif entity == "area":
            count = self._registry.count_records("country", area_id=record_id)
            if count > 0:
                logger.warning("Blocked delete of area %s: %d country(ies) reference it", record_id, count)
                raise ReferencedByCountries(count)
