"""
registry/expansion.py -- Opt-in reference expansion for read endpoints.

    GET /site?expand=country_id,company_id

replaces each named reference field in the response with the referenced
record (as a dict), or None when that record no longer exists. Without an
expand parameter responses carry plain identifiers.

Layer rule: no imports from api/ or auth/.
"""

from __future__ import annotations

from dataclasses import asdict
from typing import Any, Mapping

from core.errors import InvalidExpand
from registry.store import RegistryStore


def parse_expand(expand: str | None, references: Mapping[str, str]) -> list[str]:
    """Split a comma-separated expand value and check every name is a reference field.

    Blank entries are ignored; duplicates collapse.
    """
    if not expand:
        return []
    fields: list[str] = []
    for name in (part.strip() for part in expand.split(",")):
        if not name or name in fields:
            continue
        if name not in references:
            allowed = ", ".join(sorted(references)) or "none"
            raise InvalidExpand(
                f"Cannot expand '{name}'. Expandable fields: {allowed}.",
                details={"field": name},
            )
        fields.append(name)
    return fields


def expand_record(
    store: RegistryStore,
    data: dict[str, Any],
    fields: list[str],
    references: Mapping[str, str],
) -> dict[str, Any]:
    """Return a copy of data with each field in fields replaced by its target record."""
    out = dict(data)
    for field in fields:
        ref_id = out.get(field)
        if ref_id is None:
            continue
        target = store.get_record(references[field], ref_id)
        out[field] = asdict(target) if target is not None else None
    return out
