"""
core/identifiers.py -- Record identifiers.

Every record is keyed by a 24-character hexadecimal string (96 random bits),
the same shape document stores hand out, so clients can validate ids with a
single pattern regardless of the entity type.
"""

import re
import secrets

OBJECT_ID_PATTERN = r"^[a-fA-F0-9]{24}$"

_OBJECT_ID_RE = re.compile(r"[a-fA-F0-9]{24}")


def new_object_id() -> str:
    return secrets.token_hex(12)


def is_object_id(value: object) -> bool:
    return isinstance(value, str) and _OBJECT_ID_RE.fullmatch(value) is not None


def normalize_object_id(value: str) -> str:
    """Lower-case an identifier so lookups are case-insensitive."""
    return value.lower()
