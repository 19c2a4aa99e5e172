"""
registry/models.py -- Domain dataclasses for the reference-data registry.

These are pure data containers with zero logic. Uniqueness and reference
rules live in registry/validation.py, deletion rules in registry/guards.py,
persistence in registry/store.py.

id, created_at and updated_at are None before the record is written.
Reference fields (*_id) hold the 24-hex identifier of another record.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass
class Role:
    """A user role. code is upper-case letters and underscores only."""

    code: str
    name: str
    description: Optional[str] = None
    id: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


@dataclass
class Area:
    """A geographic area grouping countries."""

    name: str
    id: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


@dataclass
class Country:
    area_id: str
    code: str  # ISO-style two upper-case letters
    name: str
    name_en: str
    id: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


@dataclass
class Company:
    name: str
    country_id: Optional[str] = None
    id: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


@dataclass
class Site:
    name: str
    code: Optional[str] = None
    internal_code: Optional[str] = None
    country_id: Optional[str] = None
    company_id: Optional[str] = None
    city: Optional[str] = None
    address: Optional[str] = None
    id: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


@dataclass
class Activity:
    name: str
    code: Optional[str] = None
    id: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


@dataclass
class BusinessUnit:
    name: str
    description: Optional[str] = None
    activity_id: Optional[str] = None
    id: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


@dataclass
class Assessor:
    first_name: str
    last_name: str
    email: str
    phone: Optional[str] = None
    type: Optional[str] = None
    is_suzuki: bool = False
    id: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


@dataclass
class Privilege:
    code: str
    name: str
    description: Optional[str] = None
    id: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


@dataclass
class Language:
    name: str
    code: Optional[str] = None
    id: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
