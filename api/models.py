"""
API request and response models for the Registry REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
registry/models.py, which own the internal domain representation. Route
handlers map between the two.

Create models declare what a new record needs. Update models make every field
optional; handlers apply only the fields the client actually sent
(model_dump(exclude_unset=True)). Response models read straight from the
domain dataclasses (from_attributes=True) or from the expanded dict built by
registry/expansion.py, which is why reference fields accept either an
identifier or a nested object.

Separation of concerns: domain models = domain truth; api/ models = API contract.
"""

from typing import Annotated, Any, Optional, Union

from pydantic import AfterValidator, BaseModel, BeforeValidator, ConfigDict, Field, computed_field

from core.identifiers import OBJECT_ID_PATTERN


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

ROLE_CODE_PATTERN = r"^[A-Z_]+$"
COUNTRY_CODE_PATTERN = r"^[A-Z]{2}$"
EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


def _lower(value: str) -> str:
    return value.lower()


# Reference to another record. Matched case-insensitively, stored lower-case.
_ObjectId = Annotated[str, Field(pattern=OBJECT_ID_PATTERN), AfterValidator(_lower)]

# A reference field on the way out: the identifier, or the referenced record
# when the caller asked for ?expand=<field>.
_Ref = Optional[Union[str, dict[str, Any]]]


def _upper_code(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip().upper()
    return value


def _lower_email(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip().lower()
    return value


# Codes are trimmed and upper-cased before the pattern check, so "admin " is
# accepted as "ADMIN".
_RoleCode = Annotated[str, BeforeValidator(_upper_code), Field(min_length=1, max_length=50, pattern=ROLE_CODE_PATTERN)]
_CountryCode = Annotated[str, BeforeValidator(_upper_code), Field(pattern=COUNTRY_CODE_PATTERN)]
_Email = Annotated[str, BeforeValidator(_lower_email), Field(max_length=255, pattern=EMAIL_PATTERN)]


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


# Optional natural keys: unique when present, and a blank value counts as absent.
_OptionalCode = Annotated[Optional[Annotated[str, Field(max_length=50)]], BeforeValidator(_blank_to_none)]
_LanguageCode = Annotated[Optional[Annotated[str, Field(max_length=10)]], BeforeValidator(_blank_to_none)]


# ---------------------------------------------------------------------------
# Shared envelopes
# ---------------------------------------------------------------------------


class ErrorResponse(BaseModel):
    """Error envelope returned on every 4xx/5xx response."""

    model_config = ConfigDict(frozen=True)

    error: str
    code: Optional[str] = None
    details: Optional[dict[str, Any]] = None


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    success: bool = True
    message: str


class HealthResponse(BaseModel):
    """Response for GET /health."""

    model_config = ConfigDict(frozen=True)

    status: str
    timestamp: str
    database: str


class _RecordResponse(BaseModel):
    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: str
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


# ---------------------------------------------------------------------------
# Role
# ---------------------------------------------------------------------------


class RoleCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    code: _RoleCode
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)


class RoleUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    code: Optional[_RoleCode] = None
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)


class RoleResponse(_RecordResponse):
    code: str
    name: str
    description: Optional[str] = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def display_name(self) -> str:
        return f"{self.name} ({self.code})"


# ---------------------------------------------------------------------------
# Area
# ---------------------------------------------------------------------------


class AreaCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=100)


class AreaUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(default=None, min_length=1, max_length=100)


class AreaResponse(_RecordResponse):
    name: str


# ---------------------------------------------------------------------------
# Country
# ---------------------------------------------------------------------------


class CountryCreate(BaseModel):
    """Request body for POST /country. code is normalized to upper case first."""

    model_config = ConfigDict(str_strip_whitespace=True)

    area_id: _ObjectId
    code: _CountryCode
    name: str = Field(min_length=1, max_length=100)
    name_en: str = Field(min_length=1, max_length=100)


class CountryUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    area_id: Optional[_ObjectId] = None
    code: Optional[_CountryCode] = None
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    name_en: Optional[str] = Field(default=None, min_length=1, max_length=100)


class CountryResponse(_RecordResponse):
    area_id: _Ref
    code: str
    name: str
    name_en: str


# ---------------------------------------------------------------------------
# Company
# ---------------------------------------------------------------------------


class CompanyCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=255)
    country_id: Optional[_ObjectId] = None


class CompanyUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    country_id: Optional[_ObjectId] = None


class CompanyResponse(_RecordResponse):
    name: str
    country_id: _Ref = None


# ---------------------------------------------------------------------------
# Site
# ---------------------------------------------------------------------------


class SiteCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=255)
    code: _OptionalCode = None
    internal_code: Optional[str] = Field(default=None, max_length=50)
    country_id: Optional[_ObjectId] = None
    company_id: Optional[_ObjectId] = None
    city: Optional[str] = Field(default=None, max_length=100)
    address: Optional[str] = Field(default=None, max_length=500)


class SiteUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    code: _OptionalCode = None
    internal_code: Optional[str] = Field(default=None, max_length=50)
    country_id: Optional[_ObjectId] = None
    company_id: Optional[_ObjectId] = None
    city: Optional[str] = Field(default=None, max_length=100)
    address: Optional[str] = Field(default=None, max_length=500)


class SiteResponse(_RecordResponse):
    name: str
    code: Optional[str] = None
    internal_code: Optional[str] = None
    country_id: _Ref = None
    company_id: _Ref = None
    city: Optional[str] = None
    address: Optional[str] = None


# ---------------------------------------------------------------------------
# Activity
# ---------------------------------------------------------------------------


class ActivityCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=255)
    code: _OptionalCode = None


class ActivityUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    code: _OptionalCode = None


class ActivityResponse(_RecordResponse):
    name: str
    code: Optional[str] = None


# ---------------------------------------------------------------------------
# Business unit
# ---------------------------------------------------------------------------


class BusinessUnitCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=255)
    description: Optional[str] = Field(default=None, max_length=500)
    activity_id: Optional[_ObjectId] = None


class BusinessUnitUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = Field(default=None, max_length=500)
    activity_id: Optional[_ObjectId] = None


class BusinessUnitResponse(_RecordResponse):
    name: str
    description: Optional[str] = None
    activity_id: _Ref = None


# ---------------------------------------------------------------------------
# Assessor
# ---------------------------------------------------------------------------


class AssessorCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    email: _Email
    phone: Optional[str] = Field(default=None, max_length=50)
    type: Optional[str] = Field(default=None, max_length=50)
    is_suzuki: bool = False


class AssessorUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    first_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    email: Optional[_Email] = None
    phone: Optional[str] = Field(default=None, max_length=50)
    type: Optional[str] = Field(default=None, max_length=50)
    is_suzuki: Optional[bool] = None


class AssessorResponse(_RecordResponse):
    first_name: str
    last_name: str
    email: str
    phone: Optional[str] = None
    type: Optional[str] = None
    is_suzuki: bool = False


# ---------------------------------------------------------------------------
# Privilege
# ---------------------------------------------------------------------------


class PrivilegeCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    code: str = Field(min_length=1, max_length=50)
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)


class PrivilegeUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    code: Optional[str] = Field(default=None, min_length=1, max_length=50)
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)


class PrivilegeResponse(_RecordResponse):
    code: str
    name: str
    description: Optional[str] = None


# ---------------------------------------------------------------------------
# Language
# ---------------------------------------------------------------------------


class LanguageCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=100)
    code: _LanguageCode = None


class LanguageUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    code: _LanguageCode = None


class LanguageResponse(_RecordResponse):
    name: str
    code: Optional[str] = None


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class UserCreate(BaseModel):
    """Request body for POST /user.

    username and password are Optional here so that a missing value is
    reported as MISSING_FIELDS by auth/credentials.py rather than as a generic
    validation error. The password is never stripped.
    """

    username: Optional[str] = Field(default=None, max_length=100)
    password: Optional[str] = None
    first_name: Optional[str] = Field(default=None, max_length=100)
    last_name: Optional[str] = Field(default=None, max_length=100)
    role_id: Optional[_ObjectId] = None
    assessor_id: Optional[_ObjectId] = None
    is_active: bool = True


class UserUpdate(BaseModel):
    """Request body for PUT /user/{id}. There is no password field; see PUT /auth/change-password."""

    model_config = ConfigDict(str_strip_whitespace=True)

    username: Optional[str] = Field(default=None, min_length=1, max_length=100)
    first_name: Optional[str] = Field(default=None, max_length=100)
    last_name: Optional[str] = Field(default=None, max_length=100)
    role_id: Optional[_ObjectId] = None
    assessor_id: Optional[_ObjectId] = None
    is_active: Optional[bool] = None


class UserResponse(_RecordResponse):
    """A credential as seen by clients. Has no password field of any kind."""

    username: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role_id: _Ref = None
    assessor_id: _Ref = None
    is_active: bool = True


class UserCreatedResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str
    user: UserResponse


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


class LoginRequest(BaseModel):
    """Request body for POST /auth/login. Missing values become MISSING_CREDENTIALS."""

    username: Optional[str] = None
    password: Optional[str] = None


class LoginResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    success: bool = True
    token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserResponse


class ChangePasswordRequest(BaseModel):
    current_password: Optional[str] = None
    new_password: Optional[str] = None


class RefreshResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    success: bool = True
    token: str
    token_type: str = "bearer"
    expires_in: int


class IdentityResponse(BaseModel):
    """The authenticated caller, as attached by the Access Guard."""

    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: str
    username: str
    display_name: str
    role_id: Optional[str] = None


class VerifyResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    success: bool = True
    valid: bool = True
    user: IdentityResponse


class SetupStatusResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    first_user_required: bool
    user_count: int
