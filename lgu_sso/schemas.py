from __future__ import annotations

from datetime import date, datetime
from typing import Any, Generic, TypeVar
from urllib.parse import urlsplit
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from lgu_sso.models import AuditAction, CivilStatus, Role

T = TypeVar("T")

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


def validate_redirect_uri(value: str) -> str:
    candidate = value.strip()
    parts = urlsplit(candidate)
    if not parts.scheme or not parts.scheme[0].isalpha():
        raise ValueError(f"Redirect URI must be absolute: {value}")
    if parts.scheme.lower() in {"http", "https"} and not parts.netloc:
        raise ValueError(f"Redirect URI must include a host: {value}")
    if not parts.netloc and not parts.path:
        raise ValueError(f"Redirect URI is incomplete: {value}")
    if parts.fragment:
        raise ValueError(f"Redirect URI must not contain a fragment: {value}")
    return candidate


def _check_redirect_uris(values: list[str]) -> list[str]:
    cleaned = [validate_redirect_uri(item) for item in values]
    if not cleaned:
        raise ValueError("At least one redirect URI is required.")
    return cleaned


class DataResponse(BaseModel, Generic[T]):
    data: T


class MessageResponse(BaseModel):
    message: str


class PaginationLinks(BaseModel):
    first: str | None = None
    last: str | None = None
    prev: str | None = None
    next: str | None = None


class PaginationMeta(BaseModel):
    current_page: int
    from_: int | None = Field(default=None, alias="from")
    last_page: int
    per_page: int
    to: int | None = None
    total: int
    path: str

    model_config = ConfigDict(populate_by_name=True)


class PaginatedResponse(BaseModel, Generic[T]):
    data: list[T]
    meta: PaginationMeta
    links: PaginationLinks


# ---- auth -------------------------------------------------------------


class LoginRequest(BaseModel):
    email: str = Field(min_length=3, max_length=255)
    password: str = Field(min_length=1, max_length=128)


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int


# ---- reference data ---------------------------------------------------


class LocationRead(BaseModel):
    code: str
    name: str

    model_config = ConfigDict(from_attributes=True)


class OfficeRead(BaseModel):
    id: int
    name: str
    abbreviation: str

    model_config = ConfigDict(from_attributes=True)


# ---- employees --------------------------------------------------------


class EmployeeCreate(BaseModel):
    first_name: str = Field(min_length=1, max_length=100)
    middle_name: str | None = Field(default=None, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    suffix: str | None = Field(default=None, max_length=20)
    birthday: date
    civil_status: CivilStatus
    region_code: str | None = Field(default=None, max_length=16)
    province_code: str | None = Field(default=None, max_length=16)
    city_code: str | None = Field(default=None, max_length=16)
    barangay_code: str | None = Field(default=None, max_length=16)
    block_number: str | None = Field(default=None, max_length=50)
    building_floor: str | None = Field(default=None, max_length=50)
    house_number: str | None = Field(default=None, max_length=50)
    residence: str = Field(min_length=1, max_length=255)
    nationality: str = Field(min_length=1, max_length=100)
    email: str = Field(max_length=255, pattern=EMAIL_PATTERN)
    password: str = Field(min_length=8, max_length=128)
    office_id: int | None = Field(default=None, ge=1)
    position: str | None = Field(default=None, max_length=255)
    date_employed: date | None = None
    date_terminated: date | None = None


class EmployeeUpdate(BaseModel):
    first_name: str | None = Field(default=None, min_length=1, max_length=100)
    middle_name: str | None = Field(default=None, max_length=100)
    last_name: str | None = Field(default=None, min_length=1, max_length=100)
    suffix: str | None = Field(default=None, max_length=20)
    birthday: date | None = None
    civil_status: CivilStatus | None = None
    region_code: str | None = Field(default=None, max_length=16)
    province_code: str | None = Field(default=None, max_length=16)
    city_code: str | None = Field(default=None, max_length=16)
    barangay_code: str | None = Field(default=None, max_length=16)
    block_number: str | None = Field(default=None, max_length=50)
    building_floor: str | None = Field(default=None, max_length=50)
    house_number: str | None = Field(default=None, max_length=50)
    residence: str | None = Field(default=None, min_length=1, max_length=255)
    nationality: str | None = Field(default=None, min_length=1, max_length=100)
    email: str | None = Field(default=None, max_length=255, pattern=EMAIL_PATTERN)
    is_active: bool | None = None
    office_id: int | None = Field(default=None, ge=1)
    position: str | None = Field(default=None, max_length=255)
    date_employed: date | None = None
    date_terminated: date | None = None


class EmployeeApplicationRead(BaseModel):
    uuid: UUID
    name: str
    role: Role


class EmployeeRead(BaseModel):
    uuid: UUID
    first_name: str
    middle_name: str | None = None
    last_name: str
    suffix: str | None = None
    full_name: str
    initials: str
    birthday: date
    age: int
    civil_status: CivilStatus
    email: str
    is_active: bool
    nationality: str
    residence: str
    block_number: str | None = None
    building_floor: str | None = None
    house_number: str | None = None
    region: LocationRead | None = None
    province: LocationRead | None = None
    city: LocationRead | None = None
    barangay: LocationRead | None = None
    office: OfficeRead | None = None
    position: str | None = None
    date_employed: date | None = None
    date_terminated: date | None = None
    created_at: datetime
    updated_at: datetime


class AuthUserRead(EmployeeRead):
    applications: list[EmployeeApplicationRead] = Field(default_factory=list)


class LoginResponse(TokenResponse):
    employee: EmployeeRead


# ---- applications -----------------------------------------------------


class ApplicationCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=2000)
    redirect_uris: list[str] = Field(min_length=1, max_length=20)
    rate_limit_per_minute: int = Field(default=60, ge=1, le=1000)

    @field_validator("redirect_uris")
    @classmethod
    def _validate_redirect_uris(cls, value: list[str]) -> list[str]:
        return _check_redirect_uris(value)


class ApplicationUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=2000)
    redirect_uris: list[str] | None = Field(default=None, min_length=1, max_length=20)
    rate_limit_per_minute: int | None = Field(default=None, ge=1, le=1000)
    is_active: bool | None = None

    @field_validator("redirect_uris")
    @classmethod
    def _validate_redirect_uris(cls, value: list[str] | None) -> list[str] | None:
        if value is None:
            return None
        return _check_redirect_uris(value)


class ApplicationRead(BaseModel):
    uuid: UUID
    name: str
    description: str | None = None
    client_id: str
    redirect_uris: list[str]
    rate_limit_per_minute: int
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ApplicationWithSecretRead(ApplicationRead):
    client_secret: str


class ClientSecretRead(BaseModel):
    client_secret: str


class ApplicationEmployeeRead(BaseModel):
    uuid: UUID
    first_name: str
    last_name: str
    full_name: str
    initials: str
    email: str
    role: Role


# ---- access grants ----------------------------------------------------


class GrantApplicationAccessRequest(BaseModel):
    application_uuid: UUID
    role: Role


class GrantEmployeeAccessRequest(BaseModel):
    employee_uuid: UUID
    role: Role


class UpdateAccessRoleRequest(BaseModel):
    role: Role


# ---- audit & stats ----------------------------------------------------


class AuditEmployeeRef(BaseModel):
    uuid: UUID
    full_name: str | None = None


class AuditApplicationRef(BaseModel):
    uuid: UUID
    name: str | None = None


class AuditLogRead(BaseModel):
    id: int
    action: AuditAction | str
    employee: AuditEmployeeRef | None = None
    application: AuditApplicationRef | None = None
    ip_address: str | None = None
    user_agent: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime


class DashboardStats(BaseModel):
    totalEmployees: int
    activeEmployees: int
    totalApplications: int
    activeApplications: int
    recentLogins: int
