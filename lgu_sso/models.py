from __future__ import annotations

import enum
import uuid
from datetime import date, datetime, timezone
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from lgu_sso.db import Base

JSONType = JSON().with_variant(JSONB(), "postgresql")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    return [member.value for member in enum_cls]


class Role(str, enum.Enum):
    GUEST = "guest"
    STANDARD = "standard"
    ADMINISTRATOR = "administrator"
    SUPER_ADMINISTRATOR = "super_administrator"


class CivilStatus(str, enum.Enum):
    SINGLE = "single"
    MARRIED = "married"
    WIDOWED = "widowed"
    SEPARATED = "separated"
    DIVORCED = "divorced"


class LocationLevel(str, enum.Enum):
    REGION = "region"
    PROVINCE = "province"
    CITY = "city"
    BARANGAY = "barangay"


class AuditAction(str, enum.Enum):
    LOGIN = "login"
    LOGIN_FAILED = "login_failed"
    LOGOUT = "logout"
    LOGOUT_ALL = "logout_all"
    TOKEN_REFRESH = "token_refresh"
    TOKEN_VALIDATE = "token_validate"
    APP_AUTHORIZE = "app_authorize"
    EMPLOYEE_CREATED = "employee_created"
    EMPLOYEE_UPDATED = "employee_updated"
    EMPLOYEE_DELETED = "employee_deleted"
    APPLICATION_CREATED = "application_created"
    APPLICATION_UPDATED = "application_updated"
    APPLICATION_DELETED = "application_deleted"
    SECRET_REGENERATED = "secret_regenerated"
    ACCESS_GRANTED = "access_granted"
    ACCESS_REVOKED = "access_revoked"
    ROLE_UPDATED = "role_updated"


class Office(Base):
    __tablename__ = "offices"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    abbreviation: Mapped[str] = mapped_column(String(32), nullable=False)

    employees: Mapped[list[Employee]] = relationship(back_populates="office")


class Location(Base):
    __tablename__ = "locations"

    code: Mapped[str] = mapped_column(String(16), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    level: Mapped[LocationLevel] = mapped_column(
        Enum(LocationLevel, name="location_level", values_callable=_enum_values),
        nullable=False,
        index=True,
    )
    parent_code: Mapped[str | None] = mapped_column(
        ForeignKey("locations.code", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )


class Employee(Base):
    __tablename__ = "employees"

    uuid: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    middle_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    suffix: Mapped[str | None] = mapped_column(String(20), nullable=True)
    birthday: Mapped[date] = mapped_column(Date, nullable=False)
    civil_status: Mapped[CivilStatus] = mapped_column(
        Enum(CivilStatus, name="civil_status", values_callable=_enum_values),
        nullable=False,
    )
    nationality: Mapped[str] = mapped_column(String(100), nullable=False)
    residence: Mapped[str] = mapped_column(String(255), nullable=False)
    block_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    building_floor: Mapped[str | None] = mapped_column(String(50), nullable=True)
    house_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    region_code: Mapped[str | None] = mapped_column(String(16), nullable=True)
    province_code: Mapped[str | None] = mapped_column(String(16), nullable=True)
    city_code: Mapped[str | None] = mapped_column(String(16), nullable=True)
    barangay_code: Mapped[str | None] = mapped_column(String(16), nullable=True)
    office_id: Mapped[int | None] = mapped_column(
        ForeignKey("offices.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    position: Mapped[str | None] = mapped_column(String(255), nullable=True)
    date_employed: Mapped[date | None] = mapped_column(Date, nullable=True)
    date_terminated: Mapped[date | None] = mapped_column(Date, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=text("true"))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=_utcnow,
    )

    office: Mapped[Office | None] = relationship(back_populates="employees")
    grants: Mapped[list[AccessGrant]] = relationship(
        back_populates="employee",
        cascade="all, delete-orphan",
        order_by="AccessGrant.id",
    )
    sessions: Mapped[list[EmployeeSession]] = relationship(
        back_populates="employee",
        cascade="all, delete-orphan",
    )

    @property
    def full_name(self) -> str:
        parts = (self.first_name, self.middle_name, self.last_name, self.suffix)
        return " ".join(part.strip() for part in parts if part and part.strip())

    @property
    def initials(self) -> str:
        parts = (self.first_name, self.middle_name, self.last_name)
        return ".".join(part.strip()[0].upper() for part in parts if part and part.strip())

    def age_on(self, today: date) -> int:
        years = today.year - self.birthday.year
        if (today.month, today.day) < (self.birthday.month, self.birthday.day):
            years -= 1
        return max(years, 0)

    @property
    def age(self) -> int:
        return self.age_on(date.today())


class Application(Base):
    __tablename__ = "applications"
    __table_args__ = (
        CheckConstraint("rate_limit_per_minute BETWEEN 1 AND 1000", name="ck_applications_rate_limit_range"),
    )

    uuid: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    client_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True, index=True)
    client_secret_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    redirect_uris: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)
    rate_limit_per_minute: Mapped[int] = mapped_column(Integer, nullable=False, default=60, server_default=text("60"))
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=text("true"))
    secret_rotated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=_utcnow,
    )

    grants: Mapped[list[AccessGrant]] = relationship(
        back_populates="application",
        cascade="all, delete-orphan",
        order_by="AccessGrant.id",
    )


class AccessGrant(Base):
    __tablename__ = "access_grants"
    __table_args__ = (
        UniqueConstraint("employee_uuid", "application_uuid", name="uq_access_grants_employee_application"),
    )

    # Insertion sequence for listing order; the (employee, application) pair is the identity.
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    employee_uuid: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("employees.uuid", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    application_uuid: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("applications.uuid", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    role: Mapped[Role] = mapped_column(
        Enum(Role, name="access_role", values_callable=_enum_values),
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=_utcnow,
    )

    employee: Mapped[Employee] = relationship(back_populates="grants")
    application: Mapped[Application] = relationship(back_populates="grants")


class EmployeeSession(Base):
    __tablename__ = "employee_sessions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    jti: Mapped[str] = mapped_column(String(64), nullable=False, unique=True, index=True)
    employee_uuid: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("employees.uuid", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    issued_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    revoked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_ip: Mapped[str | None] = mapped_column(String(128), nullable=True)
    last_user_agent: Mapped[str | None] = mapped_column(String(1024), nullable=True)

    employee: Mapped[Employee] = relationship(back_populates="sessions")


class AuditLog(Base):
    __tablename__ = "audit_logs"
    __table_args__ = {"sqlite_autoincrement": True}

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    action: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    employee_uuid: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True, index=True)
    employee_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    application_uuid: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True, index=True)
    application_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(128), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    details: Mapped[dict[str, Any]] = mapped_column("metadata", JSONType, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
        index=True,
    )
