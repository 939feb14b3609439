from __future__ import annotations

from collections.abc import Sequence
from datetime import date
from typing import Any, Literal
from uuid import UUID

from sqlalchemy import String, func, literal, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from lgu_sso.audit import AuditContext, employee_ref, record_audit
from lgu_sso.errors import Conflict, NotFound, ValidationFailed
from lgu_sso.models import AccessGrant, AuditAction, Employee, Location, Office
from lgu_sso.pagination import Page, paginate
from lgu_sso.schemas import (
    AuthUserRead,
    EmployeeApplicationRead,
    EmployeeCreate,
    EmployeeRead,
    EmployeeUpdate,
    LocationRead,
    OfficeRead,
)
from lgu_sso.security import hash_password
from lgu_sso.services.reference_data import ADDRESS_LEVELS, load_locations, validate_address

EMAIL_TAKEN = "Email already exists."
NULLABLE_TEXT_FIELDS = ("middle_name", "suffix", "block_number", "building_floor", "house_number", "position")


def normalize_email(email: str) -> str:
    return email.strip().lower()


def get_employee(db: Session, employee_uuid: UUID) -> Employee:
    employee = db.get(Employee, employee_uuid)
    if employee is None:
        raise NotFound("Employee not found.")
    return employee


def find_by_email(db: Session, email: str) -> Employee | None:
    return db.scalar(select(Employee).where(Employee.email == normalize_email(email)))


def _contains_pattern(term: str) -> str:
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _optional_part(column: Any) -> Any:
    # ' ' || NULL is NULL, so a blank or missing part contributes nothing.
    trimmed = func.nullif(func.trim(column, type_=String), "", type_=String)
    return func.coalesce(literal(" ").concat(trimmed), "", type_=String)


def _full_name_expression() -> Any:
    """SQL rendering of ``Employee.full_name``: first, middle, last, suffix, blanks skipped."""
    return (
        func.trim(Employee.first_name, type_=String)
        .concat(_optional_part(Employee.middle_name))
        .concat(literal(" "))
        .concat(func.trim(Employee.last_name, type_=String))
        .concat(_optional_part(Employee.suffix))
    )


def list_employees(
    db: Session,
    *,
    search: str | None = None,
    status: Literal["active", "inactive"] | None = None,
    page: int = 1,
    per_page: int = 15,
) -> Page[Employee]:
    stmt = (
        select(Employee)
        .options(selectinload(Employee.office))
        .order_by(Employee.created_at.desc(), Employee.last_name.asc())
    )
    term = (search or "").strip()
    if term:
        pattern = _contains_pattern(term.lower())
        stmt = stmt.where(
            or_(
                func.lower(_full_name_expression()).like(pattern, escape="\\"),
                func.lower(Employee.first_name + " " + Employee.last_name).like(pattern, escape="\\"),
                Employee.email.like(pattern, escape="\\"),
            )
        )
    if status == "active":
        stmt = stmt.where(Employee.is_active.is_(True))
    elif status == "inactive":
        stmt = stmt.where(Employee.is_active.is_(False))
    return paginate(db, stmt, page=page, per_page=per_page)


def _clean_optional(value: str | None) -> str | None:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


def _validate_office(db: Session, office_id: int | None) -> None:
    if office_id is not None and db.get(Office, office_id) is None:
        raise ValidationFailed.for_field("office_id", "The selected office_id is invalid.")


def _validate_dates(*, birthday: date | None, date_employed: date | None, date_terminated: date | None) -> None:
    if birthday is not None and birthday > date.today():
        raise ValidationFailed.for_field("birthday", "The birthday must be a date before today.")
    if date_employed and date_terminated and date_terminated < date_employed:
        raise ValidationFailed.for_field(
            "date_terminated",
            "The date_terminated must be a date after or equal to date_employed.",
        )


def create_employee(db: Session, payload: EmployeeCreate, *, context: AuditContext | None = None) -> Employee:
    email = normalize_email(payload.email)
    if find_by_email(db, email) is not None:
        raise Conflict(EMAIL_TAKEN, errors={"email": [EMAIL_TAKEN]})

    data = payload.model_dump(exclude={"password", "email"})
    _validate_office(db, payload.office_id)
    validate_address(db, data)
    _validate_dates(
        birthday=payload.birthday,
        date_employed=payload.date_employed,
        date_terminated=payload.date_terminated,
    )
    for field in NULLABLE_TEXT_FIELDS:
        data[field] = _clean_optional(data.get(field))

    employee = Employee(
        **data,
        email=email,
        password_hash=hash_password(payload.password),
        is_active=True,
    )
    db.add(employee)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict(EMAIL_TAKEN, errors={"email": [EMAIL_TAKEN]})
    db.refresh(employee)

    record_audit(
        db,
        AuditAction.EMPLOYEE_CREATED,
        context=context,
        employee=employee,
        metadata={"email": employee.email},
    )
    return employee


def update_employee(
    db: Session,
    employee_uuid: UUID,
    payload: EmployeeUpdate,
    *,
    context: AuditContext | None = None,
) -> Employee:
    employee = get_employee(db, employee_uuid)
    changes = payload.model_dump(exclude_unset=True)

    if changes.get("email") is not None:
        email = normalize_email(changes["email"])
        duplicate = db.scalar(select(Employee).where(Employee.email == email, Employee.uuid != employee.uuid))
        if duplicate is not None:
            raise Conflict(EMAIL_TAKEN, errors={"email": [EMAIL_TAKEN]})
        changes["email"] = email

    if "office_id" in changes:
        _validate_office(db, changes["office_id"])

    if any(field in changes for field, _, _ in ADDRESS_LEVELS):
        merged_address = {field: getattr(employee, field) for field, _, _ in ADDRESS_LEVELS}
        merged_address.update({field: changes[field] for field, _, _ in ADDRESS_LEVELS if field in changes})
        validate_address(db, merged_address)

    _validate_dates(
        birthday=changes.get("birthday"),
        date_employed=changes.get("date_employed", employee.date_employed),
        date_terminated=changes.get("date_terminated", employee.date_terminated),
    )

    required_fields = {"first_name", "last_name", "birthday", "civil_status", "residence", "nationality", "email", "is_active"}
    for field, value in changes.items():
        if value is None and field in required_fields:
            continue
        if field in NULLABLE_TEXT_FIELDS:
            value = _clean_optional(value)
        setattr(employee, field, value)

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict(EMAIL_TAKEN, errors={"email": [EMAIL_TAKEN]})
    db.refresh(employee)

    record_audit(
        db,
        AuditAction.EMPLOYEE_UPDATED,
        context=context,
        employee=employee,
        metadata={"changed": sorted(changes)},
    )
    return employee


def delete_employee(db: Session, employee_uuid: UUID, *, context: AuditContext | None = None) -> None:
    employee = get_employee(db, employee_uuid)
    if context is not None and context.actor_uuid == employee.uuid:
        raise Conflict("You cannot delete your own account.")

    subject = employee_ref(employee)
    email = employee.email
    revoked_grants = len(employee.grants)

    # Grants and sessions go in the same commit through the ORM cascade and ON DELETE CASCADE.
    db.delete(employee)
    db.commit()

    record_audit(
        db,
        AuditAction.EMPLOYEE_DELETED,
        context=context,
        employee=subject,
        metadata={"email": email, "revoked_grants": revoked_grants},
    )


def _location_read(locations: dict[str, Location], code: str | None) -> LocationRead | None:
    if not code:
        return None
    location = locations.get(code)
    if location is None:
        return None
    return LocationRead(code=location.code, name=location.name)


def _build_employee_read(employee: Employee, locations: dict[str, Location], today: date) -> dict[str, Any]:
    return {
        "uuid": employee.uuid,
        "first_name": employee.first_name,
        "middle_name": employee.middle_name,
        "last_name": employee.last_name,
        "suffix": employee.suffix,
        "full_name": employee.full_name,
        "initials": employee.initials,
        "birthday": employee.birthday,
        "age": employee.age_on(today),
        "civil_status": employee.civil_status,
        "email": employee.email,
        "is_active": employee.is_active,
        "nationality": employee.nationality,
        "residence": employee.residence,
        "block_number": employee.block_number,
        "building_floor": employee.building_floor,
        "house_number": employee.house_number,
        "region": _location_read(locations, employee.region_code),
        "province": _location_read(locations, employee.province_code),
        "city": _location_read(locations, employee.city_code),
        "barangay": _location_read(locations, employee.barangay_code),
        "office": OfficeRead.model_validate(employee.office) if employee.office else None,
        "position": employee.position,
        "date_employed": employee.date_employed,
        "date_terminated": employee.date_terminated,
        "created_at": employee.created_at,
        "updated_at": employee.updated_at,
    }


def _address_codes(employees: Sequence[Employee]) -> list[str | None]:
    return [getattr(employee, field) for employee in employees for field, _, _ in ADDRESS_LEVELS]


def to_employee_reads(db: Session, employees: Sequence[Employee]) -> list[EmployeeRead]:
    locations = load_locations(db, _address_codes(employees))
    today = date.today()
    return [EmployeeRead(**_build_employee_read(employee, locations, today)) for employee in employees]


def to_employee_read(db: Session, employee: Employee) -> EmployeeRead:
    return to_employee_reads(db, [employee])[0]


def to_auth_user_read(db: Session, employee: Employee, grants: Sequence[AccessGrant]) -> AuthUserRead:
    locations = load_locations(db, _address_codes([employee]))
    payload = _build_employee_read(employee, locations, date.today())
    payload["applications"] = [
        EmployeeApplicationRead(uuid=grant.application_uuid, name=grant.application.name, role=grant.role)
        for grant in grants
    ]
    return AuthUserRead(**payload)
