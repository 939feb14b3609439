from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from lgu_sso.audit import AuditContext, record_audit
from lgu_sso.errors import Conflict, NotFound
from lgu_sso.models import AccessGrant, AuditAction, Role
from lgu_sso.services.applications import get_application
from lgu_sso.services.employees import get_employee

ALREADY_GRANTED = "Employee already has access to this application."
NOT_GRANTED = "Employee does not have access to this application."


def _find_grant(db: Session, employee_uuid: UUID, application_uuid: UUID) -> AccessGrant | None:
    return db.scalar(
        select(AccessGrant).where(
            AccessGrant.employee_uuid == employee_uuid,
            AccessGrant.application_uuid == application_uuid,
        )
    )


def _require_grant(db: Session, employee_uuid: UUID, application_uuid: UUID) -> AccessGrant:
    # Anchor lookups first so a missing entity is reported as such.
    get_employee(db, employee_uuid)
    get_application(db, application_uuid)
    grant = _find_grant(db, employee_uuid, application_uuid)
    if grant is None:
        raise NotFound(NOT_GRANTED)
    return grant


def grant_access(
    db: Session,
    employee_uuid: UUID,
    application_uuid: UUID,
    role: Role,
    *,
    context: AuditContext | None = None,
) -> AccessGrant:
    employee = get_employee(db, employee_uuid)
    application = get_application(db, application_uuid)
    if not application.is_active:
        raise NotFound("Application is inactive.")

    grant = AccessGrant(employee_uuid=employee.uuid, application_uuid=application.uuid, role=Role(role))
    db.add(grant)
    try:
        db.commit()
    except IntegrityError:
        # The (employee, application) unique constraint is the authority on duplicates.
        db.rollback()
        raise Conflict(ALREADY_GRANTED)
    db.refresh(grant)

    record_audit(
        db,
        AuditAction.ACCESS_GRANTED,
        context=context,
        employee=employee,
        application=application,
        metadata={"role": grant.role.value},
    )
    return grant


def update_role(
    db: Session,
    employee_uuid: UUID,
    application_uuid: UUID,
    role: Role,
    *,
    context: AuditContext | None = None,
) -> AccessGrant:
    grant = _require_grant(db, employee_uuid, application_uuid)
    old_role = grant.role
    grant.role = Role(role)
    db.commit()
    db.refresh(grant)

    record_audit(
        db,
        AuditAction.ROLE_UPDATED,
        context=context,
        employee=grant.employee,
        application=grant.application,
        metadata={"old_role": old_role.value, "new_role": grant.role.value},
    )
    return grant


def revoke_access(
    db: Session,
    employee_uuid: UUID,
    application_uuid: UUID,
    *,
    context: AuditContext | None = None,
) -> None:
    grant = _require_grant(db, employee_uuid, application_uuid)
    employee = grant.employee
    application = grant.application
    role = grant.role

    db.delete(grant)
    db.commit()

    record_audit(
        db,
        AuditAction.ACCESS_REVOKED,
        context=context,
        employee=employee,
        application=application,
        metadata={"role": role.value},
    )


def list_by_employee(db: Session, employee_uuid: UUID) -> list[AccessGrant]:
    get_employee(db, employee_uuid)
    stmt = (
        select(AccessGrant)
        .options(selectinload(AccessGrant.application))
        .where(AccessGrant.employee_uuid == employee_uuid)
        .order_by(AccessGrant.id.asc())
    )
    return list(db.scalars(stmt).all())


def list_by_application(db: Session, application_uuid: UUID) -> list[AccessGrant]:
    get_application(db, application_uuid)
    stmt = (
        select(AccessGrant)
        .options(selectinload(AccessGrant.employee))
        .where(AccessGrant.application_uuid == application_uuid)
        .order_by(AccessGrant.id.asc())
    )
    return list(db.scalars(stmt).all())


def has_super_administrator_grant(db: Session, employee_uuid: UUID) -> bool:
    stmt = (
        select(AccessGrant.id)
        .where(
            AccessGrant.employee_uuid == employee_uuid,
            AccessGrant.role == Role.SUPER_ADMINISTRATOR,
        )
        .limit(1)
    )
    return db.scalar(stmt) is not None
