from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Any
from uuid import UUID

from fastapi import Request
from sqlalchemy import event, select
from sqlalchemy.orm import Session

from lgu_sso.models import Application, AuditAction, AuditLog, Employee
from lgu_sso.pagination import Page, paginate
from lgu_sso.schemas import AuditApplicationRef, AuditEmployeeRef, AuditLogRead
from lgu_sso.security import client_ip, user_agent
from lgu_sso.settings import get_audit_timezone

logger = logging.getLogger("lgu_sso.audit")


class AuditLogImmutableError(RuntimeError):
    pass


@event.listens_for(AuditLog, "before_update")
def _reject_audit_update(_mapper, _connection, target: AuditLog) -> None:  # type: ignore[no-untyped-def]
    raise AuditLogImmutableError(f"Audit log entry {target.id} is append-only")


@event.listens_for(AuditLog, "before_delete")
def _reject_audit_delete(_mapper, _connection, target: AuditLog) -> None:  # type: ignore[no-untyped-def]
    raise AuditLogImmutableError(f"Audit log entry {target.id} is append-only")


@dataclass(frozen=True, slots=True)
class AuditContext:
    ip: str | None = None
    user_agent: str | None = None
    request_id: str | None = None
    actor_uuid: UUID | None = None

    @classmethod
    def from_request(cls, request: Request, *, actor_uuid: UUID | None = None) -> AuditContext:
        return cls(
            ip=client_ip(request),
            user_agent=user_agent(request),
            request_id=getattr(request.state, "request_id", None),
            actor_uuid=actor_uuid,
        )


@dataclass(frozen=True, slots=True)
class AuditRef:
    uuid: UUID
    name: str | None


def employee_ref(employee: Employee) -> AuditRef:
    return AuditRef(uuid=employee.uuid, name=employee.full_name)


def application_ref(application: Application) -> AuditRef:
    return AuditRef(uuid=application.uuid, name=application.name)


def _as_ref(value: Employee | Application | AuditRef | None) -> AuditRef | None:
    if value is None or isinstance(value, AuditRef):
        return value
    if isinstance(value, Employee):
        return employee_ref(value)
    return application_ref(value)


def record_audit(
    db: Session,
    action: AuditAction,
    *,
    context: AuditContext | None = None,
    employee: Employee | AuditRef | None = None,
    application: Application | AuditRef | None = None,
    metadata: dict[str, Any] | None = None,
) -> int | None:
    """Append one audit entry and commit it.

    Runs after the triggering change has been committed. A failed audit write
    is rolled back and logged; it never propagates to the caller.
    """
    context = context or AuditContext()
    employee_subject = _as_ref(employee)
    application_subject = _as_ref(application)
    details = dict(metadata or {})
    if context.actor_uuid is not None:
        details.setdefault("actor_uuid", str(context.actor_uuid))

    entry = AuditLog(
        action=AuditAction(action).value,
        employee_uuid=employee_subject.uuid if employee_subject else None,
        employee_name=employee_subject.name if employee_subject else None,
        application_uuid=application_subject.uuid if application_subject else None,
        application_name=application_subject.name if application_subject else None,
        ip_address=context.ip,
        user_agent=context.user_agent,
        details=details,
        created_at=datetime.now(timezone.utc),
    )
    db.add(entry)
    try:
        db.commit()
    except Exception:
        db.rollback()
        logger.exception(
            "audit_log_write_failed",
            extra={
                "request_id": context.request_id,
                "action": entry.action,
                "employee_uuid": str(entry.employee_uuid) if entry.employee_uuid else None,
                "application_uuid": str(entry.application_uuid) if entry.application_uuid else None,
            },
        )
        return None

    logger.info(
        "audit_event",
        extra={
            "request_id": context.request_id,
            "audit_id": entry.id,
            "action": entry.action,
            "employee_uuid": str(entry.employee_uuid) if entry.employee_uuid else None,
            "application_uuid": str(entry.application_uuid) if entry.application_uuid else None,
            "ip": context.ip,
            "user_agent": context.user_agent,
            "details": details,
        },
    )
    return entry.id


def day_bounds_utc(from_date: date | None, to_date: date | None) -> tuple[datetime | None, datetime | None]:
    """Convert an inclusive local date range into a half-open UTC range."""
    tz = get_audit_timezone()
    start = None
    end = None
    if from_date is not None:
        start = datetime.combine(from_date, time.min, tzinfo=tz).astimezone(timezone.utc)
    if to_date is not None:
        end = datetime.combine(to_date + timedelta(days=1), time.min, tzinfo=tz).astimezone(timezone.utc)
    return start, end


def query_audit_logs(
    db: Session,
    *,
    action: AuditAction | None = None,
    employee_uuid: UUID | None = None,
    application_uuid: UUID | None = None,
    from_date: date | None = None,
    to_date: date | None = None,
    page: int = 1,
    per_page: int = 15,
) -> Page[AuditLog]:
    stmt = select(AuditLog).order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
    if action is not None:
        stmt = stmt.where(AuditLog.action == AuditAction(action).value)
    if employee_uuid is not None:
        stmt = stmt.where(AuditLog.employee_uuid == employee_uuid)
    if application_uuid is not None:
        stmt = stmt.where(AuditLog.application_uuid == application_uuid)

    start, end = day_bounds_utc(from_date, to_date)
    if start is not None:
        stmt = stmt.where(AuditLog.created_at >= start)
    if end is not None:
        stmt = stmt.where(AuditLog.created_at < end)

    return paginate(db, stmt, page=page, per_page=per_page)


def to_audit_read(entry: AuditLog) -> AuditLogRead:
    try:
        action: AuditAction | str = AuditAction(entry.action)
    except ValueError:
        action = entry.action
    return AuditLogRead(
        id=entry.id,
        action=action,
        employee=AuditEmployeeRef(uuid=entry.employee_uuid, full_name=entry.employee_name)
        if entry.employee_uuid
        else None,
        application=AuditApplicationRef(uuid=entry.application_uuid, name=entry.application_name)
        if entry.application_uuid
        else None,
        ip_address=entry.ip_address,
        user_agent=entry.user_agent,
        metadata=entry.details or {},
        created_at=entry.created_at,
    )
