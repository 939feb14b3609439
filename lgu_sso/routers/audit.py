from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from lgu_sso.audit import query_audit_logs, to_audit_read
from lgu_sso.db import get_db
from lgu_sso.dependencies import AuthSession, require_super_admin
from lgu_sso.errors import ValidationFailed
from lgu_sso.models import AuditAction
from lgu_sso.pagination import DEFAULT_PER_PAGE, MAX_PER_PAGE, build_meta
from lgu_sso.schemas import AuditLogRead, PaginatedResponse

router = APIRouter(prefix="/audit", tags=["audit"])


@router.get("/logs", response_model=PaginatedResponse[AuditLogRead])
def list_audit_logs(
    request: Request,
    action: AuditAction | None = Query(default=None),
    employee_uuid: UUID | None = Query(default=None),
    application_uuid: UUID | None = Query(default=None),
    from_date: date | None = Query(default=None, alias="from"),
    to_date: date | None = Query(default=None, alias="to"),
    page: int = Query(default=1, ge=1),
    per_page: int = Query(default=DEFAULT_PER_PAGE, ge=1, le=MAX_PER_PAGE),
    _session: AuthSession = Depends(require_super_admin),
    db: Session = Depends(get_db),
) -> PaginatedResponse[AuditLogRead]:
    if from_date and to_date and to_date < from_date:
        raise ValidationFailed.for_field("to", "The to date must be a date after or equal to from.")

    result = query_audit_logs(
        db,
        action=action,
        employee_uuid=employee_uuid,
        application_uuid=application_uuid,
        from_date=from_date,
        to_date=to_date,
        page=page,
        per_page=per_page,
    )
    meta, links = build_meta(result, request.url)
    return PaginatedResponse[AuditLogRead](
        data=[to_audit_read(entry) for entry in result.items],
        meta=meta,
        links=links,
    )
