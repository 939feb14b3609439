from typing import Literal
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from lgu_sso.db import get_db
from lgu_sso.dependencies import AuthSession, require_super_admin
from lgu_sso.pagination import DEFAULT_PER_PAGE, MAX_PER_PAGE, build_meta
from lgu_sso.schemas import (
    DataResponse,
    EmployeeApplicationRead,
    EmployeeCreate,
    EmployeeRead,
    EmployeeUpdate,
    GrantApplicationAccessRequest,
    MessageResponse,
    PaginatedResponse,
    UpdateAccessRoleRequest,
)
from lgu_sso.services import access_grants, employees

router = APIRouter(prefix="/employees", tags=["employees"])


@router.get("", response_model=PaginatedResponse[EmployeeRead])
def list_employees(
    request: Request,
    page: int = Query(default=1, ge=1),
    per_page: int = Query(default=DEFAULT_PER_PAGE, ge=1, le=MAX_PER_PAGE),
    search: str | None = Query(default=None, max_length=255),
    status_filter: Literal["active", "inactive"] | None = Query(default=None, alias="status"),
    _session: AuthSession = Depends(require_super_admin),
    db: Session = Depends(get_db),
) -> PaginatedResponse[EmployeeRead]:
    result = employees.list_employees(db, search=search, status=status_filter, page=page, per_page=per_page)
    meta, links = build_meta(result, request.url)
    return PaginatedResponse[EmployeeRead](
        data=employees.to_employee_reads(db, result.items),
        meta=meta,
        links=links,
    )


@router.post("", response_model=DataResponse[EmployeeRead], status_code=status.HTTP_201_CREATED)
def create_employee(
    payload: EmployeeCreate,
    request: Request,
    session: AuthSession = Depends(require_super_admin),
    db: Session = Depends(get_db),
) -> DataResponse[EmployeeRead]:
    employee = employees.create_employee(db, payload, context=session.audit_context(request))
    return DataResponse(data=employees.to_employee_read(db, employee))


@router.get("/{employee_uuid}", response_model=DataResponse[EmployeeRead])
def get_employee(
    employee_uuid: UUID,
    _session: AuthSession = Depends(require_super_admin),
    db: Session = Depends(get_db),
) -> DataResponse[EmployeeRead]:
    employee = employees.get_employee(db, employee_uuid)
    return DataResponse(data=employees.to_employee_read(db, employee))


@router.put("/{employee_uuid}", response_model=DataResponse[EmployeeRead])
def update_employee(
    employee_uuid: UUID,
    payload: EmployeeUpdate,
    request: Request,
    session: AuthSession = Depends(require_super_admin),
    db: Session = Depends(get_db),
) -> DataResponse[EmployeeRead]:
    employee = employees.update_employee(db, employee_uuid, payload, context=session.audit_context(request))
    return DataResponse(data=employees.to_employee_read(db, employee))


@router.delete("/{employee_uuid}", response_model=MessageResponse)
def delete_employee(
    employee_uuid: UUID,
    request: Request,
    session: AuthSession = Depends(require_super_admin),
    db: Session = Depends(get_db),
) -> MessageResponse:
    employees.delete_employee(db, employee_uuid, context=session.audit_context(request))
    return MessageResponse(message="Employee deleted successfully.")


@router.get("/{employee_uuid}/applications", response_model=DataResponse[list[EmployeeApplicationRead]])
def list_employee_applications(
    employee_uuid: UUID,
    _session: AuthSession = Depends(require_super_admin),
    db: Session = Depends(get_db),
) -> DataResponse[list[EmployeeApplicationRead]]:
    grants = access_grants.list_by_employee(db, employee_uuid)
    return DataResponse(
        data=[
            EmployeeApplicationRead(uuid=grant.application_uuid, name=grant.application.name, role=grant.role)
            for grant in grants
        ]
    )


@router.post(
    "/{employee_uuid}/applications",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
)
def grant_application_access(
    employee_uuid: UUID,
    payload: GrantApplicationAccessRequest,
    request: Request,
    session: AuthSession = Depends(require_super_admin),
    db: Session = Depends(get_db),
) -> MessageResponse:
    access_grants.grant_access(
        db,
        employee_uuid,
        payload.application_uuid,
        payload.role,
        context=session.audit_context(request),
    )
    return MessageResponse(message="Access granted.")


@router.put("/{employee_uuid}/applications/{application_uuid}", response_model=MessageResponse)
def update_application_access(
    employee_uuid: UUID,
    application_uuid: UUID,
    payload: UpdateAccessRoleRequest,
    request: Request,
    session: AuthSession = Depends(require_super_admin),
    db: Session = Depends(get_db),
) -> MessageResponse:
    access_grants.update_role(
        db,
        employee_uuid,
        application_uuid,
        payload.role,
        context=session.audit_context(request),
    )
    return MessageResponse(message="Access updated.")


@router.delete("/{employee_uuid}/applications/{application_uuid}", response_model=MessageResponse)
def revoke_application_access(
    employee_uuid: UUID,
    application_uuid: UUID,
    request: Request,
    session: AuthSession = Depends(require_super_admin),
    db: Session = Depends(get_db),
) -> MessageResponse:
    access_grants.revoke_access(db, employee_uuid, application_uuid, context=session.audit_context(request))
    return MessageResponse(message="Access revoked.")
