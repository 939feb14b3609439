from uuid import UUID

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from lgu_sso.db import get_db
from lgu_sso.dependencies import AuthSession, require_super_admin
from lgu_sso.schemas import (
    ApplicationCreate,
    ApplicationEmployeeRead,
    ApplicationRead,
    ApplicationUpdate,
    ApplicationWithSecretRead,
    ClientSecretRead,
    DataResponse,
    GrantEmployeeAccessRequest,
    MessageResponse,
    UpdateAccessRoleRequest,
)
from lgu_sso.services import access_grants, applications, credentials

router = APIRouter(prefix="/applications", tags=["applications"])


@router.get("", response_model=DataResponse[list[ApplicationRead]])
def list_applications(
    _session: AuthSession = Depends(require_super_admin),
    db: Session = Depends(get_db),
) -> DataResponse[list[ApplicationRead]]:
    items = applications.list_applications(db)
    return DataResponse(data=[ApplicationRead.model_validate(item) for item in items])


@router.post("", response_model=DataResponse[ApplicationWithSecretRead], status_code=status.HTTP_201_CREATED)
def create_application(
    payload: ApplicationCreate,
    request: Request,
    session: AuthSession = Depends(require_super_admin),
    db: Session = Depends(get_db),
) -> DataResponse[ApplicationWithSecretRead]:
    application, client_secret = applications.create_application(db, payload, context=session.audit_context(request))
    read = ApplicationRead.model_validate(application)
    return DataResponse(data=ApplicationWithSecretRead(**read.model_dump(), client_secret=client_secret))


@router.get("/{application_uuid}", response_model=DataResponse[ApplicationRead])
def get_application(
    application_uuid: UUID,
    _session: AuthSession = Depends(require_super_admin),
    db: Session = Depends(get_db),
) -> DataResponse[ApplicationRead]:
    application = applications.get_application(db, application_uuid)
    return DataResponse(data=ApplicationRead.model_validate(application))


@router.put("/{application_uuid}", response_model=DataResponse[ApplicationRead])
def update_application(
    application_uuid: UUID,
    payload: ApplicationUpdate,
    request: Request,
    session: AuthSession = Depends(require_super_admin),
    db: Session = Depends(get_db),
) -> DataResponse[ApplicationRead]:
    application = applications.update_application(
        db,
        application_uuid,
        payload,
        context=session.audit_context(request),
    )
    return DataResponse(data=ApplicationRead.model_validate(application))


@router.delete("/{application_uuid}", response_model=MessageResponse)
def delete_application(
    application_uuid: UUID,
    request: Request,
    session: AuthSession = Depends(require_super_admin),
    db: Session = Depends(get_db),
) -> MessageResponse:
    applications.delete_application(db, application_uuid, context=session.audit_context(request))
    return MessageResponse(message="Application deleted successfully.")


@router.post("/{application_uuid}/regenerate-secret", response_model=DataResponse[ClientSecretRead])
def regenerate_secret(
    application_uuid: UUID,
    request: Request,
    session: AuthSession = Depends(require_super_admin),
    db: Session = Depends(get_db),
) -> DataResponse[ClientSecretRead]:
    client_secret = credentials.regenerate_secret(db, application_uuid, context=session.audit_context(request))
    return DataResponse(data=ClientSecretRead(client_secret=client_secret))


@router.get("/{application_uuid}/employees", response_model=DataResponse[list[ApplicationEmployeeRead]])
def list_application_employees(
    application_uuid: UUID,
    _session: AuthSession = Depends(require_super_admin),
    db: Session = Depends(get_db),
) -> DataResponse[list[ApplicationEmployeeRead]]:
    grants = access_grants.list_by_application(db, application_uuid)
    return DataResponse(
        data=[
            ApplicationEmployeeRead(
                uuid=grant.employee.uuid,
                first_name=grant.employee.first_name,
                last_name=grant.employee.last_name,
                full_name=grant.employee.full_name,
                initials=grant.employee.initials,
                email=grant.employee.email,
                role=grant.role,
            )
            for grant in grants
        ]
    )


@router.post(
    "/{application_uuid}/employees",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
)
def grant_employee_access(
    application_uuid: UUID,
    payload: GrantEmployeeAccessRequest,
    request: Request,
    session: AuthSession = Depends(require_super_admin),
    db: Session = Depends(get_db),
) -> MessageResponse:
    access_grants.grant_access(
        db,
        payload.employee_uuid,
        application_uuid,
        payload.role,
        context=session.audit_context(request),
    )
    return MessageResponse(message="Access granted.")


@router.put("/{application_uuid}/employees/{employee_uuid}", response_model=MessageResponse)
def update_employee_access(
    application_uuid: UUID,
    employee_uuid: UUID,
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


@router.delete("/{application_uuid}/employees/{employee_uuid}", response_model=MessageResponse)
def revoke_employee_access(
    application_uuid: UUID,
    employee_uuid: UUID,
    request: Request,
    session: AuthSession = Depends(require_super_admin),
    db: Session = Depends(get_db),
) -> MessageResponse:
    access_grants.revoke_access(db, employee_uuid, application_uuid, context=session.audit_context(request))
    return MessageResponse(message="Access revoked.")
