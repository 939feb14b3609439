from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from lgu_sso.audit import AuditContext
from lgu_sso.db import get_db
from lgu_sso.dependencies import AuthSession, require_session, require_super_admin
from lgu_sso.schemas import (
    AuthUserRead,
    DataResponse,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    TokenResponse,
)
from lgu_sso.services import access_grants, auth_gate, credentials
from lgu_sso.services.employees import to_auth_user_read, to_employee_read

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=LoginResponse)
def login(
    payload: LoginRequest,
    request: Request,
    db: Session = Depends(get_db),
) -> LoginResponse:
    request.state.actor = "system"
    request.state.actor_id = "system"
    result = auth_gate.login(
        db,
        payload.email,
        payload.password,
        context=AuditContext.from_request(request),
    )
    request.state.actor = "employee"
    request.state.actor_id = str(result.employee.uuid)
    return LoginResponse(
        access_token=result.session.access_token,
        expires_in=result.session.expires_in,
        employee=to_employee_read(db, result.employee),
    )


@router.post("/logout", response_model=MessageResponse)
def logout(
    request: Request,
    session: AuthSession = Depends(require_session),
    db: Session = Depends(get_db),
) -> MessageResponse:
    credentials.revoke_session(db, session.employee, session.jti, context=session.audit_context(request))
    return MessageResponse(message="Successfully logged out.")


@router.post("/logout-all", response_model=MessageResponse)
def logout_all(
    request: Request,
    session: AuthSession = Depends(require_session),
    db: Session = Depends(get_db),
) -> MessageResponse:
    credentials.revoke_all_sessions(db, session.employee, context=session.audit_context(request))
    return MessageResponse(message="Successfully logged out from all sessions.")


@router.post("/refresh", response_model=TokenResponse)
def refresh(
    request: Request,
    session: AuthSession = Depends(require_super_admin),
    db: Session = Depends(get_db),
) -> TokenResponse:
    issued = credentials.refresh_session(
        db,
        session.employee,
        session.claims,
        context=session.audit_context(request),
    )
    return TokenResponse(access_token=issued.access_token, expires_in=issued.expires_in)


@router.get("/me", response_model=DataResponse[AuthUserRead])
def me(
    session: AuthSession = Depends(require_super_admin),
    db: Session = Depends(get_db),
) -> DataResponse[AuthUserRead]:
    grants = access_grants.list_by_employee(db, session.employee.uuid)
    return DataResponse(data=to_auth_user_read(db, session.employee, grants))
