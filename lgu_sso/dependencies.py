from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from lgu_sso.audit import AuditContext
from lgu_sso.db import get_db
from lgu_sso.errors import Forbidden, Unauthenticated
from lgu_sso.models import Employee
from lgu_sso.security import bearer_scheme
from lgu_sso.services.access_grants import has_super_administrator_grant
from lgu_sso.services.auth_gate import SUPER_ADMIN_REQUIRED
from lgu_sso.services.credentials import validate_session


@dataclass(frozen=True, slots=True)
class AuthSession:
    employee: Employee
    claims: dict[str, Any]

    @property
    def jti(self) -> str:
        return str(self.claims["jti"])

    def audit_context(self, request: Request) -> AuditContext:
        return AuditContext.from_request(request, actor_uuid=self.employee.uuid)


def require_session(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> AuthSession:
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise Unauthenticated("Missing bearer token.", code="INVALID_TOKEN")

    employee, claims = validate_session(db, credentials.credentials)

    request.state.actor = "employee"
    request.state.actor_id = str(employee.uuid)
    return AuthSession(employee=employee, claims=claims)


def require_super_admin(
    session: AuthSession = Depends(require_session),
    db: Session = Depends(get_db),
) -> AuthSession:
    # Grants can be revoked while a token is still live.
    if not has_super_administrator_grant(db, session.employee.uuid):
        raise Forbidden(SUPER_ADMIN_REQUIRED)
    return session
