from __future__ import annotations

import logging
import re
import secrets
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from lgu_sso.audit import AuditContext, record_audit
from lgu_sso.errors import NotFound, Unauthenticated
from lgu_sso.models import Application, AuditAction, Employee, EmployeeSession
from lgu_sso.security import create_access_token, decode_token, hash_password, verify_password

logger = logging.getLogger("lgu_sso.credentials")

CLIENT_ID_SLUG_MAX_LENGTH = 48
CLIENT_ID_SUFFIX_BYTES = 4
CLIENT_SECRET_BYTES = 32

_SLUG_PATTERN = re.compile(r"[^a-z0-9]+")


@dataclass(frozen=True, slots=True)
class IssuedSession:
    access_token: str
    expires_in: int
    claims: dict[str, Any]

    @property
    def jti(self) -> str:
        return str(self.claims["jti"])


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def slugify(name: str) -> str:
    slug = _SLUG_PATTERN.sub("-", name.strip().lower()).strip("-")
    slug = slug[:CLIENT_ID_SLUG_MAX_LENGTH].rstrip("-")
    return slug or "app"


def generate_client_id(name: str) -> str:
    return f"{slugify(name)}-{secrets.token_hex(CLIENT_ID_SUFFIX_BYTES)}"


def generate_client_secret() -> str:
    return secrets.token_urlsafe(CLIENT_SECRET_BYTES)


def regenerate_secret(db: Session, application_uuid: UUID, *, context: AuditContext | None = None) -> str:
    application = db.get(Application, application_uuid)
    if application is None:
        raise NotFound("Application not found.")

    client_secret = generate_client_secret()
    application.client_secret_hash = hash_password(client_secret)
    application.secret_rotated_at = _utcnow()
    db.commit()

    record_audit(
        db,
        AuditAction.SECRET_REGENERATED,
        context=context,
        application=application,
        metadata={"client_id": application.client_id},
    )
    return client_secret


def verify_client_credentials(db: Session, client_id: str, client_secret: str) -> Application:
    application = db.scalar(select(Application).where(Application.client_id == client_id))
    if application is None or not application.is_active:
        raise Unauthenticated("Invalid client credentials.", code="INVALID_CLIENT")
    if not verify_password(client_secret, application.client_secret_hash):
        raise Unauthenticated("Invalid client credentials.", code="INVALID_CLIENT")
    return application


def issue_session(
    db: Session,
    employee: Employee,
    *,
    context: AuditContext | None = None,
) -> IssuedSession:
    """Create a bearer token and its server-side session row. Caller commits."""
    context = context or AuditContext()
    access_token, expires_in, claims = create_access_token(employee_uuid=employee.uuid)
    db.add(
        EmployeeSession(
            jti=str(claims["jti"]),
            employee_uuid=employee.uuid,
            issued_at=datetime.fromtimestamp(int(claims["iat"]), tz=timezone.utc),
            expires_at=datetime.fromtimestamp(int(claims["exp"]), tz=timezone.utc),
            revoked_at=None,
            last_ip=context.ip,
            last_user_agent=context.user_agent,
        )
    )
    return IssuedSession(access_token=access_token, expires_in=expires_in, claims=claims)


def validate_session(db: Session, token: str) -> tuple[Employee, dict[str, Any]]:
    claims = decode_token(token)
    session_row = db.scalar(
        select(EmployeeSession).where(
            EmployeeSession.jti == str(claims["jti"]),
            EmployeeSession.revoked_at.is_(None),
            EmployeeSession.expires_at > _utcnow(),
        )
    )
    if session_row is None or str(session_row.employee_uuid) != str(claims["sub"]):
        raise Unauthenticated("Session is no longer valid.", code="INVALID_TOKEN")

    employee = db.get(Employee, session_row.employee_uuid)
    if employee is None or not employee.is_active:
        raise Unauthenticated("Session is no longer valid.", code="INVALID_TOKEN")
    return employee, claims


def revoke_session(
    db: Session,
    employee: Employee,
    jti: str,
    *,
    context: AuditContext | None = None,
    audit: bool = True,
) -> bool:
    result = db.execute(
        update(EmployeeSession)
        .where(
            EmployeeSession.jti == jti,
            EmployeeSession.employee_uuid == employee.uuid,
            EmployeeSession.revoked_at.is_(None),
        )
        .values(revoked_at=_utcnow())
    )
    db.commit()
    revoked = bool(result.rowcount)
    if audit:
        record_audit(db, AuditAction.LOGOUT, context=context, employee=employee, metadata={"jti": jti})
    return revoked


def revoke_all_sessions(db: Session, employee: Employee, *, context: AuditContext | None = None) -> int:
    result = db.execute(
        update(EmployeeSession)
        .where(
            EmployeeSession.employee_uuid == employee.uuid,
            EmployeeSession.revoked_at.is_(None),
        )
        .values(revoked_at=_utcnow())
    )
    db.commit()
    revoked_count = int(result.rowcount or 0)
    record_audit(
        db,
        AuditAction.LOGOUT_ALL,
        context=context,
        employee=employee,
        metadata={"revoked_sessions": revoked_count},
    )
    return revoked_count


def refresh_session(
    db: Session,
    employee: Employee,
    claims: dict[str, Any],
    *,
    context: AuditContext | None = None,
) -> IssuedSession:
    """Rotate the presented token: the new one is issued and the old one revoked in one commit."""
    old_jti = str(claims["jti"])
    result = db.execute(
        update(EmployeeSession)
        .where(EmployeeSession.jti == old_jti, EmployeeSession.revoked_at.is_(None))
        .values(revoked_at=_utcnow())
    )
    if not result.rowcount:
        db.rollback()
        raise Unauthenticated("Session is no longer valid.", code="INVALID_TOKEN")

    issued = issue_session(db, employee, context=context)
    db.commit()

    record_audit(
        db,
        AuditAction.TOKEN_REFRESH,
        context=context,
        employee=employee,
        metadata={"old_jti": old_jti, "new_jti": issued.jti},
    )
    return issued
