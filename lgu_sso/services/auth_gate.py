"""Login flow for the admin dashboard.

A login passes two checks in order. The credential check verifies the
account is known, active, and the password matches. The role check requires a
``super_administrator`` grant on at least one application. A token is issued
between the two checks and revoked again when the role check fails, so token
issuance alone never proves authorization.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass

from sqlalchemy.orm import Session

from lgu_sso.audit import AuditContext, record_audit
from lgu_sso.errors import Forbidden, RateLimited, Unauthenticated
from lgu_sso.models import AuditAction, Employee
from lgu_sso.security import (
    burn_password_check,
    ensure_login_attempt_allowed,
    register_login_failure,
    register_login_success,
    verify_password,
)
from lgu_sso.services import credentials
from lgu_sso.services.access_grants import has_super_administrator_grant
from lgu_sso.services.employees import find_by_email

logger = logging.getLogger("lgu_sso.auth")

INVALID_CREDENTIALS = "Invalid credentials."
SUPER_ADMIN_REQUIRED = "Access denied. Super administrator role required."


class LoginStage(str, enum.Enum):
    UNAUTHENTICATED = "unauthenticated"
    CREDENTIAL_CHECK = "credential_check"
    ROLE_CHECK = "role_check"
    AUTHENTICATED = "authenticated"
    REJECTED = "rejected"


@dataclass(frozen=True, slots=True)
class LoginResult:
    employee: Employee
    session: credentials.IssuedSession
    stage: LoginStage = LoginStage.AUTHENTICATED


def _reject_credentials(
    db: Session,
    *,
    context: AuditContext,
    employee: Employee | None,
    email: str,
    reason: str,
) -> Unauthenticated:
    if context.ip:
        register_login_failure(context.ip)
    record_audit(
        db,
        AuditAction.LOGIN_FAILED,
        context=context,
        employee=employee,
        metadata={"email": email, "reason": reason, "stage": LoginStage.CREDENTIAL_CHECK.value},
    )
    return Unauthenticated(INVALID_CREDENTIALS, code="INVALID_CREDENTIALS")


def login(db: Session, email: str, password: str, *, context: AuditContext | None = None) -> LoginResult:
    context = context or AuditContext()
    if context.ip:
        try:
            ensure_login_attempt_allowed(context.ip)
        except RateLimited:
            record_audit(
                db,
                AuditAction.LOGIN_FAILED,
                context=context,
                metadata={"reason": "TOO_MANY_ATTEMPTS"},
            )
            raise

    employee = find_by_email(db, email)
    if employee is None:
        burn_password_check(password)
        raise _reject_credentials(db, context=context, employee=None, email=email, reason="UNKNOWN_EMAIL")
    if not verify_password(password, employee.password_hash):
        raise _reject_credentials(db, context=context, employee=employee, email=email, reason="BAD_PASSWORD")
    if not employee.is_active:
        raise _reject_credentials(db, context=context, employee=employee, email=email, reason="INACTIVE")

    issued = credentials.issue_session(db, employee, context=context)
    db.commit()

    if not has_super_administrator_grant(db, employee.uuid):
        credentials.revoke_session(db, employee, issued.jti, context=context, audit=False)
        logger.info(
            "login_rejected_role",
            extra={"request_id": context.request_id, "employee_uuid": str(employee.uuid)},
        )
        record_audit(
            db,
            AuditAction.LOGIN_FAILED,
            context=context,
            employee=employee,
            metadata={
                "reason": "SUPER_ADMINISTRATOR_REQUIRED",
                "stage": LoginStage.ROLE_CHECK.value,
                "revoked_jti": issued.jti,
            },
        )
        raise Forbidden(SUPER_ADMIN_REQUIRED)

    if context.ip:
        register_login_success(context.ip)

    record_audit(db, AuditAction.LOGIN, context=context, employee=employee, metadata={"jti": issued.jti})
    return LoginResult(employee=employee, session=issued)
