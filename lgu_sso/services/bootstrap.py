from __future__ import annotations

import logging
from datetime import date

from sqlalchemy import select
from sqlalchemy.orm import Session

from lgu_sso.models import AccessGrant, Application, CivilStatus, Employee, Role
from lgu_sso.security import hash_password
from lgu_sso.services import credentials
from lgu_sso.services.employees import normalize_email
from lgu_sso.settings import get_settings

logger = logging.getLogger("lgu_sso.bootstrap")

DASHBOARD_APPLICATION_NAME = "SSO Admin Dashboard"


def bootstrap_admin(db: Session) -> Employee | None:
    """Seed the first super administrator on an empty employee table.

    Returns the created employee, or None when bootstrap credentials are unset
    or employees already exist.
    """
    settings = get_settings()
    if not settings.bootstrap_admin_email or not settings.bootstrap_admin_password:
        return None

    existing = db.scalar(select(Employee.uuid).limit(1))
    if existing is not None:
        return None

    employee = Employee(
        email=normalize_email(settings.bootstrap_admin_email),
        password_hash=hash_password(settings.bootstrap_admin_password),
        first_name="System",
        last_name="Administrator",
        birthday=date(1970, 1, 1),
        civil_status=CivilStatus.SINGLE,
        nationality="Filipino",
        residence="N/A",
        is_active=True,
    )
    application = db.scalar(select(Application).where(Application.name == DASHBOARD_APPLICATION_NAME))
    if application is None:
        # The dashboard's own secret is never handed out; a fresh one can be issued by regeneration.
        application = Application(
            name=DASHBOARD_APPLICATION_NAME,
            description="Administrative dashboard for the single sign-on service.",
            client_id=credentials.generate_client_id(DASHBOARD_APPLICATION_NAME),
            client_secret_hash=hash_password(credentials.generate_client_secret()),
            redirect_uris=["http://localhost:3000/callback"],
            rate_limit_per_minute=60,
            is_active=True,
        )
        db.add(application)

    db.add(employee)
    db.flush()
    db.add(AccessGrant(employee_uuid=employee.uuid, application_uuid=application.uuid, role=Role.SUPER_ADMINISTRATOR))
    db.commit()

    logger.info(
        "bootstrap_admin_created",
        extra={"employee_uuid": str(employee.uuid), "application_uuid": str(application.uuid)},
    )
    return employee
