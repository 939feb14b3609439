from __future__ import annotations

from collections.abc import Generator
from datetime import date
from typing import Any

from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import lgu_sso.audit  # noqa: F401  (registers the append-only listeners)
from lgu_sso.db import Base, build_engine
from lgu_sso.models import AccessGrant, Application, CivilStatus, Employee, Role
from lgu_sso.security import hash_password, pwd_context

# Hashes are cheap in tests; production keeps passlib's default cost.
pwd_context.update(bcrypt__rounds=4)

DEFAULT_PASSWORD = "correct-horse-battery"


class SqliteDatabase:
    """Fresh in-memory schema shared by every session of one test case."""

    def __init__(self) -> None:
        self.engine = build_engine("sqlite+pysqlite:///:memory:", poolclass=StaticPool)
        Base.metadata.create_all(self.engine)
        self.sessionmaker = sessionmaker(bind=self.engine, autoflush=False)

    def session(self) -> Session:
        return self.sessionmaker()

    def override_get_db(self):  # type: ignore[no-untyped-def]
        def _override() -> Generator[Session, None, None]:
            db = self.sessionmaker()
            try:
                yield db
            finally:
                db.close()

        return _override

    def dispose(self) -> None:
        Base.metadata.drop_all(self.engine)
        self.engine.dispose()


def make_employee(db: Session, *, email: str = "admin@lgu.gov.ph", **overrides: Any) -> Employee:
    values: dict[str, Any] = {
        "email": email,
        "password_hash": hash_password(overrides.pop("password", DEFAULT_PASSWORD)),
        "first_name": "Juan",
        "middle_name": "Santos",
        "last_name": "Dela Cruz",
        "birthday": date(1990, 5, 17),
        "civil_status": CivilStatus.SINGLE,
        "nationality": "Filipino",
        "residence": "Poblacion",
        "is_active": True,
    }
    values.update(overrides)
    employee = Employee(**values)
    db.add(employee)
    db.commit()
    db.refresh(employee)
    return employee


def make_application(db: Session, *, name: str = "Payroll", client_id: str | None = None, **overrides: Any) -> Application:
    values: dict[str, Any] = {
        "name": name,
        "client_id": client_id or f"{name.lower()}-0000abcd",
        "client_secret_hash": hash_password("initial-secret"),
        "redirect_uris": ["https://payroll.lgu.gov.ph/callback"],
        "rate_limit_per_minute": 60,
        "is_active": True,
    }
    values.update(overrides)
    application = Application(**values)
    db.add(application)
    db.commit()
    db.refresh(application)
    return application


def make_grant(db: Session, employee: Employee, application: Application, role: Role) -> AccessGrant:
    grant = AccessGrant(employee_uuid=employee.uuid, application_uuid=application.uuid, role=role)
    db.add(grant)
    db.commit()
    db.refresh(grant)
    return grant


def make_super_admin(db: Session, *, email: str = "admin@lgu.gov.ph") -> tuple[Employee, Application]:
    employee = make_employee(db, email=email)
    application = make_application(db, name="Dashboard", client_id=f"dashboard-{employee.uuid.hex[:8]}")
    make_grant(db, employee, application, Role.SUPER_ADMINISTRATOR)
    return employee, application


def login_headers(client, email: str = "admin@lgu.gov.ph", password: str = DEFAULT_PASSWORD) -> dict[str, str]:  # type: ignore[no-untyped-def]
    response = client.post("/api/v1/auth/login", json={"email": email, "password": password})
    if response.status_code != 200:
        raise AssertionError(f"login failed: {response.status_code} {response.text}")
    return {"Authorization": f"Bearer {response.json()['access_token']}"}
