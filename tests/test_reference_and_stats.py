from __future__ import annotations

import os
import unittest
from datetime import datetime, timedelta, timezone
from unittest.mock import patch
from uuid import uuid4

from fastapi.testclient import TestClient
from sqlalchemy import create_engine, select, text
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from lgu_sso.db import Base, get_db
from lgu_sso.main import app
from lgu_sso.models import AccessGrant, AuditAction, AuditLog, Location, LocationLevel, Office, Role
from lgu_sso.security import reset_login_attempts, verify_password
from lgu_sso.services.bootstrap import DASHBOARD_APPLICATION_NAME, bootstrap_admin
from lgu_sso.services.db_health import expected_head, run_checks
from lgu_sso.services.reference_data import import_reference_data
from lgu_sso.services.stats import dashboard_stats
from lgu_sso.settings import get_settings
from support import SqliteDatabase, login_headers, make_application, make_employee, make_super_admin

REFERENCE_PAYLOAD = {
    "offices": [
        {"name": "Municipal Treasurer's Office", "abbreviation": "MTO"},
        {"name": "Human Resource Management Office", "abbreviation": "HRMO"},
    ],
    "locations": [
        {"code": "012801001", "name": "Adams Poblacion", "level": "barangay", "parent_code": "012801"},
        {"code": "012801", "name": "Adams", "level": "city", "parent_code": "0128"},
        {"code": "0128", "name": "Ilocos Norte", "level": "province", "parent_code": "01"},
        {"code": "01", "name": "Ilocos Region", "level": "region"},
    ],
}


class DashboardStatsTests(unittest.TestCase):
    def setUp(self) -> None:
        get_settings.cache_clear()
        self.database = SqliteDatabase()
        self.db = self.database.session()

    def tearDown(self) -> None:
        self.db.close()
        self.database.dispose()

    def test_counts_and_recent_logins(self) -> None:
        now = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)
        make_employee(self.db, email="one@lgu.gov.ph")
        make_employee(self.db, email="two@lgu.gov.ph", is_active=False)
        make_application(self.db, name="Payroll")
        make_application(self.db, name="Legacy", is_active=False)
        self.db.add_all(
            [
                AuditLog(action=AuditAction.LOGIN.value, created_at=now - timedelta(days=1), details={}),
                AuditLog(action=AuditAction.LOGIN.value, created_at=now - timedelta(days=8), details={}),
                AuditLog(action=AuditAction.LOGOUT.value, created_at=now - timedelta(hours=1), details={}),
            ]
        )
        self.db.commit()

        stats = dashboard_stats(self.db, now=now)

        self.assertEqual(stats.totalEmployees, 2)
        self.assertEqual(stats.activeEmployees, 1)
        self.assertEqual(stats.totalApplications, 2)
        self.assertEqual(stats.activeApplications, 1)
        self.assertEqual(stats.recentLogins, 1)


class ReferenceEndpointTests(unittest.TestCase):
    def setUp(self) -> None:
        get_settings.cache_clear()
        reset_login_attempts()
        self.database = SqliteDatabase()
        self.db = self.database.session()
        app.dependency_overrides[get_db] = self.database.override_get_db()
        self.client = TestClient(app)
        make_super_admin(self.db)
        import_reference_data(self.db, REFERENCE_PAYLOAD)
        self.headers = login_headers(self.client)

    def tearDown(self) -> None:
        app.dependency_overrides.clear()
        reset_login_attempts()
        self.db.close()
        self.database.dispose()

    def test_location_tree(self) -> None:
        regions = self.client.get("/api/v1/locations/regions", headers=self.headers).json()["data"]
        cities = self.client.get("/api/v1/locations/provinces/0128/cities", headers=self.headers).json()["data"]
        barangays = self.client.get("/api/v1/locations/cities/012801/barangays", headers=self.headers).json()["data"]

        self.assertEqual(regions, [{"code": "01", "name": "Ilocos Region"}])
        self.assertEqual(cities, [{"code": "012801", "name": "Adams"}])
        self.assertEqual(barangays, [{"code": "012801001", "name": "Adams Poblacion"}])

    def test_unknown_parent_is_404(self) -> None:
        response = self.client.get("/api/v1/locations/provinces/9999/cities", headers=self.headers)
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["code"], "NOT_FOUND")

    def test_offices(self) -> None:
        offices = self.client.get("/api/v1/offices", headers=self.headers).json()["data"]
        self.assertEqual([item["abbreviation"] for item in offices], ["HRMO", "MTO"])

        single = self.client.get(f"/api/v1/offices/{offices[0]['id']}", headers=self.headers)
        self.assertEqual(single.json()["data"]["name"], "Human Resource Management Office")
        self.assertEqual(self.client.get("/api/v1/offices/999", headers=self.headers).status_code, 404)

    def test_dashboard_stats_endpoint(self) -> None:
        response = self.client.get("/api/v1/stats/dashboard", headers=self.headers)

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["totalEmployees"], 1)
        self.assertEqual(body["recentLogins"], 1)

    def test_reference_routes_require_a_session(self) -> None:
        self.assertEqual(self.client.get("/api/v1/offices").status_code, 401)


class ReferenceImportTests(unittest.TestCase):
    def setUp(self) -> None:
        self.database = SqliteDatabase()
        self.db = self.database.session()

    def tearDown(self) -> None:
        self.db.close()
        self.database.dispose()

    def test_import_is_an_upsert(self) -> None:
        first = import_reference_data(self.db, REFERENCE_PAYLOAD)
        self.assertEqual(first, {"offices": 2, "locations": 4})

        renamed = {
            "offices": [{"name": "Municipal Treasurer's Office", "abbreviation": "TREAS"}],
            "locations": [{"code": "012801", "name": "Adams Municipality", "level": "city", "parent_code": "0128"}],
        }
        import_reference_data(self.db, renamed)

        self.assertEqual(len(self.db.scalars(select(Office)).all()), 2)
        self.assertEqual(
            self.db.scalar(select(Office.abbreviation).where(Office.name == "Municipal Treasurer's Office")),
            "TREAS",
        )
        city = self.db.get(Location, "012801")
        self.assertEqual(city.name, "Adams Municipality")
        self.assertEqual(city.level, LocationLevel.CITY)
        self.assertEqual(city.parent_code, "0128")


class DbHealthTests(unittest.TestCase):
    def setUp(self) -> None:
        # Foreign keys stay off here so orphan rows can be written.
        self.engine = create_engine(
            "sqlite+pysqlite:///:memory:",
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
        Base.metadata.create_all(self.engine)

    def tearDown(self) -> None:
        self.engine.dispose()

    def _checks(self, report: dict) -> dict[str, str]:  # type: ignore[type-arg]
        return {item["name"]: item["status"] for item in report["checks"]}

    def test_expected_head(self) -> None:
        self.assertEqual(expected_head(), "0001_initial")

    def test_unstamped_database_fails(self) -> None:
        report = run_checks(self.engine, head="0001_initial")

        self.assertFalse(report["ok"])
        statuses = self._checks(report)
        self.assertEqual(statuses["alembic_version"], "fail")
        self.assertEqual(statuses["migration_up_to_date"], "warn")
        self.assertEqual(statuses["access_grant_orphan_employee"], "ok")
        self.assertEqual(statuses["application_rate_limit_range"], "ok")

    def test_orphan_grants_fail(self) -> None:
        with self.engine.begin() as conn:
            conn.execute(text("create table alembic_version (version_num varchar(32) not null primary key)"))
            conn.execute(text("insert into alembic_version (version_num) values ('0001_initial')"))
        with Session(self.engine) as db:
            db.add(AccessGrant(employee_uuid=uuid4(), application_uuid=uuid4(), role=Role.STANDARD))
            db.commit()

        report = run_checks(self.engine, head="0001_initial")

        statuses = self._checks(report)
        self.assertEqual(statuses["alembic_version"], "ok")
        self.assertEqual(statuses["migration_up_to_date"], "ok")
        self.assertEqual(statuses["access_grant_orphan_employee"], "fail")
        self.assertEqual(statuses["access_grant_orphan_application"], "fail")
        self.assertEqual(statuses["employee_session_orphan_employee"], "ok")
        self.assertFalse(report["ok"])


class BootstrapTests(unittest.TestCase):
    def setUp(self) -> None:
        self.database = SqliteDatabase()
        self.db = self.database.session()

    def tearDown(self) -> None:
        get_settings.cache_clear()
        self.db.close()
        self.database.dispose()

    def _bootstrap(self, **env: str):  # type: ignore[no-untyped-def]
        with patch.dict(os.environ, env, clear=False):
            get_settings.cache_clear()
            return bootstrap_admin(self.db)

    def test_skipped_without_credentials(self) -> None:
        with patch.dict(os.environ, {}, clear=False):
            os.environ.pop("BOOTSTRAP_ADMIN_EMAIL", None)
            os.environ.pop("BOOTSTRAP_ADMIN_PASSWORD", None)
            get_settings.cache_clear()
            self.assertIsNone(bootstrap_admin(self.db))

    def test_creates_first_super_administrator(self) -> None:
        employee = self._bootstrap(BOOTSTRAP_ADMIN_EMAIL="Root@LGU.gov.ph", BOOTSTRAP_ADMIN_PASSWORD="first-login-pass")

        self.assertIsNotNone(employee)
        self.assertEqual(employee.email, "root@lgu.gov.ph")
        self.assertTrue(verify_password("first-login-pass", employee.password_hash))
        grant = self.db.scalars(select(AccessGrant)).one()
        self.assertEqual(grant.role, Role.SUPER_ADMINISTRATOR)
        self.assertEqual(grant.application.name, DASHBOARD_APPLICATION_NAME)

    def test_noop_when_employees_exist(self) -> None:
        make_employee(self.db, email="existing@lgu.gov.ph")

        result = self._bootstrap(BOOTSTRAP_ADMIN_EMAIL="root@lgu.gov.ph", BOOTSTRAP_ADMIN_PASSWORD="first-login-pass")

        self.assertIsNone(result)
        self.assertIsNone(self.db.scalar(select(AccessGrant.id)))


if __name__ == "__main__":
    unittest.main()
