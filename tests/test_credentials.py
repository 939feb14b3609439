from __future__ import annotations

import re
import unittest
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

from sqlalchemy import func, select

from lgu_sso.audit import AuditContext
from lgu_sso.errors import InternalError, NotFound, Unauthenticated
from lgu_sso.models import AuditLog, EmployeeSession
from lgu_sso.schemas import ApplicationCreate
from lgu_sso.services import credentials
from lgu_sso.services.applications import create_application
from lgu_sso.settings import get_settings
from support import SqliteDatabase, make_application, make_employee


class ClientCredentialTests(unittest.TestCase):
    def setUp(self) -> None:
        get_settings.cache_clear()
        self.database = SqliteDatabase()
        self.db = self.database.session()

    def tearDown(self) -> None:
        self.db.close()
        self.database.dispose()

    def test_generate_client_id_uses_slug_and_hex_suffix(self) -> None:
        client_id = credentials.generate_client_id("  Business Permits & Licensing!  ")
        self.assertRegex(client_id, r"^business-permits-licensing-[0-9a-f]{8}$")
        self.assertTrue(credentials.generate_client_id("***").startswith("app-"))

    def test_slug_is_capped(self) -> None:
        self.assertLessEqual(len(credentials.slugify("x" * 200)), credentials.CLIENT_ID_SLUG_MAX_LENGTH)

    def test_regenerating_twice_invalidates_the_first_secret(self) -> None:
        application = make_application(self.db)

        first = credentials.regenerate_secret(self.db, application.uuid)
        second = credentials.regenerate_secret(self.db, application.uuid)

        self.assertNotEqual(first, second)
        with self.assertRaises(Unauthenticated):
            credentials.verify_client_credentials(self.db, application.client_id, first)
        with self.assertRaises(Unauthenticated):
            credentials.verify_client_credentials(self.db, application.client_id, "initial-secret")
        verified = credentials.verify_client_credentials(self.db, application.client_id, second)
        self.assertEqual(verified.uuid, application.uuid)

        actions = self.db.scalars(select(AuditLog.action).order_by(AuditLog.id)).all()
        self.assertEqual(actions, ["secret_regenerated", "secret_regenerated"])

    def test_secret_has_256_bits_of_entropy(self) -> None:
        secret = credentials.generate_client_secret()
        self.assertGreaterEqual(len(secret), 43)
        self.assertIsNotNone(re.fullmatch(r"[A-Za-z0-9_-]+", secret))

    def test_regenerate_missing_application(self) -> None:
        application = make_application(self.db)
        application_uuid = application.uuid
        self.db.delete(application)
        self.db.commit()
        with self.assertRaises(NotFound):
            credentials.regenerate_secret(self.db, application_uuid)

    def test_inactive_application_does_not_verify(self) -> None:
        application = make_application(self.db, is_active=False)
        with self.assertRaises(Unauthenticated) as ctx:
            credentials.verify_client_credentials(self.db, application.client_id, "initial-secret")
        self.assertEqual(ctx.exception.code, "INVALID_CLIENT")

    def test_client_id_collision_is_retried(self) -> None:
        make_application(self.db, name="HR Portal", client_id="hr-portal-aaaaaaaa")
        payload = ApplicationCreate(name="HR Portal", redirect_uris=["https://hr.lgu.gov.ph/callback"])

        with patch(
            "lgu_sso.services.credentials.generate_client_id",
            side_effect=["hr-portal-aaaaaaaa", "hr-portal-bbbbbbbb"],
        ):
            with self.assertLogs("lgu_sso.applications", level="WARNING") as captured:
                application, secret = create_application(self.db, payload)

        self.assertEqual(application.client_id, "hr-portal-bbbbbbbb")
        self.assertTrue(any("client_id_collision" in line for line in captured.output))
        self.assertEqual(
            credentials.verify_client_credentials(self.db, "hr-portal-bbbbbbbb", secret).uuid,
            application.uuid,
        )

    def test_client_id_collisions_are_bounded(self) -> None:
        make_application(self.db, name="HR Portal", client_id="hr-portal-aaaaaaaa")
        payload = ApplicationCreate(name="HR Portal", redirect_uris=["https://hr.lgu.gov.ph/callback"])

        with patch(
            "lgu_sso.services.credentials.generate_client_id",
            return_value="hr-portal-aaaaaaaa",
        ) as generator:
            with self.assertLogs("lgu_sso.applications", level="ERROR") as captured:
                with self.assertRaises(InternalError) as ctx:
                    create_application(self.db, payload)

        self.assertEqual(ctx.exception.message, "Could not allocate a unique client_id.")
        self.assertEqual(captured.records[-1].getMessage(), "client_id_generation_exhausted")
        self.assertEqual(captured.records[-1].application_name, "HR Portal")
        self.assertEqual(generator.call_count, get_settings().client_id_max_attempts)
        self.assertEqual(self.db.scalar(select(func.count()).select_from(AuditLog)), 0)


class EmployeeSessionTests(unittest.TestCase):
    def setUp(self) -> None:
        get_settings.cache_clear()
        self.database = SqliteDatabase()
        self.db = self.database.session()
        self.employee = make_employee(self.db)

    def tearDown(self) -> None:
        self.db.close()
        self.database.dispose()

    def _issue(self) -> credentials.IssuedSession:
        issued = credentials.issue_session(self.db, self.employee)
        self.db.commit()
        return issued

    def test_issued_token_validates(self) -> None:
        issued = self._issue()
        employee, claims = credentials.validate_session(self.db, issued.access_token)

        self.assertEqual(employee.uuid, self.employee.uuid)
        self.assertEqual(claims["sub"], str(self.employee.uuid))
        self.assertEqual(claims["typ"], "access")
        self.assertEqual(issued.expires_in, get_settings().access_token_minutes * 60)

    def test_refresh_revokes_presented_token(self) -> None:
        issued = self._issue()
        _, claims = credentials.validate_session(self.db, issued.access_token)

        refreshed = credentials.refresh_session(self.db, self.employee, claims)

        with self.assertRaises(Unauthenticated):
            credentials.validate_session(self.db, issued.access_token)
        employee, _ = credentials.validate_session(self.db, refreshed.access_token)
        self.assertEqual(employee.uuid, self.employee.uuid)

        entry = self.db.scalars(select(AuditLog).where(AuditLog.action == "token_refresh")).one()
        self.assertEqual(entry.details["old_jti"], issued.jti)
        self.assertEqual(entry.details["new_jti"], refreshed.jti)

    def test_refreshing_a_revoked_token_fails(self) -> None:
        issued = self._issue()
        _, claims = credentials.validate_session(self.db, issued.access_token)
        credentials.revoke_session(self.db, self.employee, issued.jti)

        with self.assertRaises(Unauthenticated):
            credentials.refresh_session(self.db, self.employee, claims)

    def test_revoke_all_sessions(self) -> None:
        first = self._issue()
        second = self._issue()

        revoked = credentials.revoke_all_sessions(self.db, self.employee)

        self.assertEqual(revoked, 2)
        for issued in (first, second):
            with self.assertRaises(Unauthenticated):
                credentials.validate_session(self.db, issued.access_token)
        entry = self.db.scalars(select(AuditLog).where(AuditLog.action == "logout_all")).one()
        self.assertEqual(entry.details["revoked_sessions"], 2)

    def test_inactive_employee_session_stops_validating(self) -> None:
        issued = self._issue()
        self.employee.is_active = False
        self.db.commit()

        with self.assertRaises(Unauthenticated):
            credentials.validate_session(self.db, issued.access_token)

    def test_expired_session_row_is_rejected(self) -> None:
        issued = self._issue()
        later = datetime.now(timezone.utc) + timedelta(minutes=get_settings().access_token_minutes + 5)

        with patch("lgu_sso.services.credentials._utcnow", return_value=later):
            with self.assertRaises(Unauthenticated):
                credentials.validate_session(self.db, issued.access_token)

    def test_session_row_records_client(self) -> None:
        issued = credentials.issue_session(
            self.db,
            self.employee,
            context=AuditContext(ip="10.0.0.5", user_agent="pytest"),
        )
        self.db.commit()

        row = self.db.scalars(select(EmployeeSession).where(EmployeeSession.jti == issued.jti)).one()
        self.assertEqual(row.last_ip, "10.0.0.5")
        self.assertEqual(row.last_user_agent, "pytest")
        self.assertIsNone(row.revoked_at)


if __name__ == "__main__":
    unittest.main()
