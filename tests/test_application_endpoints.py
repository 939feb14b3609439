from __future__ import annotations

import unittest

from fastapi.testclient import TestClient
from sqlalchemy import select

from lgu_sso.db import get_db
from lgu_sso.errors import Unauthenticated
from lgu_sso.main import app
from lgu_sso.models import AuditLog
from lgu_sso.security import reset_login_attempts
from lgu_sso.services.credentials import verify_client_credentials
from lgu_sso.settings import get_settings
from support import SqliteDatabase, login_headers, make_employee, make_super_admin

BASE_URL = "/api/v1/applications"


class ApplicationEndpointTests(unittest.TestCase):
    def setUp(self) -> None:
        get_settings.cache_clear()
        reset_login_attempts()
        self.database = SqliteDatabase()
        self.db = self.database.session()
        app.dependency_overrides[get_db] = self.database.override_get_db()
        self.client = TestClient(app)
        self.admin, self.dashboard = make_super_admin(self.db)
        self.headers = login_headers(self.client)

    def tearDown(self) -> None:
        app.dependency_overrides.clear()
        reset_login_attempts()
        self.db.close()
        self.database.dispose()

    def _create(self, **overrides) -> dict:  # type: ignore[no-untyped-def]
        payload = {
            "name": "Business Permits",
            "description": "Permit issuance portal",
            "redirect_uris": ["https://permits.lgu.gov.ph/callback"],
        }
        payload.update(overrides)
        return self.client.post(BASE_URL, json=payload, headers=self.headers)

    def test_create_returns_secret_once(self) -> None:
        response = self._create()

        self.assertEqual(response.status_code, 201)
        data = response.json()["data"]
        self.assertRegex(data["client_id"], r"^business-permits-[0-9a-f]{8}$")
        self.assertTrue(data["client_secret"])
        self.assertEqual(data["rate_limit_per_minute"], 60)
        self.assertTrue(data["is_active"])

        fetched = self.client.get(f"{BASE_URL}/{data['uuid']}", headers=self.headers)
        self.assertEqual(fetched.status_code, 200)
        self.assertNotIn("client_secret", fetched.json()["data"])
        self.assertNotIn("client_secret_hash", fetched.json()["data"])

        verified = verify_client_credentials(self.db, data["client_id"], data["client_secret"])
        self.assertEqual(str(verified.uuid), data["uuid"])

        entry = self.db.scalars(select(AuditLog).where(AuditLog.action == "application_created")).one()
        self.assertEqual(entry.application_name, "Business Permits")
        self.assertEqual(entry.details["actor_uuid"], str(self.admin.uuid))

    def test_rate_limit_round_trips(self) -> None:
        created = self._create(rate_limit_per_minute=60).json()["data"]
        self.assertEqual(created["rate_limit_per_minute"], 60)

        updated = self.client.put(
            f"{BASE_URL}/{created['uuid']}",
            json={"rate_limit_per_minute": 120},
            headers=self.headers,
        )
        self.assertEqual(updated.status_code, 200)
        self.assertEqual(updated.json()["data"]["rate_limit_per_minute"], 120)

    def test_rate_limit_out_of_range_is_422(self) -> None:
        for value in (0, 1001):
            response = self._create(rate_limit_per_minute=value)
            self.assertEqual(response.status_code, 422, value)
            body = response.json()
            self.assertEqual(body["code"], "VALIDATION_ERROR")
            self.assertIn("rate_limit_per_minute", body["errors"])

    def test_redirect_uris_are_validated(self) -> None:
        for uris in ([], ["not-a-uri"], ["https:///callback"], ["https://app.lgu.gov.ph/cb#frag"]):
            response = self._create(redirect_uris=uris)
            self.assertEqual(response.status_code, 422, uris)
            self.assertIn("redirect_uris", response.json()["errors"])

    def test_list_is_newest_first(self) -> None:
        self._create(name="Older")
        self._create(name="Newer")

        response = self.client.get(BASE_URL, headers=self.headers)

        self.assertEqual(response.status_code, 200)
        names = [item["name"] for item in response.json()["data"]]
        self.assertEqual(names[:2], ["Newer", "Older"])
        self.assertIn("Dashboard", names)

    def test_regenerate_secret_endpoint(self) -> None:
        created = self._create().json()["data"]

        response = self.client.post(f"{BASE_URL}/{created['uuid']}/regenerate-secret", headers=self.headers)

        self.assertEqual(response.status_code, 200)
        new_secret = response.json()["data"]["client_secret"]
        self.assertNotEqual(new_secret, created["client_secret"])
        with self.assertRaises(Unauthenticated):
            verify_client_credentials(self.db, created["client_id"], created["client_secret"])
        verify_client_credentials(self.db, created["client_id"], new_secret)

    def test_delete_application(self) -> None:
        created = self._create().json()["data"]

        response = self.client.delete(f"{BASE_URL}/{created['uuid']}", headers=self.headers)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["message"], "Application deleted successfully.")

        missing = self.client.get(f"{BASE_URL}/{created['uuid']}", headers=self.headers)
        self.assertEqual(missing.status_code, 404)
        self.assertEqual(missing.json()["code"], "NOT_FOUND")
        self.assertEqual(missing.json()["message"], "Application not found.")

    def test_employee_access_through_application_routes(self) -> None:
        created = self._create().json()["data"]
        clerk = make_employee(self.db, email="clerk@lgu.gov.ph", first_name="Maria", middle_name=None)
        url = f"{BASE_URL}/{created['uuid']}/employees"

        granted = self.client.post(url, json={"employee_uuid": str(clerk.uuid), "role": "standard"}, headers=self.headers)
        self.assertEqual(granted.status_code, 201)
        self.assertEqual(granted.json(), {"message": "Access granted."})

        duplicate = self.client.post(url, json={"employee_uuid": str(clerk.uuid), "role": "guest"}, headers=self.headers)
        self.assertEqual(duplicate.status_code, 409)
        self.assertEqual(duplicate.json()["code"], "CONFLICT")

        listing = self.client.get(url, headers=self.headers).json()["data"]
        self.assertEqual(len(listing), 1)
        self.assertEqual(listing[0]["email"], "clerk@lgu.gov.ph")
        self.assertEqual(listing[0]["full_name"], "Maria Dela Cruz")
        self.assertEqual(listing[0]["role"], "standard")

        updated = self.client.put(f"{url}/{clerk.uuid}", json={"role": "administrator"}, headers=self.headers)
        self.assertEqual(updated.json(), {"message": "Access updated."})
        self.assertEqual(self.client.get(url, headers=self.headers).json()["data"][0]["role"], "administrator")

        revoked = self.client.delete(f"{url}/{clerk.uuid}", headers=self.headers)
        self.assertEqual(revoked.json(), {"message": "Access revoked."})

        again = self.client.delete(f"{url}/{clerk.uuid}", headers=self.headers)
        self.assertEqual(again.status_code, 404)
        self.assertEqual(again.json()["message"], "Employee does not have access to this application.")

    def test_invalid_role_is_422(self) -> None:
        created = self._create().json()["data"]
        clerk = make_employee(self.db, email="clerk@lgu.gov.ph")

        response = self.client.post(
            f"{BASE_URL}/{created['uuid']}/employees",
            json={"employee_uuid": str(clerk.uuid), "role": "owner"},
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 422)
        self.assertIn("role", response.json()["errors"])


if __name__ == "__main__":
    unittest.main()
