from __future__ import annotations

import unittest

from pydantic import ValidationError
from starlette.datastructures import URL

from lgu_sso.pagination import Page, build_meta
from lgu_sso.schemas import ApplicationCreate, validate_redirect_uri


class PageTests(unittest.TestCase):
    def test_last_page_is_at_least_one(self) -> None:
        self.assertEqual(Page(items=[], total=0, page=1, per_page=15).last_page, 1)
        self.assertEqual(Page(items=[1], total=31, page=1, per_page=15).last_page, 3)

    def test_item_bounds(self) -> None:
        page = Page(items=["a", "b"], total=12, page=3, per_page=5)
        self.assertEqual(page.first_index, 11)
        self.assertEqual(page.last_index, 12)

        empty = Page(items=[], total=12, page=9, per_page=5)
        self.assertIsNone(empty.first_index)
        self.assertIsNone(empty.last_index)

    def test_meta_serializes_from_by_alias(self) -> None:
        page = Page(items=[1, 2], total=5, page=2, per_page=2)
        meta, links = build_meta(page, URL("http://testserver/api/v1/employees?page=2&per_page=2&search=ana"))

        dumped = meta.model_dump(by_alias=True)
        self.assertEqual(dumped["from"], 3)
        self.assertEqual(dumped["to"], 4)
        self.assertEqual(dumped["last_page"], 3)
        self.assertEqual(dumped["path"], "http://testserver/api/v1/employees")
        self.assertIn("search=ana", links.next)
        self.assertIn("page=3", links.next)
        self.assertIn("page=1", links.prev)
        self.assertIn("page=3", links.last)


class RedirectUriTests(unittest.TestCase):
    def test_accepts_absolute_and_custom_scheme_uris(self) -> None:
        self.assertEqual(validate_redirect_uri(" https://app.lgu.gov.ph/callback "), "https://app.lgu.gov.ph/callback")
        self.assertEqual(validate_redirect_uri("http://localhost:3000/cb?x=1"), "http://localhost:3000/cb?x=1")
        self.assertEqual(validate_redirect_uri("ph.gov.lgu.mobile:/oauth"), "ph.gov.lgu.mobile:/oauth")

    def test_rejects_malformed_uris(self) -> None:
        for value in ("/relative/path", "callback", "https://", "https://app.lgu.gov.ph/cb#top", "1http://x"):
            with self.assertRaises(ValueError, msg=value):
                validate_redirect_uri(value)

    def test_application_create_requires_a_redirect_uri(self) -> None:
        with self.assertRaises(ValidationError):
            ApplicationCreate(name="Permits", redirect_uris=[])

        created = ApplicationCreate(name="Permits", redirect_uris=["https://permits.lgu.gov.ph/cb"])
        self.assertEqual(created.rate_limit_per_minute, 60)


if __name__ == "__main__":
    unittest.main()
