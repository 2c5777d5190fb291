import json
import unittest
from unittest import mock

from fastapi.testclient import TestClient

from cloudnav.config import Settings, get_settings
from cloudnav.dependencies import get_kv_store
from cloudnav.kv import InMemoryKVStore
from cloudnav.main import app

PASSWORD = "hunter2"
AUTH = {"x-auth-password": PASSWORD}


class LinkApiTests(unittest.TestCase):
    def setUp(self):
        self.kv = InMemoryKVStore()
        self.settings = Settings(password=PASSWORD, kv_backend="memory")
        app.dependency_overrides[get_kv_store] = lambda: self.kv
        app.dependency_overrides[get_settings] = lambda: self.settings
        self.client = TestClient(app)

    def tearDown(self):
        app.dependency_overrides.clear()

    def stored(self):
        return json.loads(self.kv.get("app_data"))

    def seed(self, links=None, categories=None):
        self.kv.put(
            "app_data",
            json.dumps({"links": links or [], "categories": categories or []}),
        )

    def test_requires_password(self):
        resp = self.client.post("/api/link", json={"title": "A", "url": "https://a.test"})
        self.assertEqual(resp.status_code, 401)
        self.assertEqual(resp.json(), {"error": "Unauthorized"})

    def test_password_checked_before_body(self):
        resp = self.client.post("/api/link", json={"title": 5, "url": "x"})
        self.assertEqual(resp.status_code, 401)
        self.assertEqual(resp.json(), {"error": "Unauthorized"})

        resp = self.client.post(
            "/api/link",
            content=b"{broken",
            headers={"Content-Type": "application/json"},
        )
        self.assertEqual(resp.status_code, 401)

    def test_wrongly_typed_body_with_password(self):
        resp = self.client.post("/api/link", json={"title": 5, "url": "x"}, headers=AUTH)
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json(), {"error": "Invalid request body"})

    def test_rejected_when_no_password_configured(self):
        self.settings.password = None
        resp = self.client.post(
            "/api/link", json={"title": "A", "url": "https://a.test"}, headers=AUTH
        )
        self.assertEqual(resp.status_code, 401)

    def test_missing_title_or_url(self):
        resp = self.client.post("/api/link", json={"title": "A"}, headers=AUTH)
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json(), {"error": "Missing title or url"})

    def test_adds_link_to_empty_store(self):
        with mock.patch("cloudnav.main.now_ms", return_value=1700000000000):
            resp = self.client.post(
                "/api/link", json={"title": "Python", "url": "https://python.org"}, headers=AUTH
            )
        self.assertEqual(resp.status_code, 200)
        payload = resp.json()
        self.assertEqual(payload["categoryName"], "默认")
        self.assertEqual(
            payload["link"],
            {
                "id": "1700000000000",
                "title": "Python",
                "url": "https://python.org",
                "description": "",
                "categoryId": "common",
                "createdAt": 1700000000000,
                "pinned": False,
            },
        )
        self.assertEqual(self.stored()["links"], [payload["link"]])

    def test_new_link_is_prepended_and_existing_data_kept(self):
        self.seed(
            links=[{"id": "1", "title": "Old", "url": "https://old.test", "categoryId": "dev", "icon": "x"}],
            categories=[{"id": "dev", "name": "Dev", "icon": "Code"}, {"id": "later", "name": "Read later"}],
        )
        resp = self.client.post(
            "/api/link",
            json={"title": "New", "url": "https://new.test", "description": "d"},
            headers=AUTH,
        )
        self.assertEqual(resp.json()["categoryName"], "Read later")

        data = self.stored()
        self.assertEqual([l["title"] for l in data["links"]], ["New", "Old"])
        self.assertEqual(data["links"][0]["categoryId"], "later")
        self.assertEqual(data["links"][0]["description"], "d")
        self.assertEqual(data["links"][1]["icon"], "x")
        self.assertEqual(data["categories"][0], {"id": "dev", "name": "Dev", "icon": "Code"})

    def test_explicit_category(self):
        self.seed(categories=[{"id": "inbox", "name": "Inbox"}, {"id": "dev", "name": "Dev"}])
        resp = self.client.post(
            "/api/link",
            json={"title": "T", "url": "https://t.test", "categoryId": "dev"},
            headers=AUTH,
        )
        self.assertEqual(resp.json()["link"]["categoryId"], "dev")
        self.assertEqual(resp.json()["categoryName"], "Dev")

    def test_ids_do_not_collide_within_the_same_millisecond(self):
        with mock.patch("cloudnav.main.now_ms", return_value=1700000000000):
            first = self.client.post(
                "/api/link", json={"title": "A", "url": "https://a.test"}, headers=AUTH
            ).json()
            second = self.client.post(
                "/api/link", json={"title": "B", "url": "https://b.test"}, headers=AUTH
            ).json()
        self.assertEqual(first["link"]["id"], "1700000000000")
        self.assertEqual(second["link"]["id"], "1700000000001")

    def test_invalid_body(self):
        resp = self.client.post("/api/link", json=["not", "an", "object"], headers=AUTH)
        self.assertEqual(resp.status_code, 400)

    def test_preflight_carries_max_age(self):
        resp = self.client.options("/api/link")
        self.assertEqual(resp.status_code, 204)
        self.assertEqual(resp.headers["access-control-max-age"], "86400")

    def test_browser_preflight_carries_max_age(self):
        resp = self.client.options(
            "/api/link",
            headers={
                "Origin": "https://nav.example.com",
                "Access-Control-Request-Method": "POST",
                "Access-Control-Request-Headers": "content-type, x-auth-password",
            },
        )
        self.assertEqual(resp.status_code, 204)
        self.assertEqual(resp.content, b"")
        self.assertEqual(resp.headers["access-control-max-age"], "86400")
        self.assertEqual(resp.headers["access-control-allow-origin"], "*")


if __name__ == "__main__":
    unittest.main()
