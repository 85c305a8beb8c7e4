import unittest
from unittest import mock

from fastapi.testclient import TestClient

from app.core.database import get_db
from app.core.security import CurrentUser, get_current_user
from app.core.settings import settings
from app.services.errors import ConcurrentUpdate
from main import app
from tests.support import add_profile, make_sessionmaker


SUB = {
    "service_name": "example.com",
    "purchase_date": "2024-06-08",
    "expiry_date": "2025-06-08",
    "purchase_amount_pkr": "4500",
}


class ApiTestCase(unittest.TestCase):
    def setUp(self):
        self.engine, self.Session = make_sessionmaker()
        seed = self.Session()
        add_profile(seed)
        seed.close()
        self.user = CurrentUser(id="user-1", email="owner@example.com")

        def override_get_db():
            db = self.Session()
            try:
                yield db
            finally:
                db.close()

        app.dependency_overrides[get_db] = override_get_db
        app.dependency_overrides[get_current_user] = lambda: self.user
        self.client = TestClient(app)

    def tearDown(self):
        app.dependency_overrides.clear()
        self.engine.dispose()

    def _create(self, **overrides):
        resp = self.client.post("/api/subscriptions", json={**SUB, **overrides})
        self.assertEqual(resp.status_code, 201, resp.text)
        return resp.json()


class TestSubscriptionsApi(ApiTestCase):
    def test_missing_token_is_rejected(self):
        app.dependency_overrides.pop(get_current_user)
        resp = self.client.get("/api/subscriptions")
        self.assertEqual(resp.status_code, 401)

    def test_create_and_read_back(self):
        created = self._create()
        self.assertEqual(len(created["reminders"]), 4)

        resp = self.client.get(f"/api/subscriptions/{created['id']}", params={"today": "2025-06-01"})
        self.assertEqual(resp.status_code, 200)
        body = resp.json()
        self.assertEqual(body["status"], "expiring_soon")
        self.assertEqual(body["days_until_expiry"], 7)

    def test_blank_service_name_is_422(self):
        resp = self.client.post("/api/subscriptions", json={**SUB, "service_name": "  "})
        self.assertEqual(resp.status_code, 422)

    def test_invalid_period_is_400(self):
        resp = self.client.post("/api/subscriptions", json={**SUB, "expiry_date": "2024-06-08"})
        self.assertEqual(resp.status_code, 400)

    def test_other_users_subscription_is_404(self):
        created = self._create()
        self.user = CurrentUser(id="user-2", email="other@example.com")
        resp = self.client.get(f"/api/subscriptions/{created['id']}")
        self.assertEqual(resp.status_code, 404)
        self.assertEqual(resp.json()["detail"], "Subscription not found")

    def test_list_filters_by_status(self):
        self._create()
        self._create(service_name="old", purchase_date="2023-01-01", expiry_date="2024-01-01")
        resp = self.client.get("/api/subscriptions", params={"status": "expired", "today": "2025-06-01"})
        self.assertEqual([s["service_name"] for s in resp.json()], ["old"])

    def test_renew_and_history(self):
        created = self._create()
        period = {"purchase_date": "2025-06-08", "expiry_date": "2026-06-08", "purchase_amount_pkr": "5000"}
        resp = self.client.post(f"/api/subscriptions/{created['id']}/renew", json=period)
        self.assertEqual(resp.status_code, 200, resp.text)
        self.assertEqual(resp.json()["expiry_date"], "2026-06-08")

        history = self.client.get(f"/api/subscriptions/{created['id']}/history").json()
        self.assertEqual(len(history), 1)
        self.assertEqual(history[0]["expiry_date"], "2025-06-08")

    def test_renew_with_bad_period_is_400(self):
        created = self._create()
        period = {"purchase_date": "2025-06-08", "expiry_date": "2025-06-08", "purchase_amount_pkr": "5000"}
        resp = self.client.post(f"/api/subscriptions/{created['id']}/renew", json=period)
        self.assertEqual(resp.status_code, 400)

    def test_failed_renewal_is_409(self):
        created = self._create()
        period = {"purchase_date": "2025-06-08", "expiry_date": "2026-06-08", "purchase_amount_pkr": "5000"}
        with mock.patch("app.services.renewal.snapshot_current_period", side_effect=RuntimeError("lost lock")):
            resp = self.client.post(f"/api/subscriptions/{created['id']}/renew", json=period)
        self.assertEqual(resp.status_code, 409)
        self.assertEqual(self.client.get(f"/api/subscriptions/{created['id']}/history").json(), [])

    def test_due_reminders(self):
        created = self._create()
        resp = self.client.get(f"/api/subscriptions/{created['id']}/due-reminders", params={"today": "2025-06-01"})
        self.assertEqual([r["days_before"] for r in resp.json()], [7])

    def test_toggle_active(self):
        created = self._create()
        resp = self.client.post(f"/api/subscriptions/{created['id']}/active", json={"active": False})
        self.assertEqual(resp.json()["status"], "inactive")

    def test_patch_with_null_required_field_is_400(self):
        created = self._create()
        for body in ({"purchase_amount_pkr": None}, {"service_name": None}):
            resp = self.client.patch(f"/api/subscriptions/{created['id']}", json=body)
            self.assertEqual(resp.status_code, 400, resp.text)
        after = self.client.get(f"/api/subscriptions/{created['id']}").json()
        self.assertEqual(after["service_name"], "example.com")
        self.assertEqual(after["purchase_amount_pkr"], created["purchase_amount_pkr"])

    def test_conflicting_write_is_409(self):
        created = self._create()
        conflict = ConcurrentUpdate("modified concurrently")
        with mock.patch("app.services.subscriptions._commit_versioned", side_effect=conflict):
            toggle = self.client.post(f"/api/subscriptions/{created['id']}/active", json={"active": False})
            patch = self.client.patch(f"/api/subscriptions/{created['id']}", json={"notes": "x"})
        self.assertEqual(toggle.status_code, 409)
        self.assertEqual(patch.status_code, 409)

    def test_me(self):
        self._create()
        body = self.client.get("/api/me").json()
        self.assertEqual(body["id"], "user-1")
        self.assertEqual(sum(body["subscriptions"].values()), 1)

    def test_report_range_is_validated(self):
        resp = self.client.get("/api/reports/summary", params={"start": "2025-02-01", "end": "2025-01-01"})
        self.assertEqual(resp.status_code, 400)


class TestCronApi(ApiTestCase):
    def test_cron_requires_secret(self):
        with mock.patch.object(settings, "cron_secret", "s3cret"):
            self.assertEqual(self.client.post("/api/cron/dispatch").status_code, 401)
            resp = self.client.post(
                "/api/cron/dispatch",
                params={"today": "2025-06-01"},
                headers={"X-Cron-Secret": "wrong"},
            )
            self.assertEqual(resp.status_code, 401)

    def test_cron_dispatch_queues_without_transport(self):
        self._create()
        with mock.patch.object(settings, "cron_secret", "s3cret"), mock.patch.object(settings, "resend_api_key", None):
            resp = self.client.post(
                "/api/cron/dispatch",
                params={"today": "2025-06-01"},
                headers={"X-Cron-Secret": "s3cret"},
            )
            self.assertEqual(resp.status_code, 200, resp.text)
            self.assertEqual(resp.json()["emails_queued"], 1)

            resp = self.client.post("/api/cron/process-queued-emails", headers={"X-Cron-Secret": "s3cret"})
            self.assertEqual(resp.status_code, 503)

        unread = self.client.get("/api/notifications/unread-count").json()
        self.assertEqual(unread["unread"], 1)

    def test_cron_unconfigured_is_503(self):
        with mock.patch.object(settings, "cron_secret", None):
            resp = self.client.post("/api/cron/dispatch", headers={"X-Cron-Secret": "anything"})
            self.assertEqual(resp.status_code, 503)


if __name__ == "__main__":
    unittest.main()
