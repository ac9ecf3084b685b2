"""Tests for the HTTP endpoints."""

from unittest.mock import Mock

import pytest
from fastapi.testclient import TestClient

from notifier.api import create_app
from notifier.api.app import PIXEL
from notifier.preferences import encode_token
from tests.helpers import load_log, make_log_entry, store_log_entry

BASE_URL = "https://app.example.com"


@pytest.fixture
def client(database, service, tracking, analytics):
    app = create_app(database, service, tracking, analytics, base_url=BASE_URL)
    return TestClient(app)


class TestHealth:
    def test_healthy(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_database_unreachable(self, service, tracking, analytics):
        database = Mock()
        database.ping.return_value = False
        client = TestClient(create_app(database, service, tracking, analytics, base_url=BASE_URL))

        response = client.get("/health")

        assert response.status_code == 503
        assert response.json()["detail"]["database"] == "unreachable"


class TestUnsubscribe:
    def test_single_category(self, client, gate):
        response = client.get(
            "/api/notifications/unsubscribe",
            params={"token": encode_token("alice@example.com"), "category": "stock_alert"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "Successfully unsubscribed from stock_alert notifications"
        assert body["preferences"]["stock_alerts"] is False
        assert gate.get_preferences("u_alice").stock_alerts is False

    def test_everything(self, client, gate):
        response = client.get(
            "/api/notifications/unsubscribe", params={"token": encode_token("bob@example.com")}
        )

        assert response.status_code == 200
        assert response.json()["preferences"]["security_alerts"] is True
        assert gate.get_preferences("u_bob").task_notifications is False

    def test_invalid_token(self, client):
        response = client.get("/api/notifications/unsubscribe", params={"token": "%%%"})

        assert response.status_code == 400

    def test_unknown_user(self, client):
        response = client.get(
            "/api/notifications/unsubscribe", params={"token": encode_token("carol@example.com")}
        )

        assert response.status_code == 404

    def test_security_category_refused(self, client, gate):
        response = client.get(
            "/api/notifications/unsubscribe",
            params={"token": encode_token("alice@example.com"), "category": "security_alert"},
        )

        assert response.status_code == 400
        assert gate.get_preferences("u_alice").security_alerts is True

    def test_missing_token(self, client):
        assert client.get("/api/notifications/unsubscribe").status_code == 422


class TestTracking:
    def test_open_pixel(self, client, database):
        entry = store_log_entry(database, make_log_entry())

        response = client.get(f"/api/notifications/track/open/{entry.message_id}")

        assert response.status_code == 200
        assert response.headers["content-type"] == "image/gif"
        assert response.content == PIXEL
        assert load_log(database, entry.message_id)[0].opened_at is not None

    def test_open_pixel_for_unknown_id(self, client):
        response = client.get("/api/notifications/track/open/unknown")

        assert response.status_code == 200
        assert response.content == PIXEL

    def test_click_redirects(self, client, database):
        entry = store_log_entry(database, make_log_entry())
        target = f"{BASE_URL}/tasks/42"

        response = client.get(
            f"/api/notifications/track/click/{entry.message_id}",
            params={"url": target},
            follow_redirects=False,
        )

        assert response.status_code == 302
        assert response.headers["location"] == target
        assert load_log(database, entry.message_id)[0].clicked_at is not None

    @pytest.mark.parametrize(
        "url", ["https://evil.example.net/", "https://app.example.com.evil.net/x"]
    )
    def test_click_outside_base_url_refused(self, client, database, url):
        entry = store_log_entry(database, make_log_entry())

        response = client.get(
            f"/api/notifications/track/click/{entry.message_id}",
            params={"url": url},
            follow_redirects=False,
        )

        assert response.status_code == 400
        assert load_log(database, entry.message_id)[0].clicked_at is None

    def test_bounce(self, client, database):
        entry = store_log_entry(database, make_log_entry())

        response = client.post(
            f"/api/notifications/track/bounce/{entry.message_id}", json={"reason": "550 unknown user"}
        )

        assert response.status_code == 200
        assert response.json()["status"] == "bounced"
        assert load_log(database, entry.message_id)[0].error_message == "550 unknown user"

    def test_bounce_unknown(self, client):
        assert client.post("/api/notifications/track/bounce/unknown").status_code == 404


class TestStats:
    def test_stats(self, client, service):
        service.trigger(
            {"type": "task_assigned", "user_id": "u_alice", "payload": {"task": {"title": "Ship it"}}}
        )

        response = client.get("/api/notifications/stats")

        assert response.status_code == 200
        body = response.json()
        assert body["queue"]["pending"] == 1
        assert body["delivery"]["total"] == 0
        assert body["by_category"] == {}

    def test_stats_window(self, client, database):
        store_log_entry(database, make_log_entry())

        response = client.get(
            "/api/notifications/stats", params={"start": "2000-01-01", "end": "2000-01-02T00:00:00Z"}
        )

        assert response.status_code == 200
        assert response.json()["delivery"]["total"] == 0

    def test_stats_invalid_window(self, client):
        response = client.get("/api/notifications/stats", params={"start": "yesterday"})

        assert response.status_code == 400
