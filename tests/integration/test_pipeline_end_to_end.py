"""Integration tests for the full notification flow.

Tests end-to-end flow:
- Trigger -> queue -> dispatch -> delivery log
- Retries with backoff on a virtual clock
- Bulk delivery of batchable categories
- Unsubscribe links and tracking callbacks through the HTTP API
- Analytics over the resulting log
- Real SQLite database (in-memory), scripted transport
"""

import pytest
from fastapi.testclient import TestClient

from notifier.api import create_app
from notifier.preferences import encode_token
from notifier.templates.defaults import SAMPLE_PAYLOADS
from tests.helpers import load_event, load_log, load_message


@pytest.fixture
def client(database, service, tracking, analytics, branding):
    return TestClient(create_app(database, service, tracking, analytics, base_url=branding.base_url))


def trigger(service, notification_type, user_id):
    result = service.trigger(
        {"type": notification_type, "user_id": user_id, "payload": SAMPLE_PAYLOADS[notification_type]}
    )
    assert result.success, result.reason
    return result


class TestDeliveryFlow:
    def test_mixed_categories_in_one_pass(self, service, dispatcher, transport, database):
        security = trigger(service, "security_alert", "u_bob")
        task = trigger(service, "task_assigned", "u_alice")
        announcements = [
            trigger(service, "feature_announcement", "u_alice"),
            trigger(service, "feature_announcement", "u_bob"),
        ]

        result = dispatcher.process_queue()

        assert result.sent == 4
        assert result.bulk_calls == 1
        assert sorted(transport.bulk_calls[0]) == sorted(a.queued_id for a in announcements)

        for outcome in [security, task, *announcements]:
            message = load_message(database, outcome.queued_id)
            assert message.status == "sent"
            assert message.attempts == 0
            assert [entry.status for entry in load_log(database, outcome.queued_id)] == ["sent"]
            assert load_event(database, outcome.event_id).processed is True

        assert dispatcher.process_queue().fetched == 0

    def test_retry_until_success(self, service, dispatcher, transport, database, clock):
        transport.script_for("alice@example.com", "Connection refused", "Connection refused")
        outcome = trigger(service, "task_assigned", "u_alice")

        assert dispatcher.process_queue().retried == 1
        first_retry = load_message(database, outcome.queued_id)
        assert first_retry.status == "pending"
        assert first_retry.attempts == 1
        assert first_retry.error_message == "Connection refused"
        assert (first_retry.scheduled_for - clock.now).total_seconds() == 300

        clock.advance(299)
        assert dispatcher.process_queue().fetched == 0

        clock.advance(1)
        assert dispatcher.process_queue().retried == 1
        assert (load_message(database, outcome.queued_id).scheduled_for - clock.now).total_seconds() == 600
        assert load_event(database, outcome.event_id).processed is False

        clock.advance(600)
        assert dispatcher.process_queue().sent == 1

        delivered = load_message(database, outcome.queued_id)
        assert delivered.status == "sent"
        assert delivered.attempts == 2
        assert delivered.error_message is None
        assert len(load_log(database, outcome.queued_id)) == 1
        assert load_event(database, outcome.event_id).processed is True

    def test_budget_exhausted(self, service, dispatcher, transport, database, clock):
        transport.script_for("bob@example.com", "550 mailbox unavailable", "550 mailbox unavailable")
        outcome = trigger(service, "system_maintenance", "u_bob")

        dispatcher.process_queue()
        clock.advance(900)
        result = dispatcher.process_queue()

        assert result.failed == 1
        message = load_message(database, outcome.queued_id)
        assert (message.status, message.attempts) == ("failed", 2)
        [entry] = load_log(database, outcome.queued_id)
        assert entry.status == "failed"
        assert entry.error_message == "550 mailbox unavailable"
        assert load_event(database, outcome.event_id).processed is True


class TestPreferencesAndTracking:
    def test_unsubscribe_link_stops_future_deliveries(self, service, client, dispatcher, transport):
        response = client.get(
            "/api/notifications/unsubscribe",
            params={"token": encode_token("alice@example.com"), "category": "stock_alert"},
        )
        assert response.status_code == 200

        skipped = trigger(service, "stock_alert", "u_alice")
        delivered = trigger(service, "stock_alert", "u_bob")
        security = trigger(service, "security_alert", "u_alice")

        assert skipped.skipped is True
        assert delivered.queued_id and security.queued_id
        dispatcher.process_queue()
        assert sorted(m.to for m in transport.sent) == ["alice@example.com", "bob@example.com"]

    def test_tracking_feeds_analytics(self, service, client, dispatcher, branding):
        task = trigger(service, "task_assigned", "u_alice")
        renewal = trigger(service, "subscription_renewal", "u_bob")
        dispatcher.process_queue()

        assert client.get(f"/api/notifications/track/open/{task.queued_id}").status_code == 200
        click = client.get(
            f"/api/notifications/track/click/{task.queued_id}",
            params={"url": f"{branding.base_url}/tasks"},
            follow_redirects=False,
        )
        assert click.status_code == 302
        assert client.post(f"/api/notifications/track/bounce/{renewal.queued_id}").status_code == 200

        stats = client.get("/api/notifications/stats").json()

        assert stats["queue"]["sent"] == 2
        assert stats["delivery"]["total"] == 2
        assert stats["delivery"]["sent"] == 1
        assert stats["delivery"]["bounced"] == 1
        assert stats["delivery"]["open_rate"] == 1.0
        assert stats["delivery"]["click_through_rate"] == 1.0
        assert stats["by_category"]["subscription_renewal"]["bounce_rate"] == 1.0

    def test_history_is_newest_first(self, service, dispatcher, clock):
        first = trigger(service, "task_assigned", "u_alice")
        dispatcher.process_queue()
        clock.advance(60)
        second = trigger(service, "invoice_overdue", "u_alice")
        dispatcher.process_queue()

        history = service.notification_history("u_alice")

        assert [entry.message_id for entry in history] == [second.queued_id, first.queued_id]
