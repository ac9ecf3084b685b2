"""Tests for the database layer and repositories."""

from datetime import timedelta

import pytest

from notifier.persistence import (
    Database,
    DatabaseConnectionError,
    DataIntegrityError,
    DeliveryLogRepository,
    EventRepository,
    QueueRepository,
    RecordNotFoundError,
    RetentionService,
)
from notifier.persistence.database import redact_url
from tests.helpers import (
    T0,
    load_message,
    make_event,
    make_log_entry,
    make_message,
    store_event,
    store_log_entry,
    store_message,
)


class TestDatabase:
    def test_ping(self, database):
        assert database.ping() is True

    def test_empty_url_rejected(self):
        with pytest.raises(DatabaseConnectionError):
            Database("")

    def test_file_database_creates_directory(self, tmp_path):
        db_path = tmp_path / "nested" / "notifier.db"
        db = Database(f"sqlite:///{db_path}")
        try:
            assert db_path.parent.exists()
            assert db.ping() is True
        finally:
            db.close()

    def test_session_rolls_back_on_error(self, database):
        message = make_message()
        with pytest.raises(RuntimeError):
            with database.session() as session:
                QueueRepository(session).add(message)
                raise RuntimeError("abort")

        assert load_message(database, message.id) is None

    def test_redact_url(self):
        assert redact_url("postgresql://app:hunter2@db:5432/notify") == "postgresql://app:***@db:5432/notify"
        assert redact_url("sqlite:///./data/notifier.db") == "sqlite:///./data/notifier.db"


class TestEventRepository:
    def test_round_trip(self, database):
        event = make_event(payload={"task": {"title": "x", "tags": ["a"]}})
        store_event(database, event)

        with database.session() as session:
            stored = EventRepository(session).get(event.id)

        assert stored == event

    def test_mark_processed_once(self, database):
        event = store_event(database, make_event())

        with database.session() as session:
            repo = EventRepository(session)
            assert repo.mark_processed(event.id, T0) is True
            assert repo.mark_processed(event.id, T0) is False
            assert repo.get(event.id).processed_at == T0

    def test_mark_processed_unknown(self, database):
        with pytest.raises(RecordNotFoundError):
            with database.session() as session:
                EventRepository(session).mark_processed("missing", T0)

    def test_duplicate_id(self, database):
        event = store_event(database, make_event())
        with pytest.raises(DataIntegrityError):
            store_event(database, event)


class TestQueueRepository:
    def test_fetch_due_order(self, database):
        low_old = store_message(database, make_message("feature_announcement", created_at=T0))
        high_new = store_message(
            database, make_message("stock_alert", created_at=T0 + timedelta(seconds=5))
        )
        high_old = store_message(database, make_message("stock_alert", created_at=T0))
        store_message(database, make_message(scheduled_for=T0 + timedelta(minutes=1)))

        with database.session() as session:
            due = QueueRepository(session).fetch_due(T0 + timedelta(seconds=10), limit=10)

        assert [m.id for m in due] == [high_old.id, high_new.id, low_old.id]

    def test_claim_is_exclusive(self, database):
        message = store_message(database, make_message())

        with database.session() as session:
            queue = QueueRepository(session)
            assert queue.claim(message.id, T0) is True
            assert queue.claim(message.id, T0) is False

        claimed = load_message(database, message.id)
        assert claimed.status == "processing"
        assert claimed.claimed_at == T0

    def test_transitions_require_processing(self, database):
        message = store_message(database, make_message())

        with database.session() as session:
            queue = QueueRepository(session)
            assert queue.mark_sent(message.id, T0, "ext") is False
            assert queue.reschedule(message.id, 1, T0, "err") is False
            assert queue.mark_failed(message.id, 3, T0, "err") is False

    def test_reschedule_cannot_exceed_budget(self, database):
        message = store_message(database, make_message(max_attempts=2))

        with database.session() as session:
            queue = QueueRepository(session)
            queue.claim(message.id, T0)
            assert queue.reschedule(message.id, 2, T0, "err") is False
            assert queue.mark_failed(message.id, 2, T0, "err") is True

        failed = load_message(database, message.id)
        assert failed.status == "failed"
        assert failed.attempts == 2
        assert failed.processed_at == T0

    def test_release_returns_claim_untouched(self, database):
        message = store_message(database, make_message())

        with database.session() as session:
            queue = QueueRepository(session)
            assert queue.release(message.id) is False
            queue.claim(message.id, T0)
            assert queue.release(message.id) is True

        released = load_message(database, message.id)
        assert released.status == "pending"
        assert released.attempts == 0
        assert released.claimed_at is None
        assert released.scheduled_for == message.scheduled_for

    def test_cancel_only_pending(self, database):
        pending = store_message(database, make_message())
        claimed = store_message(database, make_message())

        with database.session() as session:
            queue = QueueRepository(session)
            queue.claim(claimed.id, T0)
            assert queue.cancel(pending.id, T0) is True
            assert queue.cancel(claimed.id, T0) is False

    def test_stale_claims(self, database):
        old = store_message(database, make_message(status="processing", claimed_at=T0))
        store_message(database, make_message(status="processing", claimed_at=T0 + timedelta(minutes=9)))

        with database.session() as session:
            stale = QueueRepository(session).find_stale_claims(T0 + timedelta(minutes=5))

        assert [m.id for m in stale] == [old.id]

    def test_stats(self, database):
        store_message(database, make_message())
        store_message(database, make_message(status="sent"))

        with database.session() as session:
            stats = QueueRepository(session).stats()

        assert stats == {
            "pending": 1,
            "processing": 0,
            "sent": 1,
            "failed": 0,
            "cancelled": 0,
            "total": 2,
        }


class TestDeliveryLogRepository:
    def test_open_click_keep_first_timestamp(self, database):
        entry = store_log_entry(database, make_log_entry(external_message_id="re_1"))

        with database.session() as session:
            repo = DeliveryLogRepository(session)
            opened = repo.mark_opened("re_1", T0 + timedelta(minutes=1))
            repo.mark_opened(entry.message_id, T0 + timedelta(minutes=2))
            clicked = repo.mark_clicked(entry.message_id, T0 + timedelta(minutes=3))

        assert opened.opened_at == T0 + timedelta(minutes=1)
        assert clicked.opened_at == T0 + timedelta(minutes=1)
        assert clicked.clicked_at == T0 + timedelta(minutes=3)

    def test_click_implies_open(self, database):
        entry = store_log_entry(database, make_log_entry())

        with database.session() as session:
            clicked = DeliveryLogRepository(session).mark_clicked(entry.message_id, T0)

        assert clicked.opened_at == T0

    def test_failed_entries_are_not_trackable(self, database):
        entry = store_log_entry(database, make_log_entry(status="failed"))

        with database.session() as session:
            assert DeliveryLogRepository(session).mark_opened(entry.message_id, T0) is None

    def test_bounce(self, database):
        entry = store_log_entry(database, make_log_entry())

        with database.session() as session:
            bounced = DeliveryLogRepository(session).mark_bounced(entry.message_id, "550 no such user")

        assert bounced.status == "bounced"
        assert bounced.error_message == "550 no such user"

    def test_outcome_counts_grouped(self, database):
        store_log_entry(database, make_log_entry("stock_alert", opened_at=T0))
        store_log_entry(database, make_log_entry("stock_alert", status="failed"))
        store_log_entry(database, make_log_entry("task_assigned", sent_at=T0 + timedelta(hours=1)))

        with database.session() as session:
            repo = DeliveryLogRepository(session)
            by_type = repo.outcome_counts(group_by="type")
            by_hour = repo.outcome_counts(group_by="hour")
            window = repo.outcome_counts(start=T0 + timedelta(minutes=30))

        assert by_type[0] == {
            "key": "stock_alert",
            "total": 2,
            "sent": 1,
            "failed": 1,
            "bounced": 0,
            "opened": 1,
            "clicked": 0,
        }
        assert [row["key"] for row in by_hour] == ["2026-03-02T09", "2026-03-02T10"]
        assert window[0]["total"] == 1

    def test_unknown_grouping(self, database):
        with database.session() as session:
            with pytest.raises(ValueError):
                DeliveryLogRepository(session).outcome_counts(group_by="week")


class TestRetention:
    def test_removes_only_finished_rows(self, database, clock):
        old_event = store_event(database, make_event(processed=True, processed_at=T0 - timedelta(days=40)))
        open_event = store_event(database, make_event(created_at=T0 - timedelta(days=40)))
        old_sent = store_message(
            database, make_message(status="sent", processed_at=T0 - timedelta(days=8))
        )
        old_pending = store_message(database, make_message(created_at=T0 - timedelta(days=8)))
        store_log_entry(database, make_log_entry(sent_at=T0 - timedelta(days=91)))
        recent_log = store_log_entry(database, make_log_entry(sent_at=T0 - timedelta(days=1)))

        result = RetentionService(database, clock=clock).run()

        assert (result.events_deleted, result.queue_deleted, result.logs_deleted) == (1, 1, 1)
        assert result.total == 3
        with database.session() as session:
            assert EventRepository(session).get(old_event.id) is None
            assert EventRepository(session).get(open_event.id) is not None
            assert QueueRepository(session).get(old_sent.id) is None
            assert QueueRepository(session).get(old_pending.id) is not None
            assert DeliveryLogRepository(session).for_message(recent_log.message_id)
