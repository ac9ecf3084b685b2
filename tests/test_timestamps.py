"""Unit tests for timestamp utilities."""

from datetime import datetime, timedelta, timezone

from notifier.utils.timestamps import (
    ensure_utc,
    format_timestamp,
    from_storage,
    parse_iso_datetime,
    to_storage,
    utc_now,
)


class TestUtcNow:
    def test_returns_aware_utc(self):
        before = datetime.now(timezone.utc)
        now = utc_now()

        assert now.tzinfo == timezone.utc
        assert before <= now <= datetime.now(timezone.utc)


class TestEnsureUtc:
    def test_none(self):
        assert ensure_utc(None) is None

    def test_naive_is_treated_as_utc(self):
        assert ensure_utc(datetime(2026, 3, 2, 12, 0)) == datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)

    def test_offset_is_converted(self):
        eastern = timezone(timedelta(hours=-5))
        result = ensure_utc(datetime(2026, 3, 2, 7, 0, tzinfo=eastern))

        assert result.hour == 12
        assert result.tzinfo == timezone.utc


class TestStorageFormat:
    def test_fixed_width(self):
        assert to_storage(datetime(2026, 3, 2, 10, 30, tzinfo=timezone.utc)) == "2026-03-02T10:30:00.000000Z"
        assert to_storage(None) is None

    def test_round_trip_keeps_microseconds(self):
        dt = datetime(2026, 3, 2, 10, 30, 0, 123456, tzinfo=timezone.utc)

        assert from_storage(to_storage(dt)) == dt

    def test_lexical_order_matches_time_order(self):
        earlier = datetime(2026, 3, 2, 9, 59, 59, 999999, tzinfo=timezone.utc)
        later = datetime(2026, 3, 2, 10, 0, tzinfo=timezone.utc)

        assert to_storage(earlier) < to_storage(later)

    def test_from_storage_without_fraction(self):
        assert from_storage("2026-03-02T10:30:00Z") == datetime(2026, 3, 2, 10, 30, tzinfo=timezone.utc)
        assert from_storage("") is None
        assert from_storage(None) is None


class TestParseIsoDatetime:
    def test_z_suffix(self):
        assert parse_iso_datetime("2026-03-02T12:00:00Z") == datetime(2026, 3, 2, 12, tzinfo=timezone.utc)

    def test_offset(self):
        assert parse_iso_datetime("2026-03-02T14:00:00+02:00").hour == 12

    def test_date_only(self):
        assert parse_iso_datetime("2026-03-02") == datetime(2026, 3, 2, tzinfo=timezone.utc)

    def test_invalid(self):
        assert parse_iso_datetime("not a date") is None
        assert parse_iso_datetime("   ") is None
        assert parse_iso_datetime(None) is None


class TestFormatTimestamp:
    def test_second_precision(self):
        dt = datetime(2026, 3, 2, 10, 30, 15, 999999, tzinfo=timezone.utc)

        assert format_timestamp(dt) == "2026-03-02T10:30:15Z"

    def test_none(self):
        assert format_timestamp(None) == ""
