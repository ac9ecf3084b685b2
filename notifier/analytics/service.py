"""Read-side aggregation over the delivery log and the queue.

Nothing here writes. Rates are fractions in [0, 1] and are 0.0 when their
denominator is zero:

- delivery_rate  = sent / (sent + failed + bounced)
- open_rate      = opened / sent
- click_through  = clicked / opened
- bounce_rate    = bounced / total
- failure_rate   = failed / total
"""

from datetime import datetime, timedelta
from typing import Any, Dict, List, Mapping, Optional

from notifier.logging import get_logger
from notifier.persistence.database import Database
from notifier.persistence.repositories import DeliveryLogRepository, QueueRepository
from notifier.utils.timestamps import Clock, format_timestamp, utc_now

logger = get_logger(__name__, component="analytics")

COUNT_FIELDS = ("total", "sent", "failed", "bounced", "opened", "clicked")


def _ratio(numerator: int, denominator: int) -> float:
    return round(numerator / denominator, 4) if denominator else 0.0


def summarize(counts: Mapping[str, Any]) -> Dict[str, Any]:
    """Add the derived rates to a row of outcome counts.

    Example:
        >>> summarize({"total": 4, "sent": 3, "failed": 1, "bounced": 0, "opened": 2, "clicked": 1})["delivery_rate"]
        0.75
    """
    stats = {name: int(counts.get(name, 0)) for name in COUNT_FIELDS}
    sent, failed, bounced = stats["sent"], stats["failed"], stats["bounced"]
    stats.update(
        delivery_rate=_ratio(sent, sent + failed + bounced),
        open_rate=_ratio(stats["opened"], sent),
        click_through_rate=_ratio(stats["clicked"], stats["opened"]),
        bounce_rate=_ratio(bounced, stats["total"]),
        failure_rate=_ratio(failed, stats["total"]),
    )
    return stats


class AnalyticsService:
    """Delivery, engagement and queue metrics.

    Args:
        database: Database holding the log and queue
        clock: Source of "now" for relative windows
    """

    def __init__(self, database: Database, clock: Clock = utc_now):
        self.database = database
        self.clock = clock

    def delivery_stats(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        notification_type: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Overall counts and rates for log entries written in ``[start, end)``."""
        with self.database.session() as session:
            rows = DeliveryLogRepository(session).outcome_counts(
                start, end, notification_type=notification_type
            )
        return summarize(rows[0] if rows else {})

    def by_category(
        self, start: Optional[datetime] = None, end: Optional[datetime] = None
    ) -> Dict[str, Dict[str, Any]]:
        """Counts and rates per notification category."""
        with self.database.session() as session:
            rows = DeliveryLogRepository(session).outcome_counts(start, end, group_by="type")
        return {row["key"]: summarize(row) for row in rows}

    def time_series(
        self,
        granularity: str = "day",
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> List[Dict[str, Any]]:
        """Counts and rates per hour or per day, oldest bucket first.

        Bucket labels are ``YYYY-MM-DDTHH`` for hours and ``YYYY-MM-DD`` for days.

        Raises:
            ValueError: If ``granularity`` is neither "hour" nor "day"
        """
        if granularity not in ("hour", "day"):
            raise ValueError(f"granularity must be 'hour' or 'day', got: {granularity}")

        with self.database.session() as session:
            rows = DeliveryLogRepository(session).outcome_counts(start, end, group_by=granularity)
        return [{"bucket": row["key"], **summarize(row)} for row in rows]

    def queue_analytics(self, window_seconds: float = 3600) -> Dict[str, Any]:
        """Queue depth plus latency and throughput over the trailing window.

        ``avg_claim_latency_seconds`` is the mean time from enqueue to the
        final claim, ``avg_delivery_seconds`` the mean time from enqueue to
        ``sent``, both over messages that finished inside the window.
        """
        now = self.clock()
        start = now - timedelta(seconds=window_seconds)
        with self.database.session() as session:
            queue = QueueRepository(session)
            counts = queue.stats()
            finished = queue.processed_between(start, now)

        claim_latencies = [
            (m.claimed_at - m.created_at).total_seconds() for m in finished if m.claimed_at
        ]
        delivery_times = [(m.sent_at - m.created_at).total_seconds() for m in finished if m.sent_at]
        sent = sum(1 for m in finished if m.status == "sent")

        return {
            "counts": counts,
            "window_seconds": window_seconds,
            "processed": len(finished),
            "sent": sent,
            "throughput_per_minute": round(len(finished) / (window_seconds / 60), 4),
            "avg_claim_latency_seconds": (
                round(sum(claim_latencies) / len(claim_latencies), 3) if claim_latencies else None
            ),
            "avg_delivery_seconds": (
                round(sum(delivery_times) / len(delivery_times), 3) if delivery_times else None
            ),
        }

    def user_engagement(self, user_id: str, top: int = 3) -> Dict[str, Any]:
        """One user's engagement: overall rates, most-received categories, last engagement."""
        with self.database.session() as session:
            repo = DeliveryLogRepository(session)
            overall = repo.outcome_counts(user_id=user_id)
            per_type = repo.outcome_counts(group_by="type", user_id=user_id)
            last = repo.last_engagement(user_id)

        ranked = sorted(per_type, key=lambda row: (-row["total"], row["key"]))
        return {
            "user_id": user_id,
            **summarize(overall[0] if overall else {}),
            "top_categories": [row["key"] for row in ranked[:top]],
            "last_engaged_at": format_timestamp(last) or None,
        }
