"""Retention cleanup of processed events, finished queue rows and old log entries."""

from dataclasses import dataclass
from datetime import timedelta

from notifier.logging import get_logger
from notifier.utils.timestamps import Clock, utc_now

from .database import Database
from .repositories import DeliveryLogRepository, EventRepository, QueueRepository

logger = get_logger(__name__, component="retention")


@dataclass
class CleanupResult:
    events_deleted: int = 0
    queue_deleted: int = 0
    logs_deleted: int = 0

    @property
    def total(self) -> int:
        return self.events_deleted + self.queue_deleted + self.logs_deleted


class RetentionService:
    """Deletes rows that are past their retention window.

    Only processed events and terminal queue rows are eligible; pending and
    processing work is never removed.
    """

    def __init__(
        self,
        database: Database,
        events_days: int = 30,
        queue_days: int = 7,
        logs_days: int = 90,
        clock: Clock = utc_now,
    ):
        self.database = database
        self.events_days = events_days
        self.queue_days = queue_days
        self.logs_days = logs_days
        self.clock = clock

    def run(self) -> CleanupResult:
        now = self.clock()
        result = CleanupResult()

        with self.database.session() as session:
            result.events_deleted = EventRepository(session).delete_processed_before(
                now - timedelta(days=self.events_days)
            )
            result.queue_deleted = QueueRepository(session).delete_terminal_before(
                now - timedelta(days=self.queue_days)
            )
            result.logs_deleted = DeliveryLogRepository(session).delete_before(
                now - timedelta(days=self.logs_days)
            )

        logger.info(
            f"Retention cleanup removed {result.total} rows",
            extra={
                "event": "retention.cleanup.completed",
                "events_deleted": result.events_deleted,
                "queue_deleted": result.queue_deleted,
                "logs_deleted": result.logs_deleted,
            },
        )
        return result
