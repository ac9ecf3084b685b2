"""Open, click and bounce callbacks.

The tracking id may be the queue message id or the transport's message id.
Repeated callbacks keep the first timestamp; a click also counts as an
open when no open was recorded.
"""

from typing import Optional

from notifier.domain.models import DeliveryLogEntry
from notifier.logging import get_logger
from notifier.persistence.database import Database
from notifier.persistence.repositories import DeliveryLogRepository
from notifier.utils.timestamps import Clock, utc_now

logger = get_logger(__name__, component="tracking")


class TrackingService:
    def __init__(self, database: Database, clock: Clock = utc_now):
        self.database = database
        self.clock = clock

    def record_open(self, tracking_id: str) -> Optional[DeliveryLogEntry]:
        """Patch ``opened_at``; returns None when no sent entry matches."""
        with self.database.session() as session:
            entry = DeliveryLogRepository(session).mark_opened(tracking_id, self.clock())
        self._log("open", tracking_id, entry)
        return entry

    def record_click(self, tracking_id: str) -> Optional[DeliveryLogEntry]:
        with self.database.session() as session:
            entry = DeliveryLogRepository(session).mark_clicked(tracking_id, self.clock())
        self._log("click", tracking_id, entry)
        return entry

    def record_bounce(self, tracking_id: str, reason: Optional[str] = None) -> Optional[DeliveryLogEntry]:
        with self.database.session() as session:
            entry = DeliveryLogRepository(session).mark_bounced(tracking_id, reason)
        self._log("bounce", tracking_id, entry)
        return entry

    @staticmethod
    def _log(kind: str, tracking_id: str, entry: Optional[DeliveryLogEntry]) -> None:
        if entry is None:
            logger.info(
                f"Ignored {kind} callback for unknown message {tracking_id}",
                extra={"event": f"tracking.{kind}.unmatched", "tracking_id": tracking_id},
            )
        else:
            logger.debug(
                f"Recorded {kind} for message {entry.message_id}",
                extra={"event": f"tracking.{kind}.recorded", "message_id": entry.message_id},
            )
