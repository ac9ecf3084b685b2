"""Repositories for the five notification collections.

Each repository wraps one SQLAlchemy session and returns domain models.
Queue status changes are single conditional UPDATEs keyed by primary key and
expected current status; the affected row count tells the caller whether it
won the transition.
"""

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import and_, case, delete, func, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from notifier.domain.models import (
    PREFERENCE_FLAGS,
    TERMINAL_QUEUE_STATUSES,
    DeliveryLogEntry,
    DeliveryStatus,
    DigestFrequency,
    EmailTemplate,
    NotificationEvent,
    PreferenceRecord,
    QueuedMessage,
    QueueStatus,
)
from notifier.utils.timestamps import from_storage, to_storage

from .exceptions import DataIntegrityError, PersistenceError, RecordNotFoundError
from .schema import (
    DeliveryLogModel,
    EmailTemplateModel,
    NotificationEventModel,
    PreferenceModel,
    QueuedMessageModel,
)

logger = logging.getLogger(__name__)

PENDING = QueueStatus.PENDING.value
PROCESSING = QueueStatus.PROCESSING.value
TERMINAL = tuple(sorted(TERMINAL_QUEUE_STATUSES))


@contextmanager
def _translate_errors(action: str):
    """Re-raise SQLAlchemy errors as persistence errors."""
    try:
        yield
    except IntegrityError as e:
        logger.error(f"Integrity error while trying to {action}: {e}", exc_info=True)
        raise DataIntegrityError(f"Failed to {action} due to constraint violation: {e}") from e
    except SQLAlchemyError as e:
        logger.error(f"Database error while trying to {action}: {e}", exc_info=True)
        raise PersistenceError(f"Failed to {action}: {e}") from e


class EventRepository:
    """Notification events: append-only apart from the processed flag."""

    def __init__(self, session: Session):
        self.session = session

    def add(self, event: NotificationEvent) -> NotificationEvent:
        with _translate_errors("record notification event"):
            model = NotificationEventModel.from_domain(event)
            self.session.add(model)
            self.session.flush()
            return model.to_domain()

    def get(self, event_id: str) -> Optional[NotificationEvent]:
        with _translate_errors("retrieve notification event"):
            model = self.session.get(NotificationEventModel, event_id)
            return model.to_domain() if model else None

    def mark_processed(self, event_id: str, processed_at: datetime) -> bool:
        """Flag an event as processed.

        Returns:
            True if the event transitioned, False if it was already processed

        Raises:
            RecordNotFoundError: If no event has this id
        """
        with _translate_errors("mark event processed"):
            result = self.session.execute(
                update(NotificationEventModel)
                .where(
                    NotificationEventModel.id == event_id,
                    NotificationEventModel.processed.is_(False),
                )
                .values(processed=True, processed_at=to_storage(processed_at))
            )
            if result.rowcount == 0 and self.session.get(NotificationEventModel, event_id) is None:
                raise RecordNotFoundError(f"Notification event {event_id} not found")
            return result.rowcount == 1

    def list_for_user(self, user_id: str, limit: int = 50) -> List[NotificationEvent]:
        with _translate_errors("list notification events"):
            rows = self.session.execute(
                select(NotificationEventModel)
                .where(NotificationEventModel.user_id == user_id)
                .order_by(NotificationEventModel.created_at.desc())
                .limit(limit)
            ).scalars()
            return [row.to_domain() for row in rows]

    def delete_processed_before(self, cutoff: datetime) -> int:
        """Delete processed events whose processing finished before ``cutoff``."""
        with _translate_errors("delete processed events"):
            result = self.session.execute(
                delete(NotificationEventModel).where(
                    NotificationEventModel.processed.is_(True),
                    NotificationEventModel.processed_at < to_storage(cutoff),
                )
            )
            return result.rowcount


class QueueRepository:
    """Delivery queue access, including the claim step."""

    def __init__(self, session: Session):
        self.session = session

    def add(self, message: QueuedMessage) -> QueuedMessage:
        with _translate_errors("enqueue message"):
            model = QueuedMessageModel.from_domain(message)
            self.session.add(model)
            self.session.flush()
            return model.to_domain()

    def get(self, message_id: str) -> Optional[QueuedMessage]:
        with _translate_errors("retrieve queued message"):
            model = self.session.get(QueuedMessageModel, message_id)
            return model.to_domain() if model else None

    def list_for_event(self, event_id: str) -> List[QueuedMessage]:
        with _translate_errors("list queued messages for event"):
            rows = self.session.execute(
                select(QueuedMessageModel).where(QueuedMessageModel.event_id == event_id)
            ).scalars()
            return [row.to_domain() for row in rows]

    def fetch_due(self, now: datetime, limit: int) -> List[QueuedMessage]:
        """Pending messages eligible at ``now``.

        Ordered by descending priority weight, then oldest first.
        """
        with _translate_errors("fetch due messages"):
            rows = self.session.execute(
                select(QueuedMessageModel)
                .where(
                    QueuedMessageModel.status == PENDING,
                    QueuedMessageModel.scheduled_for <= to_storage(now),
                )
                .order_by(
                    QueuedMessageModel.priority_weight.desc(),
                    QueuedMessageModel.created_at.asc(),
                    QueuedMessageModel.id.asc(),
                )
                .limit(limit)
            ).scalars()
            return [row.to_domain() for row in rows]

    def claim(self, message_id: str, now: datetime) -> bool:
        """Atomically move a message from pending to processing.

        Returns:
            True if this caller now owns the message, False if another actor
            changed its status first
        """
        with _translate_errors("claim message"):
            result = self.session.execute(
                update(QueuedMessageModel)
                .where(
                    QueuedMessageModel.id == message_id,
                    QueuedMessageModel.status == PENDING,
                )
                .values(status=PROCESSING, claimed_at=to_storage(now))
            )
            return result.rowcount == 1

    def mark_sent(
        self,
        message_id: str,
        now: datetime,
        external_message_id: Optional[str] = None,
    ) -> bool:
        with _translate_errors("mark message sent"):
            result = self.session.execute(
                update(QueuedMessageModel)
                .where(
                    QueuedMessageModel.id == message_id,
                    QueuedMessageModel.status == PROCESSING,
                )
                .values(
                    status=QueueStatus.SENT.value,
                    sent_at=to_storage(now),
                    processed_at=to_storage(now),
                    external_message_id=external_message_id,
                    error_message=None,
                )
            )
            return result.rowcount == 1

    def reschedule(
        self,
        message_id: str,
        attempts: int,
        scheduled_for: datetime,
        error_message: Optional[str],
    ) -> bool:
        """Return a claimed message to pending for a later retry."""
        with _translate_errors("reschedule message"):
            result = self.session.execute(
                update(QueuedMessageModel)
                .where(
                    QueuedMessageModel.id == message_id,
                    QueuedMessageModel.status == PROCESSING,
                    QueuedMessageModel.max_attempts > attempts,
                )
                .values(
                    status=PENDING,
                    attempts=attempts,
                    scheduled_for=to_storage(scheduled_for),
                    claimed_at=None,
                    error_message=error_message,
                )
            )
            return result.rowcount == 1

    def release(self, message_id: str) -> bool:
        """Return a claimed message to pending without counting an attempt."""
        with _translate_errors("release message"):
            result = self.session.execute(
                update(QueuedMessageModel)
                .where(
                    QueuedMessageModel.id == message_id,
                    QueuedMessageModel.status == PROCESSING,
                )
                .values(status=PENDING, claimed_at=None)
            )
            return result.rowcount == 1

    def mark_failed(
        self,
        message_id: str,
        attempts: int,
        now: datetime,
        error_message: Optional[str],
    ) -> bool:
        with _translate_errors("mark message failed"):
            result = self.session.execute(
                update(QueuedMessageModel)
                .where(
                    QueuedMessageModel.id == message_id,
                    QueuedMessageModel.status == PROCESSING,
                )
                .values(
                    status=QueueStatus.FAILED.value,
                    attempts=attempts,
                    processed_at=to_storage(now),
                    error_message=error_message,
                )
            )
            return result.rowcount == 1

    def cancel(self, message_id: str, now: datetime) -> bool:
        """Cancel a message that has not been claimed yet."""
        with _translate_errors("cancel message"):
            result = self.session.execute(
                update(QueuedMessageModel)
                .where(
                    QueuedMessageModel.id == message_id,
                    QueuedMessageModel.status == PENDING,
                )
                .values(status=QueueStatus.CANCELLED.value, processed_at=to_storage(now))
            )
            return result.rowcount == 1

    def find_stale_claims(self, claimed_before: datetime) -> List[QueuedMessage]:
        with _translate_errors("find stale claims"):
            rows = self.session.execute(
                select(QueuedMessageModel)
                .where(
                    QueuedMessageModel.status == PROCESSING,
                    or_(
                        QueuedMessageModel.claimed_at.is_(None),
                        QueuedMessageModel.claimed_at < to_storage(claimed_before),
                    ),
                )
                .order_by(QueuedMessageModel.claimed_at.asc())
            ).scalars()
            return [row.to_domain() for row in rows]

    def stats(self) -> Dict[str, int]:
        """Message count per status (every status present, zero when empty)."""
        with _translate_errors("compute queue stats"):
            counts = {status.value: 0 for status in QueueStatus}
            rows = self.session.execute(
                select(QueuedMessageModel.status, func.count()).group_by(QueuedMessageModel.status)
            )
            for status, count in rows:
                counts[status] = count
            counts["total"] = sum(counts[status.value] for status in QueueStatus)
            return counts

    def processed_between(self, start: datetime, end: datetime) -> List[QueuedMessage]:
        """Messages that reached a terminal state within [start, end)."""
        with _translate_errors("list processed messages"):
            rows = self.session.execute(
                select(QueuedMessageModel).where(
                    QueuedMessageModel.status.in_(TERMINAL),
                    QueuedMessageModel.processed_at >= to_storage(start),
                    QueuedMessageModel.processed_at < to_storage(end),
                )
            ).scalars()
            return [row.to_domain() for row in rows]

    def delete_terminal_before(self, cutoff: datetime) -> int:
        with _translate_errors("delete terminal messages"):
            result = self.session.execute(
                delete(QueuedMessageModel).where(
                    QueuedMessageModel.status.in_(TERMINAL),
                    QueuedMessageModel.processed_at < to_storage(cutoff),
                )
            )
            return result.rowcount


class DeliveryLogRepository:
    """Delivery log: one row per terminal outcome, patched by tracking."""

    def __init__(self, session: Session):
        self.session = session

    def add(self, entry: DeliveryLogEntry) -> DeliveryLogEntry:
        with _translate_errors("write delivery log entry"):
            model = DeliveryLogModel.from_domain(entry)
            self.session.add(model)
            self.session.flush()
            return model.to_domain()

    def for_message(self, message_id: str) -> List[DeliveryLogEntry]:
        with _translate_errors("list delivery log entries"):
            rows = self.session.execute(
                select(DeliveryLogModel)
                .where(DeliveryLogModel.message_id == message_id)
                .order_by(DeliveryLogModel.sent_at.asc())
            ).scalars()
            return [row.to_domain() for row in rows]

    def history(self, user_id: str, limit: int = 50) -> List[DeliveryLogEntry]:
        """A user's log entries, newest first."""
        with _translate_errors("load notification history"):
            rows = self.session.execute(
                select(DeliveryLogModel)
                .where(DeliveryLogModel.user_id == user_id)
                .order_by(DeliveryLogModel.sent_at.desc())
                .limit(limit)
            ).scalars()
            return [row.to_domain() for row in rows]

    def _find_trackable(self, tracking_id: str) -> Optional[DeliveryLogModel]:
        return self.session.execute(
            select(DeliveryLogModel)
            .where(
                or_(
                    DeliveryLogModel.message_id == tracking_id,
                    DeliveryLogModel.external_message_id == tracking_id,
                ),
                DeliveryLogModel.status.in_(
                    (DeliveryStatus.SENT.value, DeliveryStatus.OPENED.value, DeliveryStatus.CLICKED.value)
                ),
            )
            .order_by(DeliveryLogModel.sent_at.desc())
            .limit(1)
        ).scalar_one_or_none()

    def mark_opened(self, tracking_id: str, at: datetime) -> Optional[DeliveryLogEntry]:
        """Set ``opened_at`` unless already set.

        Args:
            tracking_id: Queue message id or the transport's message id

        Returns:
            The (possibly unchanged) entry, or None if nothing matches
        """
        with _translate_errors("record open"):
            model = self._find_trackable(tracking_id)
            if model is None:
                return None
            if model.opened_at is None:
                model.opened_at = to_storage(at)
                self.session.flush()
            return model.to_domain()

    def mark_clicked(self, tracking_id: str, at: datetime) -> Optional[DeliveryLogEntry]:
        """Set ``clicked_at`` (and ``opened_at`` if still empty) unless already set."""
        with _translate_errors("record click"):
            model = self._find_trackable(tracking_id)
            if model is None:
                return None
            stamp = to_storage(at)
            if model.opened_at is None:
                model.opened_at = stamp
            if model.clicked_at is None:
                model.clicked_at = stamp
            self.session.flush()
            return model.to_domain()

    def mark_bounced(
        self, tracking_id: str, error_message: Optional[str] = None
    ) -> Optional[DeliveryLogEntry]:
        """Reclassify a sent entry as bounced (transport bounce callback)."""
        with _translate_errors("record bounce"):
            model = self._find_trackable(tracking_id)
            if model is None:
                return None
            model.status = DeliveryStatus.BOUNCED.value
            if error_message:
                model.error_message = error_message
            self.session.flush()
            return model.to_domain()

    GROUPINGS = ("type", "hour", "day")

    def outcome_counts(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        group_by: Optional[str] = None,
        user_id: Optional[str] = None,
        notification_type: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """Count outcomes and engagement over ``[start, end)``.

        Args:
            group_by: None for one overall row, or "type", "hour" or "day";
                time buckets are prefixes of the stored ISO timestamp
                (``2026-03-02T10`` and ``2026-03-02``)

        Returns:
            One dict per group with ``key`` (when grouped), ``total``,
            ``sent``, ``failed``, ``bounced``, ``opened`` and ``clicked``
        """
        if group_by is not None and group_by not in self.GROUPINGS:
            raise ValueError(f"Unsupported grouping: {group_by}")

        keys = {
            "type": DeliveryLogModel.type,
            "hour": func.substr(DeliveryLogModel.sent_at, 1, 13),
            "day": func.substr(DeliveryLogModel.sent_at, 1, 10),
        }
        key = keys.get(group_by) if group_by else None

        def status_count(status: DeliveryStatus):
            return func.sum(case((DeliveryLogModel.status == status.value, 1), else_=0))

        # Engagement only counts on rows still classed as sent, so rates stay within [0, 1]
        def engaged_count(column):
            delivered = and_(DeliveryLogModel.status == DeliveryStatus.SENT.value, column.is_not(None))
            return func.sum(case((delivered, 1), else_=0))

        columns = [
            func.count().label("total"),
            status_count(DeliveryStatus.SENT).label("sent"),
            status_count(DeliveryStatus.FAILED).label("failed"),
            status_count(DeliveryStatus.BOUNCED).label("bounced"),
            engaged_count(DeliveryLogModel.opened_at).label("opened"),
            engaged_count(DeliveryLogModel.clicked_at).label("clicked"),
        ]
        stmt = select(key.label("key"), *columns) if key is not None else select(*columns)

        if start is not None:
            stmt = stmt.where(DeliveryLogModel.sent_at >= to_storage(start))
        if end is not None:
            stmt = stmt.where(DeliveryLogModel.sent_at < to_storage(end))
        if user_id is not None:
            stmt = stmt.where(DeliveryLogModel.user_id == user_id)
        if notification_type is not None:
            stmt = stmt.where(DeliveryLogModel.type == notification_type)
        if key is not None:
            stmt = stmt.group_by(key).order_by(key)

        with _translate_errors("aggregate delivery log"):
            rows = []
            for row in self.session.execute(stmt):
                values = dict(row._mapping)
                for name in ("total", "sent", "failed", "bounced", "opened", "clicked"):
                    values[name] = int(values[name] or 0)
                rows.append(values)
            return rows

    def last_engagement(self, user_id: str) -> Optional[datetime]:
        """Latest open or click recorded for the user."""
        with _translate_errors("load last engagement"):
            opened, clicked = self.session.execute(
                select(func.max(DeliveryLogModel.opened_at), func.max(DeliveryLogModel.clicked_at)).where(
                    DeliveryLogModel.user_id == user_id
                )
            ).one()
            latest = max((value for value in (opened, clicked) if value), default=None)
            return from_storage(latest)

    def delete_before(self, cutoff: datetime) -> int:
        with _translate_errors("delete delivery log entries"):
            result = self.session.execute(
                delete(DeliveryLogModel).where(DeliveryLogModel.sent_at < to_storage(cutoff))
            )
            return result.rowcount


class PreferenceRepository:
    def __init__(self, session: Session):
        self.session = session

    def get(self, user_id: str) -> Optional[PreferenceRecord]:
        with _translate_errors("retrieve preferences"):
            model = self.session.get(PreferenceModel, user_id)
            return model.to_domain() if model else None

    def save(self, record: PreferenceRecord) -> PreferenceRecord:
        """Insert or update a user's record."""
        with _translate_errors("save preferences"):
            model = self.session.get(PreferenceModel, record.user_id)
            if model is None:
                model = PreferenceModel.from_domain(record)
                self.session.add(model)
            else:
                model.apply(record)
            self.session.flush()
            return model.to_domain()

    def flag_counts(self, flags: Iterable[str] = PREFERENCE_FLAGS) -> Dict[str, int]:
        """Number of users with each flag enabled."""
        with _translate_errors("count preference flags"):
            counts = {}
            for flag in flags:
                column = getattr(PreferenceModel, flag)
                counts[flag] = self.session.execute(
                    select(func.count()).select_from(PreferenceModel).where(column.is_(True))
                ).scalar_one()
            return counts

    def digest_counts(self) -> Dict[str, int]:
        with _translate_errors("count digest frequencies"):
            counts = {frequency.value: 0 for frequency in DigestFrequency}
            rows = self.session.execute(
                select(PreferenceModel.digest_frequency, func.count()).group_by(
                    PreferenceModel.digest_frequency
                )
            )
            for frequency, count in rows:
                counts[frequency] = count
            return counts

    def count(self) -> int:
        with _translate_errors("count preference records"):
            return self.session.execute(
                select(func.count()).select_from(PreferenceModel)
            ).scalar_one()


class TemplateRepository:
    def __init__(self, session: Session):
        self.session = session

    def add(self, template: EmailTemplate) -> EmailTemplate:
        with _translate_errors(f"store template '{template.name}'"):
            model = EmailTemplateModel.from_domain(template)
            self.session.add(model)
            self.session.flush()
            return model.to_domain()

    def replace(self, template: EmailTemplate) -> EmailTemplate:
        """Overwrite the content of the template with the same name."""
        with _translate_errors(f"replace template '{template.name}'"):
            model = self.session.execute(
                select(EmailTemplateModel).where(EmailTemplateModel.name == template.name)
            ).scalar_one_or_none()
            if model is None:
                raise RecordNotFoundError(f"Template '{template.name}' not found")
            model.type = template.type
            model.subject = template.subject
            model.html_template = template.html_template
            model.text_template = template.text_template
            model.variables = list(template.variables)
            model.is_active = template.is_active
            model.updated_at = to_storage(template.updated_at)
            self.session.flush()
            return model.to_domain()

    def get(self, template_id: str) -> Optional[EmailTemplate]:
        with _translate_errors("retrieve template"):
            model = self.session.get(EmailTemplateModel, template_id)
            return model.to_domain() if model else None

    def get_by_name(self, name: str) -> Optional[EmailTemplate]:
        with _translate_errors("retrieve template by name"):
            model = self.session.execute(
                select(EmailTemplateModel).where(EmailTemplateModel.name == name)
            ).scalar_one_or_none()
            return model.to_domain() if model else None

    def get_active_by_type(self, notification_type: str) -> Optional[EmailTemplate]:
        """Most recently updated active template for a category."""
        with _translate_errors("retrieve template by type"):
            model = self.session.execute(
                select(EmailTemplateModel)
                .where(
                    EmailTemplateModel.type == notification_type,
                    EmailTemplateModel.is_active.is_(True),
                )
                .order_by(EmailTemplateModel.updated_at.desc(), EmailTemplateModel.name.asc())
                .limit(1)
            ).scalar_one_or_none()
            return model.to_domain() if model else None

    def list_active(self) -> List[EmailTemplate]:
        with _translate_errors("list templates"):
            rows = self.session.execute(
                select(EmailTemplateModel)
                .where(EmailTemplateModel.is_active.is_(True))
                .order_by(EmailTemplateModel.type.asc(), EmailTemplateModel.name.asc())
            ).scalars()
            return [row.to_domain() for row in rows]

    def deactivate(self, template_id: str, now: datetime) -> bool:
        with _translate_errors("deactivate template"):
            result = self.session.execute(
                update(EmailTemplateModel)
                .where(
                    EmailTemplateModel.id == template_id,
                    EmailTemplateModel.is_active.is_(True),
                )
                .values(is_active=False, updated_at=to_storage(now))
            )
            return result.rowcount == 1
