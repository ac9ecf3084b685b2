"""Notification service: the public entry point of the pipeline.

``trigger`` records the event, consults the preference gate, resolves the
recipient, renders the category's template and enqueues one message. The
dispatcher takes it from there.
"""

from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import ValidationError

from notifier.domain.categories import CategoryRegistry, priority_weight
from notifier.domain.models import DeliveryLogEntry, NotificationEvent, PreferenceRecord, QueuedMessage
from notifier.logging import get_logger
from notifier.logging.context import log_context
from notifier.persistence.database import Database
from notifier.persistence.exceptions import PersistenceError
from notifier.persistence.repositories import DeliveryLogRepository, EventRepository, QueueRepository
from notifier.preferences.gate import PreferenceGate
from notifier.preferences.tokens import decode_token
from notifier.templates.catalog import TemplateCatalog
from notifier.templates.defaults import SAMPLE_PAYLOADS
from notifier.templates.renderer import render
from notifier.templates.variables import VariableBuilder
from notifier.utils.hashing import new_id
from notifier.utils.timestamps import Clock, utc_now

from .directory import UserDirectory
from .models import (
    EventSpec,
    NotificationError,
    RecipientError,
    TriggerResult,
)

logger = get_logger(__name__, component="notification")


class NotificationService:
    """Façade over intake, preferences and the queue.

    All collaborators are passed in; nothing here is a module-level
    singleton, so tests build one service per case.

    Args:
        database: Database holding events, queue and log
        directory: User directory resolving user ids to recipients
        catalog: Template catalog
        gate: Preference gate
        variables: Default variable builder
        registry: Category table
        clock: Source of "now"
        token_secret: Secret for verifying unsubscribe tokens
    """

    def __init__(
        self,
        database: Database,
        directory: UserDirectory,
        catalog: TemplateCatalog,
        gate: PreferenceGate,
        variables: Optional[VariableBuilder] = None,
        registry: Optional[CategoryRegistry] = None,
        clock: Clock = utc_now,
        token_secret: Optional[str] = None,
    ):
        self.database = database
        self.directory = directory
        self.catalog = catalog
        self.gate = gate
        self.variables = variables or VariableBuilder(clock=clock, token_secret=token_secret)
        self.registry = registry or gate.registry
        self.clock = clock
        self.token_secret = token_secret

    def trigger(self, spec: Union[EventSpec, Mapping[str, Any]]) -> TriggerResult:
        """Accept a notification request.

        Args:
            spec: EventSpec, or a mapping with the same fields

        Returns:
            TriggerResult: queued (with ids), skipped by preference, or
            failed with a reason. Never raises for per-request problems.
        """
        try:
            if not isinstance(spec, EventSpec):
                spec = EventSpec.model_validate(dict(spec))
        except ValidationError as e:
            logger.warning(
                f"Rejected invalid notification request: {e.error_count()} error(s)",
                extra={"event": "notification.invalid"},
            )
            return TriggerResult.failure(f"Invalid notification request: {e}")

        category = self.registry.get(spec.type)
        priority = spec.priority or category.priority
        now = self.clock()

        event = NotificationEvent(
            id=new_id(),
            type=spec.type,
            user_id=spec.user_id,
            payload=spec.payload,
            priority=priority,
            scheduled_for=spec.scheduled_for,
            created_at=now,
        )

        with log_context(event_id=event.id, user_id=event.user_id, notification_type=event.type):
            try:
                with self.database.session() as session:
                    EventRepository(session).add(event)
            except PersistenceError as e:
                logger.error(
                    f"Failed to record notification event: {e}",
                    extra={"event": "notification.error", "stage": "record"},
                )
                return TriggerResult.failure(f"Failed to record notification event: {e}")

            try:
                return self._enqueue(event, category)
            except PersistenceError as e:
                logger.error(
                    f"Failed to enqueue notification: {e}",
                    extra={"event": "notification.error", "stage": "enqueue"},
                )
                return TriggerResult.failure(f"Failed to enqueue notification: {e}", event_id=event.id)

    def _enqueue(self, event: NotificationEvent, category) -> TriggerResult:
        if not self.gate.may_deliver(event.user_id, event.type):
            reason = f"User has disabled {category.preference_key}"
            self._close_event(event.id)
            logger.info(
                f"Skipped {event.type} for user {event.user_id}: {reason}",
                extra={"event": "notification.skip", "reason": reason},
            )
            return TriggerResult.skip(event.id, reason)

        try:
            recipient = self._resolve_recipient(event.user_id)
            template = self.catalog.get_by_type(event.type)
            bag = self.variables.build(event.payload, recipient, event.type)
            rendered = render(template, bag)
        except NotificationError as e:
            self._close_event(event.id)
            logger.warning(
                f"Could not prepare {event.type} for user {event.user_id}: {e}",
                extra={"event": "notification.failed", "error_type": type(e).__name__},
            )
            return TriggerResult.failure(str(e), event_id=event.id)

        message = QueuedMessage(
            id=new_id(),
            event_id=event.id,
            user_id=event.user_id,
            type=event.type,
            recipient_address=recipient.email,
            subject=rendered.subject,
            html_body=rendered.html,
            text_body=rendered.text,
            template_id=template.id,
            priority_weight=priority_weight(event.priority),
            max_attempts=category.max_attempts,
            scheduled_for=event.scheduled_for or event.created_at,
            created_at=self.clock(),
        )
        with self.database.session() as session:
            QueueRepository(session).add(message)

        logger.info(
            f"Queued {event.type} for user {event.user_id}",
            extra={
                "event": "notification.queued",
                "queued_id": message.id,
                "priority_weight": message.priority_weight,
            },
        )
        return TriggerResult.queued(event.id, message.id)

    def _resolve_recipient(self, user_id: str):
        recipient = self.directory.resolve(user_id)
        if recipient is None:
            raise RecipientError(f"User not found: {user_id}")
        if not recipient.email:
            raise RecipientError(f"User {user_id} has no email address")
        return recipient

    def _close_event(self, event_id: str) -> None:
        # Intake produced no message, so the event's work is already complete
        with self.database.session() as session:
            EventRepository(session).mark_processed(event_id, self.clock())

    def cancel(self, queued_id: str) -> bool:
        """Cancel a message that is still pending.

        Returns:
            True if the message was cancelled; False if it was already claimed,
            terminal, or does not exist
        """
        now = self.clock()
        with self.database.session() as session:
            queue = QueueRepository(session)
            message = queue.get(queued_id)
            if message is None or not queue.cancel(queued_id, now):
                return False
            if message.event_id and EventRepository(session).get(message.event_id) is not None:
                EventRepository(session).mark_processed(message.event_id, now)

        logger.info(
            f"Cancelled queued message {queued_id}",
            extra={"event": "notification.cancelled", "queued_id": queued_id},
        )
        return True

    def queue_stats(self) -> Dict[str, int]:
        """Message counts per queue status, plus ``total``."""
        with self.database.session() as session:
            return QueueRepository(session).stats()

    def notification_history(self, user_id: str, limit: int = 50) -> List[DeliveryLogEntry]:
        """A user's delivery log entries, newest first."""
        with self.database.session() as session:
            return DeliveryLogRepository(session).history(user_id, limit)

    def send_test(self, user_id: str, notification_type: str) -> TriggerResult:
        """Trigger ``notification_type`` for ``user_id`` with built-in sample data."""
        payload = SAMPLE_PAYLOADS.get(notification_type)
        if payload is None:
            return TriggerResult.failure(f"No sample data for notification type: {notification_type}")
        logger.info(
            f"Sending test {notification_type} to user {user_id}",
            extra={"event": "notification.test", "user_id": user_id},
        )
        return self.trigger({"type": notification_type, "user_id": user_id, "payload": payload})

    def unsubscribe(self, token: str, category: Optional[str] = None) -> PreferenceRecord:
        """Handle an unsubscribe link.

        Raises:
            InvalidUnsubscribeToken: If the token does not decode or verify
            RecipientError: If no user owns the encoded address
            ProtectedPreferenceError: If ``category`` is the security category
            PreferenceError: If ``category`` is unknown
        """
        email = decode_token(token, self.token_secret)
        recipient = self.directory.find_by_email(email)
        if recipient is None:
            raise RecipientError("User not found")
        return self.gate.unsubscribe(recipient.user_id, category)
