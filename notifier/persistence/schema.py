"""ORM tables and conversion to and from domain models.

Timestamps are stored as fixed-width ISO-8601 strings (see
``notifier.utils.timestamps``), so ordering and range filters on them are
plain string comparisons.
"""

import logging

from sqlalchemy import JSON, Boolean, Column, Index, Integer, String, Text, inspect
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base

from notifier.domain.models import (
    DeliveryLogEntry,
    EmailTemplate,
    NotificationEvent,
    PreferenceRecord,
    QueuedMessage,
)
from notifier.utils.timestamps import from_storage, to_storage

logger = logging.getLogger(__name__)

Base = declarative_base()

TIMESTAMP = String(32)


class NotificationEventModel(Base):
    __tablename__ = "notification_events"

    id = Column(String(32), primary_key=True)
    type = Column(String(50), nullable=False)
    user_id = Column(String(255), nullable=False)
    payload = Column(JSON, nullable=False, default=dict)
    priority = Column(String(16), nullable=False)
    scheduled_for = Column(TIMESTAMP, nullable=True)
    processed = Column(Boolean, nullable=False, default=False)
    processed_at = Column(TIMESTAMP, nullable=True)
    created_at = Column(TIMESTAMP, nullable=False)

    __table_args__ = (
        Index("idx_events_processed", "processed", "processed_at"),
        Index("idx_events_user", "user_id"),
    )

    def to_domain(self) -> NotificationEvent:
        return NotificationEvent(
            id=self.id,
            type=self.type,
            user_id=self.user_id,
            payload=self.payload or {},
            priority=self.priority,
            scheduled_for=from_storage(self.scheduled_for),
            processed=bool(self.processed),
            processed_at=from_storage(self.processed_at),
            created_at=from_storage(self.created_at),
        )

    @classmethod
    def from_domain(cls, event: NotificationEvent) -> "NotificationEventModel":
        return cls(
            id=event.id,
            type=event.type,
            user_id=event.user_id,
            payload=event.payload,
            priority=event.priority,
            scheduled_for=to_storage(event.scheduled_for),
            processed=event.processed,
            processed_at=to_storage(event.processed_at),
            created_at=to_storage(event.created_at),
        )


class QueuedMessageModel(Base):
    """Delivery queue row; mutated only through conditional status updates."""

    __tablename__ = "email_queue"

    id = Column(String(32), primary_key=True)
    event_id = Column(String(32), nullable=True)
    user_id = Column(String(255), nullable=False)
    type = Column(String(50), nullable=False)
    recipient_address = Column(String(320), nullable=False)
    subject = Column(Text, nullable=False)
    html_body = Column(Text, nullable=False)
    text_body = Column(Text, nullable=False)
    template_id = Column(String(32), nullable=True)
    priority_weight = Column(Integer, nullable=False)
    attempts = Column(Integer, nullable=False, default=0)
    max_attempts = Column(Integer, nullable=False)
    scheduled_for = Column(TIMESTAMP, nullable=False)
    status = Column(String(16), nullable=False)
    claimed_at = Column(TIMESTAMP, nullable=True)
    processed_at = Column(TIMESTAMP, nullable=True)
    sent_at = Column(TIMESTAMP, nullable=True)
    error_message = Column(Text, nullable=True)
    external_message_id = Column(String(255), nullable=True)
    created_at = Column(TIMESTAMP, nullable=False)

    __table_args__ = (
        Index("idx_queue_due", "status", "scheduled_for"),
        Index("idx_queue_order", "status", "priority_weight", "created_at"),
        Index("idx_queue_event", "event_id"),
    )

    def to_domain(self) -> QueuedMessage:
        return QueuedMessage(
            id=self.id,
            event_id=self.event_id,
            user_id=self.user_id,
            type=self.type,
            recipient_address=self.recipient_address,
            subject=self.subject,
            html_body=self.html_body,
            text_body=self.text_body,
            template_id=self.template_id,
            priority_weight=self.priority_weight,
            attempts=self.attempts,
            max_attempts=self.max_attempts,
            scheduled_for=from_storage(self.scheduled_for),
            status=self.status,
            claimed_at=from_storage(self.claimed_at),
            processed_at=from_storage(self.processed_at),
            sent_at=from_storage(self.sent_at),
            error_message=self.error_message,
            external_message_id=self.external_message_id,
            created_at=from_storage(self.created_at),
        )

    @classmethod
    def from_domain(cls, message: QueuedMessage) -> "QueuedMessageModel":
        return cls(
            id=message.id,
            event_id=message.event_id,
            user_id=message.user_id,
            type=message.type,
            recipient_address=message.recipient_address,
            subject=message.subject,
            html_body=message.html_body,
            text_body=message.text_body,
            template_id=message.template_id,
            priority_weight=message.priority_weight,
            attempts=message.attempts,
            max_attempts=message.max_attempts,
            scheduled_for=to_storage(message.scheduled_for),
            status=message.status,
            claimed_at=to_storage(message.claimed_at),
            processed_at=to_storage(message.processed_at),
            sent_at=to_storage(message.sent_at),
            error_message=message.error_message,
            external_message_id=message.external_message_id,
            created_at=to_storage(message.created_at),
        )


class DeliveryLogModel(Base):
    __tablename__ = "delivery_logs"

    id = Column(String(32), primary_key=True)
    user_id = Column(String(255), nullable=False)
    message_id = Column(String(32), nullable=False)
    type = Column(String(50), nullable=False)
    status = Column(String(16), nullable=False)
    recipient_address = Column(String(320), nullable=False)
    subject = Column(Text, nullable=False)
    sent_at = Column(TIMESTAMP, nullable=False)
    opened_at = Column(TIMESTAMP, nullable=True)
    clicked_at = Column(TIMESTAMP, nullable=True)
    error_message = Column(Text, nullable=True)
    external_message_id = Column(String(255), nullable=True)

    __table_args__ = (
        Index("idx_logs_message", "message_id"),
        Index("idx_logs_user", "user_id", "sent_at"),
        Index("idx_logs_sent_at", "sent_at"),
        Index("idx_logs_external", "external_message_id"),
    )

    def to_domain(self) -> DeliveryLogEntry:
        return DeliveryLogEntry(
            id=self.id,
            user_id=self.user_id,
            message_id=self.message_id,
            type=self.type,
            status=self.status,
            recipient_address=self.recipient_address,
            subject=self.subject,
            sent_at=from_storage(self.sent_at),
            opened_at=from_storage(self.opened_at),
            clicked_at=from_storage(self.clicked_at),
            error_message=self.error_message,
            external_message_id=self.external_message_id,
        )

    @classmethod
    def from_domain(cls, entry: DeliveryLogEntry) -> "DeliveryLogModel":
        return cls(
            id=entry.id,
            user_id=entry.user_id,
            message_id=entry.message_id,
            type=entry.type,
            status=entry.status,
            recipient_address=entry.recipient_address,
            subject=entry.subject,
            sent_at=to_storage(entry.sent_at),
            opened_at=to_storage(entry.opened_at),
            clicked_at=to_storage(entry.clicked_at),
            error_message=entry.error_message,
            external_message_id=entry.external_message_id,
        )


class PreferenceModel(Base):
    __tablename__ = "notification_preferences"

    user_id = Column(String(255), primary_key=True)
    stock_alerts = Column(Boolean, nullable=False, default=True)
    task_notifications = Column(Boolean, nullable=False, default=True)
    invoice_updates = Column(Boolean, nullable=False, default=True)
    financial_alerts = Column(Boolean, nullable=False, default=True)
    subscription_notifications = Column(Boolean, nullable=False, default=True)
    security_alerts = Column(Boolean, nullable=False, default=True)
    system_notifications = Column(Boolean, nullable=False, default=True)
    marketing_emails = Column(Boolean, nullable=False, default=False)
    digest_frequency = Column(String(16), nullable=False, default="immediate")
    created_at = Column(TIMESTAMP, nullable=True)
    updated_at = Column(TIMESTAMP, nullable=True)

    def to_domain(self) -> PreferenceRecord:
        return PreferenceRecord(
            user_id=self.user_id,
            stock_alerts=self.stock_alerts,
            task_notifications=self.task_notifications,
            invoice_updates=self.invoice_updates,
            financial_alerts=self.financial_alerts,
            subscription_notifications=self.subscription_notifications,
            security_alerts=True,
            system_notifications=self.system_notifications,
            marketing_emails=self.marketing_emails,
            digest_frequency=self.digest_frequency,
            created_at=from_storage(self.created_at),
            updated_at=from_storage(self.updated_at),
        )

    @classmethod
    def from_domain(cls, record: PreferenceRecord) -> "PreferenceModel":
        model = cls(user_id=record.user_id)
        model.apply(record)
        model.created_at = to_storage(record.created_at)
        return model

    def apply(self, record: PreferenceRecord) -> None:
        """Copy flags, digest frequency and ``updated_at`` from ``record``."""
        self.stock_alerts = record.stock_alerts
        self.task_notifications = record.task_notifications
        self.invoice_updates = record.invoice_updates
        self.financial_alerts = record.financial_alerts
        self.subscription_notifications = record.subscription_notifications
        self.security_alerts = True
        self.system_notifications = record.system_notifications
        self.marketing_emails = record.marketing_emails
        self.digest_frequency = record.digest_frequency
        self.updated_at = to_storage(record.updated_at)


class EmailTemplateModel(Base):
    __tablename__ = "email_templates"

    id = Column(String(32), primary_key=True)
    name = Column(String(255), nullable=False, unique=True)
    type = Column(String(50), nullable=False)
    subject = Column(Text, nullable=False)
    html_template = Column(Text, nullable=False)
    text_template = Column(Text, nullable=False)
    variables = Column(JSON, nullable=False, default=list)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(TIMESTAMP, nullable=True)
    updated_at = Column(TIMESTAMP, nullable=True)

    __table_args__ = (Index("idx_templates_type_active", "type", "is_active"),)

    def to_domain(self) -> EmailTemplate:
        return EmailTemplate(
            id=self.id,
            name=self.name,
            type=self.type,
            subject=self.subject,
            html_template=self.html_template,
            text_template=self.text_template,
            variables=list(self.variables or []),
            is_active=bool(self.is_active),
            created_at=from_storage(self.created_at),
            updated_at=from_storage(self.updated_at),
        )

    @classmethod
    def from_domain(cls, template: EmailTemplate) -> "EmailTemplateModel":
        return cls(
            id=template.id,
            name=template.name,
            type=template.type,
            subject=template.subject,
            html_template=template.html_template,
            text_template=template.text_template,
            variables=list(template.variables),
            is_active=template.is_active,
            created_at=to_storage(template.created_at),
            updated_at=to_storage(template.updated_at),
        )


def create_schema(engine: Engine) -> None:
    """Create missing tables and indexes (idempotent)."""
    Base.metadata.create_all(engine, checkfirst=True)
    tables = inspect(engine).get_table_names()
    logger.info(
        f"Database schema ready. Tables: {', '.join(sorted(tables))}",
        extra={"event": "database.schema.ready", "table_count": len(tables)},
    )
