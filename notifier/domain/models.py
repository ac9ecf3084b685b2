"""Core domain models for the notification pipeline.

- NotificationEvent: a request to notify a user, recorded at intake
- QueuedMessage: one rendered email awaiting (or done with) delivery
- DeliveryLogEntry: terminal outcome of a message, later patched by tracking
- PreferenceRecord: a user's per-category opt-ins and digest frequency
- EmailTemplate: a named, typed template in the catalog
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator


class NotificationType(str, Enum):
    """Fixed notification categories."""

    STOCK_ALERT = "stock_alert"
    TASK_ASSIGNED = "task_assigned"
    TASK_COMPLETED = "task_completed"
    TASK_DEADLINE = "task_deadline"
    INVOICE_STATUS_CHANGED = "invoice_status_changed"
    INVOICE_OVERDUE = "invoice_overdue"
    PAYMENT_RECEIVED = "payment_received"
    PAYMENT_FAILED = "payment_failed"
    SUBSCRIPTION_RENEWAL = "subscription_renewal"
    SUBSCRIPTION_CANCELLED = "subscription_cancelled"
    SUBSCRIPTION_PAYMENT_FAILED = "subscription_payment_failed"
    SECURITY_ALERT = "security_alert"
    SYSTEM_MAINTENANCE = "system_maintenance"
    FEATURE_ANNOUNCEMENT = "feature_announcement"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class QueueStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SENT = "sent"
    FAILED = "failed"
    CANCELLED = "cancelled"


TERMINAL_QUEUE_STATUSES = frozenset(
    {QueueStatus.SENT.value, QueueStatus.FAILED.value, QueueStatus.CANCELLED.value}
)


class DeliveryStatus(str, Enum):
    SENT = "sent"
    FAILED = "failed"
    BOUNCED = "bounced"
    OPENED = "opened"
    CLICKED = "clicked"


class DigestFrequency(str, Enum):
    IMMEDIATE = "immediate"
    DAILY = "daily"
    WEEKLY = "weekly"
    NEVER = "never"


def _as_utc(v: Optional[datetime]) -> Optional[datetime]:
    if v is None:
        return None
    if v.tzinfo is None:
        return v.replace(tzinfo=timezone.utc)
    return v.astimezone(timezone.utc)


class NotificationEvent(BaseModel):
    """A notification request as received from a domain collaborator.

    Immutable apart from the ``processed`` transition, which happens once the
    message produced from it reaches a terminal state (or immediately when
    intake produced no message at all).
    """

    id: str = Field(..., description="Event identifier")
    type: NotificationType = Field(..., description="Notification category")
    user_id: str = Field(..., min_length=1, description="Recipient user")
    payload: Dict[str, Any] = Field(default_factory=dict, description="Template data")
    priority: Priority = Field(Priority.MEDIUM, description="Effective priority")
    scheduled_for: Optional[datetime] = Field(None, description="Earliest delivery time (UTC)")
    processed: bool = Field(False, description="Whether the event's work is complete")
    processed_at: Optional[datetime] = Field(None, description="When it became processed")
    created_at: datetime = Field(..., description="Intake time (UTC)")

    @field_validator("scheduled_for", "processed_at", "created_at")
    @classmethod
    def ensure_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(v)

    model_config = {"use_enum_values": True}


class QueuedMessage(BaseModel):
    """A rendered email and its delivery state.

    Status moves pending -> processing -> sent | pending (retry) | failed;
    pending -> cancelled is the only other transition.
    """

    id: str
    event_id: Optional[str] = Field(None, description="Originating event (lookup only)")
    user_id: str
    type: NotificationType
    recipient_address: str
    subject: str
    html_body: str
    text_body: str
    template_id: Optional[str] = None
    priority_weight: int = Field(..., ge=0, description="Higher is dispatched first")
    attempts: int = Field(0, ge=0)
    max_attempts: int = Field(3, ge=1)
    scheduled_for: datetime
    status: QueueStatus = QueueStatus.PENDING
    claimed_at: Optional[datetime] = Field(None, description="When the current claim was taken")
    processed_at: Optional[datetime] = Field(None, description="When a terminal state was reached")
    sent_at: Optional[datetime] = None
    error_message: Optional[str] = None
    external_message_id: Optional[str] = Field(None, description="Transport's message id")
    created_at: datetime

    @field_validator("scheduled_for", "claimed_at", "processed_at", "sent_at", "created_at")
    @classmethod
    def ensure_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(v)

    @model_validator(mode="after")
    def check_attempt_budget(self):
        if self.attempts > self.max_attempts:
            raise ValueError(
                f"attempts ({self.attempts}) cannot exceed max_attempts ({self.max_attempts})"
            )
        return self

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_QUEUE_STATUSES

    model_config = {"use_enum_values": True}


class DeliveryLogEntry(BaseModel):
    """Terminal outcome of one queued message."""

    id: str
    user_id: str
    message_id: str = Field(..., description="QueuedMessage id")
    type: NotificationType
    status: DeliveryStatus
    recipient_address: str
    subject: str
    sent_at: datetime = Field(..., description="When the terminal attempt finished")
    opened_at: Optional[datetime] = None
    clicked_at: Optional[datetime] = None
    error_message: Optional[str] = None
    external_message_id: Optional[str] = None

    @field_validator("sent_at", "opened_at", "clicked_at")
    @classmethod
    def ensure_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(v)

    model_config = {"use_enum_values": True}


class PreferenceRecord(BaseModel):
    """Per-user delivery preferences.

    ``security_alerts`` is pinned to True: any attempt to store False is
    overridden during validation.
    """

    user_id: str = Field(..., min_length=1)
    stock_alerts: bool = True
    task_notifications: bool = True
    invoice_updates: bool = True
    financial_alerts: bool = True
    subscription_notifications: bool = True
    security_alerts: bool = True
    system_notifications: bool = True
    marketing_emails: bool = False
    digest_frequency: DigestFrequency = DigestFrequency.IMMEDIATE
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @model_validator(mode="after")
    def pin_security_alerts(self):
        self.security_alerts = True
        return self

    @field_validator("created_at", "updated_at")
    @classmethod
    def ensure_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(v)

    def flag(self, preference_key: str) -> bool:
        """Return the boolean stored under ``preference_key``."""
        return bool(getattr(self, preference_key))

    model_config = {"use_enum_values": True}


PREFERENCE_FLAGS = (
    "stock_alerts",
    "task_notifications",
    "invoice_updates",
    "financial_alerts",
    "subscription_notifications",
    "security_alerts",
    "system_notifications",
    "marketing_emails",
)


class EmailTemplate(BaseModel):
    """Catalog entry: a named template bound to one category."""

    id: str
    name: str = Field(..., min_length=1)
    type: NotificationType
    subject: str
    html_template: str
    text_template: str
    variables: List[str] = Field(default_factory=list, description="Referenced variable paths")
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        stripped = v.strip()
        if not stripped:
            raise ValueError("Template name cannot be empty or whitespace-only")
        return stripped

    @field_validator("created_at", "updated_at")
    @classmethod
    def ensure_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(v)

    model_config = {"use_enum_values": True}
