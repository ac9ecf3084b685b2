"""Domain models and the static category table."""

from .categories import (
    CATEGORY_TABLE,
    PRIORITY_WEIGHTS,
    CategoryConfig,
    CategoryRegistry,
    priority_weight,
)
from .models import (
    PREFERENCE_FLAGS,
    TERMINAL_QUEUE_STATUSES,
    DeliveryLogEntry,
    DeliveryStatus,
    DigestFrequency,
    EmailTemplate,
    NotificationEvent,
    NotificationType,
    PreferenceRecord,
    Priority,
    QueuedMessage,
    QueueStatus,
)

__all__ = [
    "CATEGORY_TABLE",
    "PRIORITY_WEIGHTS",
    "PREFERENCE_FLAGS",
    "TERMINAL_QUEUE_STATUSES",
    "CategoryConfig",
    "CategoryRegistry",
    "priority_weight",
    "DeliveryLogEntry",
    "DeliveryStatus",
    "DigestFrequency",
    "EmailTemplate",
    "NotificationEvent",
    "NotificationType",
    "PreferenceRecord",
    "Priority",
    "QueuedMessage",
    "QueueStatus",
]
