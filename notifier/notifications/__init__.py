"""Notification intake: request models, results and exceptions.

The façade itself lives in ``notifier.notifications.service``; it is not
re-exported here because the template and transport packages import these
models and exceptions.
"""

from .models import (
    EventSpec,
    NotificationError,
    NotificationTemplateError,
    Recipient,
    RecipientError,
    TemplateNotFoundError,
    TemplateValidationError,
    TriggerResult,
)

__all__ = [
    "EventSpec",
    "Recipient",
    "TriggerResult",
    "NotificationError",
    "NotificationTemplateError",
    "TemplateValidationError",
    "TemplateNotFoundError",
    "RecipientError",
]
