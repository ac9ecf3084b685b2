"""Intake models, results and exceptions of the notification service."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from notifier.domain.models import NotificationType, Priority


class NotificationError(Exception):
    """Base exception for notification-related errors."""


class NotificationTemplateError(NotificationError):
    """A template could not be rendered."""


class TemplateValidationError(NotificationError):
    """A template was refused admission to the catalog.

    Attributes:
        errors: Every problem found, one message each
    """

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        self.errors = list(errors or [])
        detail = "; ".join(self.errors)
        super().__init__(f"{message}: {detail}" if detail else message)


class TemplateNotFoundError(NotificationError):
    """No active template exists for the requested name or category."""


class RecipientError(NotificationError):
    """The recipient could not be resolved or has no usable address."""


class EventSpec(BaseModel):
    """What a caller passes to ``NotificationService.trigger``."""

    type: NotificationType = Field(..., description="Notification category")
    user_id: str = Field(..., min_length=1)
    payload: Dict[str, Any] = Field(default_factory=dict)
    priority: Optional[Priority] = Field(None, description="Defaults to the category's priority")
    scheduled_for: Optional[datetime] = Field(None, description="Defer delivery until this time")

    @field_validator("user_id")
    @classmethod
    def strip_user_id(cls, v: str) -> str:
        stripped = v.strip()
        if not stripped:
            raise ValueError("user_id cannot be empty or whitespace-only")
        return stripped

    model_config = {"use_enum_values": True}


@dataclass(frozen=True)
class Recipient:
    """A resolved user from the user directory."""

    user_id: str
    email: str
    first_name: str = ""
    last_name: str = ""
    display_name: str = ""

    @property
    def name(self) -> str:
        if self.display_name:
            return self.display_name
        full = f"{self.first_name} {self.last_name}".strip()
        return full or self.email

    def as_variables(self) -> Dict[str, str]:
        return {
            "first_name": self.first_name,
            "last_name": self.last_name,
            "email": self.email,
            "name": self.name,
        }


@dataclass
class TriggerResult:
    """Outcome of one ``trigger`` call.

    ``success`` with ``skipped`` means the user's preferences declined the
    category; it is not an error.
    """

    success: bool
    event_id: Optional[str] = None
    queued_id: Optional[str] = None
    skipped: bool = False
    reason: Optional[str] = None

    @classmethod
    def queued(cls, event_id: str, queued_id: str) -> "TriggerResult":
        return cls(success=True, event_id=event_id, queued_id=queued_id)

    @classmethod
    def skip(cls, event_id: str, reason: str) -> "TriggerResult":
        return cls(success=True, event_id=event_id, skipped=True, reason=reason)

    @classmethod
    def failure(cls, reason: str, event_id: Optional[str] = None) -> "TriggerResult":
        return cls(success=False, event_id=event_id, reason=reason)
