"""Static per-category delivery configuration.

Each category fixes which preference flag governs it, its default priority,
whether it may be coalesced into bulk sends, its retry budget and the base
delay of its exponential backoff. ``CategoryRegistry`` layers the optional
``categories`` overrides from the config file on top of this table.
"""

from dataclasses import dataclass, replace
from typing import Dict, Mapping, Optional, Union

from .models import NotificationType, Priority

PRIORITY_WEIGHTS: Dict[str, int] = {
    Priority.LOW.value: 1,
    Priority.MEDIUM.value: 5,
    Priority.HIGH.value: 8,
    Priority.CRITICAL.value: 10,
}


@dataclass(frozen=True)
class CategoryConfig:
    type: str
    preference_key: Optional[str]
    priority: str
    batchable: bool
    max_attempts: int
    retry_delay_seconds: float

    @property
    def priority_weight(self) -> int:
        return PRIORITY_WEIGHTS[self.priority]

    @property
    def requires_preference_check(self) -> bool:
        return self.preference_key is not None


def _category(
    type_: NotificationType,
    preference_key: Optional[str],
    priority: Priority,
    max_attempts: int,
    retry_delay_seconds: float,
    batchable: bool = False,
) -> CategoryConfig:
    return CategoryConfig(
        type=type_.value,
        preference_key=preference_key,
        priority=priority.value,
        batchable=batchable,
        max_attempts=max_attempts,
        retry_delay_seconds=retry_delay_seconds,
    )


T = NotificationType
P = Priority

CATEGORY_TABLE: Dict[str, CategoryConfig] = {
    config.type: config
    for config in (
        _category(T.STOCK_ALERT, "stock_alerts", P.HIGH, 3, 300),
        _category(T.TASK_ASSIGNED, "task_notifications", P.MEDIUM, 3, 300),
        _category(T.TASK_COMPLETED, "task_notifications", P.LOW, 2, 600, batchable=True),
        _category(T.TASK_DEADLINE, "task_notifications", P.HIGH, 3, 300),
        _category(T.INVOICE_STATUS_CHANGED, "invoice_updates", P.MEDIUM, 3, 300),
        _category(T.INVOICE_OVERDUE, "invoice_updates", P.HIGH, 3, 300),
        _category(T.PAYMENT_RECEIVED, "financial_alerts", P.MEDIUM, 3, 300),
        _category(T.PAYMENT_FAILED, "financial_alerts", P.CRITICAL, 5, 60),
        _category(T.SUBSCRIPTION_RENEWAL, "subscription_notifications", P.MEDIUM, 3, 600),
        _category(T.SUBSCRIPTION_CANCELLED, "subscription_notifications", P.MEDIUM, 3, 600),
        _category(T.SUBSCRIPTION_PAYMENT_FAILED, "subscription_notifications", P.CRITICAL, 5, 60),
        # Security alerts bypass preferences entirely
        _category(T.SECURITY_ALERT, None, P.CRITICAL, 5, 60),
        _category(T.SYSTEM_MAINTENANCE, "system_notifications", P.LOW, 2, 900, batchable=True),
        _category(T.FEATURE_ANNOUNCEMENT, "marketing_emails", P.LOW, 2, 1800, batchable=True),
    )
}

del T, P


def priority_weight(priority: Union[str, Priority]) -> int:
    """Numeric dispatch weight for a priority name."""
    value = priority.value if isinstance(priority, Priority) else str(priority)
    try:
        return PRIORITY_WEIGHTS[value]
    except KeyError:
        raise ValueError(f"Unknown priority: {priority}") from None


class CategoryRegistry:
    """Category lookup with optional per-category overrides.

    Args:
        overrides: Mapping of category name to a mapping with any of
            ``max_attempts``, ``retry_delay_seconds`` and ``batchable``
    """

    OVERRIDABLE = ("max_attempts", "retry_delay_seconds", "batchable")

    def __init__(self, overrides: Optional[Mapping[str, Mapping]] = None):
        self._configs: Dict[str, CategoryConfig] = dict(CATEGORY_TABLE)
        for name, values in (overrides or {}).items():
            if name not in self._configs:
                raise ValueError(f"Unknown notification category in overrides: {name}")
            changes = {
                key: value
                for key, value in dict(values).items()
                if key in self.OVERRIDABLE and value is not None
            }
            self._configs[name] = replace(self._configs[name], **changes)

    def get(self, notification_type: Union[str, NotificationType]) -> CategoryConfig:
        key = (
            notification_type.value
            if isinstance(notification_type, NotificationType)
            else str(notification_type)
        )
        try:
            return self._configs[key]
        except KeyError:
            raise ValueError(f"Unknown notification category: {notification_type}") from None

    def __iter__(self):
        return iter(self._configs.values())

    def preference_keys(self) -> Dict[str, Optional[str]]:
        """Category name to governing preference flag (None when ungated)."""
        return {name: config.preference_key for name, config in self._configs.items()}
