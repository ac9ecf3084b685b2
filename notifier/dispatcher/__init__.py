"""Queue dispatcher: claiming, batching, delivery and retry with backoff."""

from .backoff import next_attempt_at, retry_delay
from .batching import DispatchUnit, plan_units
from .models import DispatchResult
from .service import Dispatcher

__all__ = [
    "Dispatcher",
    "DispatchResult",
    "DispatchUnit",
    "plan_units",
    "retry_delay",
    "next_attempt_at",
]
