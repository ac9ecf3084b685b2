"""Persistence layer: engine/session management, repositories, retention.

Example usage:
    >>> from notifier.persistence import Database, QueueRepository
    >>> db = Database("sqlite:///./data/notifier.db")
    >>> with db.session() as session:
    ...     QueueRepository(session).stats()
"""

from .database import Database, redact_url
from .exceptions import (
    DatabaseConnectionError,
    DataIntegrityError,
    PersistenceError,
    RecordNotFoundError,
)
from .repositories import (
    DeliveryLogRepository,
    EventRepository,
    PreferenceRepository,
    QueueRepository,
    TemplateRepository,
)
from .retention import CleanupResult, RetentionService

__all__ = [
    "Database",
    "redact_url",
    "EventRepository",
    "QueueRepository",
    "DeliveryLogRepository",
    "PreferenceRepository",
    "TemplateRepository",
    "RetentionService",
    "CleanupResult",
    "PersistenceError",
    "DatabaseConnectionError",
    "RecordNotFoundError",
    "DataIntegrityError",
]
