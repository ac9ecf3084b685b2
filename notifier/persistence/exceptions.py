"""Persistence layer exceptions.

Repositories wrap every ``SQLAlchemyError`` in one of these so callers never
depend on SQLAlchemy's exception types.
"""


class PersistenceError(Exception):
    """Base class for store failures (the dispatcher aborts a pass on these)."""


class DatabaseConnectionError(PersistenceError):
    """Engine creation, connection validation or schema creation failed."""


class RecordNotFoundError(PersistenceError):
    """A record that must exist (e.g. for an update) is missing.

    Optional lookups return None instead.
    """


class DataIntegrityError(PersistenceError):
    """A constraint was violated (duplicate id, duplicate template name...)."""
