"""Scoped logging context.

Fields pushed here (``pass_id``, ``message_id``, ``event_id``, ``user_id``...)
are copied onto every log record emitted inside the scope by
``ContextualFilter``. Storage is a ``ContextVar`` so worker threads and async
tasks each see their own stack.
"""

from contextvars import ContextVar, Token
from typing import Any, Dict, Optional

LogContextVar: ContextVar[Dict[str, Any]] = ContextVar("notifier_log_context", default={})


def get_log_context() -> Dict[str, Any]:
    """Return a copy of the active context fields."""
    return LogContextVar.get().copy()


def get_context_value(key: str, default: Any = None) -> Any:
    """Return a single context field, or ``default`` when it is not bound."""
    return LogContextVar.get().get(key, default)


def push_log_context(**kwargs) -> Token:
    """Merge fields into the active context.

    Args:
        **kwargs: Fields to bind; existing keys are overridden

    Returns:
        Token for pop_log_context()

    Example:
        >>> token = push_log_context(pass_id="4f2c", message_id="a91e")
        >>> pop_log_context(token)
    """
    current = LogContextVar.get()
    return LogContextVar.set({**current, **kwargs})


def pop_log_context(token: Token) -> None:
    """Restore the context captured by ``token``."""
    LogContextVar.reset(token)


def clear_log_context() -> None:
    """Drop every bound field (used by tests)."""
    LogContextVar.set({})


class log_context:
    """Context manager binding fields for the duration of a block.

    Example:
        >>> with log_context(pass_id="4f2c"):
        ...     with log_context(message_id="a91e"):
        ...         logger.info("Sending")  # carries pass_id and message_id
    """

    def __init__(self, **kwargs):
        self.kwargs = kwargs
        self.token: Optional[Token] = None

    def __enter__(self):
        self.token = push_log_context(**self.kwargs)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.token is not None:
            pop_log_context(self.token)
            self.token = None
        return False
