"""Exponential retry schedule."""

from datetime import datetime, timedelta


def retry_delay(base_delay_seconds: float, attempts: int) -> float:
    """Delay before the next try after ``attempts`` failed attempts.

    Example:
        >>> [retry_delay(5, n) for n in (1, 2, 3)]
        [5, 10, 20]
    """
    if attempts < 1:
        raise ValueError(f"attempts must be at least 1, got {attempts}")
    return base_delay_seconds * 2 ** (attempts - 1)


def next_attempt_at(now: datetime, base_delay_seconds: float, attempts: int) -> datetime:
    return now + timedelta(seconds=retry_delay(base_delay_seconds, attempts))
