"""Dispatch pass results."""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass
class DispatchResult:
    """Counters for one ``process_queue`` call.

    Attributes:
        skipped: The pass did not run because another pass held the guard
        recovered: Stale claims resolved through the failure path
        deferred: Due messages left pending without an attempt, because the
            rate limit was reached or no worker was free to start their call
        lost: Claimed messages whose outcome could not be recorded because
            another actor changed their status first
        error: Pass-level error message when the pass aborted
    """

    pass_id: str
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    skipped: bool = False
    fetched: int = 0
    claimed: int = 0
    sent: int = 0
    retried: int = 0
    failed: int = 0
    recovered: int = 0
    deferred: int = 0
    lost: int = 0
    bulk_calls: int = 0
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None and not self.skipped

    def as_dict(self) -> dict:
        return {
            "pass_id": self.pass_id,
            "skipped": self.skipped,
            "fetched": self.fetched,
            "claimed": self.claimed,
            "sent": self.sent,
            "retried": self.retried,
            "failed": self.failed,
            "recovered": self.recovered,
            "deferred": self.deferred,
            "lost": self.lost,
            "bulk_calls": self.bulk_calls,
            "error": self.error,
        }
