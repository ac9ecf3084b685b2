"""Scriptable mail transport and clock for tests.

``RecordingTransport`` never touches the network. Outcomes are scripted per
recipient address (a list consumed one call at a time) or globally through
``fail_next``; anything unscripted succeeds.
"""

import threading
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Sequence

from notifier.transport.base import MailTransport, OutboundMessage, SendResult


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2026, 3, 2, 9, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


class RecordingTransport(MailTransport):
    name = "recording"

    def __init__(self):
        self.sent: List[OutboundMessage] = []
        self.single_calls = 0
        self.bulk_calls: List[List[str]] = []
        self.script: Dict[str, List[Optional[str]]] = {}
        self._fail_next = 0
        self._fail_error = "Connection refused"
        self._lock = threading.Lock()
        self._counter = 0

    def fail_next(self, count: int, error: str = "Connection refused") -> None:
        with self._lock:
            self._fail_next = count
            self._fail_error = error

    def script_for(self, address: str, *outcomes: Optional[str]) -> None:
        """Queue outcomes for ``address``: None succeeds, a string fails with it."""
        self.script.setdefault(address, []).extend(outcomes)

    def _outcome(self, message: OutboundMessage) -> SendResult:
        with self._lock:
            if self._fail_next > 0:
                self._fail_next -= 1
                return SendResult.failed(message.id, self._fail_error)
            queued = self.script.get(message.to)
            error = queued.pop(0) if queued else None
            if error is not None:
                return SendResult.failed(message.id, error)
            self._counter += 1
            self.sent.append(message)
            return SendResult.ok(message.id, message_id=f"ext-{self._counter}")

    def send(self, message: OutboundMessage) -> SendResult:
        self.single_calls += 1
        return self._outcome(message)

    def send_bulk(self, messages: Sequence[OutboundMessage]) -> List[SendResult]:
        self.bulk_calls.append([m.id for m in messages])
        return [self._outcome(m) for m in messages]


class ExplodingTransport(MailTransport):
    """Raises from every call."""

    name = "exploding"

    def __init__(self, exc: Exception):
        self.exc = exc

    def send(self, message):
        raise self.exc

    def send_bulk(self, messages):
        raise self.exc
