"""Dispatcher: moves queued messages through the delivery state machine.

    pending --claim--> processing --success--> sent
                                  --failure, attempts < max--> pending (backoff)
                                  --failure, attempts == max--> failed

One ``process_queue`` call is one pass. A non-blocking guard keeps passes
from overlapping inside a process; the conditional claim keeps separate
processes (or a recovery step and a pass) from owning the same row.
"""

import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple
from uuid import uuid4

from notifier.domain.categories import CategoryRegistry
from notifier.domain.models import DeliveryLogEntry, DeliveryStatus, QueuedMessage
from notifier.logging import get_logger
from notifier.logging.context import log_context
from notifier.persistence.database import Database
from notifier.persistence.exceptions import RecordNotFoundError
from notifier.persistence.repositories import DeliveryLogRepository, EventRepository, QueueRepository
from notifier.transport.base import MailTransport, OutboundMessage, SendResult
from notifier.transport.rate_limiter import RateLimiter
from notifier.utils.hashing import new_id
from notifier.utils.timestamps import Clock, utc_now

from .backoff import next_attempt_at
from .batching import DispatchUnit, plan_units
from .models import DispatchResult

logger = get_logger(__name__, component="dispatcher")

# How often the send loop looks for calls that have started or overrun
POLL_INTERVAL_SECONDS = 0.05


@dataclass
class _Call:
    """One transport call in flight; ``started_at`` is set by the worker."""

    unit: DispatchUnit
    future: Optional[Future] = None
    started_at: Optional[float] = None


class Dispatcher:
    """Polls the queue and delivers due messages.

    Args:
        database: Database holding queue, events and log
        transport: Mail transport
        registry: Category table (batchability and retry delays)
        rate_limiter: Optional send-rate ceiling
        clock: Source of "now"
        batch_size: Maximum messages fetched per pass
        max_workers: Concurrent transport calls within a pass
        send_timeout_seconds: Time allowed for one transport call; a call
            that overruns counts as a failed attempt
        stale_claim_after_seconds: Claims older than this are recovered at
            the start of a pass
    """

    def __init__(
        self,
        database: Database,
        transport: MailTransport,
        registry: Optional[CategoryRegistry] = None,
        rate_limiter: Optional[RateLimiter] = None,
        clock: Clock = utc_now,
        batch_size: int = 50,
        max_workers: int = 4,
        send_timeout_seconds: float = 30,
        stale_claim_after_seconds: float = 600,
    ):
        self.database = database
        self.transport = transport
        self.registry = registry or CategoryRegistry()
        self.rate_limiter = rate_limiter
        self.clock = clock
        self.batch_size = batch_size
        self.max_workers = max_workers
        self.send_timeout_seconds = send_timeout_seconds
        self.stale_claim_after_seconds = stale_claim_after_seconds
        self._lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    def process_queue(self) -> DispatchResult:
        """Run one dispatch pass.

        Never raises: pass-level errors (e.g. the database is unreachable)
        are logged and reported in ``DispatchResult.error`` so the scheduler
        keeps ticking. Rows left in ``processing`` by an aborted pass are
        recovered once their claim goes stale.
        """
        result = DispatchResult(pass_id=uuid4().hex, started_at=self.clock())

        if not self._lock.acquire(blocking=False):
            with log_context(pass_id=result.pass_id):
                logger.warning(
                    "Dispatch pass skipped: previous pass still in progress",
                    extra={"event": "dispatch.pass.skipped", "reason": "lock_held"},
                )
            result.skipped = True
            result.finished_at = self.clock()
            return result

        try:
            with log_context(pass_id=result.pass_id):
                logger.debug("Dispatch pass started", extra={"event": "dispatch.pass.started"})
                try:
                    self._run_pass(result)
                except Exception as e:
                    result.error = f"{type(e).__name__}: {e}"
                    logger.error(
                        f"Dispatch pass aborted: {e}",
                        exc_info=True,
                        extra={"event": "dispatch.pass.failed", "error_type": type(e).__name__},
                    )

                result.finished_at = self.clock()
                if result.fetched or result.recovered or result.error:
                    logger.info(
                        f"Dispatch pass finished: {result.sent} sent, {result.retried} retried, "
                        f"{result.failed} failed",
                        extra={"event": "dispatch.pass.completed", **result.as_dict()},
                    )
        finally:
            self._lock.release()

        return result

    def _run_pass(self, result: DispatchResult) -> None:
        now = self.clock()
        result.recovered = self._recover_stale_claims(now, result)

        with self.database.session() as session:
            due = QueueRepository(session).fetch_due(now, self.batch_size)
        result.fetched = len(due)
        if not due:
            return

        units = self._claim(plan_units(due, self.registry), result)
        if not units:
            return

        outcomes, unstarted = self._send(units, result)
        for unit in unstarted:
            self._release(unit, result)
        for message, outcome in outcomes:
            with log_context(message_id=message.id, event_id=message.event_id):
                if outcome.success:
                    self._record_success(message, outcome, result)
                else:
                    self._record_failure(message, outcome.error or "Unknown transport error", result)

    def _recover_stale_claims(self, now: datetime, result: DispatchResult) -> int:
        cutoff = now - timedelta(seconds=self.stale_claim_after_seconds)
        with self.database.session() as session:
            stale = QueueRepository(session).find_stale_claims(cutoff)

        for message in stale:
            with log_context(message_id=message.id, event_id=message.event_id):
                logger.warning(
                    f"Recovering stale claim on message {message.id}",
                    extra={"event": "dispatch.claim.stale", "claimed_at": str(message.claimed_at)},
                )
                self._record_failure(
                    message,
                    f"Claim expired after {int(self.stale_claim_after_seconds)}s without an outcome",
                    result,
                )
        return len(stale)

    def _claim(self, units: List[DispatchUnit], result: DispatchResult) -> List[DispatchUnit]:
        """Claim units in priority order until the rate limit is reached.

        A unit larger than what is left of the window is split: its leading
        members go out now and the rest wait, together with every later unit,
        for a following pass.
        """
        claimed_units: List[DispatchUnit] = []

        for position, unit in enumerate(units):
            granted = len(unit)
            if self.rate_limiter is not None:
                granted = self.rate_limiter.acquire_up_to(len(unit))
            if granted < len(unit):
                result.deferred = len(unit) - granted + sum(len(u) for u in units[position + 1:])
                logger.info(
                    f"Rate limit reached; {result.deferred} message(s) deferred to the next pass",
                    extra={"event": "dispatch.pass.rate_limited", "deferred": result.deferred},
                )
            if granted == 0:
                break

            now = self.clock()
            won = []
            with self.database.session() as session:
                queue = QueueRepository(session)
                for message in unit.messages[:granted]:
                    if queue.claim(message.id, now):
                        won.append(message.model_copy(update={"claimed_at": now}))
                    else:
                        logger.debug(
                            f"Message {message.id} was claimed by another actor",
                            extra={"event": "dispatch.claim.lost", "message_id": message.id},
                        )
            if won:
                result.claimed += len(won)
                claimed_units.append(
                    DispatchUnit(category=unit.category, messages=won, bulk=unit.bulk and len(won) > 1)
                )
            if granted < len(unit):
                break

        return claimed_units

    def _send(
        self, units: List[DispatchUnit], result: DispatchResult
    ) -> Tuple[List[Tuple[QueuedMessage, SendResult]], List[DispatchUnit]]:
        """Invoke the transport for every unit, concurrently.

        The send timeout is measured from the moment a call actually starts.
        A call that overruns fails every member of its unit and keeps its
        worker; once every worker is held that way, calls still waiting for
        a worker are cancelled and returned as unstarted.

        Returns:
            Outcomes for units that were attempted, and units never attempted
        """
        executor = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="dispatch")
        calls = [_Call(unit) for unit in units]
        for call in calls:
            call.future = executor.submit(self._run_call, call)

        outcomes: List[Tuple[QueuedMessage, SendResult]] = []
        unstarted: List[DispatchUnit] = []
        abandoned: List[_Call] = []
        waiting = list(calls)
        try:
            while waiting:
                now = time.monotonic()
                still_waiting = []
                for call in waiting:
                    if call.future.done():
                        outcomes.extend(self._collect(call, result))
                    elif call.started_at is not None and now - call.started_at >= self.send_timeout_seconds:
                        abandoned.append(call)
                        outcomes.extend(self._timed_out(call, result))
                    else:
                        still_waiting.append(call)
                waiting = still_waiting

                if waiting and sum(1 for c in abandoned if not c.future.done()) >= self.max_workers:
                    for call in list(waiting):
                        if call.future.cancel():
                            unstarted.append(call.unit)
                            waiting.remove(call)

                if waiting:
                    wait(
                        [c.future for c in waiting],
                        timeout=self._next_check(waiting, now),
                        return_when=FIRST_COMPLETED,
                    )
            return outcomes, unstarted
        finally:
            # A timed-out call keeps its worker thread; do not wait for it
            executor.shutdown(wait=False, cancel_futures=True)

    def _next_check(self, waiting: List[_Call], now: float) -> float:
        deadlines = [
            c.started_at + self.send_timeout_seconds - now for c in waiting if c.started_at is not None
        ]
        return max(min(deadlines + [POLL_INTERVAL_SECONDS]), 0.001)

    def _run_call(self, call: _Call) -> List[SendResult]:
        call.started_at = time.monotonic()
        return self._deliver_unit(call.unit)

    def _collect(self, call: _Call, result: DispatchResult) -> List[Tuple[QueuedMessage, SendResult]]:
        unit = call.unit
        if unit.bulk:
            result.bulk_calls += 1
        try:
            results = call.future.result()
        except Exception as e:
            error = f"Transport error: {e}"
            logger.warning(
                error,
                extra={"event": "dispatch.send.error", "error_type": type(e).__name__},
            )
            results = [SendResult.failed(m.id, error) for m in unit.messages]

        by_id: Dict[str, SendResult] = {r.id: r for r in results}
        return [
            (
                message,
                by_id.get(message.id)
                or SendResult.failed(message.id, "Transport returned no result for this message"),
            )
            for message in unit.messages
        ]

    def _timed_out(self, call: _Call, result: DispatchResult) -> List[Tuple[QueuedMessage, SendResult]]:
        unit = call.unit
        if unit.bulk:
            result.bulk_calls += 1
        error = f"Transport call timed out after {self.send_timeout_seconds}s"
        logger.warning(error, extra={"event": "dispatch.send.timeout", "category": unit.category})
        return [(m, SendResult.failed(m.id, error)) for m in unit.messages]

    def _deliver_unit(self, unit: DispatchUnit) -> List[SendResult]:
        outbound = [
            OutboundMessage(
                id=m.id,
                to=m.recipient_address,
                subject=m.subject,
                html=m.html_body,
                text=m.text_body,
            )
            for m in unit.messages
        ]
        if unit.bulk:
            return self.transport.send_bulk(outbound)
        return [self.transport.send(outbound[0])]

    def _release(self, unit: DispatchUnit, result: DispatchResult) -> None:
        """Hand never-attempted messages back to the queue as they were."""
        with self.database.session() as session:
            queue = QueueRepository(session)
            released = sum(1 for m in unit.messages if queue.release(m.id))
        result.deferred += released
        logger.info(
            f"{released} message(s) returned to the queue without an attempt: no free worker",
            extra={"event": "dispatch.send.not_started", "category": unit.category},
        )

    def _record_success(self, message: QueuedMessage, outcome: SendResult, result: DispatchResult) -> None:
        now = self.clock()
        with self.database.session() as session:
            if not QueueRepository(session).mark_sent(message.id, now, outcome.message_id):
                result.lost += 1
                logger.warning(
                    f"Message {message.id} was sent but is no longer in processing",
                    extra={"event": "dispatch.message.lost"},
                )
                return
            self._write_log(session, message, DeliveryStatus.SENT.value, now, None, outcome.message_id)
            self._complete_event(session, message, now)

        result.sent += 1
        logger.info(
            f"Sent {message.type} to {message.recipient_address}",
            extra={
                "event": "dispatch.message.sent",
                "external_message_id": outcome.message_id,
                "attempt": message.attempts + 1,
            },
        )

    def _record_failure(self, message: QueuedMessage, error: str, result: DispatchResult) -> None:
        """Count a failed attempt, then retry with backoff or fail terminally."""
        now = self.clock()
        attempts = message.attempts + 1
        category = self.registry.get(message.type)

        with self.database.session() as session:
            queue = QueueRepository(session)
            if attempts >= message.max_attempts:
                if not queue.mark_failed(message.id, message.max_attempts, now, error):
                    result.lost += 1
                    return
                self._write_log(session, message, DeliveryStatus.FAILED.value, now, error, None)
                self._complete_event(session, message, now)
                terminal = True
            else:
                retry_at = next_attempt_at(now, category.retry_delay_seconds, attempts)
                if not queue.reschedule(message.id, attempts, retry_at, error):
                    result.lost += 1
                    return
                terminal = False

        if terminal:
            result.failed += 1
            logger.error(
                f"Giving up on message {message.id} after {attempts} attempt(s): {error}",
                extra={"event": "dispatch.message.failed", "attempts": attempts},
            )
        else:
            result.retried += 1
            logger.warning(
                f"Attempt {attempts}/{message.max_attempts} for message {message.id} failed: {error}",
                extra={
                    "event": "dispatch.message.retry_scheduled",
                    "attempts": attempts,
                    "retry_at": retry_at.isoformat(),
                },
            )

    @staticmethod
    def _write_log(session, message, status, now, error, external_message_id) -> None:
        DeliveryLogRepository(session).add(
            DeliveryLogEntry(
                id=new_id(),
                user_id=message.user_id,
                message_id=message.id,
                type=message.type,
                status=status,
                recipient_address=message.recipient_address,
                subject=message.subject,
                sent_at=now,
                error_message=error,
                external_message_id=external_message_id,
            )
        )

    @staticmethod
    def _complete_event(session, message: QueuedMessage, now: datetime) -> None:
        if not message.event_id:
            return
        try:
            EventRepository(session).mark_processed(message.event_id, now)
        except RecordNotFoundError:
            # The event reference is weak; it may have been cleaned up already
            logger.debug(
                f"Event {message.event_id} no longer exists",
                extra={"event": "dispatch.event.missing"},
            )
