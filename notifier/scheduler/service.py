"""Background ticker driving the dispatch pass and retention cleanup."""

import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Sequence

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from notifier.logging import get_logger
from notifier.utils.timestamps import Clock, utc_now

logger = get_logger(__name__, component="scheduler")


@dataclass(frozen=True)
class ScheduledJob:
    """A callable run every ``interval_seconds``.

    ``run_immediately`` schedules the first run at start-up instead of one
    interval later.
    """

    id: str
    name: str
    func: Callable[[], object]
    interval_seconds: float
    run_immediately: bool = True


class SchedulerService:
    """Wraps APScheduler's BackgroundScheduler with a start/stop lifecycle.

    Every job runs with ``max_instances=1`` and ``coalesce=True``: a tick
    that arrives while the previous run of the same job is still going is
    dropped rather than queued.

    Args:
        jobs: Jobs to register on ``start``
        shutdown_event: Optional event set once shutdown completes
        clock: Source of the first run time
    """

    def __init__(
        self,
        jobs: Sequence[ScheduledJob],
        shutdown_event: Optional[threading.Event] = None,
        clock: Clock = utc_now,
    ):
        if not jobs:
            raise ValueError("SchedulerService needs at least one job")

        self.jobs: Dict[str, ScheduledJob] = {job.id: job for job in jobs}
        self.shutdown_event = shutdown_event
        self.clock = clock

        shortest = min(job.interval_seconds for job in jobs)
        self.scheduler = BackgroundScheduler(
            job_defaults={
                "max_instances": 1,
                "coalesce": True,
                "misfire_grace_time": max(int(shortest), 1),
            },
            timezone=timezone.utc,
        )

    def start(self) -> None:
        """Register every job and start the scheduler thread."""
        now = self.clock()
        for job in self.jobs.values():
            self.scheduler.add_job(
                func=job.func,
                trigger=IntervalTrigger(seconds=job.interval_seconds, timezone=timezone.utc),
                id=job.id,
                name=job.name,
                replace_existing=True,
                **({"next_run_time": now} if job.run_immediately else {}),
            )

        self.scheduler.start()

        logger.info(
            f"Scheduler started with {len(self.jobs)} job(s)",
            extra={
                "event": "scheduler.started",
                "jobs": ",".join(f"{job.id}={job.interval_seconds}s" for job in self.jobs.values()),
            },
        )

    def shutdown(self, wait: bool = False) -> None:
        """Stop the scheduler.

        Args:
            wait: Wait for running jobs to complete before returning
        """
        logger.info(
            "Shutting down scheduler",
            extra={"event": "scheduler.stopping", "wait_for_jobs": wait},
        )

        if self.scheduler.running:
            self.scheduler.shutdown(wait=wait)

        if self.shutdown_event:
            self.shutdown_event.set()

        logger.info("Scheduler shutdown complete", extra={"event": "scheduler.stopped"})

    def trigger_now(self, job_id: str) -> object:
        """Run one job synchronously in the calling thread.

        Raises:
            KeyError: If no job has this id
        """
        job = self.jobs[job_id]
        logger.info(
            f"Triggering immediate run of {job.name}",
            extra={"event": "scheduler.trigger_now", "job_id": job_id},
        )
        return job.func()

    def is_running(self) -> bool:
        return self.scheduler.running

    def get_next_run_time(self, job_id: str) -> Optional[datetime]:
        job = self.scheduler.get_job(job_id)
        return job.next_run_time if job else None

    def job_ids(self) -> List[str]:
        return list(self.jobs)
