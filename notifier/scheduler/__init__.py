"""Periodic execution of the dispatch pass and retention cleanup."""

from .service import ScheduledJob, SchedulerService

__all__ = ["SchedulerService", "ScheduledJob"]
