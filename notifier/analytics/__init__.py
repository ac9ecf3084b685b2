"""Delivery analytics and tracking callbacks."""

from .service import AnalyticsService, summarize
from .tracking import TrackingService

__all__ = ["AnalyticsService", "TrackingService", "summarize"]
