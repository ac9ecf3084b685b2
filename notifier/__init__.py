"""Notification delivery pipeline.

Turns domain events into rendered, rate-limited, retried email deliveries with
per-user preference enforcement and an auditable delivery log.
"""

__version__ = "1.0.0"
