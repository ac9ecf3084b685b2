"""Test helpers for the notification pipeline tests."""

from .factories import (
    T0,
    load_event,
    load_log,
    load_message,
    make_event,
    make_log_entry,
    make_message,
    store_event,
    store_log_entry,
    store_message,
)
from .transports import ExplodingTransport, FakeClock, RecordingTransport

__all__ = [
    "FakeClock",
    "RecordingTransport",
    "ExplodingTransport",
    "T0",
    "make_message",
    "make_event",
    "make_log_entry",
    "store_message",
    "store_event",
    "store_log_entry",
    "load_message",
    "load_event",
    "load_log",
]
