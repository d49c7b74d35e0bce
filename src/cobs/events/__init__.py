"""Event log store and the payloads written to it."""
from __future__ import annotations

from .log import ANY, NO_STREAM, EventData, EventLog, RecordedEvent, SqlEventLog, open_event_log

__all__ = [
    "ANY",
    "NO_STREAM",
    "EventData",
    "EventLog",
    "RecordedEvent",
    "SqlEventLog",
    "open_event_log",
]
