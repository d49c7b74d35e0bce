"""Results sinks: the event stream and the flat files."""
from __future__ import annotations

from .events import EventResultsSink
from .files import FileResultsSink

__all__ = ["EventResultsSink", "FileResultsSink"]
