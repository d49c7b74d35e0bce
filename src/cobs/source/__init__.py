"""Reading and ingesting raw source days."""
from __future__ import annotations

from .reader import EventSource, FileSource, SeriesRead, SeriesSource
from .writer import append_source_batch, read_source_file

__all__ = [
    "EventSource",
    "FileSource",
    "SeriesRead",
    "SeriesSource",
    "append_source_batch",
    "read_source_file",
]
