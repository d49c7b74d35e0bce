"""Payloads of every event kind written to the source and results streams."""
from __future__ import annotations

import datetime as dt
from typing import Optional

from ..bounds.schemas import Aggregates, ResultsDay, WireModel
from ..core.days import RawDay

SOURCE_DAY_RECEIVED = "source-day-received"
CHECKPOINT = "checkpoint"
CHECKPOINT_PROGRESS_MARK = "checkpoint-progress-mark"
CHECKPOINT_CLEAR = "checkpoint-clear"

BUILD_EVENT = "build-event"
RESULTS_DAY_RECEIVED = "results-day-received"
AGGREGATES_RECEIVED = "aggregates-received"
RESULTS_READY = "results-ready"


class SourceDayReceived(WireModel):
    """Raw observed day as ingested.  The date stays text until validated."""

    date: str
    daily_new_cases: int
    tests: int
    positivity: float
    mortality: int
    hospitalizations: int

    @classmethod
    def from_day(cls, day: RawDay) -> "SourceDayReceived":
        return cls(
            date=day.date.isoformat(),
            daily_new_cases=day.daily_new_cases,
            tests=day.tests,
            positivity=day.positivity,
            mortality=day.mortality,
            hospitalizations=day.hospitalizations,
        )


class CheckpointProgressMark(WireModel):
    checkpoint_id: str
    handled_index_cutoff: int


class CheckpointClear(WireModel):
    checkpoint_id: str


class BuildEvent(WireModel):
    timestamp: dt.datetime


class _BySeries(WireModel):
    build_id: str
    checkpoint_id: Optional[str] = None
    series_index: int
    series_day: dt.date


class ResultsDayReceived(_BySeries, ResultsDay):
    """A :class:`ResultsDay` tagged with the build and job that produced it."""

    def results_day(self) -> ResultsDay:
        return ResultsDay.model_validate(self.model_dump(include=set(ResultsDay.model_fields)))


class AggregatesReceived(_BySeries):
    aggregates: Aggregates


class ResultsReady(WireModel):
    build_id: str
    build_position: int
    checkpoint_id: Optional[str] = None
    read_position: int
    min_index: int
    build_from_index: int
    max_index: int


__all__ = [
    "SOURCE_DAY_RECEIVED",
    "CHECKPOINT",
    "CHECKPOINT_PROGRESS_MARK",
    "CHECKPOINT_CLEAR",
    "BUILD_EVENT",
    "RESULTS_DAY_RECEIVED",
    "AGGREGATES_RECEIVED",
    "RESULTS_READY",
    "SourceDayReceived",
    "CheckpointProgressMark",
    "CheckpointClear",
    "BuildEvent",
    "ResultsDayReceived",
    "AggregatesReceived",
    "ResultsReady",
]
