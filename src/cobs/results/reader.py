"""Replay the results stream into the builds it records."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Optional

from ..bounds.schemas import Aggregates, ResultsDay
from ..commit.events import results_stream
from ..events.log import EventLog
from ..events.schemas import (
    AGGREGATES_RECEIVED,
    RESULTS_DAY_RECEIVED,
    RESULTS_READY,
    AggregatesReceived,
    ResultsDayReceived,
    ResultsReady,
)
from ..source.reader import decode_event


@dataclass
class CommittedJob:
    series_index: int
    series_day: date
    results_days: List[ResultsDay] = field(default_factory=list)
    aggregates: Optional[Aggregates] = None


@dataclass
class CommittedBuild:
    build_id: str
    jobs: Dict[int, CommittedJob] = field(default_factory=dict)
    ready: Optional[ResultsReady] = None

    @property
    def complete(self) -> bool:
        return self.ready is not None

    def job(self, series_index: int, series_day: date) -> CommittedJob:
        if series_index not in self.jobs:
            self.jobs[series_index] = CommittedJob(series_index, series_day)
        return self.jobs[series_index]


async def read_results(log: EventLog, stream: str) -> List[CommittedBuild]:
    """Builds in the order they first committed; registrations alone are skipped."""

    builds: Dict[str, CommittedBuild] = {}
    events = await log.read_stream(results_stream(stream))
    for ordinal, event in enumerate(events, 1):
        if event.event_type == RESULTS_DAY_RECEIVED:
            received = decode_event(ResultsDayReceived, event, ordinal)
            build = builds.setdefault(received.build_id, CommittedBuild(received.build_id))
            job = build.job(received.series_index, received.series_day)
            job.results_days.append(received.results_day())
        elif event.event_type == AGGREGATES_RECEIVED:
            received = decode_event(AggregatesReceived, event, ordinal)
            build = builds.setdefault(received.build_id, CommittedBuild(received.build_id))
            build.job(received.series_index, received.series_day).aggregates = received.aggregates
        elif event.event_type == RESULTS_READY:
            ready = decode_event(ResultsReady, event, ordinal)
            builds.setdefault(ready.build_id, CommittedBuild(ready.build_id)).ready = ready
    return list(builds.values())


def latest_aggregates(builds: List[CommittedBuild]) -> Optional[Aggregates]:
    """Aggregates of the newest committed job of the newest complete build."""

    for build in reversed(builds):
        if build.complete and build.jobs:
            return build.jobs[max(build.jobs)].aggregates
    return None


__all__ = ["CommittedJob", "CommittedBuild", "read_results", "latest_aggregates"]
