"""Commit build results to the ``<stream>-results`` event stream.

Registering a build appends a ``build-event`` and remembers its position.
Every later append to the results stream expects that position, so a second
build registering in between makes the first one's next supersession check
fail and any racing append conflict.  After each job the source stream gets a
progress mark naming the last published index; after the final job it gets a
clear, which a later read treats as "everything up to this checkpoint is
published".
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List, Optional, Sequence
from uuid import uuid4

from ..build.jobs import BuildJob, CommitContext
from ..events.log import EventData, EventLog
from ..events.schemas import (
    AGGREGATES_RECEIVED,
    BUILD_EVENT,
    CHECKPOINT_CLEAR,
    CHECKPOINT_PROGRESS_MARK,
    RESULTS_DAY_RECEIVED,
    RESULTS_READY,
    AggregatesReceived,
    BuildEvent,
    CheckpointClear,
    CheckpointProgressMark,
    ResultsDayReceived,
    ResultsReady,
)
from ..source.writer import source_stream

logger = logging.getLogger(__name__)


def results_stream(stream: str) -> str:
    return f"{stream}-results"


class EventResultsSink:
    def __init__(self, log: EventLog, stream: str, build_id: Optional[str] = None):
        self.log = log
        self.stream = stream
        self.build_id = build_id or str(uuid4())
        self.registered_position: Optional[int] = None
        self.build_position: Optional[int] = None

    async def register_build(self) -> None:
        event = BuildEvent(timestamp=datetime.now(timezone.utc))
        position = await self.log.append(
            results_stream(self.stream), [EventData(BUILD_EVENT, event.to_payload())]
        )
        self.registered_position = position
        self.build_position = position
        logger.info("registered build %s at position %d", self.build_id, position)

    async def is_superseded(self) -> bool:
        last = await self.log.last_position(results_stream(self.stream))
        return last is None or last != self.build_position

    def _job_events(self, job: BuildJob, is_last: bool, context: CommitContext) -> List[EventData]:
        if job.aggregates is None:
            raise ValueError(f"job {job.series_index} has no aggregates to commit")
        tags = {
            "build_id": self.build_id,
            "checkpoint_id": context.checkpoint_id,
            "series_index": job.series_index,
            "series_day": job.series_day,
        }
        events = [
            EventData(
                RESULTS_DAY_RECEIVED,
                ResultsDayReceived(**tags, **day.model_dump()).to_payload(),
            )
            for day in job.results_days
        ]
        events.append(
            EventData(
                AGGREGATES_RECEIVED,
                AggregatesReceived(**tags, aggregates=job.aggregates).to_payload(),
            )
        )
        if is_last:
            ready = ResultsReady(
                build_id=self.build_id,
                build_position=self.registered_position,
                checkpoint_id=context.checkpoint_id,
                read_position=context.read_position,
                min_index=context.min_index,
                build_from_index=context.build_from_index,
                max_index=context.max_index,
            )
            events.append(EventData(RESULTS_READY, ready.to_payload()))
        return events

    async def commit_job(self, job: BuildJob, is_last: bool, context: CommitContext) -> None:
        if self.build_position is None:
            raise ValueError("build must be registered before committing")
        events = self._job_events(job, is_last, context)
        self.build_position = await self.log.append(
            results_stream(self.stream), events, expected_position=self.build_position
        )
        if context.checkpoint_id is None:
            return
        if is_last:
            marker = EventData(
                CHECKPOINT_CLEAR, CheckpointClear(checkpoint_id=context.checkpoint_id).to_payload()
            )
        else:
            marker = EventData(
                CHECKPOINT_PROGRESS_MARK,
                CheckpointProgressMark(
                    checkpoint_id=context.checkpoint_id,
                    handled_index_cutoff=job.series_index,
                ).to_payload(),
            )
        await self.log.append(source_stream(self.stream), [marker])
        logger.debug("%s for checkpoint %s after job %d", marker.event_type, context.checkpoint_id, job.series_index)

    async def commit(
        self,
        jobs: Sequence[BuildJob],
        checkpoint_id: Optional[str],
        read_position: int,
        min_index: int,
        build_from_index: int,
        max_index: int,
    ) -> None:
        if not jobs:
            raise ValueError("cannot commit an empty build queue")
        context = CommitContext(
            checkpoint_id=checkpoint_id,
            read_position=read_position,
            min_index=min_index,
            build_from_index=build_from_index,
            max_index=max_index,
        )
        for position, job in enumerate(jobs):
            await self.commit_job(job, position == len(jobs) - 1, context)


__all__ = ["EventResultsSink", "results_stream"]
