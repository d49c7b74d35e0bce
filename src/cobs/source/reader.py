"""Series sources: the checkpointed event stream and the flat source file."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field, replace
from datetime import date
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError

from ..core.days import DaySeries, RawDay, RowStatus, parse_date, validate_event
from ..errors import AccessError, ContiguityError, DecodeError, RowValidationError
from ..events.log import EventLog, RecordedEvent
from ..events.schemas import (
    CHECKPOINT,
    CHECKPOINT_CLEAR,
    CHECKPOINT_PROGRESS_MARK,
    SOURCE_DAY_RECEIVED,
    CheckpointClear,
    CheckpointProgressMark,
    SourceDayReceived,
)
from .reconcile import (
    SourceBatch,
    candidate_days,
    compute_build_from,
    handled_days,
    partition_batches,
)
from .writer import read_source_file, source_stream

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


@dataclass
class SeriesRead:
    """Indexed series plus where building has to resume."""

    days: List[RawDay]
    last_checkpoint_id: Optional[str]
    build_from: date
    read_position: int = 0
    handled: Dict[date, RawDay] = field(default_factory=dict)

    @property
    def build_from_index(self) -> int:
        """Index of ``build_from``; ``len(days)`` when it lies past the series."""

        for day in self.days:
            if day.date >= self.build_from:
                return day.timeline_index
        return len(self.days)


class SeriesSource(Protocol):
    async def read_series(self) -> SeriesRead:
        ...


def decode_event(model: Type[M], event: RecordedEvent, ordinal: int) -> M:
    try:
        return model.model_validate_json(event.data)
    except ValidationError as exc:
        raise DecodeError(ordinal, f"{event.event_type}: {exc}") from exc


def _seed(days: List[RawDay]) -> DaySeries:
    series = DaySeries(days)
    if not series.seed_timeline():
        raise ContiguityError()
    return series


class EventSource:
    """Reads the ``<stream>-source`` event stream.

    Only days closed by a checkpoint are considered; anything after the final
    checkpoint belongs to a batch still being written.
    """

    def __init__(self, log: EventLog, stream: str):
        self.log = log
        self.stream = stream

    async def read_series(self) -> SeriesRead:
        name = source_stream(self.stream)
        events = await self.log.read_stream(name)
        if not events:
            raise AccessError(f"no source data in stream {name}")

        batches: List[SourceBatch] = []
        pending: List[RawDay] = []
        mark: Optional[CheckpointProgressMark] = None
        clear: Optional[CheckpointClear] = None
        for ordinal, event in enumerate(events, 1):
            if event.event_type == SOURCE_DAY_RECEIVED:
                payload = decode_event(SourceDayReceived, event, ordinal)
                status = validate_event(payload)
                if status is not RowStatus.OK:
                    raise RowValidationError(ordinal, status)
                pending.append(
                    RawDay(
                        date=parse_date(payload.date),
                        daily_new_cases=payload.daily_new_cases,
                        tests=payload.tests,
                        positivity=payload.positivity,
                        mortality=payload.mortality,
                        hospitalizations=payload.hospitalizations,
                    )
                )
            elif event.event_type == CHECKPOINT:
                batches.append(SourceBatch(event.event_id, tuple(pending)))
                pending = []
            elif event.event_type == CHECKPOINT_PROGRESS_MARK:
                mark = decode_event(CheckpointProgressMark, event, ordinal)
            elif event.event_type == CHECKPOINT_CLEAR:
                clear = decode_event(CheckpointClear, event, ordinal)
            else:
                logger.debug("skipping %s event at %d", event.event_type, event.position)

        if pending:
            logger.info("ignoring %d day(s) after the last checkpoint", len(pending))
        if not batches:
            raise AccessError(f"no checkpointed source data in stream {name}")

        series = _seed([day for batch in batches for day in batch.days])
        indexed = [
            SourceBatch(
                batch.checkpoint_id,
                tuple(replace(day, timeline_index=series.index_of(day.date)) for day in batch.days),
            )
            for batch in batches
        ]
        partition = partition_batches(
            indexed,
            cleared_id=clear.checkpoint_id if clear else None,
            marked_id=mark.checkpoint_id if mark else None,
        )
        cutoff = mark.handled_index_cutoff if mark else None
        handled = handled_days(partition, cutoff)
        build_from = compute_build_from(series.days, handled, candidate_days(partition, cutoff))
        logger.info(
            "read %d day(s) in %d batch(es) from %s: %d handled, %d marked, %d unhandled, build from %s",
            len(series),
            len(batches),
            name,
            len(partition.handled),
            len(partition.marked),
            len(partition.unhandled),
            build_from.isoformat(),
        )
        return SeriesRead(
            days=series.days,
            last_checkpoint_id=batches[-1].checkpoint_id,
            build_from=build_from,
            read_position=events[-1].position,
            handled=handled,
        )


class FileSource:
    """Reads a flat source file as a one-shot batch: only the latest day is built."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    async def read_series(self) -> SeriesRead:
        days = await asyncio.to_thread(read_source_file, self.path)
        if not days:
            raise AccessError(f"no source data in {self.path}")
        series = _seed(days)
        logger.info("read %d day(s) from %s", len(series), self.path)
        return SeriesRead(
            days=series.days,
            last_checkpoint_id=None,
            build_from=series.days[-1].date,
        )


__all__ = ["SeriesRead", "SeriesSource", "EventSource", "FileSource", "decode_event"]
