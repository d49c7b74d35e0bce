"""Split checkpointed source batches into handled and pending work.

A ``checkpoint`` event closes a batch of source days.  A batch is *handled*
when the latest ``checkpoint-clear`` references it or a later batch.  Past the
clear, a batch is *marked* when the latest ``checkpoint-progress-mark``
references it or a later batch; only its days up to the mark's cutoff index
were published.  Everything else is *unhandled*.

Every function here is pure: the reader feeds it indexed days and gets back
the partition and the day to resume building from.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Dict, List, Optional, Sequence, Tuple

from ..core.days import RawDay


@dataclass(frozen=True)
class SourceBatch:
    checkpoint_id: str
    days: Tuple[RawDay, ...] = ()


@dataclass(frozen=True)
class BatchPartition:
    handled: Tuple[SourceBatch, ...] = ()
    marked: Tuple[SourceBatch, ...] = ()
    unhandled: Tuple[SourceBatch, ...] = ()


def _position(batches: Sequence[SourceBatch], checkpoint_id: Optional[str]) -> int:
    if checkpoint_id is None:
        return -1
    for i, batch in enumerate(batches):
        if batch.checkpoint_id == checkpoint_id:
            return i
    return -1


def partition_batches(
    batches: Sequence[SourceBatch],
    cleared_id: Optional[str],
    marked_id: Optional[str],
) -> BatchPartition:
    """Partition ``batches`` (in stream order) against the latest clear and mark."""

    cleared = _position(batches, cleared_id)
    marked = max(_position(batches, marked_id), cleared)
    return BatchPartition(
        handled=tuple(batches[: cleared + 1]),
        marked=tuple(batches[cleared + 1 : marked + 1]),
        unhandled=tuple(batches[marked + 1 :]),
    )


def _below_cutoff(day: RawDay, cutoff: Optional[int]) -> bool:
    return cutoff is not None and day.timeline_index is not None and day.timeline_index <= cutoff


def handled_days(partition: BatchPartition, cutoff: Optional[int]) -> Dict[date, RawDay]:
    """Days already published, later batches overwriting earlier ones."""

    handled: Dict[date, RawDay] = {}
    for batch in partition.handled:
        for day in batch.days:
            handled[day.date] = day
    for batch in partition.marked:
        for day in batch.days:
            if _below_cutoff(day, cutoff):
                handled[day.date] = day
    return handled


def candidate_days(partition: BatchPartition, cutoff: Optional[int]) -> List[RawDay]:
    """Days not yet confirmed as published."""

    candidates: List[RawDay] = []
    for batch in partition.marked:
        candidates.extend(day for day in batch.days if not _below_cutoff(day, cutoff))
    for batch in partition.unhandled:
        candidates.extend(batch.days)
    return candidates


def compute_build_from(
    series: Sequence[RawDay],
    handled: Dict[date, RawDay],
    candidates: Sequence[RawDay],
) -> date:
    """First day whose results must be (re)published.

    With nothing handled the whole series is rebuilt.  Otherwise building
    resumes the day after the latest handled day, pulled back to the earliest
    candidate that revises a handled day's values.
    """

    if not series:
        raise ValueError("cannot plan a build over an empty series")
    if not handled:
        return series[0].date
    build_from = max(handled) + timedelta(days=1)
    for day in candidates:
        previous = handled.get(day.date)
        if previous is not None and previous != day and day.date < build_from:
            build_from = day.date
    return build_from


__all__ = [
    "SourceBatch",
    "BatchPartition",
    "partition_batches",
    "handled_days",
    "candidate_days",
    "compute_build_from",
]
