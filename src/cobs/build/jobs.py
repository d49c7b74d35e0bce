"""Build jobs, the commit context and the results sink contract."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional, Protocol, Sequence

from ..bounds.schemas import Aggregates, ResultsDay
from ..core.days import RawDay
from ..errors import InsufficientDataError

logger = logging.getLogger(__name__)


@dataclass
class BuildJob:
    """Results of the series truncated at ``series_index``."""

    series_index: int
    series_day: date
    results_days: List[ResultsDay] = field(default_factory=list)
    aggregates: Optional[Aggregates] = None

    @property
    def min_index(self) -> int:
        if not self.results_days:
            return 0
        return self.results_days[0].timeline_index


@dataclass(frozen=True)
class CommitContext:
    checkpoint_id: Optional[str]
    read_position: int
    min_index: int
    build_from_index: int
    max_index: int


class ResultsSink(Protocol):
    async def register_build(self) -> None:
        ...

    async def is_superseded(self) -> bool:
        ...

    async def commit_job(self, job: BuildJob, is_last: bool, context: CommitContext) -> None:
        ...

    async def commit(
        self,
        jobs: Sequence[BuildJob],
        checkpoint_id: Optional[str],
        read_position: int,
        min_index: int,
        build_from_index: int,
        max_index: int,
    ) -> None:
        ...


def plan_queue(days: Sequence[RawDay], build_from_index: int, minimum: int) -> List[BuildJob]:
    """One job per day from ``build_from_index`` to the last day, ascending.

    Days before ``minimum - 1`` cannot be built on their own and are folded
    into the first job that can.
    """

    if len(days) < minimum:
        raise InsufficientDataError(minimum, len(days))
    start = max(build_from_index, minimum - 1)
    queue = [BuildJob(series_index=i, series_day=days[i].date) for i in range(start, len(days))]
    logger.info("planned %d job(s) from index %d of %d day(s)", len(queue), start, len(days))
    return queue


__all__ = ["BuildJob", "CommitContext", "ResultsSink", "plan_queue"]
