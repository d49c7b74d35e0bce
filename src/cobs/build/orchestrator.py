"""Runs the build queue one job at a time.

Each job walks the phases below; before entering any phase the sink is asked
whether another build has taken over, in which case the build is abandoned
with :class:`~cobs.errors.SupersededError`.  Jobs already committed stay
committed.
"""
from __future__ import annotations

import logging
from enum import Enum
from typing import List, Optional

from ..bounds.extract import extract_aggregates, extract_results_days
from ..core.rolling import populate_rolling
from ..errors import SupersededError
from ..scenarios.contract import ScenarioEngine, minimum_days
from ..source.reader import SeriesRead, SeriesSource
from .jobs import BuildJob, CommitContext, ResultsSink, plan_queue

logger = logging.getLogger(__name__)


class BuildPhase(str, Enum):
    IDLE = "idle"
    REGISTERED = "registered"
    POPULATING = "populating"
    SCENARIO_GENERATING = "scenario-generating"
    SCENARIO_RUNNING = "scenario-running"
    EXTRACTING_DAYS = "extracting-days"
    EXTRACTING_AGGREGATES = "extracting-aggregates"
    COMMITTED = "committed"
    DONE = "done"
    ABORTED = "aborted"


class BuildOrchestrator:
    def __init__(self, source: SeriesSource, sink: ResultsSink, engine: ScenarioEngine):
        self.source = source
        self.sink = sink
        self.engine = engine
        self.phase = BuildPhase.IDLE
        self.history: List[BuildPhase] = [BuildPhase.IDLE]

    def _set(self, phase: BuildPhase) -> None:
        self.phase = phase
        self.history.append(phase)

    async def _enter(self, phase: BuildPhase, job: Optional[BuildJob] = None) -> None:
        if await self.sink.is_superseded():
            raise SupersededError(f"build superseded before {phase.value}")
        self._set(phase)
        if job is not None:
            logger.debug("job %d (%s): %s", job.series_index, job.series_day, phase.value)

    async def run(self) -> List[BuildJob]:
        """Read, plan and build; returns the committed jobs (empty when up to date)."""

        try:
            return await self._run()
        except Exception as exc:
            self._set(BuildPhase.ABORTED)
            logger.error("build aborted in %s: %s", self.history[-2].value, exc)
            raise

    async def _run(self) -> List[BuildJob]:
        read = await self.source.read_series()
        queue = plan_queue(read.days, read.build_from_index, minimum_days(self.engine))
        if not queue:
            logger.info("results up to date, nothing to build")
            self._set(BuildPhase.DONE)
            return []

        await self.sink.register_build()
        self._set(BuildPhase.REGISTERED)

        min_index = 0
        for position, job in enumerate(queue):
            await self._build_job(read, job)
            min_index = min(min_index, job.min_index)
            context = CommitContext(
                checkpoint_id=read.last_checkpoint_id,
                read_position=read.read_position,
                min_index=min_index,
                build_from_index=queue[0].series_index,
                max_index=len(read.days) - 1,
            )
            await self._enter(BuildPhase.COMMITTED, job)
            await self.sink.commit_job(job, position == len(queue) - 1, context)
            logger.info("committed job %d (%s)", job.series_index, job.series_day)

        self._set(BuildPhase.DONE)
        logger.info("build done: %d job(s)", len(queue))
        return queue

    async def _build_job(self, read: SeriesRead, job: BuildJob) -> None:
        await self._enter(BuildPhase.POPULATING, job)
        days = read.days[: job.series_index + 1]
        rolling = populate_rolling(days)

        await self._enter(BuildPhase.SCENARIO_GENERATING, job)
        scenario_ids = self.engine.generate_parameters(days, rolling)

        await self._enter(BuildPhase.SCENARIO_RUNNING, job)
        runs = [self.engine.run(scenario_id) for scenario_id in scenario_ids]

        await self._enter(BuildPhase.EXTRACTING_DAYS, job)
        job.results_days = extract_results_days(runs, days, rolling)

        await self._enter(BuildPhase.EXTRACTING_AGGREGATES, job)
        job.aggregates = extract_aggregates(runs, job.series_index)


__all__ = ["BuildPhase", "BuildOrchestrator"]
