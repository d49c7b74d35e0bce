"""Lower/baseline/upper extraction across the scenario set.

Per day, the three scenarios are picked once by ascending actual daily new
cases (ties keep scenario order) and every other metric is copied from those
same three outcomes.  Transmission does not order case counts monotonically
during decline phases, so the case-count ranking is the only ordering used.

The aggregates pick the same three scenarios at the latest index but then rank
each metric family on its own values: a high-transmission scenario is not
necessarily a high-mortality one.
"""
from __future__ import annotations

import math
from typing import Dict, Iterable, List, Sequence, Tuple, TypeVar

from ..core.days import RawDay
from ..core.rolling import RollingDay
from ..scenarios.contract import ScenarioOutcome, ScenarioRun
from .schemas import Aggregates, ResultsDay

T = TypeVar("T")

STABLE_GROWTH = 0.02
MAX_DECAY = -0.9
REFF_UNSTABLE_LOW = 0.9
REFF_UNSTABLE_HIGH = 1.1


def select_bounds(items: Sequence[T], key=lambda o: o.actual_daily_new_cases) -> Tuple[T, T, T]:
    """Return ``(lower, baseline, upper)`` of ``items`` ordered by ``key``.

    ``baseline`` is the element at rank ``n // 2`` of the stable ascending
    order; ``lower`` and ``upper`` are the first minimal and first maximal
    elements.
    """

    if not items:
        raise ValueError("cannot select bounds from an empty scenario set")
    ranked = sorted(items, key=key)
    lower = min(items, key=key)
    upper = max(items, key=key)
    return lower, ranked[len(ranked) // 2], upper


def doubling_time(growth_rate: float) -> int:
    """Doubling (or halving) time in days, ``0`` when growth is not meaningful."""

    g = growth_rate
    if not (MAX_DECAY <= g <= -STABLE_GROWTH or g > STABLE_GROWTH):
        return 0
    return int(round(math.log(2) / math.log(1 + g)))


def is_unstable(aggregates: Aggregates) -> bool:
    straddles_one = (
        aggregates.r_effective_lower < REFF_UNSTABLE_HIGH
        and aggregates.r_effective_upper > REFF_UNSTABLE_LOW
    )
    undefined = 0 in (
        aggregates.doubling_time_lower,
        aggregates.doubling_time_baseline,
        aggregates.doubling_time_upper,
    )
    return straddles_one or undefined


def outcomes_by_index(runs: Iterable[ScenarioRun]) -> Dict[int, List[ScenarioOutcome]]:
    """Group outcomes per timeline index, keeping scenario order."""

    grouped: Dict[int, List[ScenarioOutcome]] = {}
    for run in runs:
        for outcome in run.outcomes:
            grouped.setdefault(outcome.timeline_index, []).append(outcome)
    return grouped


def extract_results_day(
    timeline_index: int,
    outcomes: Sequence[ScenarioOutcome],
    days: Sequence[RawDay],
    rolling: Sequence[RollingDay],
) -> ResultsDay:
    """Build the bounded row for ``timeline_index`` from its scenario outcomes."""

    lower, baseline, upper = select_bounds(outcomes)
    row = ResultsDay(
        timeline_index=timeline_index,
        date=baseline.date,
        lower_provenance=lower.provenance,
        baseline_provenance=baseline.provenance,
        upper_provenance=upper.provenance,
        actual_daily_new_cases_lower=lower.actual_daily_new_cases,
        actual_daily_new_cases_baseline=baseline.actual_daily_new_cases,
        actual_daily_new_cases_upper=upper.actual_daily_new_cases,
    )
    if timeline_index < 0:
        return row

    raw = days[timeline_index]
    roll = rolling[timeline_index]
    return row.model_copy(
        update={
            "date": raw.date,
            "daily_new_cases": raw.daily_new_cases,
            "tests": raw.tests,
            "positivity": raw.positivity,
            "mortality": raw.mortality,
            "hospitalizations": raw.hospitalizations,
            "rolling_daily_new_cases": roll.short_daily_new_cases,
            "rolling_tests": roll.short_tests,
            "rolling_positivity": roll.short_positivity,
            "rolling_mortality": roll.short_mortality,
            "rolling_hospitalizations": roll.short_hospitalizations,
            "rolling_long_mortality": roll.long_mortality,
            "rolling_long_hospitalizations": roll.long_hospitalizations,
            "admissions_with_churn_lower": lower.admissions_with_churn,
            "admissions_with_churn_baseline": baseline.admissions_with_churn,
            "admissions_with_churn_upper": upper.admissions_with_churn,
            "delta_cases_ratio_9d_lower": lower.delta_cases_ratio_9d,
            "delta_cases_ratio_9d_baseline": baseline.delta_cases_ratio_9d,
            "delta_cases_ratio_9d_upper": upper.delta_cases_ratio_9d,
            "growth_rate_lower": lower.growth_rate,
            "growth_rate_baseline": baseline.growth_rate,
            "growth_rate_upper": upper.growth_rate,
            "r_effective_lower": lower.r_effective,
            "r_effective_baseline": baseline.r_effective,
            "r_effective_upper": upper.r_effective,
            "doubling_time_lower": lower.doubling_time,
            "doubling_time_baseline": baseline.doubling_time,
            "doubling_time_upper": upper.doubling_time,
        }
    )


def extract_results_days(
    runs: Sequence[ScenarioRun],
    days: Sequence[RawDay],
    rolling: Sequence[RollingDay],
) -> List[ResultsDay]:
    """Rows from the earliest run-up index up to the last observed day."""

    grouped = outcomes_by_index(runs)
    max_index = len(days) - 1
    min_index = min(min(grouped, default=0), 0)
    rows: List[ResultsDay] = []
    for index in range(min_index, max_index + 1):
        outcomes = grouped.get(index)
        if not outcomes:
            raise ValueError(f"scenario engine produced no outcome for timeline index {index}")
        rows.append(extract_results_day(index, outcomes, days, rolling))
    return rows


def extract_aggregates(runs: Sequence[ScenarioRun], max_index: int) -> Aggregates:
    """Aggregates of the latest day, each metric ranked on its own values."""

    latest = [
        (outcome, run)
        for run in runs
        for outcome in run.outcomes
        if outcome.timeline_index == max_index
    ]
    if not latest:
        raise ValueError(f"scenario engine produced no outcome for timeline index {max_index}")
    selected = [run.aggregates for _, run in select_bounds(latest, key=lambda pair: pair[0].actual_daily_new_cases)]

    mortality = sorted(a.projected_total_mortality for a in selected)
    seroprev = sorted(a.projected_total_seroprev for a in selected)
    growth = sorted(a.current_growth_rate for a in selected)
    reff = sorted(a.current_r_effective for a in selected)

    aggregates = Aggregates(
        r_effective_lower=round(reff[0], 2),
        r_effective_baseline=round(reff[1], 2),
        r_effective_upper=round(reff[2], 2),
        doubling_time_lower=doubling_time(growth[0]),
        doubling_time_baseline=doubling_time(growth[1]),
        doubling_time_upper=doubling_time(growth[2]),
        seroprev_lower=seroprev[0],
        seroprev_baseline=seroprev[1],
        seroprev_upper=seroprev[2],
        mortality_lower=mortality[0],
        mortality_baseline=mortality[1],
        mortality_upper=mortality[2],
    )
    return aggregates.model_copy(update={"unstable": is_unstable(aggregates)})


__all__ = [
    "select_bounds",
    "doubling_time",
    "is_unstable",
    "outcomes_by_index",
    "extract_results_day",
    "extract_results_days",
    "extract_aggregates",
]
