from __future__ import annotations

from datetime import date

import pytest

from cobs.bounds.extract import (
    doubling_time,
    extract_aggregates,
    extract_results_day,
    extract_results_days,
    is_unstable,
    select_bounds,
)
from cobs.bounds.schemas import Aggregates
from cobs.core.days import DaySeries
from cobs.core.rolling import populate_rolling
from cobs.scenarios.contract import (
    ProvenanceTag,
    ScenarioAggregates,
    ScenarioOutcome,
    ScenarioRun,
)
from fakes import FakeEngine, make_days

DAY = date(2020, 3, 10)


def _outcome(cases: int, index: int = 0, **kw) -> ScenarioOutcome:
    return ScenarioOutcome(timeline_index=index, date=DAY, actual_daily_new_cases=cases, **kw)


def test_single_scenario_is_every_bound() -> None:
    only = _outcome(5)
    assert select_bounds([only]) == (only, only, only)


def test_empty_scenario_set_is_rejected() -> None:
    with pytest.raises(ValueError):
        select_bounds([])


def test_baseline_is_middle_rank_and_ties_keep_order() -> None:
    a, b, c, d = _outcome(3, r_effective=1.0), _outcome(1), _outcome(3, r_effective=2.0), _outcome(9)
    lower, baseline, upper = select_bounds([a, b, c, d])
    assert lower is b
    assert baseline is c
    assert upper is d
    lower, baseline, upper = select_bounds([a, c])
    assert lower is a and upper is a
    assert baseline is c


def test_metrics_follow_case_ranking() -> None:
    days = make_days(1)
    series = DaySeries(days)
    series.seed_timeline()
    rolling = populate_rolling(series.days)
    outcomes = [
        _outcome(10, r_effective=1.5, growth_rate=0.3, provenance="observed"),
        _outcome(5, r_effective=2.0, growth_rate=0.1, provenance="observed"),
        _outcome(20, r_effective=0.7, growth_rate=0.2, provenance="observed"),
    ]
    row = extract_results_day(0, outcomes, series.days, rolling)
    assert row.actual_daily_new_cases_lower == 5
    assert row.r_effective_lower == 2.0
    assert row.r_effective_upper == 0.7
    assert row.growth_rate_baseline == 0.3
    assert row.daily_new_cases == 100
    assert row.rolling_daily_new_cases == pytest.approx(100.0)
    assert row.lower_provenance is ProvenanceTag.OBSERVED


def test_run_up_rows_only_carry_cases_and_provenance() -> None:
    outcomes = [_outcome(4, index=-2, r_effective=1.2, provenance=ProvenanceTag.RUN_UP)]
    row = extract_results_day(-2, outcomes, [], [])
    assert row.timeline_index == -2
    assert row.actual_daily_new_cases_baseline == 4
    assert row.baseline_provenance is ProvenanceTag.RUN_UP
    assert row.r_effective_baseline is None
    assert row.daily_new_cases is None


def test_results_days_span_run_up_to_last_day() -> None:
    series = DaySeries(make_days(6))
    series.seed_timeline()
    rolling = populate_rolling(series.days)
    engine = FakeEngine()
    runs = [engine.run(s) for s in engine.generate_parameters(series.days, rolling)]
    rows = extract_results_days(runs, series.days, rolling)
    assert [r.timeline_index for r in rows] == list(range(-3, 6))
    assert rows[-1].actual_daily_new_cases_upper == round(105 * 1.25)


def test_missing_index_is_a_contract_breach() -> None:
    series = DaySeries(make_days(2))
    series.seed_timeline()
    run = ScenarioRun("a", ScenarioAggregates(0, 0.0, 0.0, 0.0), [_outcome(1, index=0)])
    with pytest.raises(ValueError):
        extract_results_days([run], series.days, populate_rolling(series.days))


@pytest.mark.parametrize(
    "growth, expected",
    [
        (0.05, 14),
        (0.1, 7),
        (0.01, 0),
        (0.02, 0),
        (0.0, 0),
        (-0.02, -34),
        (-0.5, -1),
        (-0.95, 0),
    ],
)
def test_doubling_time(growth: float, expected: int) -> None:
    assert doubling_time(growth) == expected


def test_instability() -> None:
    stable = Aggregates(
        r_effective_lower=1.2,
        r_effective_baseline=1.3,
        r_effective_upper=1.4,
        doubling_time_lower=4,
        doubling_time_baseline=7,
        doubling_time_upper=14,
    )
    assert not is_unstable(stable)
    assert is_unstable(stable.model_copy(update={"r_effective_lower": 1.05}))
    assert is_unstable(stable.model_copy(update={"doubling_time_baseline": 0}))


def _run(scenario: str, cases: int, mortality: int, growth: float, reff: float) -> ScenarioRun:
    return ScenarioRun(
        scenario,
        ScenarioAggregates(mortality, mortality / 10000, growth, reff),
        [_outcome(cases, index=4)],
    )


def test_aggregates_rank_each_metric_independently() -> None:
    runs = [
        _run("low", cases=10, mortality=300, growth=0.2, reff=1.456),
        _run("mid", cases=20, mortality=100, growth=0.05, reff=1.2),
        _run("high", cases=30, mortality=200, growth=0.1, reff=1.3),
    ]
    aggregates = extract_aggregates(runs, max_index=4)
    assert (aggregates.mortality_lower, aggregates.mortality_baseline, aggregates.mortality_upper) == (
        100,
        200,
        300,
    )
    assert aggregates.seroprev_lower == pytest.approx(0.01)
    assert aggregates.r_effective_upper == 1.46
    assert (
        aggregates.doubling_time_lower,
        aggregates.doubling_time_baseline,
        aggregates.doubling_time_upper,
    ) == (14, 7, 4)
    assert not aggregates.unstable


def test_aggregates_flag_unstable_band() -> None:
    runs = [
        _run("a", cases=10, mortality=1, growth=0.05, reff=0.95),
        _run("b", cases=20, mortality=2, growth=0.05, reff=1.0),
        _run("c", cases=30, mortality=3, growth=0.05, reff=1.05),
    ]
    assert extract_aggregates(runs, max_index=4).unstable
