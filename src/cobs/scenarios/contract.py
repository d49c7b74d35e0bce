"""Contract consumed from the scenario engine.

The engine turns transmission assumptions plus the observed series into daily
projections per scenario.  Its mathematics live outside this package; the
build only relies on the shapes declared here.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Hashable, List, Protocol, Sequence

from ..core.days import RawDay
from ..core.rolling import RollingDay


class ProvenanceTag(str, Enum):
    """Whether a value was synthesised during the run-up or computed from observations."""

    UNKNOWN = "unknown"
    RUN_UP = "run-up"
    OBSERVED = "observed"


@dataclass(frozen=True)
class ScenarioOutcome:
    """One scenario's projection for one timeline day.

    Growth rate at zero incidence and R-eff at the stability threshold are
    stored as ``0`` rather than infinity.
    """

    timeline_index: int
    date: date
    actual_daily_new_cases: int
    admissions_with_churn: int = 0
    delta_cases_ratio_9d: float = 0.0
    growth_rate: float = 0.0
    r_effective: float = 0.0
    doubling_time: float = 0.0
    provenance: ProvenanceTag = ProvenanceTag.UNKNOWN

    def __post_init__(self) -> None:
        object.__setattr__(self, "provenance", ProvenanceTag(self.provenance))


@dataclass(frozen=True)
class ScenarioAggregates:
    projected_total_mortality: int
    projected_total_seroprev: float
    current_growth_rate: float
    current_r_effective: float


@dataclass
class ScenarioRun:
    scenario_id: Hashable
    aggregates: ScenarioAggregates
    outcomes: List[ScenarioOutcome] = field(default_factory=list)


class ScenarioEngine(Protocol):
    """Collaborator producing scenario runs for a validated series."""

    minimum_lags: Sequence[int]

    def generate_parameters(
        self, days: Sequence[RawDay], rolling: Sequence[RollingDay]
    ) -> List[Hashable]:
        """Prepare the scenario set for ``days`` and return the scenario ids."""
        ...

    def run(self, scenario_id: Hashable) -> ScenarioRun:
        ...


def minimum_days(engine: ScenarioEngine) -> int:
    """Number of raw days required before any build may run."""

    return max(engine.minimum_lags) + 1


__all__ = [
    "ProvenanceTag",
    "ScenarioOutcome",
    "ScenarioAggregates",
    "ScenarioRun",
    "ScenarioEngine",
    "minimum_days",
]
