"""Pydantic models for extracted result rows and per-build aggregates."""
from __future__ import annotations

import datetime as dt
from typing import List, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from ..scenarios.contract import ProvenanceTag


class WireModel(BaseModel):
    """Base for models serialised with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_payload(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class ResultsDay(WireModel):
    """One timeline day of bounded results.

    Raw and rolling inputs are only present for non-negative indices; during
    the run-up only the case counts and provenance tags are set.
    """

    timeline_index: int
    date: dt.date

    daily_new_cases: Optional[int] = None
    tests: Optional[int] = None
    positivity: Optional[float] = None
    mortality: Optional[int] = None
    hospitalizations: Optional[int] = None

    rolling_daily_new_cases: Optional[float] = None
    rolling_tests: Optional[float] = None
    rolling_positivity: Optional[float] = None
    rolling_mortality: Optional[float] = None
    rolling_hospitalizations: Optional[float] = None
    rolling_long_mortality: Optional[float] = None
    rolling_long_hospitalizations: Optional[float] = None

    lower_provenance: ProvenanceTag = ProvenanceTag.UNKNOWN
    baseline_provenance: ProvenanceTag = ProvenanceTag.UNKNOWN
    upper_provenance: ProvenanceTag = ProvenanceTag.UNKNOWN

    actual_daily_new_cases_lower: int = 0
    actual_daily_new_cases_baseline: int = 0
    actual_daily_new_cases_upper: int = 0

    admissions_with_churn_lower: Optional[int] = None
    admissions_with_churn_baseline: Optional[int] = None
    admissions_with_churn_upper: Optional[int] = None

    delta_cases_ratio_9d_lower: Optional[float] = None
    delta_cases_ratio_9d_baseline: Optional[float] = None
    delta_cases_ratio_9d_upper: Optional[float] = None

    growth_rate_lower: Optional[float] = None
    growth_rate_baseline: Optional[float] = None
    growth_rate_upper: Optional[float] = None

    r_effective_lower: Optional[float] = None
    r_effective_baseline: Optional[float] = None
    r_effective_upper: Optional[float] = None

    doubling_time_lower: Optional[float] = None
    doubling_time_baseline: Optional[float] = None
    doubling_time_upper: Optional[float] = None


class Aggregates(WireModel):
    """Current growth aggregates and projected totals for one build."""

    r_effective_lower: float = 0.0
    r_effective_baseline: float = 0.0
    r_effective_upper: float = 0.0

    doubling_time_lower: int = 0
    doubling_time_baseline: int = 0
    doubling_time_upper: int = 0

    unstable: bool = False

    seroprev_lower: float = 0.0
    seroprev_baseline: float = 0.0
    seroprev_upper: float = 0.0

    mortality_lower: int = 0
    mortality_baseline: int = 0
    mortality_upper: int = 0


def field_order(model: type[BaseModel]) -> List[str]:
    """Declared field names, the column order of the flat result files."""

    return list(model.model_fields)


__all__ = ["WireModel", "ResultsDay", "Aggregates", "field_order"]
