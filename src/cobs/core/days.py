"""Validation of raw daily rows and timeline seeding.

Rows arrive either as comma separated text (flat source files) or as decoded
``source-day-received`` events.  Both paths go through the same range checks
and report the *first* violation found, in the fixed field order date, daily
new cases, tests, positivity, mortality, hospitalizations.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence

COLUMNS = 6


class RowStatus(str, Enum):
    """Outcome of validating one source row, with its report wording."""

    OK = "no errors found"
    WRONG_NUMBER_OF_COLUMNS = "had wrong number of columns"
    DATE_UNREADABLE = "had unreadable date"
    DNC_UNREADABLE = "had unreadable daily new cases"
    DNC_NEGATIVE = "had negative daily new cases"
    TESTS_UNREADABLE = "had unreadable tests"
    TESTS_NEGATIVE = "had negative tests"
    POSITIVITY_UNREADABLE = "had unreadable positivity"
    POSITIVITY_OUT_OF_RANGE = "had positivity not between 0 and 100"
    MORTALITY_UNREADABLE = "had unreadable mortality"
    MORTALITY_NEGATIVE = "had negative mortality"
    HOSPITALIZATIONS_UNREADABLE = "had unreadable hospitalizations"
    HOSPITALIZATIONS_NEGATIVE = "had negative hospitalizations"

    @property
    def description(self) -> str:
        return self.value


@dataclass(frozen=True)
class RawDay:
    """One observed day.  Equality ignores the timeline index."""

    date: date
    daily_new_cases: int
    tests: int
    positivity: float
    mortality: int
    hospitalizations: int
    timeline_index: Optional[int] = field(default=None, compare=False)


def parse_date(value: str) -> date:
    value = value.strip()
    if "T" in value or value.endswith("Z"):
        if value.endswith("Z"):
            value = value[:-1] + "+00:00"
        return datetime.fromisoformat(value).date()
    if " " in value:
        return datetime.strptime(value, "%Y-%m-%d %H:%M:%S").date()
    return date.fromisoformat(value)


def _readable(parse, value) -> bool:
    try:
        parse(value)
    except (TypeError, ValueError):
        return False
    return True


def _check_ranges(
    daily_new_cases: int,
    tests: int,
    positivity: float,
    mortality: int,
    hospitalizations: int,
) -> RowStatus:
    if daily_new_cases < 0:
        return RowStatus.DNC_NEGATIVE
    if tests < 0:
        return RowStatus.TESTS_NEGATIVE
    if not 0 <= positivity <= 100:
        return RowStatus.POSITIVITY_OUT_OF_RANGE
    if mortality < 0:
        return RowStatus.MORTALITY_NEGATIVE
    if hospitalizations < 0:
        return RowStatus.HOSPITALIZATIONS_NEGATIVE
    return RowStatus.OK


def validate_row(fields: Sequence[str]) -> RowStatus:
    """Validate a split text row, returning the first violation found."""

    if len(fields) != COLUMNS:
        return RowStatus.WRONG_NUMBER_OF_COLUMNS
    raw_date, raw_dnc, raw_tests, raw_pos, raw_mort, raw_hosp = (f.strip() for f in fields)

    if not _readable(parse_date, raw_date):
        return RowStatus.DATE_UNREADABLE
    checks = (
        (raw_dnc, int, RowStatus.DNC_UNREADABLE, RowStatus.DNC_NEGATIVE),
        (raw_tests, int, RowStatus.TESTS_UNREADABLE, RowStatus.TESTS_NEGATIVE),
        (raw_pos, float, RowStatus.POSITIVITY_UNREADABLE, RowStatus.POSITIVITY_OUT_OF_RANGE),
        (raw_mort, int, RowStatus.MORTALITY_UNREADABLE, RowStatus.MORTALITY_NEGATIVE),
        (raw_hosp, int, RowStatus.HOSPITALIZATIONS_UNREADABLE, RowStatus.HOSPITALIZATIONS_NEGATIVE),
    )
    for raw, parse, unreadable, out_of_range in checks:
        if not _readable(parse, raw):
            return unreadable
        value = parse(raw)
        if parse is float:
            if not 0 <= value <= 100:
                return out_of_range
        elif value < 0:
            return out_of_range
    return RowStatus.OK


def validate_event(day: Any) -> RowStatus:
    """Validate an already decoded ``source-day-received`` payload."""

    if not isinstance(day.date, str) or not _readable(parse_date, day.date):
        return RowStatus.DATE_UNREADABLE
    return _check_ranges(
        day.daily_new_cases,
        day.tests,
        day.positivity,
        day.mortality,
        day.hospitalizations,
    )


def parse_row(fields: Sequence[str]) -> RawDay:
    """Build an unindexed :class:`RawDay` from a row that passed validation."""

    raw = [f.strip() for f in fields]
    return RawDay(
        date=parse_date(raw[0]),
        daily_new_cases=int(raw[1]),
        tests=int(raw[2]),
        positivity=float(raw[3]),
        mortality=int(raw[4]),
        hospitalizations=int(raw[5]),
    )


class DaySeries:
    """Canonical set of raw days keyed by date.

    Adding a day whose date is already known replaces it.  Indices are only
    assigned by :meth:`seed_timeline` once the whole set is known to be
    contiguous, and any add drops them until the timeline is seeded again.
    """

    def __init__(self, days: Iterable[RawDay] = ()):
        self.by_date: Dict[date, RawDay] = {}
        self.days: List[RawDay] = []
        self.add_many(days)

    def add(self, day: RawDay) -> None:
        self.by_date[day.date] = day
        self.days = []

    def add_many(self, days: Iterable[RawDay]) -> None:
        for day in days:
            self.add(day)

    def seed_timeline(self) -> bool:
        ordered = [self.by_date[d] for d in sorted(self.by_date)]
        for prev, cur in zip(ordered, ordered[1:]):
            if cur.date != prev.date + timedelta(days=1):
                return False
        self.days = [replace(day, timeline_index=i) for i, day in enumerate(ordered)]
        self.by_date = {day.date: day for day in self.days}
        return True

    @property
    def seeded(self) -> bool:
        return len(self.days) == len(self.by_date)

    def index_of(self, day: date) -> Optional[int]:
        found = self.by_date.get(day)
        return None if found is None else found.timeline_index

    def __len__(self) -> int:
        return len(self.by_date)


__all__ = [
    "RowStatus",
    "RawDay",
    "DaySeries",
    "parse_date",
    "parse_row",
    "validate_row",
    "validate_event",
]
