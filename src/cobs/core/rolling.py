"""Centred rolling averages over the indexed day series.

Windows are clamped at the series boundaries without padding, so the divisor
is always the number of days actually inside the window.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence

import numpy as np
import pandas as pd

from .days import RawDay

SHORT_RADIUS = 2
LONG_RADIUS = 50

_METRICS = ("daily_new_cases", "tests", "positivity", "mortality", "hospitalizations")


@dataclass(frozen=True)
class RollingDay:
    raw: RawDay
    short_daily_new_cases: float
    short_tests: float
    short_positivity: float
    short_mortality: float
    short_hospitalizations: float
    long_mortality: float
    long_hospitalizations: float


def _window_mean(days: Sequence[RawDay], index: int, radius: int, metric: str) -> float:
    lo = max(index - radius, 0)
    hi = min(index + radius, len(days) - 1)
    window = [getattr(day, metric) for day in days[lo : hi + 1]]
    return sum(window) / len(window)


def compute_rolling(index: int, days: Sequence[RawDay]) -> RollingDay:
    """Return the rolling averages of ``days[index]``."""

    if not 0 <= index < len(days):
        raise IndexError(f"timeline index {index} outside series of {len(days)} days")
    return RollingDay(
        raw=days[index],
        short_daily_new_cases=_window_mean(days, index, SHORT_RADIUS, "daily_new_cases"),
        short_tests=_window_mean(days, index, SHORT_RADIUS, "tests"),
        short_positivity=_window_mean(days, index, SHORT_RADIUS, "positivity"),
        short_mortality=_window_mean(days, index, SHORT_RADIUS, "mortality"),
        short_hospitalizations=_window_mean(days, index, SHORT_RADIUS, "hospitalizations"),
        long_mortality=_window_mean(days, index, LONG_RADIUS, "mortality"),
        long_hospitalizations=_window_mean(days, index, LONG_RADIUS, "hospitalizations"),
    )


def _centred(values: pd.Series, radius: int) -> np.ndarray:
    return values.rolling(window=2 * radius + 1, center=True, min_periods=1).mean().to_numpy()


def populate_rolling(days: Sequence[RawDay]) -> List[RollingDay]:
    """Vectorised :func:`compute_rolling` over the whole series."""

    if not days:
        return []
    frame = pd.DataFrame(
        {metric: np.asarray([getattr(day, metric) for day in days], dtype=float) for metric in _METRICS}
    )
    short = {metric: _centred(frame[metric], SHORT_RADIUS) for metric in _METRICS}
    long_mortality = _centred(frame["mortality"], LONG_RADIUS)
    long_hospitalizations = _centred(frame["hospitalizations"], LONG_RADIUS)
    return [
        RollingDay(
            raw=day,
            short_daily_new_cases=float(short["daily_new_cases"][i]),
            short_tests=float(short["tests"][i]),
            short_positivity=float(short["positivity"][i]),
            short_mortality=float(short["mortality"][i]),
            short_hospitalizations=float(short["hospitalizations"][i]),
            long_mortality=float(long_mortality[i]),
            long_hospitalizations=float(long_hospitalizations[i]),
        )
        for i, day in enumerate(days)
    ]


__all__ = ["RollingDay", "compute_rolling", "populate_rolling", "SHORT_RADIUS", "LONG_RADIUS"]
