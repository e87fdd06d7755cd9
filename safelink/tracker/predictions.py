"""Calendar-based cycle predictions.

The forecast is anchored on the most recent logged period day:

    next period   = anchor + cycle_length
    ovulation     = anchor + (cycle_length - luteal_phase_days)
    fertile window = [ovulation - fertile_days_before, ovulation + fertile_days_after]

The luteal phase (ovulation to next period) is close to 14 days for most
people, which is why ovulation is counted back from the next period rather
than forward from the last one.  Entries older than the anchor never affect
the result; every call is a full recompute.
"""

from __future__ import annotations

from datetime import date
from typing import Iterable

from safelink.models.cycle import (
    CycleEntry,
    CyclePredictions,
    DayMarker,
    FertileWindow,
)
from safelink.tracker.config_loader import CycleLimits, PredictionConfig
from safelink.tracker.dates import add_days, days_between, is_within


def find_last_period(entries: Iterable[CycleEntry]) -> date | None:
    """Return the latest date among entries flagged as period days."""
    period_days = [e.date for e in entries if e.is_period]
    return max(period_days) if period_days else None


def compute_predictions(
    entries: Iterable[CycleEntry],
    cycle_length: int,
    config: PredictionConfig | None = None,
    limits: CycleLimits | None = None,
) -> CyclePredictions:
    """Forecast the next period, ovulation and fertile window.

    Pure function of its inputs.

    Args:
        entries:      Logged days, any order.
        cycle_length: Average cycle length in days.
        config:       Formula offsets (defaults: 14 / 5 / 1).
        limits:       If given, lengths outside the typical range add a warning.

    Returns:
        CyclePredictions; all fields unset when no period day is logged.
    """
    cfg = config or PredictionConfig()
    anchor = find_last_period(entries)
    if anchor is None:
        return CyclePredictions()

    ovulation = add_days(anchor, cycle_length - cfg.luteal_phase_days)
    predictions = CyclePredictions(
        next_period=add_days(anchor, cycle_length),
        ovulation=ovulation,
        fertile_window=FertileWindow(
            start=add_days(ovulation, -cfg.fertile_days_before),
            end=add_days(ovulation, cfg.fertile_days_after),
        ),
    )

    if limits is not None:
        if cycle_length < limits.typical_min_days:
            predictions.warnings.append(
                f"Short cycle length: {cycle_length} days "
                f"(typical range is {limits.typical_min_days}–{limits.typical_max_days})"
            )
        elif cycle_length > limits.typical_max_days:
            predictions.warnings.append(
                f"Long cycle length: {cycle_length} days "
                f"(typical range is {limits.typical_min_days}–{limits.typical_max_days})"
            )

    return predictions


def classify_day(
    day: date, entry: CycleEntry | None, predictions: CyclePredictions
) -> DayMarker:
    """Pick the calendar highlight for ``day``.

    A logged period day wins over any prediction; then predicted period,
    ovulation, and fertile window, in that order.
    """
    if entry is not None and entry.is_period:
        return DayMarker.period
    if predictions.next_period == day:
        return DayMarker.predicted_period
    if predictions.ovulation == day:
        return DayMarker.ovulation
    window = predictions.fertile_window
    if window is not None and is_within(day, window.start, window.end):
        return DayMarker.fertile
    return DayMarker.none


def cycle_day_from_start(period_start: date, query_date: date) -> int:
    """Return the cycle day number for ``query_date``.

    Day 1 = first day of the period.  Dates before the start give 0 or less.
    """
    return days_between(period_start, query_date) + 1
