"""Tests for the calendar prediction formula and day classification."""

from __future__ import annotations

import random
from datetime import date

from safelink.models.cycle import CyclePredictions, DayMarker, FertileWindow
from safelink.tracker.config_loader import CycleLimits, PredictionConfig
from safelink.tracker.predictions import (
    classify_day,
    compute_predictions,
    cycle_day_from_start,
    find_last_period,
)
from safelink.tracker.tests.conftest import make_entry


# ---------------------------------------------------------------------------
# Anchor selection
# ---------------------------------------------------------------------------


class TestFindLastPeriod:
    def test_latest_period_day_wins(self) -> None:
        entries = [
            make_entry("a", date(2024, 2, 1), is_period=True),
            make_entry("b", date(2024, 1, 1), is_period=True),
        ]
        assert find_last_period(entries) == date(2024, 2, 1)

    def test_non_period_entries_ignored(self) -> None:
        entries = [
            make_entry("a", date(2024, 1, 1), is_period=True),
            make_entry("b", date(2024, 2, 10)),
        ]
        assert find_last_period(entries) == date(2024, 1, 1)

    def test_no_period_days(self) -> None:
        assert find_last_period([make_entry("a", date(2024, 1, 1))]) is None
        assert find_last_period([]) is None


# ---------------------------------------------------------------------------
# compute_predictions
# ---------------------------------------------------------------------------


class TestComputePredictions:
    def test_worked_example(self) -> None:
        entries = [
            make_entry("a", date(2024, 1, 1), is_period=True),
            make_entry("b", date(2024, 2, 1), is_period=True),
        ]
        p = compute_predictions(entries, 28)
        assert p.next_period == date(2024, 2, 29)
        assert p.ovulation == date(2024, 2, 15)
        assert p.fertile_window == FertileWindow(start=date(2024, 2, 10), end=date(2024, 2, 16))
        assert p.warnings == []

    def test_empty_history_gives_unset_predictions(self) -> None:
        p = compute_predictions([], 28)
        assert p == CyclePredictions()
        assert not p.is_set

    def test_only_non_period_entries(self) -> None:
        p = compute_predictions([make_entry("a", date(2024, 2, 1), mood="happy")], 28)
        assert p.next_period is None
        assert p.fertile_window is None

    def test_entry_order_does_not_matter(self) -> None:
        entries = [
            make_entry(str(i), date(2024, 1, 1 + i), is_period=i % 3 == 0) for i in range(20)
        ]
        expected = compute_predictions(entries, 30)
        shuffled = list(entries)
        random.Random(7).shuffle(shuffled)
        assert compute_predictions(shuffled, 30) == expected

    def test_deterministic(self) -> None:
        entries = [make_entry("a", date(2024, 2, 1), is_period=True)]
        assert compute_predictions(entries, 31) == compute_predictions(entries, 31)

    def test_history_before_anchor_ignored(self) -> None:
        recent = [make_entry("b", date(2024, 2, 1), is_period=True)]
        with_history = recent + [
            make_entry("a", date(2023, 11, 3), is_period=True),
            make_entry("c", date(2023, 12, 20), is_period=True),
        ]
        assert compute_predictions(with_history, 28) == compute_predictions(recent, 28)

    def test_cycle_length_changes_every_field(self) -> None:
        entries = [make_entry("a", date(2024, 2, 1), is_period=True)]
        p = compute_predictions(entries, 35)
        assert p.next_period == date(2024, 3, 7)
        assert p.ovulation == date(2024, 2, 22)
        assert p.fertile_window == FertileWindow(start=date(2024, 2, 17), end=date(2024, 2, 23))

    def test_custom_offsets(self) -> None:
        config = PredictionConfig(luteal_phase_days=12, fertile_days_before=4, fertile_days_after=2)
        entries = [make_entry("a", date(2024, 2, 1), is_period=True)]
        p = compute_predictions(entries, 30, config=config)
        assert p.next_period == date(2024, 3, 2)
        assert p.ovulation == date(2024, 2, 19)
        assert p.fertile_window == FertileWindow(start=date(2024, 2, 15), end=date(2024, 2, 21))


class TestPredictionWarnings:
    entries = [make_entry("a", date(2024, 2, 1), is_period=True)]

    def test_typical_length_no_warning(self) -> None:
        assert compute_predictions(self.entries, 28, limits=CycleLimits()).warnings == []

    def test_short_cycle_warns(self) -> None:
        warnings = compute_predictions(self.entries, 18, limits=CycleLimits()).warnings
        assert len(warnings) == 1
        assert warnings[0].startswith("Short cycle length")

    def test_long_cycle_warns(self) -> None:
        warnings = compute_predictions(self.entries, 60, limits=CycleLimits()).warnings
        assert len(warnings) == 1
        assert warnings[0].startswith("Long cycle length")

    def test_no_warning_without_limits(self) -> None:
        assert compute_predictions(self.entries, 60).warnings == []

    def test_no_warning_without_anchor(self) -> None:
        assert compute_predictions([], 60, limits=CycleLimits()).warnings == []


# ---------------------------------------------------------------------------
# classify_day / cycle_day_from_start
# ---------------------------------------------------------------------------


class TestClassifyDay:
    predictions = CyclePredictions(
        next_period=date(2024, 2, 29),
        ovulation=date(2024, 2, 15),
        fertile_window=FertileWindow(start=date(2024, 2, 10), end=date(2024, 2, 16)),
    )

    def test_logged_period_beats_predictions(self) -> None:
        entry = make_entry("a", date(2024, 2, 15), is_period=True)
        assert classify_day(date(2024, 2, 15), entry, self.predictions) is DayMarker.period

    def test_predicted_period(self) -> None:
        assert classify_day(date(2024, 2, 29), None, self.predictions) is DayMarker.predicted_period

    def test_ovulation_beats_fertile(self) -> None:
        assert classify_day(date(2024, 2, 15), None, self.predictions) is DayMarker.ovulation

    def test_fertile_window_inclusive(self) -> None:
        assert classify_day(date(2024, 2, 10), None, self.predictions) is DayMarker.fertile
        assert classify_day(date(2024, 2, 16), None, self.predictions) is DayMarker.fertile

    def test_non_period_entry_does_not_mark(self) -> None:
        entry = make_entry("a", date(2024, 2, 5))
        assert classify_day(date(2024, 2, 5), entry, self.predictions) is DayMarker.none

    def test_unset_predictions(self) -> None:
        assert classify_day(date(2024, 2, 15), None, CyclePredictions()) is DayMarker.none


class TestCycleDay:
    def test_start_is_day_one(self) -> None:
        assert cycle_day_from_start(date(2024, 2, 1), date(2024, 2, 1)) == 1

    def test_later_day(self) -> None:
        assert cycle_day_from_start(date(2024, 2, 1), date(2024, 2, 20)) == 20

    def test_before_start(self) -> None:
        assert cycle_day_from_start(date(2024, 2, 1), date(2024, 1, 31)) == 0
