"""Menstrual cycle tracker backed by the offline store.

Keeps the user's :class:`~safelink.models.cycle.CycleData` aggregate under the
``cycle_data`` collection and recomputes predictions whenever entries or the
cycle length change.

Entries are unique per calendar day: saving an entry for a day that already
has one replaces it and keeps the existing id, so a client that forgets to
reuse the id cannot create duplicates.  Saving with a known id replaces that
entry in place.

Writes go through :meth:`OfflineStore.update`, which reads the latest stored
aggregate under the key lock, so two saves issued back to back never drop
each other's entries.  The in-memory copy only changes after a write
succeeds; storage failures propagate as PersistenceError.

Usage::

    tracker = CycleTracker(store)
    await tracker.load()
    await tracker.save_entry(CycleEntry(id=new_entry_id(), date=date(2024, 2, 1), is_period=True))
    tracker.data.predictions.next_period   # date(2024, 2, 29)
"""

from __future__ import annotations

import logging
import uuid
from datetime import date
from typing import Any, Callable

from pydantic import ValidationError

from safelink.models.cycle import (
    CalendarDay,
    CycleData,
    CycleEntry,
    CyclePredictions,
    CycleStatus,
)
from safelink.models.storage import StoredRecord
from safelink.storage.errors import CorruptRecordError, PersistenceError
from safelink.storage.keys import StorageKey
from safelink.storage.store import OfflineStore
from safelink.tracker.config_loader import TrackerConfig, get_tracker_config
from safelink.tracker.dates import days_between, month_days, parse_day
from safelink.tracker.predictions import (
    classify_day,
    compute_predictions,
    cycle_day_from_start,
    find_last_period,
)

logger = logging.getLogger("safelink.tracker.cycle_tracker")

CYCLE_KEY = StorageKey.cycle_data.value


def new_entry_id() -> str:
    return uuid.uuid4().hex


def upsert_entry(entries: list[CycleEntry], entry: CycleEntry) -> list[CycleEntry]:
    """Return a new entry list with ``entry`` inserted or replaced.

    Replace by id first; otherwise replace the entry on the same date (keeping
    its id); otherwise append.  Any other entry left on ``entry.date`` is
    dropped so each day has at most one entry.
    """
    result = list(entries)
    index = next((i for i, e in enumerate(result) if e.id == entry.id), None)
    if index is None:
        index = next((i for i, e in enumerate(result) if e.date == entry.date), None)
        if index is not None:
            entry = entry.model_copy(update={"id": result[index].id})
    if index is None:
        result.append(entry)
        return result
    result[index] = entry
    return [e for i, e in enumerate(result) if i == index or e.date != entry.date]


class CycleTracker:
    """Maintain the cycle aggregate and derive predictions from it.

    Args:
        store:  Offline store holding the ``cycle_data`` collection.
        config: Tracker settings. Defaults to the bundled YAML config.
        today:  Clock for "today" in calendar and status views.
    """

    def __init__(
        self,
        store: OfflineStore,
        config: TrackerConfig | None = None,
        today: Callable[[], date] = date.today,
    ) -> None:
        self._store = store
        self._config = config or get_tracker_config()
        self._today = today
        self._data = self._refresh(self._empty())

    @property
    def config(self) -> TrackerConfig:
        return self._config

    @property
    def data(self) -> CycleData:
        """Last successfully loaded or saved aggregate."""
        return self._data

    # ------------------------------------------------------------------
    # Aggregate helpers
    # ------------------------------------------------------------------

    def _empty(self) -> CycleData:
        return CycleData(
            cycle_length=self._config.default_cycle_length,
            period_length=self._config.default_period_length,
        )

    def predict(self, entries: list[CycleEntry], cycle_length: int) -> CyclePredictions:
        return compute_predictions(
            entries,
            cycle_length,
            config=self._config.prediction,
            limits=self._config.limits,
        )

    def _refresh(self, data: CycleData) -> CycleData:
        return data.model_copy(
            update={
                "last_period": find_last_period(data.entries),
                "predictions": self.predict(data.entries, data.cycle_length),
            }
        )

    def _parse(self, payload: Any) -> CycleData:
        if payload is None:
            return self._empty()
        try:
            return CycleData.model_validate(payload)
        except ValidationError as exc:
            raise CorruptRecordError(
                f"Stored cycle data is invalid: {exc.error_count()} error(s)", key=CYCLE_KEY
            ) from exc

    async def _apply(self, change: Callable[[CycleData], CycleData]) -> CycleData:
        def mutate(payload: Any) -> dict:
            return self._refresh(change(self._parse(payload))).to_payload()

        try:
            record = await self._store.update(CYCLE_KEY, mutate)
        except PersistenceError as exc:
            logger.error("Cycle data not saved, keeping previous state: %s", exc)
            raise
        self._data = CycleData.model_validate(record.payload)
        return self._data

    # ------------------------------------------------------------------
    # Load / save
    # ------------------------------------------------------------------

    async def load(self) -> CycleData:
        """Read the aggregate from storage; an absent record gives the defaults.

        Raises:
            PersistenceError: If storage fails or the stored aggregate is invalid.
                              The in-memory aggregate is left unchanged.
        """
        try:
            data = self._parse(await self._store.get(CYCLE_KEY))
        except PersistenceError as exc:
            logger.error("Failed to load cycle data, keeping previous state: %s", exc)
            raise
        self._data = self._refresh(data)
        return self._data

    async def save_entry(self, entry: CycleEntry) -> CycleData:
        """Insert or replace ``entry`` and persist the whole aggregate."""
        data = await self._apply(
            lambda current: current.model_copy(
                update={"entries": upsert_entry(current.entries, entry)}
            )
        )
        logger.debug("Saved cycle entry for %s", entry.date)
        return data

    async def update_settings(
        self, cycle_length: int | None = None, period_length: int | None = None
    ) -> CycleData:
        """Change the average cycle and/or period length.

        Raises:
            ValueError: If a value is outside the configured limits.
        """
        updates: dict[str, int] = {}
        if cycle_length is not None:
            updates["cycle_length"] = self._config.limits.check_cycle_length(cycle_length)
        if period_length is not None:
            updates["period_length"] = self._config.limits.check_period_length(period_length)
        if not updates:
            return self._data
        return await self._apply(lambda current: current.model_copy(update=updates))

    async def set_cycle_length(self, days: int) -> CycleData:
        return await self.update_settings(cycle_length=days)

    async def set_period_length(self, days: int) -> CycleData:
        return await self.update_settings(period_length=days)

    async def replace(
        self, payload: Any, *, expected_revision: int | None = None
    ) -> StoredRecord:
        """Overwrite the whole aggregate, e.g. when restoring an export.

        ``lastPeriod`` and ``predictions`` in ``payload`` are ignored and
        recomputed from the entries and cycle length.  Entries sharing a day
        collapse to the last one.

        Raises:
            ValueError:       If ``payload`` is not a valid aggregate or its
                              lengths are outside the configured limits.
            ConflictError:    If ``expected_revision`` does not match.
            PersistenceError: If the write fails.
        """
        try:
            data = CycleData.model_validate(payload)
        except ValidationError as exc:
            raise ValueError(
                f"Invalid cycle data: {exc.error_count()} error(s)"
            ) from exc
        self._config.limits.check_cycle_length(data.cycle_length)
        self._config.limits.check_period_length(data.period_length)
        entries: list[CycleEntry] = []
        for entry in data.entries:
            entries = upsert_entry(entries, entry)
        refreshed = self._refresh(data.model_copy(update={"entries": entries}))
        try:
            record = await self._store.store(
                CYCLE_KEY, refreshed.to_payload(), expected_revision=expected_revision
            )
        except PersistenceError as exc:
            logger.error("Cycle data not replaced, keeping previous state: %s", exc)
            raise
        self._data = refreshed
        return record

    # ------------------------------------------------------------------
    # Queries on the in-memory aggregate
    # ------------------------------------------------------------------

    def get_entry_for_date(self, day: date | str) -> CycleEntry | None:
        """Linear scan for the entry logged on ``day`` (date or ISO string)."""
        target = parse_day(day)
        return next((e for e in self._data.entries if e.date == target), None)

    def sorted_entries(self) -> list[CycleEntry]:
        return sorted(self._data.entries, key=lambda e: e.date)

    def recent_entries(self, limit: int | None = None) -> list[CycleEntry]:
        """Newest entries first, ``limit`` defaulting to the configured list size."""
        count = self._config.recent_entries if limit is None else limit
        return sorted(self._data.entries, key=lambda e: e.date, reverse=True)[:count]

    def calendar_month(self, year: int, month: int) -> list[CalendarDay]:
        """Every day of a month with its entry and highlight marker."""
        today = self._today()
        predictions = self._data.predictions
        by_date = {e.date: e for e in self._data.entries}
        days = []
        for day in month_days(year, month):
            entry = by_date.get(day)
            days.append(
                CalendarDay(
                    day=day,
                    is_today=day == today,
                    marker=classify_day(day, entry, predictions),
                    entry=entry,
                )
            )
        return days

    def status(self, as_of: date | str | None = None) -> CycleStatus:
        """Cycle day and countdown relative to the latest period day."""
        today = parse_day(as_of) if as_of else self._today()
        predictions = self._data.predictions
        anchor = self._data.last_period
        return CycleStatus(
            as_of=today,
            cycle_day=cycle_day_from_start(anchor, today) if anchor else None,
            days_until_next_period=(
                days_between(today, predictions.next_period)
                if predictions.next_period
                else None
            ),
            predictions=predictions,
        )
