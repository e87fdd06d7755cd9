"""Cycle tracker endpoints: entries, predictions, calendar and settings."""

from __future__ import annotations

from datetime import date
from typing import Any

from fastapi import APIRouter, HTTPException, Path, Query

from safelink.dependencies import Tracker
from safelink.models.cycle import (
    CalendarDay,
    CycleData,
    CycleEntry,
    CycleEntryWrite,
    CyclePredictions,
    CycleSettingsUpdate,
    CycleStatus,
)
from safelink.tracker.cycle_tracker import new_entry_id
from safelink.tracker.dates import format_day

router = APIRouter(prefix="/cycle", tags=["cycle tracker"])


@router.get("", response_model=CycleData)
async def get_cycle_data(tracker: Tracker) -> Any:
    return await tracker.load()


@router.put("/entries", response_model=CycleData)
async def save_entry(tracker: Tracker, body: CycleEntryWrite) -> Any:
    """Create or replace the entry for ``body.date``.

    Without an ``id`` a new one is generated; an existing entry on the same
    day keeps its id.
    """
    entry = CycleEntry(**body.model_dump(exclude={"id"}), id=body.id or new_entry_id())
    return await tracker.save_entry(entry)


@router.get("/entries", response_model=list[CycleEntry])
async def list_recent_entries(
    tracker: Tracker,
    limit: int | None = Query(default=None, ge=1, le=366),
) -> Any:
    await tracker.load()
    return tracker.recent_entries(limit)


@router.get("/entries/{day}", response_model=CycleEntry)
async def get_entry(tracker: Tracker, day: date) -> Any:
    await tracker.load()
    entry = tracker.get_entry_for_date(day)
    if entry is None:
        raise HTTPException(status_code=404, detail=f"No entry for {format_day(day)}")
    return entry


@router.get("/predictions", response_model=CyclePredictions)
async def get_predictions(tracker: Tracker) -> Any:
    data = await tracker.load()
    return data.predictions


@router.get("/status", response_model=CycleStatus)
async def get_status(
    tracker: Tracker,
    as_of: date | None = Query(default=None),
) -> Any:
    await tracker.load()
    return tracker.status(as_of)


@router.get("/calendar/{year}/{month}", response_model=list[CalendarDay])
async def get_calendar_month(
    tracker: Tracker,
    year: int = Path(ge=1900, le=2200),
    month: int = Path(ge=1, le=12),
) -> Any:
    await tracker.load()
    return tracker.calendar_month(year, month)


@router.patch("/settings", response_model=CycleData)
async def update_settings(tracker: Tracker, body: CycleSettingsUpdate) -> Any:
    if body.cycle_length is None and body.period_length is None:
        raise HTTPException(status_code=400, detail="No fields to update")
    await tracker.load()
    try:
        return await tracker.update_settings(
            cycle_length=body.cycle_length, period_length=body.period_length
        )
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
