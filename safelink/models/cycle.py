"""Pydantic models for the menstrual cycle tracker: daily entries, the
persisted aggregate, predictions and calendar views."""

from __future__ import annotations

import datetime as dt
from enum import Enum
from typing import Any

from pydantic import Field, field_validator, model_validator

from safelink.models.base import SafeLinkBase


# ---------- Enums ----------

class FlowLevel(str, Enum):
    none = "none"
    light = "light"
    medium = "medium"
    heavy = "heavy"


class Mood(str, Enum):
    happy = "happy"
    sad = "sad"
    neutral = "neutral"
    anxious = "anxious"
    energetic = "energetic"


class DayMarker(str, Enum):
    """How a calendar day is highlighted, in precedence order."""

    period = "period"
    predicted_period = "predicted_period"
    ovulation = "ovulation"
    fertile = "fertile"
    none = "none"


def _blank_to_none(value: Any) -> Any:
    # The browser build stored unset dates as ""
    if isinstance(value, str) and not value.strip():
        return None
    return value


# ---------- Entries ----------

class CycleEntryBase(SafeLinkBase):
    date: dt.date
    flow: FlowLevel = FlowLevel.none
    symptoms: list[str] = Field(default_factory=list)
    mood: Mood = Mood.neutral
    temperature: float | None = Field(default=None, ge=30.0, le=45.0)  # BBT, °C
    notes: str | None = None
    is_period: bool = False

    @field_validator("symptoms", mode="before")
    @classmethod
    def _dedupe_symptoms(cls, value: Any) -> Any:
        if value is None:
            return []
        if not isinstance(value, (list, tuple, set, frozenset)):
            return value
        seen: list[str] = []
        for tag in value:
            tag = str(tag).strip()
            if tag and tag not in seen:
                seen.append(tag)
        return seen

    @field_validator("temperature", "notes", mode="before")
    @classmethod
    def _blank_optional(cls, value: Any) -> Any:
        return _blank_to_none(value)


class CycleEntry(CycleEntryBase):
    """One calendar day's observation. ``id`` is unique within a CycleData."""

    id: str = Field(min_length=1)


class CycleEntryWrite(CycleEntryBase):
    """Request body for saving an entry. Omit ``id`` to create a new entry."""

    id: str | None = None


# ---------- Predictions ----------

class FertileWindow(SafeLinkBase):
    start: dt.date
    end: dt.date


class CyclePredictions(SafeLinkBase):
    """Forecast derived from the most recent period entry.

    All date fields are None until at least one period day has been logged.
    """

    next_period: dt.date | None = None
    ovulation: dt.date | None = None
    fertile_window: FertileWindow | None = None
    warnings: list[str] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _drop_blank_dates(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        for key in ("nextPeriod", "next_period", "ovulation"):
            if key in data:
                data[key] = _blank_to_none(data[key])
        for key in ("fertileWindow", "fertile_window"):
            window = data.get(key)
            if isinstance(window, dict) and not all(
                _blank_to_none(window.get(k)) for k in ("start", "end")
            ):
                data[key] = None
        return data

    @property
    def is_set(self) -> bool:
        return self.next_period is not None


# ---------- Aggregate ----------

class CycleData(SafeLinkBase):
    """Aggregate persisted under the ``cycle_data`` collection key.

    ``last_period`` and ``predictions`` are derived caches, recomputed from
    ``entries`` and ``cycle_length`` on every change.
    """

    entries: list[CycleEntry] = Field(default_factory=list)
    cycle_length: int = Field(default=28, ge=1)
    period_length: int = Field(default=5, ge=1)
    last_period: dt.date | None = None
    predictions: CyclePredictions = Field(default_factory=CyclePredictions)

    @field_validator("last_period", mode="before")
    @classmethod
    def _blank_last_period(cls, value: Any) -> Any:
        return _blank_to_none(value)


class CycleSettingsUpdate(SafeLinkBase):
    cycle_length: int | None = None
    period_length: int | None = None


# ---------- Views ----------

class CalendarDay(SafeLinkBase):
    day: dt.date
    is_today: bool = False
    marker: DayMarker = DayMarker.none
    entry: CycleEntry | None = None


class CycleStatus(SafeLinkBase):
    as_of: dt.date
    cycle_day: int | None = None
    days_until_next_period: int | None = None
    predictions: CyclePredictions = Field(default_factory=CyclePredictions)
