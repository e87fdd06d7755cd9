"""Shared fixtures for cycle tracker tests."""

from __future__ import annotations

from datetime import date

import pytest

from safelink.models.cycle import CycleEntry, FlowLevel, Mood
from safelink.storage.backends import MemoryBackend
from safelink.storage.store import OfflineStore
from safelink.tracker.config_loader import TrackerConfig, load_tracker_config
from safelink.tracker.cycle_tracker import CycleTracker

TODAY = date(2024, 2, 20)


def make_entry(
    entry_id: str,
    day: date,
    is_period: bool = False,
    flow: FlowLevel = FlowLevel.none,
    mood: Mood = Mood.neutral,
    **kwargs,
) -> CycleEntry:
    return CycleEntry(id=entry_id, date=day, is_period=is_period, flow=flow, mood=mood, **kwargs)


# ---------------------------------------------------------------------------
# Config fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def tracker_config() -> TrackerConfig:
    """Load the bundled tracker config for tests."""
    return load_tracker_config()


# ---------------------------------------------------------------------------
# Store / tracker fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def backend() -> MemoryBackend:
    return MemoryBackend()


@pytest.fixture
def store(backend: MemoryBackend) -> OfflineStore:
    return OfflineStore(backend)


@pytest.fixture
def tracker(store: OfflineStore, tracker_config: TrackerConfig) -> CycleTracker:
    return CycleTracker(store, config=tracker_config, today=lambda: TODAY)
