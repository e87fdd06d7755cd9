"""Shared fixtures for offline store tests."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from safelink.storage.backends import MemoryBackend
from safelink.storage.errors import StorageUnavailableError
from safelink.storage.store import OfflineStore

FIXED_NOW = datetime(2024, 2, 1, 9, 30, tzinfo=timezone.utc)


class FlakyBackend(MemoryBackend):
    """Memory backend whose reads and/or writes can be switched to fail."""

    name = "flaky"

    def __init__(self) -> None:
        super().__init__()
        self.fail_reads = False
        self.fail_writes = False

    async def read(self, key: str) -> str | None:
        if self.fail_reads:
            raise StorageUnavailableError("disk unavailable", key=key)
        return await super().read(key)

    async def write(self, key: str, value: str) -> None:
        if self.fail_writes:
            raise StorageUnavailableError("disk unavailable", key=key)
        await super().write(key, value)

    async def keys(self) -> list[str]:
        if self.fail_reads:
            raise StorageUnavailableError("disk unavailable")
        return await super().keys()

    async def estimate(self):
        raise StorageUnavailableError("estimate not supported")


@pytest.fixture
def memory_backend() -> MemoryBackend:
    return MemoryBackend()


@pytest.fixture
def store(memory_backend: MemoryBackend) -> OfflineStore:
    return OfflineStore(memory_backend, clock=lambda: FIXED_NOW)


@pytest.fixture
def flaky_backend() -> FlakyBackend:
    return FlakyBackend()


@pytest.fixture
def flaky_store(flaky_backend: FlakyBackend) -> OfflineStore:
    return OfflineStore(flaky_backend, clock=lambda: FIXED_NOW)


@pytest.fixture
def cycle_payload() -> dict:
    """A realistic cycle_data payload as the tracker persists it."""
    return {
        "entries": [
            {
                "id": "e1",
                "date": "2024-01-01",
                "flow": "heavy",
                "symptoms": ["Cramps", "Fatigue"],
                "mood": "sad",
                "temperature": 36.4,
                "notes": None,
                "isPeriod": True,
            },
            {
                "id": "e2",
                "date": "2024-02-01",
                "flow": "medium",
                "symptoms": [],
                "mood": "neutral",
                "temperature": None,
                "notes": "started in the morning",
                "isPeriod": True,
            },
        ],
        "cycleLength": 28,
        "periodLength": 5,
        "lastPeriod": "2024-02-01",
        "predictions": {
            "nextPeriod": "2024-02-29",
            "ovulation": "2024-02-15",
            "fertileWindow": {"start": "2024-02-10", "end": "2024-02-16"},
            "warnings": [],
        },
    }
