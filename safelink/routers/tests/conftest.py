"""Shared fixtures for API route tests."""

from __future__ import annotations

from typing import Iterator

import pytest
from fastapi.testclient import TestClient

from safelink.config import Settings
from safelink.main import create_app
from safelink.storage.backends import MemoryBackend
from safelink.storage.errors import StorageUnavailableError


class SwitchableBackend(MemoryBackend):
    """Memory backend that can be taken offline mid-test."""

    def __init__(self) -> None:
        super().__init__()
        self.offline = False

    def _check(self, key: str | None = None) -> None:
        if self.offline:
            raise StorageUnavailableError("storage offline", key=key)

    async def read(self, key: str) -> str | None:
        self._check(key)
        return await super().read(key)

    async def write(self, key: str, value: str) -> None:
        self._check(key)
        await super().write(key, value)

    async def keys(self) -> list[str]:
        self._check()
        return await super().keys()


@pytest.fixture
def test_settings() -> Settings:
    return Settings(storage_backend="memory", environment="test", app_version="9.9.9")


@pytest.fixture
def backend() -> SwitchableBackend:
    return SwitchableBackend()


@pytest.fixture
def client(test_settings: Settings, backend: SwitchableBackend) -> Iterator[TestClient]:
    app = create_app(test_settings, backend=backend)
    with TestClient(app) as c:
        yield c
