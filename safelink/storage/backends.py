"""Storage backends for the offline record store.

Every backend is a dumb text map: ``key -> serialized envelope``.  Envelope
handling, revisions, migrations and locking live in
:class:`safelink.storage.store.OfflineStore`, so a backend only has to move
strings in and out and translate its native errors into
:class:`~safelink.storage.errors.StorageUnavailableError`.

Backends:
    MemoryBackend    — process memory, optional byte quota (tests, kiosks)
    SqliteBackend    — single local database file, one table per object store
    PostgresBackend  — asyncpg pool for hosted deployments
"""

from __future__ import annotations

import asyncio
import logging
import re
import shutil
import sqlite3
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Callable, TypeVar

import asyncpg

from safelink.config import Settings, get_settings
from safelink.models.storage import StorageEstimate
from safelink.storage.errors import QuotaExceededError, StorageUnavailableError

logger = logging.getLogger("safelink.storage.backends")

_T = TypeVar("_T")
_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]{0,62}$")


def _check_identifier(name: str) -> str:
    if not _IDENTIFIER.match(name):
        raise ValueError(f"Invalid object store name: {name!r}")
    return name


class StorageBackend(ABC):
    """Abstract base class for offline storage engines.

    Subclasses must implement the five text-map operations.  ``open`` and
    ``close`` are optional lifecycle hooks; ``estimate`` returns zeros unless
    the engine can report real usage.
    """

    name: str = "base"

    async def open(self) -> None:
        """Prepare the backend for use. Idempotent."""

    async def close(self) -> None:
        """Release any held resources. Idempotent."""

    @abstractmethod
    async def read(self, key: str) -> str | None:
        """Return the stored text for ``key`` or None if absent."""

    @abstractmethod
    async def write(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove ``key``. Removing a missing key is not an error."""

    @abstractmethod
    async def keys(self) -> list[str]:
        """Return every stored key in ascending order."""

    @abstractmethod
    async def clear(self) -> None:
        """Remove every key."""

    async def estimate(self) -> StorageEstimate:
        return StorageEstimate()

    async def ping(self) -> bool:
        """Cheap connectivity probe used by the health endpoint."""
        try:
            await self.keys()
        except StorageUnavailableError as exc:
            logger.warning("Storage probe failed for %s backend: %s", self.name, exc)
            return False
        return True


# ---------------------------------------------------------------------------
# In-memory
# ---------------------------------------------------------------------------


class MemoryBackend(StorageBackend):
    """Dict-backed backend. Data lives as long as the process.

    Args:
        quota_bytes: Maximum total UTF-8 size of all values. 0 = unlimited.
    """

    name = "memory"

    def __init__(self, quota_bytes: int = 0) -> None:
        self._data: dict[str, str] = {}
        self._quota_bytes = quota_bytes

    def _used_bytes(self, excluding: str | None = None) -> int:
        return sum(len(v.encode("utf-8")) for k, v in self._data.items() if k != excluding)

    async def read(self, key: str) -> str | None:
        return self._data.get(key)

    async def write(self, key: str, value: str) -> None:
        if self._quota_bytes:
            needed = self._used_bytes(excluding=key) + len(value.encode("utf-8"))
            if needed > self._quota_bytes:
                raise QuotaExceededError(
                    f"Writing {key!r} needs {needed} bytes, quota is {self._quota_bytes}",
                    key=key,
                )
        self._data[key] = value

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    async def keys(self) -> list[str]:
        return sorted(self._data)

    async def clear(self) -> None:
        self._data.clear()

    async def estimate(self) -> StorageEstimate:
        return StorageEstimate(used=self._used_bytes(), available=self._quota_bytes)


# ---------------------------------------------------------------------------
# SQLite
# ---------------------------------------------------------------------------


class SqliteBackend(StorageBackend):
    """One SQLite file acting as the local database, one table as the object store.

    sqlite3 is blocking, so every call runs in a worker thread; a lock keeps
    the shared connection to one statement at a time.

    Args:
        path:       Database file path, or ``":memory:"``.
        store_name: Table name holding the records.
    """

    name = "sqlite"

    def __init__(self, path: Path | str, store_name: str = "safelink_data") -> None:
        self.path = path if str(path) == ":memory:" else Path(path)
        self.store_name = _check_identifier(store_name)
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.Lock()

    def _connect(self) -> sqlite3.Connection:
        if self._conn is None:
            if isinstance(self.path, Path):
                self.path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(str(self.path), check_same_thread=False)
            self._conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {self.store_name} (
                    key         TEXT PRIMARY KEY,
                    value       TEXT NOT NULL,
                    updated_at  TEXT NOT NULL DEFAULT (datetime('now'))
                )
                """
            )
            self._conn.commit()
            logger.info("Opened sqlite store %s at %s", self.store_name, self.path)
        return self._conn

    async def _run(self, fn: Callable[[sqlite3.Connection], _T]) -> _T:
        def _call() -> _T:
            with self._lock:
                return fn(self._connect())

        try:
            return await asyncio.to_thread(_call)
        except (sqlite3.Error, OSError) as exc:
            raise StorageUnavailableError(f"SQLite backend error: {exc}") from exc

    async def open(self) -> None:
        await self._run(lambda conn: None)

    async def close(self) -> None:
        def _close() -> None:
            with self._lock:
                if self._conn is not None:
                    self._conn.close()
                    self._conn = None

        await asyncio.to_thread(_close)

    async def read(self, key: str) -> str | None:
        def _read(conn: sqlite3.Connection) -> str | None:
            row = conn.execute(
                f"SELECT value FROM {self.store_name} WHERE key = ?", (key,)
            ).fetchone()
            return row[0] if row else None

        return await self._run(_read)

    async def write(self, key: str, value: str) -> None:
        def _write(conn: sqlite3.Connection) -> None:
            conn.execute(
                f"""
                INSERT INTO {self.store_name} (key, value) VALUES (?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    updated_at = datetime('now')
                """,
                (key, value),
            )
            conn.commit()

        await self._run(_write)

    async def delete(self, key: str) -> None:
        def _delete(conn: sqlite3.Connection) -> None:
            conn.execute(f"DELETE FROM {self.store_name} WHERE key = ?", (key,))
            conn.commit()

        await self._run(_delete)

    async def keys(self) -> list[str]:
        def _keys(conn: sqlite3.Connection) -> list[str]:
            rows = conn.execute(f"SELECT key FROM {self.store_name} ORDER BY key").fetchall()
            return [r[0] for r in rows]

        return await self._run(_keys)

    async def clear(self) -> None:
        def _clear(conn: sqlite3.Connection) -> None:
            conn.execute(f"DELETE FROM {self.store_name}")
            conn.commit()

        await self._run(_clear)

    async def estimate(self) -> StorageEstimate:
        def _estimate(conn: sqlite3.Connection) -> StorageEstimate:
            page_count = conn.execute("PRAGMA page_count").fetchone()[0]
            page_size = conn.execute("PRAGMA page_size").fetchone()[0]
            available = 0
            if isinstance(self.path, Path):
                available = shutil.disk_usage(self.path.parent).free
            return StorageEstimate(used=page_count * page_size, available=available)

        return await self._run(_estimate)


# ---------------------------------------------------------------------------
# Postgres
# ---------------------------------------------------------------------------


class PostgresBackend(StorageBackend):
    """asyncpg-backed store for shared or hosted deployments.

    The pool is created on ``open()`` unless one is injected (tests pass a
    mock pool).

    Args:
        dsn:        asyncpg connection string.
        store_name: Table name holding the records.
        pool:       Optional pre-built pool.
    """

    name = "postgres"

    def __init__(
        self,
        dsn: str = "",
        store_name: str = "safelink_data",
        pool: Any | None = None,
    ) -> None:
        self.dsn = dsn
        self.store_name = _check_identifier(store_name)
        self._pool = pool
        self._owns_pool = pool is None

    def _get_pool(self) -> Any:
        if self._pool is None:
            raise StorageUnavailableError("Postgres pool not initialized, call open() first")
        return self._pool

    async def _call(self, method: str, query: str, *args: Any) -> Any:
        pool = self._get_pool()
        try:
            return await getattr(pool, method)(query, *args)
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as exc:
            raise StorageUnavailableError(f"Postgres backend error: {exc}") from exc

    async def open(self) -> None:
        if self._pool is None:
            if not self.dsn:
                raise StorageUnavailableError("No database_url configured for postgres backend")
            try:
                self._pool = await asyncpg.create_pool(
                    self.dsn, min_size=1, max_size=5, command_timeout=30
                )
            except (asyncpg.PostgresError, OSError) as exc:
                raise StorageUnavailableError(f"Could not connect to Postgres: {exc}") from exc
            logger.info("Postgres pool initialized (min=1, max=5)")
        await self._call(
            "execute",
            f"""
            CREATE TABLE IF NOT EXISTS {self.store_name} (
                key         TEXT PRIMARY KEY,
                value       TEXT NOT NULL,
                updated_at  TIMESTAMPTZ NOT NULL DEFAULT NOW()
            )
            """,
        )

    async def close(self) -> None:
        if self._pool is not None and self._owns_pool:
            await self._pool.close()
            logger.info("Postgres pool closed")
        if self._owns_pool:
            self._pool = None

    async def read(self, key: str) -> str | None:
        return await self._call(
            "fetchval", f"SELECT value FROM {self.store_name} WHERE key = $1", key
        )

    async def write(self, key: str, value: str) -> None:
        await self._call(
            "execute",
            f"""
            INSERT INTO {self.store_name} (key, value, updated_at) VALUES ($1, $2, NOW())
            ON CONFLICT (key) DO UPDATE SET
                value = EXCLUDED.value,
                updated_at = NOW()
            """,
            key,
            value,
        )

    async def delete(self, key: str) -> None:
        await self._call("execute", f"DELETE FROM {self.store_name} WHERE key = $1", key)

    async def keys(self) -> list[str]:
        rows = await self._call("fetch", f"SELECT key FROM {self.store_name} ORDER BY key")
        return [r["key"] for r in rows]

    async def clear(self) -> None:
        await self._call("execute", f"DELETE FROM {self.store_name}")

    async def estimate(self) -> StorageEstimate:
        used = await self._call(
            "fetchval", "SELECT pg_total_relation_size($1::regclass)", self.store_name
        )
        return StorageEstimate(used=int(used or 0))


def create_backend(settings: Settings | None = None) -> StorageBackend:
    """Build the backend selected by ``settings.storage_backend``."""
    s = settings or get_settings()
    kind = s.storage_backend.lower()
    if kind == "memory":
        return MemoryBackend(quota_bytes=s.storage_quota_bytes)
    if kind == "sqlite":
        return SqliteBackend(s.storage_path, store_name=s.store_name)
    if kind == "postgres":
        return PostgresBackend(s.database_url, store_name=s.store_name)
    raise ValueError(f"Unknown storage backend: {s.storage_backend!r}")
