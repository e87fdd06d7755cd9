"""Asynchronous key/value store for SafeLink's offline collections.

Every feature (cycle tracker, chat history, emergency logs, ...) keeps one
JSON payload per collection key.  The store wraps each payload in a
:class:`~safelink.models.storage.StoredRecord` envelope carrying the write
timestamp, the ``synced`` flag, the payload schema version and a revision
counter.

Guarantees:
    - one record per key, writes are full replacements (last write wins)
    - writes to the same key are serialized through a per-key asyncio lock
    - ``expected_revision`` turns a write into a compare-and-swap
    - backend failures are logged here and re-raised as PersistenceError;
      an absent key is never an error

Usage::

    store = OfflineStore(SqliteBackend("data/safelink.db"))
    await store.open()
    await store.store("quiz_stats", {"played": 3})
    stats = await store.get("quiz_stats")
"""

from __future__ import annotations

import asyncio
import inspect
import json
import logging
from contextlib import asynccontextmanager, contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, AsyncIterator, Callable, Iterator

from pydantic import ValidationError
from pydantic_core import PydanticSerializationError, to_jsonable_python

from safelink.models.base import utc_now
from safelink.models.storage import DataExport, StorageEstimate, StoredRecord
from safelink.storage.backends import StorageBackend
from safelink.storage.errors import (
    ConflictError,
    CorruptRecordError,
    MigrationError,
    PersistenceError,
)
from safelink.storage.migrations import MigrationRegistry, default_registry

logger = logging.getLogger("safelink.storage.store")

Mutator = Callable[[Any], Any]

# Fields the browser build spread into the payload object itself
_LEGACY_ENVELOPE_FIELDS = ("timestamp", "synced")


class ReadStatus(str, Enum):
    found = "found"
    absent = "absent"
    error = "error"


@dataclass(frozen=True)
class ReadResult:
    """Tagged outcome of :meth:`OfflineStore.try_get`.

    Attributes:
        status: found, absent, or error.
        value:  The payload when found, else None.
        error:  The failure when status is error.
    """

    status: ReadStatus
    value: Any = None
    error: PersistenceError | None = None

    @property
    def found(self) -> bool:
        return self.status is ReadStatus.found


@contextmanager
def _reporting(action: str, key: str | None = None) -> Iterator[None]:
    try:
        yield
    except PersistenceError as exc:
        target = f" {key!r}" if key is not None else ""
        logger.error("Failed to %s%s: %s", action, target, exc)
        raise


class OfflineStore:
    """Envelope-aware store on top of a :class:`StorageBackend`.

    Args:
        backend:    Engine holding the serialized envelopes.
        migrations: Schema upgrade steps. Defaults to the built-in registry.
        clock:      Source of write timestamps (overridable in tests).
    """

    def __init__(
        self,
        backend: StorageBackend,
        migrations: MigrationRegistry | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.backend = backend
        self.migrations = migrations or default_registry()
        self._clock = clock
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def open(self) -> None:
        with _reporting("open storage"):
            await self.backend.open()
        logger.info("Offline store ready (%s backend)", self.backend.name)

    async def close(self) -> None:
        await self.backend.close()
        logger.info("Offline store closed")

    async def __aenter__(self) -> OfflineStore:
        await self.open()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    @asynccontextmanager
    async def _locked(self, key: str) -> AsyncIterator[None]:
        """Hold the per-key write lock; dropped once no task holds or awaits it."""
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._lock_users[key] = self._lock_users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[key] -= 1
            if not self._lock_users[key]:
                del self._lock_users[key]
                del self._locks[key]

    @staticmethod
    def _check_key(key: str) -> str:
        if not key or key != key.strip():
            raise ValueError(f"Invalid collection key: {key!r}")
        return key

    # ------------------------------------------------------------------
    # Encoding
    # ------------------------------------------------------------------

    def _decode(self, key: str, text: str) -> StoredRecord:
        try:
            raw = json.loads(text)
        except ValueError as exc:
            raise CorruptRecordError(f"Record {key!r} is not valid JSON", key=key) from exc
        if not isinstance(raw, dict):
            raise CorruptRecordError(f"Record {key!r} is not an envelope object", key=key)

        if "payload" in raw and "key" in raw:
            try:
                record = StoredRecord.model_validate(raw)
            except ValidationError as exc:
                raise CorruptRecordError(f"Record {key!r} has an invalid envelope", key=key) from exc
        else:
            record = self._decode_legacy(key, raw)

        current = self.migrations.current_version(key)
        if record.schema_version != current:
            payload, version = self.migrations.upgrade(key, record.payload, record.schema_version)
            record = record.model_copy(update={"payload": payload, "schema_version": version})
        return record

    @staticmethod
    def _decode_legacy(key: str, raw: dict) -> StoredRecord:
        """Read a browser-build record, where the envelope fields sit inside the payload."""
        payload = {k: v for k, v in raw.items() if k not in _LEGACY_ENVELOPE_FIELDS}
        stamp = raw.get("timestamp")
        if isinstance(stamp, (int, float)):
            timestamp = datetime.fromtimestamp(stamp / 1000, tz=timezone.utc)
        else:
            timestamp = utc_now()
        return StoredRecord(
            key=key,
            payload=payload,
            timestamp=timestamp,
            synced=bool(raw.get("synced", False)),
            schema_version=1,
            revision=1,
        )

    @staticmethod
    def _encode_payload(key: str, payload: Any) -> Any:
        try:
            return to_jsonable_python(payload, by_alias=True)
        except PydanticSerializationError as exc:
            raise TypeError(f"Payload for {key!r} is not JSON-serializable: {exc}") from exc

    # ------------------------------------------------------------------
    # Internal read / write (callers hold the key lock for writes)
    # ------------------------------------------------------------------

    async def _read_record(self, key: str) -> StoredRecord | None:
        text = await self.backend.read(key)
        if text is None:
            return None
        return self._decode(key, text)

    async def _current_revision(self, key: str) -> int:
        try:
            record = await self._read_record(key)
        except (CorruptRecordError, MigrationError) as exc:
            logger.warning("Overwriting unreadable record %r: %s", key, exc)
            return 0
        return record.revision if record else 0

    async def _write(
        self, key: str, payload: Any, expected_revision: int | None
    ) -> StoredRecord:
        current = await self._current_revision(key)
        if expected_revision is not None and expected_revision != current:
            raise ConflictError(key, expected=expected_revision, current=current)
        record = StoredRecord(
            key=key,
            payload=self._encode_payload(key, payload),
            timestamp=self._clock(),
            synced=False,
            schema_version=self.migrations.current_version(key),
            revision=current + 1,
        )
        await self.backend.write(key, record.model_dump_json(by_alias=True))
        logger.debug("Stored %r (revision %d)", key, record.revision)
        return record

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def store(
        self, key: str, payload: Any, *, expected_revision: int | None = None
    ) -> StoredRecord:
        """Replace the payload stored under ``key``.

        Args:
            key:               Collection key.
            payload:           JSON-compatible value or Pydantic model.
            expected_revision: If given, the write only succeeds when the
                               stored revision matches (0 = key must be absent).

        Returns:
            The envelope that was written.

        Raises:
            ValueError:        If ``key`` is empty or has surrounding whitespace.
            ConflictError:     If ``expected_revision`` does not match.
            PersistenceError:  If the backend write fails.
        """
        self._check_key(key)
        with _reporting("store", key):
            async with self._locked(key):
                return await self._write(key, payload, expected_revision)

    async def update(self, key: str, mutate: Mutator) -> StoredRecord:
        """Read-modify-write ``key`` while holding its lock.

        ``mutate`` receives the current payload (None if absent) and returns
        the new payload. It may be a coroutine function.
        """
        self._check_key(key)
        with _reporting("update", key):
            async with self._locked(key):
                record = await self._read_record(key)
                new_payload = mutate(record.payload if record else None)
                if inspect.isawaitable(new_payload):
                    new_payload = await new_payload
                return await self._write(key, new_payload, record.revision if record else 0)

    async def get(self, key: str) -> Any | None:
        """Return the payload stored under ``key``, or None if absent.

        Raises:
            PersistenceError: If the backend read fails or the record is corrupt.
        """
        record = await self.get_record(key)
        return record.payload if record else None

    async def get_record(self, key: str) -> StoredRecord | None:
        with _reporting("read", key):
            return await self._read_record(key)

    async def try_get(self, key: str) -> ReadResult:
        """Like :meth:`get` but never raises; failures come back tagged."""
        try:
            record = await self.get_record(key)
        except PersistenceError as exc:
            return ReadResult(ReadStatus.error, error=exc)
        if record is None:
            return ReadResult(ReadStatus.absent)
        return ReadResult(ReadStatus.found, value=record.payload)

    async def remove(self, key: str) -> None:
        with _reporting("remove", key):
            async with self._locked(key):
                await self.backend.delete(key)

    async def list_all(self) -> list[StoredRecord]:
        """Return every readable record. Corrupt records are logged and skipped."""
        with _reporting("list records"):
            records: list[StoredRecord] = []
            for key in await self.backend.keys():
                try:
                    record = await self._read_record(key)
                except (CorruptRecordError, MigrationError) as exc:
                    logger.warning("Skipping unreadable record %r: %s", key, exc)
                    continue
                if record is not None:
                    records.append(record)
            return records

    async def list_unsynced(self) -> list[StoredRecord]:
        return [r for r in await self.list_all() if not r.synced]

    async def mark_synced(self, key: str) -> bool:
        """Flag ``key`` as reconciled with a remote system.

        Payload, timestamp and revision are left untouched.

        Returns:
            False if no record exists for ``key``.
        """
        with _reporting("mark synced", key):
            async with self._locked(key):
                record = await self._read_record(key)
                if record is None:
                    return False
                record = record.model_copy(update={"synced": True})
                await self.backend.write(key, record.model_dump_json(by_alias=True))
                return True

    async def clear_all(self) -> None:
        """Erase every record. Only used for a full application reset."""
        with _reporting("clear storage"):
            await self.backend.clear()
        logger.info("All offline data cleared")

    async def estimate_usage(self) -> StorageEstimate:
        """Best-effort usage figures; zeros when the backend cannot tell."""
        try:
            return await self.backend.estimate()
        except PersistenceError as exc:
            logger.warning("Storage estimate unavailable: %s", exc)
            return StorageEstimate()

    async def export_all(self) -> DataExport:
        return DataExport(export_date=self._clock(), data=await self.list_all())

    async def ping(self) -> bool:
        return await self.backend.ping()
