"""Offline persistence for SafeLink.

Modules:
    store      — OfflineStore: envelopes, per-key locking, revisions, export
    backends   — memory, SQLite and Postgres engines behind one ABC
    migrations — payload schema versions keyed by (collection, version)
    keys       — the shared collection key namespace
    errors     — PersistenceError hierarchy
"""

from safelink.storage.backends import (
    MemoryBackend,
    PostgresBackend,
    SqliteBackend,
    StorageBackend,
    create_backend,
)
from safelink.storage.errors import ConflictError, PersistenceError
from safelink.storage.keys import StorageKey
from safelink.storage.store import OfflineStore, ReadResult, ReadStatus

__all__ = [
    "OfflineStore",
    "ReadResult",
    "ReadStatus",
    "StorageBackend",
    "MemoryBackend",
    "SqliteBackend",
    "PostgresBackend",
    "create_backend",
    "StorageKey",
    "PersistenceError",
    "ConflictError",
]
