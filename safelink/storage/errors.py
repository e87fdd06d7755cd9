"""Exception hierarchy for the offline record store."""

from __future__ import annotations


class PersistenceError(RuntimeError):
    """Base class for every failure raised by the offline store.

    Callers that only want to tell the user "your data may not be saved"
    can catch this one type.
    """

    def __init__(self, message: str, *, key: str | None = None) -> None:
        super().__init__(message)
        self.key = key


class StorageUnavailableError(PersistenceError):
    """The backend could not be reached or failed an I/O operation."""


class QuotaExceededError(PersistenceError):
    """A write would push the backend past its byte quota."""


class CorruptRecordError(PersistenceError):
    """Stored text for a key is not a valid record envelope."""


class MigrationError(PersistenceError):
    """A stored payload could not be upgraded to the current schema version."""


class ConflictError(PersistenceError):
    """Raised when an optimistic revision check fails."""

    def __init__(self, key: str, *, expected: int, current: int) -> None:
        super().__init__(
            f"Record {key!r} changed (expected revision={expected}, current revision={current})",
            key=key,
        )
        self.expected = expected
        self.current = current
