"""Pydantic models for the offline record store: envelopes, usage, exports."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import Field

from safelink.models.base import SafeLinkBase, utc_now

EXPORT_FORMAT_VERSION = "1.0"


class StoredRecord(SafeLinkBase):
    """Envelope persisted for every logical collection key.

    Attributes:
        key:            Logical collection name (e.g. ``cycle_data``).
        payload:        Feature-specific JSON-compatible value.
        timestamp:      UTC instant of the last write.
        synced:         Whether a remote system has reconciled this record.
                        Always False on write.
        schema_version: Version of the payload layout for this collection.
        revision:       Monotonic write counter used for optimistic concurrency.
    """

    key: str = Field(min_length=1)
    payload: Any = None
    timestamp: datetime = Field(default_factory=utc_now)
    synced: bool = False
    schema_version: int = Field(default=1, ge=1)
    revision: int = Field(default=1, ge=1)


class StorageEstimate(SafeLinkBase):
    """Best-effort storage usage in bytes. Zeros mean "unknown"."""

    used: int = Field(default=0, ge=0)
    available: int = Field(default=0, ge=0)

    @property
    def used_display(self) -> str:
        return format_bytes(self.used)

    @property
    def available_display(self) -> str:
        return format_bytes(self.available)


class DataExport(SafeLinkBase):
    """Full dump of the store, as offered by the settings page download."""

    export_date: datetime = Field(default_factory=utc_now)
    version: str = EXPORT_FORMAT_VERSION
    data: list[StoredRecord] = Field(default_factory=list)


def format_bytes(num_bytes: int) -> str:
    """Render a byte count for display (``0 Bytes``, ``1.5 KB``, ``2 MB``).

    Args:
        num_bytes: Non-negative byte count.

    Returns:
        Human-readable string with at most two decimals.
    """
    if num_bytes <= 0:
        return "0 Bytes"
    units = ["Bytes", "KB", "MB", "GB", "TB"]
    value = float(num_bytes)
    exponent = 0
    while value >= 1024 and exponent < len(units) - 1:
        value /= 1024
        exponent += 1
    text = f"{value:.2f}".rstrip("0").rstrip(".")
    return f"{text} {units[exponent]}"
