"""Payload schema versions and upgrade steps, keyed by (collection, version).

Each collection starts at version 1.  Registering a step for
``(collection, n)`` declares that version ``n + 1`` exists and tells the store
how to upgrade an ``n`` payload to it.  The store upgrades on read and writes
new records with the current version.

Usage::

    registry = MigrationRegistry()

    @registry.migration("quiz_stats", from_version=1)
    def _split_scores(payload):
        ...
"""

from __future__ import annotations

import copy
import logging
from typing import Any, Callable

from safelink.storage.errors import MigrationError
from safelink.storage.keys import StorageKey

logger = logging.getLogger("safelink.storage.migrations")

Migration = Callable[[Any], Any]


class MigrationRegistry:
    """Ordered upgrade steps per collection."""

    def __init__(self) -> None:
        self._steps: dict[tuple[str, int], Migration] = {}
        self._current: dict[str, int] = {}

    def register(self, collection: str, from_version: int, step: Migration) -> None:
        if from_version < 1:
            raise ValueError("from_version must be >= 1")
        self._steps[(collection, from_version)] = step
        self._current[collection] = max(self._current.get(collection, 1), from_version + 1)

    def migration(self, collection: str, from_version: int) -> Callable[[Migration], Migration]:
        def decorator(step: Migration) -> Migration:
            self.register(collection, from_version, step)
            return step

        return decorator

    def current_version(self, collection: str) -> int:
        return self._current.get(collection, 1)

    def upgrade(self, collection: str, payload: Any, version: int) -> tuple[Any, int]:
        """Run every step needed to bring ``payload`` to the current version.

        Args:
            collection: Collection key the payload was stored under.
            payload:    Decoded payload at ``version``.
            version:    Schema version recorded in the envelope.

        Returns:
            (upgraded payload, new version).  Unchanged when already current.

        Raises:
            MigrationError: If a step is missing, fails, or the stored version
                            is newer than this build understands.
        """
        target = self.current_version(collection)
        if version > target:
            raise MigrationError(
                f"{collection!r} was written with schema v{version}, "
                f"this build only understands up to v{target}",
                key=collection,
            )
        while version < target:
            step = self._steps.get((collection, version))
            if step is None:
                raise MigrationError(
                    f"No migration registered for {collection!r} v{version}", key=collection
                )
            try:
                payload = step(copy.deepcopy(payload))
            except (KeyError, TypeError, ValueError, AttributeError) as exc:
                raise MigrationError(
                    f"Migrating {collection!r} v{version} failed: {exc}", key=collection
                ) from exc
            logger.info("Migrated %s payload v%d → v%d", collection, version, version + 1)
            version += 1
        return payload, version


# ---------------------------------------------------------------------------
# Built-in steps
# ---------------------------------------------------------------------------


def _blank(value: Any) -> bool:
    return isinstance(value, str) and not value.strip()


def cycle_data_v1_to_v2(payload: Any) -> Any:
    """Replace the browser build's empty-string dates with nulls."""
    if not isinstance(payload, dict):
        raise TypeError("cycle_data payload must be an object")
    if _blank(payload.get("lastPeriod")):
        payload["lastPeriod"] = None
    predictions = payload.get("predictions")
    if isinstance(predictions, dict):
        for field in ("nextPeriod", "ovulation"):
            if _blank(predictions.get(field)):
                predictions[field] = None
        window = predictions.get("fertileWindow")
        if isinstance(window, dict) and (
            _blank(window.get("start")) or _blank(window.get("end"))
        ):
            predictions["fertileWindow"] = None
    for entry in payload.get("entries") or []:
        if isinstance(entry, dict) and _blank(entry.get("notes")):
            entry["notes"] = None
    return payload


def default_registry() -> MigrationRegistry:
    registry = MigrationRegistry()
    registry.register(StorageKey.cycle_data.value, 1, cycle_data_v1_to_v2)
    return registry
