"""Offline storage endpoints: collections, sync bookkeeping, usage and export."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, HTTPException

from safelink.dependencies import Store, Tracker
from safelink.models.storage import DataExport, StorageEstimate, StoredRecord
from safelink.storage.keys import StorageKey, is_known_key

router = APIRouter(prefix="/storage", tags=["offline storage"])


def _require_known(key: str) -> str:
    if not is_known_key(key):
        raise HTTPException(status_code=404, detail=f"Unknown collection: {key}")
    return key


@router.get("/info")
async def storage_info(store: Store) -> dict:
    estimate: StorageEstimate = await store.estimate_usage()
    return {
        **estimate.to_payload(),
        "usedDisplay": estimate.used_display,
        "availableDisplay": estimate.available_display,
        "backend": store.backend.name,
    }


@router.get("/records", response_model=list[StoredRecord])
async def list_records(store: Store) -> Any:
    return await store.list_all()


@router.get("/unsynced", response_model=list[StoredRecord])
async def list_unsynced(store: Store) -> Any:
    return await store.list_unsynced()


@router.get("/export", response_model=DataExport)
async def export_data(store: Store) -> Any:
    return await store.export_all()


@router.get("/records/{key}", response_model=StoredRecord)
async def get_record(store: Store, key: str) -> Any:
    record = await store.get_record(_require_known(key))
    if record is None:
        raise HTTPException(status_code=404, detail=f"No data stored for {key}")
    return record


@router.put("/records/{key}", response_model=StoredRecord)
async def put_record(
    store: Store,
    tracker: Tracker,
    key: str,
    payload: Any = Body(...),
    expected_revision: int | None = None,
) -> Any:
    """Replace one collection. ``cycle_data`` is validated and its predictions recomputed."""
    if _require_known(key) == StorageKey.cycle_data.value:
        try:
            return await tracker.replace(payload, expected_revision=expected_revision)
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
    return await store.store(key, payload, expected_revision=expected_revision)


@router.delete("/records/{key}", status_code=204)
async def delete_record(store: Store, key: str) -> None:
    await store.remove(_require_known(key))


@router.post("/records/{key}/synced", status_code=204)
async def mark_synced(store: Store, key: str) -> None:
    if not await store.mark_synced(_require_known(key)):
        raise HTTPException(status_code=404, detail=f"No data stored for {key}")


@router.delete("", status_code=204)
async def clear_all(store: Store) -> None:
    await store.clear_all()
