"""Shared FastAPI dependencies injected into route handlers."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, HTTPException, Request

from safelink.config import Settings, get_settings
from safelink.storage.store import OfflineStore
from safelink.tracker.cycle_tracker import CycleTracker


def get_store(request: Request) -> OfflineStore:
    """Return the store built during app startup (see ``safelink.main.lifespan``)."""
    store: OfflineStore | None = getattr(request.app.state, "store", None)
    if store is None:
        raise HTTPException(status_code=503, detail="Offline storage not initialized")
    return store


def get_app_settings(request: Request) -> Settings:
    """Settings the app was built with, falling back to the environment."""
    return getattr(request.app.state, "settings", None) or get_settings()


def get_tracker(request: Request) -> CycleTracker:
    tracker: CycleTracker | None = getattr(request.app.state, "tracker", None)
    if tracker is None:
        raise HTTPException(status_code=503, detail="Cycle tracker not initialized")
    return tracker


# Annotated shortcuts for route signatures
Store = Annotated[OfflineStore, Depends(get_store)]
Tracker = Annotated[CycleTracker, Depends(get_tracker)]
AppSettings = Annotated[Settings, Depends(get_app_settings)]
