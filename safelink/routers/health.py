"""Health check endpoint."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter

from safelink.dependencies import AppSettings, Store

router = APIRouter(tags=["system"])
logger = logging.getLogger("safelink.health")


@router.get("/health")
async def health_check(store: Store, settings: AppSettings) -> dict:
    """Liveness probe. Returns 200 if the API process is up.

    Also performs a lightweight storage connectivity check.
    """
    storage_ok = await store.ping()
    if not storage_ok:
        logger.warning("Health check storage probe failed")

    return {
        "status": "healthy" if storage_ok else "degraded",
        "version": settings.app_version,
        "environment": settings.environment,
        "storage": store.backend.name if storage_ok else "unreachable",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
