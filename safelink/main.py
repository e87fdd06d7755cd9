"""SafeLink local API — FastAPI application entry point.

The SafeLink web client talks to this process for everything that must
survive offline: cycle tracking and the per-feature collections.

Run locally:
    uvicorn safelink.main:app --reload --port 8000
"""

from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from safelink.config import Settings, get_settings
from safelink.routers import cycle, health, storage
from safelink.storage.backends import StorageBackend, create_backend
from safelink.storage.errors import ConflictError, PersistenceError
from safelink.storage.store import OfflineStore
from safelink.tracker.cycle_tracker import CycleTracker

# ---------- Logging ----------

logging.basicConfig(
    level=getattr(logging, get_settings().log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    stream=sys.stdout,
)
logger = logging.getLogger("safelink")


# ---------- Lifespan ----------

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup / shutdown hooks."""
    settings: Settings = app.state.settings
    logger.info(
        "Starting SafeLink API v%s [%s]",
        settings.app_version,
        settings.environment,
    )
    backend: StorageBackend = app.state.backend or create_backend(settings)
    store = OfflineStore(backend)
    await store.open()
    tracker = CycleTracker(store)
    try:
        await tracker.load()
    except PersistenceError as exc:
        logger.warning("Starting with empty cycle data: %s", exc)

    app.state.store = store
    app.state.tracker = tracker
    yield
    await store.close()
    logger.info("SafeLink API shut down")


# ---------- Error handlers ----------

async def persistence_error_handler(request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse(
        status_code=503,
        content={"detail": f"Your data may not be saved: {exc}"},
    )


async def conflict_error_handler(request: Request, exc: ConflictError) -> JSONResponse:
    return JSONResponse(
        status_code=409,
        content={
            "detail": str(exc),
            "expectedRevision": exc.expected,
            "currentRevision": exc.current,
        },
    )


# ---------- App factory ----------

def create_app(
    settings: Settings | None = None, backend: StorageBackend | None = None
) -> FastAPI:
    """Build the API.

    Args:
        settings: Override settings (defaults to environment).
        backend:  Pre-built storage backend; otherwise chosen from settings.
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="SafeLink API",
        description=(
            "Offline-first storage and menstrual cycle tracking for the "
            "SafeLink SRHR youth platform."
        ),
        version=settings.app_version,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.backend = backend

    app.add_exception_handler(ConflictError, conflict_error_handler)
    app.add_exception_handler(PersistenceError, persistence_error_handler)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ---------- Health check (outside v1 prefix — always at /health) ----------
    app.include_router(health.router)

    # ---------- API v1 routes ----------
    v1_prefix = "/api/v1"

    app.include_router(cycle.router, prefix=v1_prefix)
    app.include_router(storage.router, prefix=v1_prefix)

    return app


app = create_app()
