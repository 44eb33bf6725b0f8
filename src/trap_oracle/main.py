# src/trap_oracle/main.py
"""Main entry point for the Trap Oracle service."""

from __future__ import annotations

import logging
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from trap_oracle.api.v1 import admin_router, submissions_router, system_router
from trap_oracle.api.v1.endpoints.system import oracle_running, uptime_seconds
from trap_oracle.core.logging import configure_logging
from trap_oracle.core.settings import ConfigurationError, settings
from trap_oracle.db.session import create_tables
from trap_oracle.services.oracle import OracleWorker

logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="Trap Oracle API",
    description="Off-chain one-time-code oracle for trap-aware verification",
    version=settings.app_version,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)

# Include API routers
app.include_router(submissions_router, prefix="/api/v1")
app.include_router(admin_router, prefix="/api/v1")
app.include_router(system_router, prefix="/api/v1")

app.state.started_at = time.monotonic()
app.state.oracle_worker = None


@app.on_event("startup")
async def on_startup() -> None:
    configure_logging(settings.log_level)
    app.state.started_at = time.monotonic()
    create_tables()

    if not settings.oracle_enabled:
        logger.info("Oracle worker disabled; serving ingestion endpoints only")
        return

    try:
        worker = OracleWorker.from_settings()
    except (ConfigurationError, ValueError) as e:
        logger.error("Oracle worker not started: %s", e)
        return
    await worker.start()
    app.state.oracle_worker = worker


@app.on_event("shutdown")
async def on_shutdown() -> None:
    worker: OracleWorker | None = getattr(app.state, "oracle_worker", None)
    if worker:
        await worker.stop()
        app.state.oracle_worker = None


@app.get("/health")
async def health_check(request: Request) -> dict[str, object]:
    """Liveness check reporting process uptime."""
    return {
        "ok": True,
        "uptime": uptime_seconds(request),
        "oracle_running": oracle_running(request),
    }


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with basic information about the API."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("trap_oracle.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
