"""System and operator endpoints for the Trap Oracle API."""

from __future__ import annotations

import time
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Path, Query, Request, status
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from trap_oracle.core.settings import settings
from trap_oracle.schemas.common import REQUEST_ID_PATTERN
from trap_oracle.schemas.ledger import RequestStatusResponse, UnresolvedRequest, UnresolvedResponse

from ..dependencies import ProcessedRepoDep, SessionFactory, SessionFactoryDep, SubmissionRepoDep

router = APIRouter(prefix="/system", tags=["system"])

RequestIdPath = Annotated[str, Path(pattern=REQUEST_ID_PATTERN.pattern)]


def uptime_seconds(request: Request) -> float:
    """Seconds since the application started."""
    started_at = getattr(request.app.state, "started_at", None)
    if started_at is None:
        return 0.0
    return round(time.monotonic() - started_at, 3)


def oracle_running(request: Request) -> bool:
    """Whether the background oracle worker is consuming events."""
    worker = getattr(request.app.state, "oracle_worker", None)
    return bool(worker is not None and worker.is_running)


def check_database(session_factory: SessionFactory) -> str:
    try:
        with session_factory() as db:
            db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        return f"unhealthy: {e}"
    return "healthy"


@router.get("/health")
def get_system_health(request: Request, session_factory: SessionFactoryDep) -> dict[str, object]:
    """Health check covering the database and the oracle worker.

    Returns:
        Dictionary with overall status, uptime, component health and version info
    """
    db_status = check_database(session_factory)
    worker = getattr(request.app.state, "oracle_worker", None)
    return {
        "ok": db_status == "healthy",
        "status": "healthy" if db_status == "healthy" else "unhealthy",
        "uptime": uptime_seconds(request),
        "timestamp": int(time.time()),
        "components": {
            "database": db_status,
            "oracle": {
                "enabled": settings.oracle_enabled,
                "running": oracle_running(request),
                "pending": worker.queue.pending if worker is not None else 0,
            },
        },
        "version": settings.app_version,
    }


@router.get("/requests/{request_id}", response_model=RequestStatusResponse)
async def get_request_status(
    request_id: RequestIdPath,
    ledger: ProcessedRepoDep,
    submissions: SubmissionRepoDep,
) -> RequestStatusResponse:
    """Look up the processing outcome of a verification request.

    A request with a stored submission but no ledger entry is still pending or
    unresolved; one with neither is unknown to the oracle.
    """
    request_id = request_id.lower()
    record = await ledger.get(request_id)
    submission = await submissions.get(request_id)
    if record is None and submission is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Request not found")

    if record is None:
        return RequestStatusResponse(request_id=request_id, submission_pending=True)
    return RequestStatusResponse(
        request_id=request_id,
        status=record.status,
        oracle_tx_hash=record.oracle_tx_hash,
        fulfilled_at=record.fulfilled_at,
        submission_pending=submission is not None,
    )


@router.get("/unresolved", response_model=UnresolvedResponse)
async def list_unresolved(
    submissions: SubmissionRepoDep,
    limit: Annotated[int, Query(ge=1, le=1000)] = 100,
) -> UnresolvedResponse:
    """List submissions that have not reached the ledger, oldest first."""
    pending = await submissions.list_unresolved(limit)
    return UnresolvedResponse(
        count=len(pending),
        requests=[
            UnresolvedRequest(
                request_id=item.request_id,
                user_id=item.user_id,
                created_at=item.created_at,
            )
            for item in pending
        ],
    )
