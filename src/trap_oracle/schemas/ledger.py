"""Processed-request ledger views for operators."""
from __future__ import annotations

from pydantic import BaseModel, Field


class RequestStatusResponse(BaseModel):
    """Processing state of one verification request."""

    request_id: str = Field(..., serialization_alias="requestId")
    status: str | None = Field(None, description="success, failed, or null while unprocessed")
    oracle_tx_hash: str | None = Field(None, serialization_alias="oracleTxHash")
    fulfilled_at: int | None = Field(None, serialization_alias="fulfilledAt")
    submission_pending: bool = Field(False, serialization_alias="submissionPending")


class UnresolvedRequest(BaseModel):
    """A stored submission with no ledger entry."""

    request_id: str = Field(..., serialization_alias="requestId")
    user_id: str = Field(..., serialization_alias="userId")
    created_at: int = Field(..., serialization_alias="createdAt")


class UnresolvedResponse(BaseModel):
    """Submissions awaiting processing or operator reconciliation."""

    count: int
    requests: list[UnresolvedRequest]
