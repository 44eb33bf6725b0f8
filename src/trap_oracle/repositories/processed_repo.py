"""Processed-request ledger used as the idempotency guard."""
from __future__ import annotations

from sqlalchemy.orm import Session

from trap_oracle.models import ProcessedRequest
from trap_oracle.repositories.base import ProcessedRecord, SqlRepository

__all__ = ["ProcessedRepository"]


class ProcessedRepository(SqlRepository):
    """Data access for :class:`ProcessedRequest` rows."""

    async def get(self, request_id: str) -> ProcessedRecord | None:
        """Return the terminal outcome for a request, if one was recorded."""

        def _get(session: Session) -> ProcessedRecord | None:
            row = session.get(ProcessedRequest, request_id)
            if row is None:
                return None
            return ProcessedRecord(
                request_id=row.request_id,
                status=row.status,
                oracle_tx_hash=row.oracle_tx_hash,
                fulfilled_at=int(row.fulfilled_at),
            )

        return await self._run(_get)

    async def put(self, record: ProcessedRecord) -> None:
        """Record a terminal outcome."""

        def _put(session: Session) -> None:
            session.merge(
                ProcessedRequest(
                    request_id=record.request_id,
                    status=record.status,
                    oracle_tx_hash=record.oracle_tx_hash,
                    fulfilled_at=record.fulfilled_at,
                )
            )

        await self._run(_put)
