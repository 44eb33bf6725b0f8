"""Submission store: codes posted for pending verification requests."""
from __future__ import annotations

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from trap_oracle.models import CodeSubmission, ProcessedRequest
from trap_oracle.repositories.base import SqlRepository, Submission

__all__ = ["SubmissionRepository"]


def _to_submission(row: CodeSubmission) -> Submission:
    return Submission(
        request_id=row.request_id,
        user_id=row.user_id,
        code=row.code,
        created_at=int(row.created_at),
    )


class SubmissionRepository(SqlRepository):
    """Data access for :class:`CodeSubmission` rows."""

    async def get(self, request_id: str) -> Submission | None:
        """Return the live submission for a request, if any."""

        def _get(session: Session) -> Submission | None:
            row = session.get(CodeSubmission, request_id)
            return _to_submission(row) if row is not None else None

        return await self._run(_get)

    async def put(self, submission: Submission) -> None:
        """Store a submission, replacing one not yet consumed."""

        def _put(session: Session) -> None:
            session.merge(
                CodeSubmission(
                    request_id=submission.request_id,
                    user_id=submission.user_id,
                    code=submission.code,
                    created_at=submission.created_at,
                )
            )

        await self._run(_put)

    async def delete(self, request_id: str) -> None:
        """Remove the submission for a request; missing rows are ignored."""

        def _delete(session: Session) -> None:
            session.execute(delete(CodeSubmission).where(CodeSubmission.request_id == request_id))

        await self._run(_delete)

    async def list_unresolved(self, limit: int = 100) -> list[Submission]:
        """Return submissions that have no ledger entry, oldest first."""

        def _list(session: Session) -> list[Submission]:
            stmt = (
                select(CodeSubmission)
                .outerjoin(
                    ProcessedRequest,
                    ProcessedRequest.request_id == CodeSubmission.request_id,
                )
                .where(ProcessedRequest.request_id.is_(None))
                .order_by(CodeSubmission.created_at)
                .limit(limit)
            )
            return [_to_submission(row) for row in session.execute(stmt).scalars()]

        return await self._run(_list)
