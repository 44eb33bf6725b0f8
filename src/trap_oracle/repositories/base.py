"""Store contracts shared by the request processor and the HTTP layer.

The processor only depends on the protocols below, so it can run against the
SQLAlchemy repositories in production and against any other implementation
with the same ``get``/``put``/``delete`` surface.
"""
from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol, TypeVar

from sqlalchemy.orm import Session

T = TypeVar("T")


@dataclass(frozen=True)
class UserRecord:
    """Registered user. ``secret_encrypted`` is the cipher envelope, never plaintext."""

    user_id: str
    secret_encrypted: str
    trap_id: str
    chain_id: int
    created_at: int


@dataclass(frozen=True)
class Submission:
    """Code submitted out-of-band for a verification request."""

    request_id: str
    user_id: str
    code: str
    created_at: int


@dataclass(frozen=True)
class ProcessedRecord:
    """Terminal outcome written by the request processor."""

    request_id: str
    status: str
    oracle_tx_hash: str | None
    fulfilled_at: int


class UserStore(Protocol):
    async def get(self, user_id: str) -> UserRecord | None: ...

    async def put(self, record: UserRecord) -> None: ...


class SubmissionStore(Protocol):
    async def get(self, request_id: str) -> Submission | None: ...

    async def put(self, submission: Submission) -> None: ...

    async def delete(self, request_id: str) -> None: ...


class ProcessedLedger(Protocol):
    async def get(self, request_id: str) -> ProcessedRecord | None: ...

    async def put(self, record: ProcessedRecord) -> None: ...


class CursorStore(Protocol):
    async def get(self) -> int | None: ...

    async def put(self, last_block: int) -> None: ...


class SqlRepository:
    """Runs blocking session work in a thread so each store call is awaitable."""

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        """Initialize the repository with a SQLAlchemy session factory."""
        self._session_factory = session_factory

    async def _run(self, operation: Callable[[Session], T]) -> T:
        return await asyncio.to_thread(self._run_sync, operation)

    def _run_sync(self, operation: Callable[[Session], T]) -> T:
        with self._session_factory() as session:
            try:
                result = operation(session)
                session.commit()
            except Exception:
                session.rollback()
                raise
            return result
