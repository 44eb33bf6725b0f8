"""Persistence for the event listener's scan position."""
from __future__ import annotations

from sqlalchemy.orm import Session

from trap_oracle.models import ListenerCursor
from trap_oracle.repositories.base import SqlRepository

__all__ = ["CursorRepository"]

CURSOR_ROW_ID = 1


class CursorRepository(SqlRepository):
    """Single-row store holding the last scanned block."""

    async def get(self) -> int | None:
        def _get(session: Session) -> int | None:
            row = session.get(ListenerCursor, CURSOR_ROW_ID)
            return int(row.last_block) if row is not None else None

        return await self._run(_get)

    async def put(self, last_block: int) -> None:
        def _put(session: Session) -> None:
            session.merge(ListenerCursor(id=CURSOR_ROW_ID, last_block=last_block))

        await self._run(_put)
