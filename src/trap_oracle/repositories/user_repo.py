"""Secret store: registered users and their encrypted secrets."""
from __future__ import annotations

from sqlalchemy.orm import Session

from trap_oracle.models import OracleUser
from trap_oracle.repositories.base import SqlRepository, UserRecord

__all__ = ["UserRepository"]


class UserRepository(SqlRepository):
    """Data access for :class:`OracleUser` rows."""

    async def get(self, user_id: str) -> UserRecord | None:
        """Return the registration for ``user_id`` if one exists."""

        def _get(session: Session) -> UserRecord | None:
            row = session.get(OracleUser, user_id)
            if row is None:
                return None
            return UserRecord(
                user_id=row.user_id,
                secret_encrypted=row.secret_encrypted,
                trap_id=row.trap_id,
                chain_id=int(row.chain_id),
                created_at=int(row.created_at),
            )

        return await self._run(_get)

    async def put(self, record: UserRecord) -> None:
        """Insert or overwrite a registration."""

        def _put(session: Session) -> None:
            session.merge(
                OracleUser(
                    user_id=record.user_id,
                    secret_encrypted=record.secret_encrypted,
                    trap_id=record.trap_id,
                    chain_id=record.chain_id,
                    created_at=record.created_at,
                )
            )

        await self._run(_put)
