"""Event listener bookkeeping."""

from sqlalchemy import BigInteger
from sqlalchemy.orm import Mapped, mapped_column

from trap_oracle.db.session import Base


class ListenerCursor(Base):
    """Last block whose verification-request logs were handed to the work queue."""

    __tablename__ = "listener_cursor"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, default=1)
    last_block: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
