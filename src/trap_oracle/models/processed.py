"""SQLAlchemy model for the processed-request ledger."""

from sqlalchemy import BigInteger, String
from sqlalchemy.orm import Mapped, mapped_column

from trap_oracle.db.session import Base

STATUS_SUCCESS = "success"
STATUS_FAILED = "failed"


class ProcessedRequest(Base):
    """Terminal outcome of a verification request; its presence is the idempotency guard."""

    __tablename__ = "processed_requests"

    request_id: Mapped[str] = mapped_column(String(66), primary_key=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False)  # 'success' or 'failed'
    # NULL when the request failed before any chain write.
    oracle_tx_hash: Mapped[str | None] = mapped_column(String(66), nullable=True)
    fulfilled_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
