"""SQLAlchemy model for codes submitted out-of-band."""

from sqlalchemy import BigInteger, String
from sqlalchemy.orm import Mapped, mapped_column

from trap_oracle.db.session import Base


class CodeSubmission(Base):
    """Pending code for a verification request, consumed once by the processor."""

    __tablename__ = "code_submissions"

    request_id: Mapped[str] = mapped_column(String(66), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    code: Mapped[str] = mapped_column(String(16), nullable=False)
    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
