"""SQLAlchemy model for registered users and their encrypted secrets."""

from sqlalchemy import BigInteger, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from trap_oracle.db.session import Base


class OracleUser(Base):
    """Registration record: encrypted OTP secret plus trap-contract metadata."""

    __tablename__ = "oracle_users"

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    # JSON envelope {"iv", "content", "tag"}; plaintext never touches the database.
    secret_encrypted: Mapped[str] = mapped_column(Text, nullable=False)
    trap_id: Mapped[str] = mapped_column(String(42), nullable=False)
    chain_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
