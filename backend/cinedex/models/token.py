"""
ORM model for the `tokens` table.

Rows hold the SHA-256 of a token's plaintext, never the plaintext itself.
Deleting a user cascades to their tokens.
"""

from datetime import datetime

from sqlalchemy import BigInteger, ForeignKey, LargeBinary, Text
from sqlalchemy.dialects.postgresql import TIMESTAMP
from sqlalchemy.orm import Mapped, mapped_column

from cinedex.database import Base


class Token(Base):
    __tablename__ = "tokens"

    hash: Mapped[bytes] = mapped_column(LargeBinary, primary_key=True)
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    expiry: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    scope: Mapped[str] = mapped_column(Text, nullable=False)

    def __repr__(self) -> str:
        return f"<Token(user_id={self.user_id}, scope='{self.scope}', expiry='{self.expiry}')>"
