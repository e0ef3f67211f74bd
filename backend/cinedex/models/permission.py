"""
ORM model for the permission catalog and the user ↔ permission join table.

The catalog is seeded by migration 003 and is read-mostly; grants happen
once, at registration.
"""

from typing import Iterable

from sqlalchemy import BigInteger, Column, ForeignKey, Table, Text
from sqlalchemy.orm import Mapped, mapped_column

from cinedex.database import Base

MOVIES_READ = "movies:read"
MOVIES_WRITE = "movies:write"


class Permission(Base):
    __tablename__ = "permissions"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    code: Mapped[str] = mapped_column(Text, nullable=False)

    def __repr__(self) -> str:
        return f"<Permission(code='{self.code}')>"


users_permissions = Table(
    "users_permissions",
    Base.metadata,
    Column("user_id", BigInteger, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column(
        "permission_id",
        BigInteger,
        ForeignKey("permissions.id", ondelete="CASCADE"),
        primary_key=True,
    ),
)


class Permissions(frozenset):
    """The set of permission codes held by one user."""

    def __new__(cls, codes: Iterable[str] = ()):
        return super().__new__(cls, codes)

    def includes(self, code: str) -> bool:
        return code in self
