"""
Cinedex Backend: User SQLAlchemy Model
========================================

What:  ORM model for the `users` table plus the anonymous identity.
How:   Email uniqueness is enforced by the `users_email_key` constraint;
       the repository recognises that constraint name in IntegrityError
       and raises DuplicateEmailError. `version` is the optimistic
       concurrency counter, as on movies.

Identity on a request is always a `User`: either a row loaded through a
token or the `ANONYMOUS_USER` sentinel. Code checks `user.is_anonymous`
instead of testing for None.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import BigInteger, Boolean, Integer, LargeBinary, Text, UniqueConstraint, text
from sqlalchemy.dialects.postgresql import TIMESTAMP
from sqlalchemy.orm import Mapped, mapped_column

from cinedex.database import Base


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )

    name: Mapped[str] = mapped_column(Text, nullable=False)
    email: Mapped[str] = mapped_column(Text, nullable=False)

    # bcrypt hash; never NULL once persisted
    password_hash: Mapped[Optional[bytes]] = mapped_column(LargeBinary, nullable=False)

    activated: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    version: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("1"))

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (UniqueConstraint("email", name="users_email_key"),)

    @property
    def is_anonymous(self) -> bool:
        return self is ANONYMOUS_USER

    def __repr__(self) -> str:
        return f"<User(id={self.id}, activated={self.activated})>"


ANONYMOUS_USER = User(name="", email="", activated=False)
