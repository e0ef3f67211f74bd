"""
Cinedex Backend: Movie SQLAlchemy Model
=========================================

What:  ORM model for the `movies` table.
How:   `version` is registered as SQLAlchemy's version_id_col, so every
       UPDATE is emitted as `... SET version = :new WHERE id = :id AND
       version = :held` and a zero-row result raises StaleDataError, which
       the repository turns into EditConflictError.
Who:   Used by the SQL movie repository and by Alembic.

Query Patterns:
    - Title search: to_tsvector('simple', title) @@ plainto_tsquery('simple', :q)
      → idx_movies_title (GIN)
    - Genre filter: genres @> :genres
      → idx_movies_genres (GIN)
"""

from datetime import datetime, timezone
from typing import List

from sqlalchemy import BigInteger, CheckConstraint, Integer, Text, text
from sqlalchemy.dialects.postgresql import ARRAY, TIMESTAMP
from sqlalchemy.orm import Mapped, mapped_column

from cinedex.database import Base


class Movie(Base):
    """A catalog entry. Exclusively owned by the store; handlers hold copies."""

    __tablename__ = "movies"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )

    title: Mapped[str] = mapped_column(Text, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)

    # Minutes. Serialized as "<n> mins"
    runtime: Mapped[int] = mapped_column(Integer, nullable=False)

    genres: Mapped[List[str]] = mapped_column(ARRAY(Text), nullable=False)

    version: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("1"))

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        CheckConstraint("runtime >= 0", name="movies_runtime_check"),
        CheckConstraint("year BETWEEN 1888 AND date_part('year', now())", name="movies_year_check"),
        CheckConstraint("array_length(genres, 1) BETWEEN 1 AND 5", name="genres_length_check"),
    )

    def __repr__(self) -> str:
        return f"<Movie(id={self.id}, title='{self.title}', version={self.version})>"
