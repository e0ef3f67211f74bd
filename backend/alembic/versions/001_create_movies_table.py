"""Create movies table

Revision ID: 001
Revises: None
Create Date: 2024-01-15 00:00:00.000000+00:00

What:  Creates the `movies` table, its check constraints and the two GIN
       indexes behind the title and genre filters of GET /v1/movies.

Rollback: downgrade() drops the table and its indexes (all movies are lost).
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "movies",
        sa.Column("id", sa.BigInteger(), sa.Identity(always=False), nullable=False),
        sa.Column(
            "created_at",
            postgresql.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("runtime", sa.Integer(), nullable=False),
        sa.Column("genres", postgresql.ARRAY(sa.Text()), nullable=False),
        sa.Column("version", sa.Integer(), server_default=sa.text("1"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("runtime >= 0", name="movies_runtime_check"),
        sa.CheckConstraint(
            "year BETWEEN 1888 AND date_part('year', now())", name="movies_year_check"
        ),
        sa.CheckConstraint("array_length(genres, 1) BETWEEN 1 AND 5", name="genres_length_check"),
    )

    # to_tsvector('simple', title) must match the expression used in queries
    # exactly, or the planner will not use this index
    op.create_index(
        "idx_movies_title",
        "movies",
        [sa.text("to_tsvector('simple', title)")],
        postgresql_using="gin",
    )
    op.create_index("idx_movies_genres", "movies", ["genres"], postgresql_using="gin")


def downgrade() -> None:
    op.drop_index("idx_movies_genres", table_name="movies")
    op.drop_index("idx_movies_title", table_name="movies")
    op.drop_table("movies")
