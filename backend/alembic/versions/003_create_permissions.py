"""Create permissions catalog and grants

Revision ID: 003
Revises: 002
Create Date: 2024-01-17 00:00:00.000000+00:00

What:  `permissions` (the catalog, seeded with movies:read and
       movies:write) and `users_permissions` (the grants).
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "003"
down_revision: Union[str, None] = "002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    permissions = op.create_table(
        "permissions",
        sa.Column("id", sa.BigInteger(), sa.Identity(always=False), nullable=False),
        sa.Column("code", sa.Text(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "users_permissions",
        sa.Column("user_id", sa.BigInteger(), nullable=False),
        sa.Column("permission_id", sa.BigInteger(), nullable=False),
        sa.PrimaryKeyConstraint("user_id", "permission_id"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["permission_id"], ["permissions.id"], ondelete="CASCADE"),
    )

    op.bulk_insert(permissions, [{"code": "movies:read"}, {"code": "movies:write"}])


def downgrade() -> None:
    op.drop_table("users_permissions")
    op.drop_table("permissions")
