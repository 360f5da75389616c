"""create_cache_entries

Revision ID: 0001_cache_entries
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0001_cache_entries"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "cache_entries",
        sa.Column("id", sa.String(length=449), nullable=False),
        sa.Column("value", sa.LargeBinary(), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("absolute_expiration", sa.DateTime(timezone=True), nullable=True),
        sa.Column("sliding_expiration", sa.Interval(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )

    # Sweep deletes by expires_at
    op.create_index(
        "ix_cache_entries_expires_at", "cache_entries", ["expires_at"], unique=False
    )


def downgrade() -> None:
    op.drop_index("ix_cache_entries_expires_at", table_name="cache_entries")
    op.drop_table("cache_entries")
