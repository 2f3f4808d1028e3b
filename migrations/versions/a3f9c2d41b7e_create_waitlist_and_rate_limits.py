"""create waitlist and rate_limits tables

Revision ID: a3f9c2d41b7e
Revises:
Create Date: 2026-10-17 09:00:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "a3f9c2d41b7e"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _get_inspector():
    conn = op.get_bind()
    return conn, sa.inspect(conn)


def _table_exists(inspector, table_name: str) -> bool:
    try:
        return table_name in inspector.get_table_names()
    except Exception:
        return False


def upgrade() -> None:
    _, inspector = _get_inspector()

    if not _table_exists(inspector, "waitlist"):
        op.create_table(
            "waitlist",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column("email", sa.String(length=254), nullable=False),
            sa.Column("domain", sa.String(length=253), nullable=False),
            sa.Column("source", sa.String(length=64), nullable=True),
            sa.Column("joined_at", sa.BigInteger(), nullable=False),
        )
        op.create_index("ix_waitlist_email", "waitlist", ["email"], unique=True)
        op.create_index("ix_waitlist_domain", "waitlist", ["domain"])
        op.create_index("ix_waitlist_joined_at", "waitlist", ["joined_at"])

    if not _table_exists(inspector, "rate_limits"):
        op.create_table(
            "rate_limits",
            sa.Column("id", sa.String(length=36), primary_key=True),
            sa.Column("key", sa.String(length=320), nullable=False),
            sa.Column("timestamps", sa.JSON(), nullable=False),
            sa.Column("created_at", sa.BigInteger(), nullable=False),
            sa.Column("updated_at", sa.BigInteger(), nullable=False),
        )
        op.create_index("ix_rate_limits_key", "rate_limits", ["key"], unique=True)


def downgrade() -> None:
    op.drop_index("ix_rate_limits_key", table_name="rate_limits")
    op.drop_table("rate_limits")
    op.drop_index("ix_waitlist_joined_at", table_name="waitlist")
    op.drop_index("ix_waitlist_domain", table_name="waitlist")
    op.drop_index("ix_waitlist_email", table_name="waitlist")
    op.drop_table("waitlist")
