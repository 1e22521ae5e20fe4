"""Create walmart_tokens table.

Revision ID: 001
Revises:
Create Date: 2026-10-18
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # One row per user; access/refresh tokens hold cipher blobs
    op.create_table(
        "walmart_tokens",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.String(length=255), nullable=False),
        sa.Column("access_token", sa.Text(), nullable=False),
        sa.Column("refresh_token", sa.Text(), nullable=True),
        sa.Column("token_type", sa.String(length=50), nullable=False, server_default="Bearer"),
        sa.Column("expires_in", sa.Integer(), nullable=False),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.Column("scope", sa.Text(), nullable=True),
        sa.Column("seller_id", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id"),
    )
    op.create_index("idx_walmart_tokens_seller_id", "walmart_tokens", ["seller_id"])
    op.create_index("idx_walmart_tokens_expires_at", "walmart_tokens", ["expires_at"])


def downgrade() -> None:
    op.drop_index("idx_walmart_tokens_expires_at", table_name="walmart_tokens")
    op.drop_index("idx_walmart_tokens_seller_id", table_name="walmart_tokens")
    op.drop_table("walmart_tokens")
