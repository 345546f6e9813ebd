"""001 initial channels table

Revision ID: 001_initial_channels
Revises:
Create Date: 2026-10-19

Creates the channels table holding each live channel's configuration,
lifecycle status and countdown (integer seconds).
"""

from typing import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001_initial_channels"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

CHANNEL_STATUSES = ("scheduled", "running", "stopped")
COUNTDOWN_KINDS = ("start", "ends")


def upgrade() -> None:
    """Create channels table."""
    op.create_table(
        "channels",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("sequence_number", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("source_file", sa.String(255), nullable=False),
        sa.Column("stream_key", sa.String(255), nullable=False),
        sa.Column("duration", sa.String(20), nullable=False, server_default="11h 55m"),
        sa.Column("repeat_policy", sa.String(50), nullable=False, server_default="none"),
        sa.Column(
            "status",
            sa.Enum(*CHANNEL_STATUSES, name="channel_status", native_enum=False),
            nullable=False,
        ),
        sa.Column("countdown_seconds", sa.Integer(), nullable=True),
        sa.Column(
            "countdown_kind",
            sa.Enum(*COUNTDOWN_KINDS, name="countdown_kind", native_enum=False),
            nullable=True,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_channels_sequence_number", "channels", ["sequence_number"])
    op.create_index("ix_channels_status", "channels", ["status"])


def downgrade() -> None:
    """Drop channels table."""
    op.drop_index("ix_channels_status", table_name="channels")
    op.drop_index("ix_channels_sequence_number", table_name="channels")
    op.drop_table("channels")
