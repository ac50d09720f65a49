"""create discovery tables

Revision ID: 4b7d2e91c0a3
Revises:
Create Date: 2026-10-18 09:12:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "4b7d2e91c0a3"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "profiles",
        sa.Column("id", sa.String(128), primary_key=True),
        sa.Column("first_name", sa.String(100), nullable=False, server_default=sa.text("'User'")),
        sa.Column("last_name", sa.String(100), nullable=False, server_default=sa.text("''")),
        sa.Column("birth_date", sa.Date(), nullable=True),
        sa.Column("gender", sa.String(32), nullable=True),
        sa.Column("interested_in", sa.JSON(), nullable=True, server_default=sa.text("'[]'")),
        sa.Column("looking_for", sa.JSON(), nullable=True, server_default=sa.text("'[]'")),
        sa.Column("interests", sa.JSON(), nullable=True, server_default=sa.text("'[]'")),
        sa.Column("photos", sa.JSON(), nullable=True, server_default=sa.text("'[]'")),
        sa.Column("location_latitude", sa.Float(), nullable=True),
        sa.Column("location_longitude", sa.Float(), nullable=True),
        sa.Column("rating", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("blocked_ids", sa.JSON(), nullable=True, server_default=sa.text("'[]'")),
        sa.Column("subscription_tier", sa.String(32), nullable=False, server_default=sa.text("'free'")),
        sa.Column("onboarding_completed", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")),
    )

    op.create_table(
        "interest_edges",
        sa.Column("actor_id", sa.String(128), primary_key=True),
        sa.Column("target_id", sa.String(128), primary_key=True),
        sa.Column("decision", sa.String(20), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")),
    )

    op.create_table(
        "blocks",
        sa.Column("blocker_id", sa.String(128), primary_key=True),
        sa.Column("blocked_id", sa.String(128), primary_key=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")),
    )

    # Match id is the canonical pair key, so the primary key serializes creation
    op.create_table(
        "matches",
        sa.Column("id", sa.String(300), primary_key=True),
        sa.Column("user1_id", sa.String(128), nullable=False),
        sa.Column("user2_id", sa.String(128), nullable=False),
        sa.Column("participants", sa.JSON(), nullable=True, server_default=sa.text("'{}'")),
        sa.Column("unread_counts", sa.JSON(), nullable=True, server_default=sa.text("'{}'")),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")),
        sa.Column("last_message_at", sa.DateTime(), nullable=True),
    )

    op.create_table(
        "conversation_channels",
        sa.Column("id", sa.String(300), primary_key=True),
        sa.Column("user1_id", sa.String(128), nullable=False),
        sa.Column("user2_id", sa.String(128), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")),
        sa.Column("last_message_at", sa.DateTime(), nullable=True),
    )

    op.create_table(
        "quota_records",
        sa.Column("user_id", sa.String(128), primary_key=True),
        sa.Column("day", sa.Date(), primary_key=True),
        sa.Column("count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")),
    )

    # Create indexes
    op.create_index("ix_interest_edges_target_id", "interest_edges", ["target_id"])
    op.create_index("ix_blocks_blocked_id", "blocks", ["blocked_id"])
    op.create_index("ix_matches_user1_id", "matches", ["user1_id"])
    op.create_index("ix_matches_user2_id", "matches", ["user2_id"])
    op.create_index("ix_quota_records_day", "quota_records", ["day"])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index("ix_quota_records_day", table_name="quota_records")
    op.drop_index("ix_matches_user2_id", table_name="matches")
    op.drop_index("ix_matches_user1_id", table_name="matches")
    op.drop_index("ix_blocks_blocked_id", table_name="blocks")
    op.drop_index("ix_interest_edges_target_id", table_name="interest_edges")
    op.drop_table("quota_records")
    op.drop_table("conversation_channels")
    op.drop_table("matches")
    op.drop_table("blocks")
    op.drop_table("interest_edges")
    op.drop_table("profiles")
