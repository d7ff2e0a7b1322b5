"""Add prayer push subscriptions table.

Revision ID: 4b1e9d0c7a52
Revises:
Create Date: 2026-10-19 09:12:40.118204
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision = "4b1e9d0c7a52"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
  """Upgrade schema."""
  op.create_table(
    "prayer_push_subscriptions",
    sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
    sa.Column("endpoint", sa.Text(), nullable=False),
    sa.Column("p256dh", sa.Text(), nullable=False),
    sa.Column("auth", sa.Text(), nullable=False),
    sa.Column("expiration_time", sa.BigInteger(), nullable=True),
    sa.Column("lat", sa.Float(), nullable=False),
    sa.Column("lng", sa.Float(), nullable=False),
    sa.Column("method", sa.Integer(), nullable=False),
    sa.Column("location_name", sa.Text(), nullable=False),
    sa.Column("timezone", sa.Text(), nullable=False),
    sa.Column("language", sa.Text(), nullable=True),
    sa.Column("active", sa.Boolean(), server_default=sa.text("true"), nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    sa.Column("last_notified_key", sa.Text(), nullable=True),
    sa.Column("last_notified_at", sa.DateTime(timezone=True), nullable=True),
    sa.PrimaryKeyConstraint("id"),
  )
  op.create_index("ux_prayer_push_subscriptions_endpoint", "prayer_push_subscriptions", ["endpoint"], unique=True)
  op.create_index("ix_prayer_push_subscriptions_active_updated_at", "prayer_push_subscriptions", ["active", "updated_at"], unique=False)


def downgrade() -> None:
  """Downgrade schema."""
  op.drop_index("ix_prayer_push_subscriptions_active_updated_at", table_name="prayer_push_subscriptions")
  op.drop_index("ux_prayer_push_subscriptions_endpoint", table_name="prayer_push_subscriptions")
  op.drop_table("prayer_push_subscriptions")
