"""Add notification logs and contact delivery preferences

Revision ID: c3e8f1a2b9d6
Revises: a7c1e2d3f4b5
Create Date: 2026-10-19

"""

from typing import Sequence, Union

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "c3e8f1a2b9d6"
down_revision: Union[str, Sequence[str], None] = "a7c1e2d3f4b5"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    # Delivery preferences on user contacts
    op.add_column(
        "user_contacts",
        sa.Column("reminders_enabled", sa.Boolean(), nullable=False, server_default="true"),
    )
    op.add_column("user_contacts", sa.Column("quiet_hours_start", sa.Time(), nullable=True))
    op.add_column("user_contacts", sa.Column("quiet_hours_end", sa.Time(), nullable=True))
    op.add_column(
        "user_contacts",
        sa.Column("timezone", sa.String(length=64), nullable=False, server_default="UTC"),
    )

    # Create notification_logs table
    op.create_table(
        "notification_logs",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("user_id", sa.UUID(), nullable=False),
        sa.Column("item_id", sa.UUID(), nullable=False),
        sa.Column("channel", sa.String(length=30), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("reminder_time_minutes", sa.Integer(), nullable=False),
        sa.Column("recipient", sa.String(length=255), nullable=True),
        sa.Column("message_content", sa.Text(), nullable=False),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("status_code", sa.Integer(), nullable=True),
        sa.Column(
            "details",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "idx_notification_logs_status_created",
        "notification_logs",
        ["status", "created_at"],
        unique=False,
    )
    op.create_index(
        "idx_notification_logs_item_id",
        "notification_logs",
        ["item_id"],
        unique=False,
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index("idx_notification_logs_item_id", table_name="notification_logs")
    op.drop_index("idx_notification_logs_status_created", table_name="notification_logs")
    op.drop_table("notification_logs")
    op.drop_column("user_contacts", "timezone")
    op.drop_column("user_contacts", "quiet_hours_end")
    op.drop_column("user_contacts", "quiet_hours_start")
    op.drop_column("user_contacts", "reminders_enabled")
