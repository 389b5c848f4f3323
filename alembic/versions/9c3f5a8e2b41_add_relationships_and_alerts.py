"""add emergency relationships and alert tables

Revision ID: 9c3f5a8e2b41
Revises: 4e1b9c2d7a10
Create Date: 2026-09-04 16:40:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "9c3f5a8e2b41"
down_revision: Union[str, Sequence[str], None] = "4e1b9c2d7a10"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "emergency_relationships",
        sa.Column("relationship_id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("owner_user_id", sa.String(length=64), nullable=False),
        sa.Column("owner_device_id", sa.String(length=64), nullable=True),
        sa.Column("contact_name", sa.String(length=100), nullable=False),
        sa.Column("contact_phone", sa.String(length=32), nullable=True),
        sa.Column("contact_device_id", sa.String(length=64), nullable=True),
        sa.Column("contact_push_token", sa.String(length=255), nullable=True),
        sa.Column("has_app", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("token_flagged_at", sa.TIMESTAMP(), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(), server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            server_onupdate=sa.text("CURRENT_TIMESTAMP"),
        ),
    )
    op.create_index("ix_relationships_owner", "emergency_relationships", ["owner_user_id"])
    op.create_index("ix_relationships_contact_device", "emergency_relationships", ["contact_device_id"])

    op.create_table(
        "alert_events",
        sa.Column("alert_id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("owner_user_id", sa.String(length=64), nullable=True),
        sa.Column("owner_device_id", sa.String(length=64), nullable=True),
        sa.Column("emergency_type", sa.String(length=32), nullable=False),
        sa.Column("priority", sa.String(length=16), nullable=False),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("triggered_at", sa.TIMESTAMP(), nullable=False),
        sa.Column("dispatched_at", sa.TIMESTAMP(), nullable=True),
        sa.Column("completed_at", sa.TIMESTAMP(), nullable=True),
    )
    op.create_index("ix_alert_events_owner_time", "alert_events", ["owner_user_id", "triggered_at"])

    op.create_table(
        "alert_recipients",
        sa.Column("recipient_id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column(
            "alert_id",
            sa.BigInteger(),
            sa.ForeignKey("alert_events.alert_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("relationship_id", sa.BigInteger(), nullable=True),
        sa.Column("contact_device_id", sa.String(length=64), nullable=True),
        sa.Column("contact_name", sa.String(length=100), nullable=True),
        sa.Column("push_token", sa.String(length=255), nullable=True),
        sa.Column("outcome", sa.String(length=20), nullable=False),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("last_error", sa.String(length=100), nullable=True),
        sa.Column("updated_at", sa.TIMESTAMP(), nullable=True),
    )
    op.create_index("ix_alert_recipients_alert", "alert_recipients", ["alert_id"])


def downgrade() -> None:
    op.drop_index("ix_alert_recipients_alert", table_name="alert_recipients")
    op.drop_table("alert_recipients")
    op.drop_index("ix_alert_events_owner_time", table_name="alert_events")
    op.drop_table("alert_events")
    op.drop_index("ix_relationships_contact_device", table_name="emergency_relationships")
    op.drop_index("ix_relationships_owner", table_name="emergency_relationships")
    op.drop_table("emergency_relationships")
