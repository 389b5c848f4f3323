"""create device and auth code tables

Revision ID: 4e1b9c2d7a10
Revises:
Create Date: 2026-09-02 10:12:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "4e1b9c2d7a10"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "devices",
        sa.Column("device_id", sa.String(length=64), primary_key=True),
        sa.Column("owner_user_id", sa.String(length=64), nullable=True),
        sa.Column("display_name", sa.String(length=100), nullable=True),
        sa.Column("registered", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("push_token", sa.String(length=255), nullable=True),
        sa.Column("push_token_flagged_at", sa.TIMESTAMP(), nullable=True),
        sa.Column("registered_at", sa.TIMESTAMP(), nullable=True),
        sa.Column("deregistered_at", sa.TIMESTAMP(), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(), server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            server_onupdate=sa.text("CURRENT_TIMESTAMP"),
        ),
    )
    op.create_index("ix_devices_owner", "devices", ["owner_user_id"])
    op.create_index("ix_devices_push_token", "devices", ["push_token"])

    op.create_table(
        "auth_codes",
        sa.Column("code_id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("code_hash", sa.String(length=128), nullable=False),
        sa.Column("owner_device_id", sa.String(length=64), nullable=False),
        sa.Column("owner_user_id", sa.String(length=64), nullable=True),
        sa.Column("issued_at", sa.TIMESTAMP(), nullable=False),
        sa.Column("expires_at", sa.TIMESTAMP(), nullable=False),
        sa.Column("consumed_at", sa.TIMESTAMP(), nullable=True),
        sa.Column("consumed_by", sa.String(length=100), nullable=True),
        sa.Column("revoked_at", sa.TIMESTAMP(), nullable=True),
        sa.Column("expired_at", sa.TIMESTAMP(), nullable=True),
        sa.UniqueConstraint("code_hash", name="uq_auth_codes_hash"),
    )
    op.create_index("ix_auth_codes_owner_device", "auth_codes", ["owner_device_id"])
    op.create_index("ix_auth_codes_expires_at", "auth_codes", ["expires_at"])


def downgrade() -> None:
    op.drop_index("ix_auth_codes_expires_at", table_name="auth_codes")
    op.drop_index("ix_auth_codes_owner_device", table_name="auth_codes")
    op.drop_table("auth_codes")
    op.drop_index("ix_devices_push_token", table_name="devices")
    op.drop_index("ix_devices_owner", table_name="devices")
    op.drop_table("devices")
