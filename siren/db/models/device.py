from datetime import datetime

from sqlalchemy import TIMESTAMP, Boolean, Index, String, func
from sqlalchemy.orm import Mapped, mapped_column

from siren.db.base import Base


class Device(Base):
    __tablename__ = "devices"
    __table_args__ = (
        Index("ix_devices_owner", "owner_user_id"),
        Index("ix_devices_push_token", "push_token"),
    )

    device_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    owner_user_id: Mapped[str | None] = mapped_column(String(64))
    display_name: Mapped[str | None] = mapped_column(String(100))
    registered: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default="0")
    push_token: Mapped[str | None] = mapped_column(String(255))
    push_token_flagged_at: Mapped[datetime | None] = mapped_column(TIMESTAMP)
    registered_at: Mapped[datetime | None] = mapped_column(TIMESTAMP)
    deregistered_at: Mapped[datetime | None] = mapped_column(TIMESTAMP)
    created_at: Mapped[datetime | None] = mapped_column(TIMESTAMP, server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(TIMESTAMP, server_default=func.now(), onupdate=func.now())
