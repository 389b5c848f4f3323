from datetime import datetime

from sqlalchemy import TIMESTAMP, Boolean, Index, String, func
from sqlalchemy.orm import Mapped, mapped_column

from siren.db.base import Base
from siren.db.types import BIGINT


class EmergencyRelationship(Base):
    __tablename__ = "emergency_relationships"
    __table_args__ = (
        Index("ix_relationships_owner", "owner_user_id"),
        Index("ix_relationships_contact_device", "contact_device_id"),
    )

    relationship_id: Mapped[int] = mapped_column(BIGINT, primary_key=True, autoincrement=True)
    owner_user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    owner_device_id: Mapped[str | None] = mapped_column(String(64))
    contact_name: Mapped[str] = mapped_column(String(100), nullable=False)
    contact_phone: Mapped[str | None] = mapped_column(String(32))
    contact_device_id: Mapped[str | None] = mapped_column(String(64))
    contact_push_token: Mapped[str | None] = mapped_column(String(255))
    has_app: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default="1")
    token_flagged_at: Mapped[datetime | None] = mapped_column(TIMESTAMP)
    created_at: Mapped[datetime | None] = mapped_column(TIMESTAMP, server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(TIMESTAMP, server_default=func.now(), onupdate=func.now())
