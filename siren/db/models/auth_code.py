from datetime import datetime

from sqlalchemy import TIMESTAMP, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from siren.db.base import Base
from siren.db.types import BIGINT


class AuthCode(Base):
    __tablename__ = "auth_codes"
    __table_args__ = (
        Index("ix_auth_codes_owner_device", "owner_device_id"),
        Index("ix_auth_codes_expires_at", "expires_at"),
    )

    code_id: Mapped[int] = mapped_column(BIGINT, primary_key=True, autoincrement=True)
    code_hash: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    owner_device_id: Mapped[str] = mapped_column(String(64), nullable=False)
    owner_user_id: Mapped[str | None] = mapped_column(String(64))
    issued_at: Mapped[datetime] = mapped_column(TIMESTAMP, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(TIMESTAMP, nullable=False)
    consumed_at: Mapped[datetime | None] = mapped_column(TIMESTAMP)
    consumed_by: Mapped[str | None] = mapped_column(String(100))
    revoked_at: Mapped[datetime | None] = mapped_column(TIMESTAMP)
    expired_at: Mapped[datetime | None] = mapped_column(TIMESTAMP)
