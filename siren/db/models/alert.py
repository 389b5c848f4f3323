from __future__ import annotations

from datetime import datetime

from sqlalchemy import TIMESTAMP, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from siren.db.base import Base
from siren.db.types import BIGINT

ALERT_STATUSES = (
    "created",
    "dispatching",
    "all_delivered",
    "partial_failure",
    "total_failure",
    "no_recipients",
    "debounced",
)
TERMINAL_ALERT_STATUSES = frozenset(
    {"all_delivered", "partial_failure", "total_failure", "no_recipients", "debounced"}
)
DELIVERY_OUTCOMES = ("pending", "delivered", "failed_retryable", "failed_permanent")


class AlertEvent(Base):
    __tablename__ = "alert_events"
    __table_args__ = (Index("ix_alert_events_owner_time", "owner_user_id", "triggered_at"),)

    alert_id: Mapped[int] = mapped_column(BIGINT, primary_key=True, autoincrement=True)
    owner_user_id: Mapped[str | None] = mapped_column(String(64))
    owner_device_id: Mapped[str | None] = mapped_column(String(64))
    emergency_type: Mapped[str] = mapped_column(String(32), nullable=False, default="emergency")
    priority: Mapped[str] = mapped_column(String(16), nullable=False, default="critical")
    message: Mapped[str | None] = mapped_column(Text)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="created")
    triggered_at: Mapped[datetime] = mapped_column(TIMESTAMP, nullable=False)
    dispatched_at: Mapped[datetime | None] = mapped_column(TIMESTAMP)
    completed_at: Mapped[datetime | None] = mapped_column(TIMESTAMP)

    recipients: Mapped[list[AlertRecipient]] = relationship(
        back_populates="alert",
        order_by="AlertRecipient.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_ALERT_STATUSES


class AlertRecipient(Base):
    __tablename__ = "alert_recipients"
    __table_args__ = (Index("ix_alert_recipients_alert", "alert_id"),)

    recipient_id: Mapped[int] = mapped_column(BIGINT, primary_key=True, autoincrement=True)
    alert_id: Mapped[int] = mapped_column(
        BIGINT, ForeignKey("alert_events.alert_id", ondelete="CASCADE"), nullable=False
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    relationship_id: Mapped[int | None] = mapped_column(BIGINT)
    contact_device_id: Mapped[str | None] = mapped_column(String(64))
    contact_name: Mapped[str | None] = mapped_column(String(100))
    push_token: Mapped[str | None] = mapped_column(String(255))
    outcome: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_error: Mapped[str | None] = mapped_column(String(100))
    updated_at: Mapped[datetime | None] = mapped_column(TIMESTAMP)

    alert: Mapped[AlertEvent] = relationship(back_populates="recipients")
