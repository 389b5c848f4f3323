from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, constr, model_validator

from siren.db.models import AlertEvent, AlertRecipient


class EmergencyRequest(BaseModel):
    emergency_type: constr(strip_whitespace=True, min_length=1, max_length=32) = "emergency"  # type: ignore[valid-type]
    timestamp: datetime | None = None
    device_tokens: list[str] = Field(default_factory=list)
    message: constr(max_length=1000) | None = None  # type: ignore[valid-type]
    priority: Literal["critical", "high", "normal"] = "critical"
    user_id: constr(strip_whitespace=True, max_length=64) | None = None  # type: ignore[valid-type]
    device_id: constr(strip_whitespace=True, max_length=64) | None = None  # type: ignore[valid-type]

    @model_validator(mode="after")
    def validate_target(self) -> "EmergencyRequest":
        self.device_tokens = [token.strip() for token in self.device_tokens if token and token.strip()]
        if not (self.user_id or self.device_id or self.device_tokens):
            raise ValueError("emergency requires user_id, device_id, or device_tokens")
        return self


class AlertTriggered(BaseModel):
    alert_id: int
    status: str
    recipients: int


class RecipientOut(BaseModel):
    position: int
    name: str | None
    device_id: str | None
    outcome: str
    attempts: int
    last_error: str | None

    @classmethod
    def from_model(cls, recipient: AlertRecipient) -> "RecipientOut":
        return cls(
            position=recipient.position,
            name=recipient.contact_name,
            device_id=recipient.contact_device_id,
            outcome=recipient.outcome,
            attempts=recipient.attempts,
            last_error=recipient.last_error,
        )


class AlertOut(BaseModel):
    alert_id: int
    owner_user_id: str | None
    owner_device_id: str | None
    emergency_type: str
    priority: str
    status: str
    triggered_at: datetime
    dispatched_at: datetime | None
    completed_at: datetime | None
    recipients: list[RecipientOut]

    @classmethod
    def from_model(cls, event: AlertEvent) -> "AlertOut":
        return cls(
            alert_id=event.alert_id,
            owner_user_id=event.owner_user_id,
            owner_device_id=event.owner_device_id,
            emergency_type=event.emergency_type,
            priority=event.priority,
            status=event.status,
            triggered_at=event.triggered_at,
            dispatched_at=event.dispatched_at,
            completed_at=event.completed_at,
            recipients=[RecipientOut.from_model(r) for r in event.recipients],
        )


class AlertList(BaseModel):
    user_id: str
    alerts: list[AlertOut]
