from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, constr, field_validator

from siren.db.models import Device


class RegisterDeviceRequest(BaseModel):
    device_id: constr(strip_whitespace=True, min_length=1, max_length=64)  # type: ignore[valid-type]
    user_id: constr(strip_whitespace=True, min_length=1, max_length=64)  # type: ignore[valid-type]
    device_name: constr(strip_whitespace=True, max_length=100) | None = None  # type: ignore[valid-type]
    apns_token: constr(strip_whitespace=True, max_length=255) | None = None  # type: ignore[valid-type]

    @field_validator("device_name", "apns_token")
    @classmethod
    def blank_to_none(cls, v: str | None) -> str | None:
        return v or None


class DeregisterDeviceRequest(BaseModel):
    device_id: constr(strip_whitespace=True, min_length=1, max_length=64)  # type: ignore[valid-type]
    user_id: constr(strip_whitespace=True, max_length=64) | None = None  # type: ignore[valid-type]


class UpdateTokenRequest(BaseModel):
    device_id: constr(strip_whitespace=True, min_length=1, max_length=64)  # type: ignore[valid-type]
    apns_token: constr(strip_whitespace=True, min_length=1, max_length=255)  # type: ignore[valid-type]
    user_id: str | None = None


class DeviceOut(BaseModel):
    device_id: str
    owner_user_id: str | None
    display_name: str | None
    registered: bool
    has_push_token: bool
    push_token_flagged: bool
    registered_at: datetime | None = None

    @classmethod
    def from_model(cls, device: Device) -> "DeviceOut":
        return cls(
            device_id=device.device_id,
            owner_user_id=device.owner_user_id,
            display_name=device.display_name,
            registered=device.registered,
            has_push_token=bool(device.push_token),
            push_token_flagged=device.push_token_flagged_at is not None,
            registered_at=device.registered_at,
        )


class TokenUpdateOut(BaseModel):
    device_id: str
    changed: bool
    relationships_updated: int
