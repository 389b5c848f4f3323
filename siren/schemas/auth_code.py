from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, constr


class AuthCodeRequest(BaseModel):
    device_id: constr(strip_whitespace=True, min_length=1, max_length=64)  # type: ignore[valid-type]
    device_name: str | None = None
    user_id: str | None = None
    # Accepted for client compatibility; the TTL is fixed server-side.
    expires_in: int | None = None


class AuthCodeIssued(BaseModel):
    code: str
    expires_at: datetime
    expires_in: int = Field(..., description="Seconds until the code expires")


class AuthCodeLookup(BaseModel):
    name: str | None
    device_id: str
    has_app: bool
    owner_user_id: str | None = None


class AuthCodeStatus(BaseModel):
    device_id: str
    active: bool
    expires_at: datetime | None = None


class AuthCodeCancelled(BaseModel):
    device_id: str
    cancelled: int
