from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, constr, field_validator

from siren.db.models import EmergencyRelationship


class AddContactRequest(BaseModel):
    name: constr(strip_whitespace=True, min_length=1, max_length=100)  # type: ignore[valid-type]
    phone_number: constr(strip_whitespace=True, max_length=32) | None = None  # type: ignore[valid-type]
    auth_code: constr(strip_whitespace=True, pattern=r"^\d{6}$")  # type: ignore[valid-type]
    apns_token: constr(strip_whitespace=True, max_length=255) | None = None  # type: ignore[valid-type]
    has_app: bool = True
    device_id: constr(strip_whitespace=True, max_length=64) | None = None  # type: ignore[valid-type]

    @field_validator("phone_number", "apns_token", "device_id")
    @classmethod
    def blank_to_none(cls, v: str | None) -> str | None:
        return v or None


class ContactAdded(BaseModel):
    relationship_id: int
    owner_user_id: str
    owner_device_id: str
    owner_name: str | None


class ContactOut(BaseModel):
    relationship_id: int
    name: str
    phone_number: str | None
    device_id: str | None
    has_app: bool
    has_push_token: bool
    token_flagged: bool
    created_at: datetime | None = None

    @classmethod
    def from_model(cls, relationship: EmergencyRelationship) -> "ContactOut":
        return cls(
            relationship_id=relationship.relationship_id,
            name=relationship.contact_name,
            phone_number=relationship.contact_phone,
            device_id=relationship.contact_device_id,
            has_app=relationship.has_app,
            has_push_token=bool(relationship.contact_push_token),
            token_flagged=relationship.token_flagged_at is not None,
            created_at=relationship.created_at,
        )


class ContactList(BaseModel):
    user_id: str
    contacts: list[ContactOut]
