from siren.db.models.alert import AlertEvent, AlertRecipient
from siren.db.models.auth_code import AuthCode
from siren.db.models.device import Device
from siren.db.models.relationship import EmergencyRelationship
from siren.db.base import Base

__all__ = [
    "Base",
    "Device",
    "AuthCode",
    "EmergencyRelationship",
    "AlertEvent",
    "AlertRecipient",
]
