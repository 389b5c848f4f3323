"""Service-layer error taxonomy.

Every error carries a machine-readable ``code`` (e.g. ``code_expired``), a
``kind`` shared by a family of errors and the HTTP status the API layer maps
it to.
"""

from __future__ import annotations


class ServiceError(Exception):
    kind = "internal"
    status_code = 500

    def __init__(self, code: str, detail: str | None = None) -> None:
        self.code = code
        self.detail = detail or code
        super().__init__(self.detail)


class NotFoundError(ServiceError):
    kind = "not_found"
    status_code = 404


class ExpiredError(ServiceError):
    kind = "expired"
    status_code = 410


class ConflictError(ServiceError):
    kind = "conflict"
    status_code = 409


class PayloadValidationError(ServiceError):
    kind = "validation_error"
    status_code = 422


class UpstreamUnavailableError(ServiceError):
    kind = "upstream_unavailable"
    status_code = 503


# Devices
class DeviceNotFound(NotFoundError):
    def __init__(self, device_id: str) -> None:
        super().__init__("device_not_found", f"Device {device_id} is unknown")


class DeviceNotRegistered(NotFoundError):
    def __init__(self, device_id: str) -> None:
        super().__init__("device_not_registered", f"Device {device_id} has no confirmed registration")


class DeviceAlreadyClaimed(ConflictError):
    def __init__(self, device_id: str) -> None:
        super().__init__("device_already_claimed", f"Device {device_id} is registered to another owner")


class DeviceOwnerMismatch(ConflictError):
    def __init__(self, device_id: str) -> None:
        super().__init__("device_owner_mismatch", f"Device {device_id} belongs to a different owner")


# Auth codes
class CodeNotFound(NotFoundError):
    def __init__(self) -> None:
        super().__init__("code_not_found", "Authentication code does not exist")


class CodeExpired(ExpiredError):
    def __init__(self) -> None:
        super().__init__("code_expired", "Authentication code has expired")


class CodeRevoked(ExpiredError):
    def __init__(self) -> None:
        super().__init__("code_revoked", "Authentication code was cancelled")


class CodeAlreadyConsumed(ConflictError):
    def __init__(self) -> None:
        super().__init__("code_already_consumed", "Authentication code was already redeemed")


class CodeSpaceExhausted(ConflictError):
    def __init__(self) -> None:
        super().__init__("code_space_exhausted", "Could not allocate a unique authentication code")


# Relationships
class RelationshipNotFound(NotFoundError):
    def __init__(self, relationship_id: int) -> None:
        super().__init__("relationship_not_found", f"Relationship {relationship_id} not found")


class RelationshipExists(ConflictError):
    def __init__(self) -> None:
        super().__init__("relationship_exists", "Contact is already registered for this owner")


# Alerts
class AlertNotFound(NotFoundError):
    def __init__(self, alert_id: int) -> None:
        super().__init__("alert_not_found", f"Alert {alert_id} not found")
