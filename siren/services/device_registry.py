from __future__ import annotations

import logging
import threading
from dataclasses import dataclass

from sqlalchemy import update
from sqlalchemy.orm import Session, sessionmaker

from siren.core.clock import Clock, utcnow
from siren.core.errors import DeviceAlreadyClaimed, DeviceNotFound, DeviceOwnerMismatch
from siren.db.models import AuthCode, Device
from siren.services.relationship_graph import RelationshipGraph

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class TokenUpdateResult:
    device: Device
    changed: bool
    relationships_updated: int


class DeviceRegistry:
    def __init__(
        self,
        session_factory: sessionmaker[Session],
        graph: RelationshipGraph,
        *,
        clock: Clock = utcnow,
    ) -> None:
        self.session_factory = session_factory
        self.graph = graph
        self.clock = clock
        self._lock = threading.Lock()

    def register(
        self,
        device_id: str,
        owner_user_id: str,
        display_name: str | None,
        push_token: str | None = None,
    ) -> Device:
        device_id = device_id.strip()
        with self._lock, self.session_factory() as db:
            now = self.clock()
            device = db.get(Device, device_id)
            if device is None:
                device = Device(device_id=device_id, owner_user_id=owner_user_id, created_at=now)
                db.add(device)
                logger.info("Registering new device %s for owner %s", device_id, owner_user_id)
            elif device.owner_user_id != owner_user_id:
                if device.registered:
                    raise DeviceAlreadyClaimed(device_id)
                # A deregistered device may change hands; the token belonged to
                # the previous owner's phone.
                logger.info(
                    "Device %s reclaimed by owner %s (previous owner %s)",
                    device_id,
                    owner_user_id,
                    device.owner_user_id,
                )
                device.owner_user_id = owner_user_id
                device.push_token = None
                device.push_token_flagged_at = None

            if display_name:
                device.display_name = display_name
            if not device.registered:
                device.registered = True
                device.registered_at = now
                device.deregistered_at = None
            device.updated_at = now
            db.commit()
            db.refresh(device)

        if push_token:
            return self.update_push_token(device_id, push_token).device
        return device

    def deregister(self, device_id: str, owner_user_id: str | None = None) -> Device:
        """Mark the device unregistered.

        Owner and push token are kept so that the owner can reconnect without
        pairing again. Any outstanding auth code for the device is revoked.
        """
        with self._lock, self.session_factory() as db:
            device = db.get(Device, device_id)
            if device is None:
                raise DeviceNotFound(device_id)
            if owner_user_id and device.owner_user_id != owner_user_id:
                raise DeviceOwnerMismatch(device_id)
            now = self.clock()
            if device.registered:
                device.registered = False
                device.deregistered_at = now
                device.updated_at = now
            db.execute(
                update(AuthCode)
                .where(
                    AuthCode.owner_device_id == device_id,
                    AuthCode.consumed_at.is_(None),
                    AuthCode.revoked_at.is_(None),
                    AuthCode.expired_at.is_(None),
                )
                .values(revoked_at=now)
                .execution_options(synchronize_session=False)
            )
            db.commit()
            db.refresh(device)
        logger.info("Device %s deregistered", device_id)
        return device

    def update_push_token(self, device_id: str, token: str) -> TokenUpdateResult:
        with self._lock, self.session_factory() as db:
            device = db.get(Device, device_id)
            if device is None:
                raise DeviceNotFound(device_id)
            changed = device.push_token != token
            relationships_updated = 0
            if changed:
                # Only a rotation leaves stale copies on relationship rows.
                previous_token = device.push_token
                device.push_token = token
                device.push_token_flagged_at = None
                device.updated_at = self.clock()
                if previous_token is not None:
                    relationships_updated = self.graph.propagate_token_change(
                        device_id, token, db=db, previous_token=previous_token
                    )
            elif device.push_token_flagged_at is not None:
                # Same token re-registered by the client; trust it again.
                device.push_token_flagged_at = None
            db.commit()
            db.refresh(device)
        if changed:
            logger.info(
                "Push token for device %s updated (%s relationship(s) refreshed)",
                device_id,
                relationships_updated,
            )
        return TokenUpdateResult(device=device, changed=changed, relationships_updated=relationships_updated)

    def is_registered(self, device_id: str) -> bool:
        with self.session_factory() as db:
            device = db.get(Device, device_id)
            return bool(device and device.registered)

    def get(self, device_id: str) -> Device:
        with self.session_factory() as db:
            device = db.get(Device, device_id)
            if device is None:
                raise DeviceNotFound(device_id)
            return device

    def flag_push_token(self, token: str) -> int:
        with self._lock, self.session_factory() as db:
            flagged = db.execute(
                update(Device)
                .where(Device.push_token == token, Device.push_token_flagged_at.is_(None))
                .values(push_token_flagged_at=self.clock())
                .execution_options(synchronize_session=False)
            ).rowcount
            db.commit()
        if flagged:
            logger.warning("Flagged %s device(s) holding a rejected push token", flagged)
        return flagged
