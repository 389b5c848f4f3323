from __future__ import annotations

import logging
import threading

from sqlalchemy import or_, select, update
from sqlalchemy.orm import Session, sessionmaker

from siren.core.clock import Clock, utcnow
from siren.core.config import settings
from siren.core.errors import RelationshipExists, RelationshipNotFound
from siren.db.models import Device, EmergencyRelationship

logger = logging.getLogger(__name__)


class RelationshipGraph:
    """Owner -> contact edges used to resolve who gets an owner's alerts."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        *,
        clock: Clock = utcnow,
        allow_duplicates: bool | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.clock = clock
        self.allow_duplicates = (
            settings.allow_duplicate_contacts if allow_duplicates is None else allow_duplicates
        )
        self._lock = threading.Lock()

    def add_relationship(
        self,
        owner_user_id: str,
        contact_name: str,
        contact_device_id: str | None,
        contact_push_token: str | None,
        *,
        owner_device_id: str | None = None,
        contact_phone: str | None = None,
        has_app: bool = True,
        db: Session | None = None,
    ) -> EmergencyRelationship:
        """Record an owner -> contact edge.

        When ``db`` is given the insert joins the caller's transaction and the
        caller commits; otherwise it runs in its own session.
        """
        fields = dict(
            owner_user_id=owner_user_id,
            owner_device_id=owner_device_id,
            contact_name=contact_name,
            contact_phone=contact_phone or None,
            contact_device_id=contact_device_id,
            contact_push_token=contact_push_token,
            has_app=has_app,
        )
        if db is not None:
            with self._lock:
                return self._add(db, **fields)
        with self._lock, self.session_factory() as own_db:
            relationship = self._add(own_db, **fields)
            own_db.commit()
            own_db.refresh(relationship)
            return relationship

    def remove_relationship(self, owner_user_id: str, relationship_id: int) -> None:
        with self._lock, self.session_factory() as db:
            relationship = db.scalar(
                select(EmergencyRelationship).where(
                    EmergencyRelationship.relationship_id == relationship_id,
                    EmergencyRelationship.owner_user_id == owner_user_id,
                )
            )
            if relationship is None:
                raise RelationshipNotFound(relationship_id)
            db.delete(relationship)
            db.commit()
        logger.info("Removed relationship %s for owner %s", relationship_id, owner_user_id)

    def propagate_token_change(
        self,
        device_id: str,
        new_token: str | None,
        db: Session | None = None,
        previous_token: str | None = None,
    ) -> int:
        """Point every relationship that references ``device_id`` as a contact at ``new_token``.

        Rows recorded by token alone (no contact device) that still hold
        ``previous_token`` are adopted by ``device_id`` first, so they rotate too.
        When ``db`` is given the update joins the caller's transaction and the
        caller commits; otherwise it runs in its own session.
        """
        if db is not None:
            return self._propagate(db, device_id, new_token, previous_token)
        with self._lock, self.session_factory() as own_db:
            updated = self._propagate(own_db, device_id, new_token, previous_token)
            own_db.commit()
            return updated

    def contacts_of(self, owner_user_id: str) -> list[EmergencyRelationship]:
        with self.session_factory() as db:
            return list(
                db.scalars(
                    select(EmergencyRelationship)
                    .where(EmergencyRelationship.owner_user_id == owner_user_id)
                    .order_by(EmergencyRelationship.relationship_id)
                ).all()
            )

    def flag_stale_token(self, token: str) -> int:
        with self._lock, self.session_factory() as db:
            flagged = db.execute(
                update(EmergencyRelationship)
                .where(
                    EmergencyRelationship.contact_push_token == token,
                    EmergencyRelationship.token_flagged_at.is_(None),
                )
                .values(token_flagged_at=self.clock())
                .execution_options(synchronize_session=False)
            ).rowcount
            db.commit()
        if flagged:
            logger.warning("Flagged %s relationship(s) holding a rejected push token", flagged)
        return flagged

    def _add(self, db: Session, **fields) -> EmergencyRelationship:
        contact_device_id = fields["contact_device_id"]
        contact_push_token = fields["contact_push_token"]
        if contact_device_id and not contact_push_token:
            device = db.get(Device, contact_device_id)
            if device is not None:
                fields["contact_push_token"] = device.push_token
        elif contact_push_token and not contact_device_id:
            fields["contact_device_id"] = db.scalar(
                select(Device.device_id)
                .where(Device.push_token == contact_push_token)
                .order_by(Device.updated_at.desc())
                .limit(1)
            )

        if not self.allow_duplicates and self._has_duplicate(
            db, fields["owner_user_id"], fields["contact_device_id"], fields["contact_push_token"]
        ):
            raise RelationshipExists()

        relationship = EmergencyRelationship(created_at=self.clock(), **fields)
        db.add(relationship)
        db.flush()
        logger.info(
            "Added emergency contact %s for owner %s (relationship %s)",
            fields["contact_name"],
            fields["owner_user_id"],
            relationship.relationship_id,
        )
        return relationship

    def _propagate(self, db: Session, device_id: str, new_token: str | None, previous_token: str | None) -> int:
        if previous_token:
            db.execute(
                update(EmergencyRelationship)
                .where(
                    EmergencyRelationship.contact_device_id.is_(None),
                    EmergencyRelationship.contact_push_token == previous_token,
                )
                .values(contact_device_id=device_id)
                .execution_options(synchronize_session=False)
            )
        updated = db.execute(
            update(EmergencyRelationship)
            .where(EmergencyRelationship.contact_device_id == device_id)
            .values(contact_push_token=new_token, token_flagged_at=None, updated_at=self.clock())
            .execution_options(synchronize_session=False)
        ).rowcount
        logger.info("Propagated push token of device %s to %s relationship(s)", device_id, updated)
        return updated

    @staticmethod
    def _has_duplicate(
        db: Session,
        owner_user_id: str,
        contact_device_id: str | None,
        contact_push_token: str | None,
    ) -> bool:
        matchers = []
        if contact_device_id:
            matchers.append(EmergencyRelationship.contact_device_id == contact_device_id)
        if contact_push_token:
            matchers.append(EmergencyRelationship.contact_push_token == contact_push_token)
        if not matchers:
            return False
        existing = db.scalar(
            select(EmergencyRelationship.relationship_id).where(
                EmergencyRelationship.owner_user_id == owner_user_id,
                or_(*matchers),
            )
        )
        return existing is not None
