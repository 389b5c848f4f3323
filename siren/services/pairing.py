from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy.orm import Session, sessionmaker

from siren.db.models import EmergencyRelationship
from siren.services.code_store import CodeOwner, CodeStore
from siren.services.relationship_graph import RelationshipGraph

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class PairingResult:
    owner: CodeOwner
    owner_user_id: str
    relationship: EmergencyRelationship


class ContactPairing:
    """Redeem an auth code and record the contact edge in one transaction.

    If the relationship cannot be recorded the code stays unconsumed, so the
    contact can try again with the same code.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        code_store: CodeStore,
        graph: RelationshipGraph,
    ) -> None:
        self.session_factory = session_factory
        self.code_store = code_store
        self.graph = graph

    def pair(
        self,
        code: str,
        contact_name: str,
        *,
        contact_device_id: str | None = None,
        contact_push_token: str | None = None,
        contact_phone: str | None = None,
        has_app: bool = True,
    ) -> PairingResult:
        with self.session_factory() as db:
            owner = self.code_store.redeem(code, redeemed_by=contact_name, db=db)
            owner_user_id = owner.owner_user_id or owner.owner_device_id
            relationship = self.graph.add_relationship(
                owner_user_id,
                contact_name,
                contact_device_id,
                contact_push_token,
                owner_device_id=owner.owner_device_id,
                contact_phone=contact_phone,
                has_app=has_app,
                db=db,
            )
            db.commit()
        logger.info("Paired contact %s with owner %s", contact_name, owner_user_id)
        return PairingResult(owner=owner, owner_user_id=owner_user_id, relationship=relationship)
