from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status

from siren.api.deps import get_graph, get_pairing
from siren.schemas.common import ApiResponse
from siren.schemas.contact import AddContactRequest, ContactAdded, ContactList, ContactOut
from siren.services.pairing import ContactPairing
from siren.services.relationship_graph import RelationshipGraph

router = APIRouter(prefix="/contacts", tags=["contacts"])


@router.post("", response_model=ApiResponse[ContactAdded], status_code=status.HTTP_200_OK)
def add_contact(
    payload: AddContactRequest,
    pairing: ContactPairing = Depends(get_pairing),
) -> ApiResponse[ContactAdded]:
    result = pairing.pair(
        payload.auth_code,
        payload.name,
        contact_device_id=payload.device_id,
        contact_push_token=payload.apns_token,
        contact_phone=payload.phone_number,
        has_app=payload.has_app,
    )
    return ApiResponse(
        data=ContactAdded(
            relationship_id=result.relationship.relationship_id,
            owner_user_id=result.owner_user_id,
            owner_device_id=result.owner.owner_device_id,
            owner_name=result.owner.owner_display_name,
        )
    )


@router.get("", response_model=ApiResponse[ContactList])
def list_contacts(
    user_id: str = Query(..., min_length=1, max_length=64),
    graph: RelationshipGraph = Depends(get_graph),
) -> ApiResponse[ContactList]:
    contacts = [ContactOut.from_model(r) for r in graph.contacts_of(user_id)]
    return ApiResponse(data=ContactList(user_id=user_id, contacts=contacts))


@router.delete("/{relationship_id}", response_model=ApiResponse[ContactList])
def remove_contact(
    relationship_id: int,
    user_id: str = Query(..., min_length=1, max_length=64),
    graph: RelationshipGraph = Depends(get_graph),
) -> ApiResponse[ContactList]:
    graph.remove_relationship(user_id, relationship_id)
    contacts = [ContactOut.from_model(r) for r in graph.contacts_of(user_id)]
    return ApiResponse(data=ContactList(user_id=user_id, contacts=contacts))
