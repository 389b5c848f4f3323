from __future__ import annotations

import pytest

from siren.core.errors import RelationshipExists, RelationshipNotFound
from siren.services.relationship_graph import RelationshipGraph


def test_contacts_are_returned_in_insertion_order(graph):
    graph.add_relationship("owner1", "Alex", None, "tok-a")
    graph.add_relationship("owner1", "Blair", None, "tok-b")
    graph.add_relationship("owner2", "Casey", None, "tok-c")

    assert [c.contact_name for c in graph.contacts_of("owner1")] == ["Alex", "Blair"]
    assert [c.contact_name for c in graph.contacts_of("owner2")] == ["Casey"]
    assert graph.contacts_of("nobody") == []


def test_duplicates_allowed_by_default(graph):
    graph.add_relationship("owner1", "Alex", "phone-a", "tok-a")
    graph.add_relationship("owner1", "Alex", "phone-a", "tok-a")

    assert len(graph.contacts_of("owner1")) == 2


def test_duplicates_rejected_when_disabled(session_factory, clock):
    graph = RelationshipGraph(session_factory, clock=clock, allow_duplicates=False)
    graph.add_relationship("owner1", "Alex", "phone-a", "tok-a")

    with pytest.raises(RelationshipExists):
        graph.add_relationship("owner1", "Alex again", "phone-a", "tok-other")
    with pytest.raises(RelationshipExists):
        graph.add_relationship("owner1", "Alex", None, "tok-a")

    graph.add_relationship("owner2", "Alex", "phone-a", "tok-a")
    assert len(graph.contacts_of("owner1")) == 1


def test_contact_device_token_is_used_when_none_given(graph, registry):
    registry.register("phone-a", "alex", "Alex's phone", push_token="tok-from-device")

    relationship = graph.add_relationship("owner1", "Alex", "phone-a", None)

    assert relationship.contact_push_token == "tok-from-device"


def test_remove_relationship_is_scoped_to_owner(graph):
    kept = graph.add_relationship("owner1", "Alex", None, "tok-a")
    removed = graph.add_relationship("owner1", "Blair", None, "tok-b")

    with pytest.raises(RelationshipNotFound):
        graph.remove_relationship("owner2", removed.relationship_id)

    graph.remove_relationship("owner1", removed.relationship_id)
    assert [c.relationship_id for c in graph.contacts_of("owner1")] == [kept.relationship_id]

    with pytest.raises(RelationshipNotFound):
        graph.remove_relationship("owner1", removed.relationship_id)


def test_propagate_token_change_returns_count(graph):
    graph.add_relationship("owner1", "Alex", "phone-a", "old")
    graph.add_relationship("owner2", "Alex", "phone-a", "old")

    assert graph.propagate_token_change("phone-a", "new") == 2
    assert graph.propagate_token_change("phone-unknown", "new") == 0
    assert {c.contact_push_token for c in graph.contacts_of("owner1") + graph.contacts_of("owner2")} == {"new"}


def test_flag_stale_token_marks_rows_and_propagation_clears(graph):
    graph.add_relationship("owner1", "Alex", "phone-a", "dead-token")

    assert graph.flag_stale_token("dead-token") == 1
    assert graph.contacts_of("owner1")[0].token_flagged_at is not None

    graph.propagate_token_change("phone-a", "fresh-token")
    contact = graph.contacts_of("owner1")[0]
    assert contact.token_flagged_at is None
    assert contact.contact_push_token == "fresh-token"


def test_contact_device_is_resolved_from_token(graph, registry):
    registry.register("phone-a", "alex", "Alex's phone", push_token="tok-a")

    relationship = graph.add_relationship("owner1", "Alex", None, "tok-a")
    unknown = graph.add_relationship("owner1", "Blair", None, "tok-nobody")

    assert relationship.contact_device_id == "phone-a"
    assert unknown.contact_device_id is None


def test_propagation_adopts_rows_recorded_by_token_only(graph):
    graph.add_relationship("owner1", "Alex", None, "old")
    graph.add_relationship("owner2", "Alex", "phone-a", "old")
    graph.add_relationship("owner3", "Someone else", None, "unrelated")

    assert graph.propagate_token_change("phone-a", "new", previous_token="old") == 2

    alex = graph.contacts_of("owner1")[0]
    assert alex.contact_device_id == "phone-a"
    assert alex.contact_push_token == "new"
    assert graph.contacts_of("owner3")[0].contact_push_token == "unrelated"
