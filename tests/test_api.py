from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from siren.main import create_app
from siren.services.push_gateway import PushOutcome, PushResult

from tests.conftest import FakeGateway


@pytest.fixture()
def api(session_factory, clock):
    gateway = FakeGateway({"dead-token": [PushResult(PushOutcome.PERMANENT_ERROR, "Unregistered")]})
    app = create_app(session_factory=session_factory, push_gateway=gateway, clock=clock, start_sweeper=False)
    with TestClient(app) as client:
        client.gateway = gateway
        yield client


def _register(api, device_id="ring-1", user_id="owner-1", name="Larry's Ring", token=None):
    payload = {"device_id": device_id, "user_id": user_id, "device_name": name}
    if token:
        payload["apns_token"] = token
    return api.post("/api/register-device", json=payload)


def _issue_code(api, device_id="ring-1") -> str:
    resp = api.post("/api/auth-code", json={"device_id": device_id, "expires_in": 99999})
    assert resp.status_code == 200
    return resp.json()["data"]["code"]


def test_healthz(api):
    assert api.get("/healthz").json() == {"status": "ok"}


def test_register_device_and_fetch(api):
    resp = _register(api, token="apns-ring")
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["data"]["device_id"] == "ring-1"
    assert body["data"]["registered"] is True
    assert body["data"]["has_push_token"] is True

    fetched = api.get("/api/devices/ring-1").json()["data"]
    assert fetched["owner_user_id"] == "owner-1"
    assert fetched["display_name"] == "Larry's Ring"


def test_register_device_claimed_by_another_owner(api):
    _register(api)
    resp = _register(api, user_id="someone-else")

    assert resp.status_code == 409
    assert resp.json() == {
        "success": False,
        "error": {
            "kind": "conflict",
            "code": "device_already_claimed",
            "message": "Device ring-1 is registered to another owner",
        },
    }


def test_unknown_device_is_not_found(api):
    resp = api.get("/api/devices/nope")

    assert resp.status_code == 404
    assert resp.json()["error"]["kind"] == "not_found"
    assert resp.json()["error"]["code"] == "device_not_found"


def test_auth_code_lifecycle(api):
    _register(api, token="apns-ring")

    resp = api.post("/api/auth-code", json={"device_id": "ring-1"})
    data = resp.json()["data"]
    assert len(data["code"]) == 6
    assert data["expires_in"] == 600

    lookup = api.get("/api/auth-code", params={"code": data["code"]}).json()["data"]
    assert lookup == {"name": "Larry's Ring", "device_id": "ring-1", "has_app": True, "owner_user_id": "owner-1"}

    status = api.get("/api/auth-code/active", params={"device_id": "ring-1"}).json()["data"]
    assert status["active"] is True

    cancelled = api.delete("/api/auth-code", params={"device_id": "ring-1"}).json()["data"]
    assert cancelled == {"device_id": "ring-1", "cancelled": 1}

    resp = api.get("/api/auth-code", params={"code": data["code"]})
    assert resp.status_code == 410
    assert resp.json()["error"]["code"] == "code_revoked"


def test_auth_code_for_unregistered_device(api):
    resp = api.post("/api/auth-code", json={"device_id": "ghost"})

    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "device_not_registered"


def test_pairing_and_contact_management(api):
    _register(api)
    code = _issue_code(api)

    resp = api.post(
        "/api/contacts",
        json={"name": "Mom", "phone_number": "+15551234567", "auth_code": code, "apns_token": "apns-mom"},
    )
    assert resp.status_code == 200
    added = resp.json()["data"]
    assert added["owner_user_id"] == "owner-1"
    assert added["owner_device_id"] == "ring-1"
    assert added["owner_name"] == "Larry's Ring"

    again = api.post("/api/contacts", json={"name": "Dad", "auth_code": code})
    assert again.status_code == 409
    assert again.json()["error"]["code"] == "code_already_consumed"

    contacts = api.get("/api/contacts", params={"user_id": "owner-1"}).json()["data"]["contacts"]
    assert [c["name"] for c in contacts] == ["Mom"]
    assert contacts[0]["has_push_token"] is True

    resp = api.delete(f"/api/contacts/{added['relationship_id']}", params={"user_id": "owner-1"})
    assert resp.json()["data"]["contacts"] == []

    resp = api.delete(f"/api/contacts/{added['relationship_id']}", params={"user_id": "owner-1"})
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "relationship_not_found"


def test_expired_code_is_gone_not_missing(api, clock):
    _register(api)
    code = _issue_code(api)
    clock.advance(minutes=10, seconds=1)

    resp = api.post("/api/contacts", json={"name": "Mom", "auth_code": code})

    assert resp.status_code == 410
    assert resp.json()["error"] == {
        "kind": "expired",
        "code": "code_expired",
        "message": "Authentication code has expired",
    }


def test_malformed_payload_is_rejected(api):
    resp = api.post("/api/contacts", json={"name": "Mom", "auth_code": "12ab"})

    assert resp.status_code == 422
    error = resp.json()["error"]
    assert error["kind"] == "validation_error"
    assert error["code"] == "invalid_payload"
    assert any(field["loc"][-1] == "auth_code" for field in error["fields"])


def test_token_rotation_reaches_every_owner(api):
    _register(api, device_id="ring-1", user_id="owner-1")
    _register(api, device_id="ring-2", user_id="owner-2")
    _register(api, device_id="phone-mom", user_id="mom", name="Mom's phone", token="apns-old")

    for ring in ("ring-1", "ring-2"):
        code = _issue_code(api, ring)
        resp = api.post("/api/contacts", json={"name": "Mom", "auth_code": code, "device_id": "phone-mom"})
        assert resp.status_code == 200

    resp = api.post("/api/update-token", json={"device_id": "phone-mom", "apns_token": "apns-new"})
    assert resp.json()["data"] == {"device_id": "phone-mom", "changed": True, "relationships_updated": 2}

    api.post("/api/emergency", json={"user_id": "owner-2"})
    assert [call["token"] for call in api.gateway.calls] == ["apns-new"]


def test_token_rotation_reaches_contacts_added_by_token(api):
    _register(api, device_id="ring-1", user_id="owner-1")
    _register(api, device_id="ring-2", user_id="owner-2")
    _register(api, device_id="phone-mom", user_id="mom", name="Mom's phone", token="apns-old")

    for ring in ("ring-1", "ring-2"):
        body = {
            "name": "Mom",
            "phone_number": "+15551234567",
            "auth_code": _issue_code(api, ring),
            "apns_token": "apns-old",
            "has_app": True,
        }
        assert api.post("/api/contacts", json=body).status_code == 200

    resp = api.post("/api/update-token", json={"device_id": "phone-mom", "apns_token": "apns-new"})
    assert resp.json()["data"] == {"device_id": "phone-mom", "changed": True, "relationships_updated": 2}

    api.post("/api/emergency", json={"user_id": "owner-2"})
    assert [call["token"] for call in api.gateway.calls] == ["apns-new"]


def test_rejected_contact_does_not_burn_the_code(session_factory, clock, monkeypatch):
    monkeypatch.setattr("siren.services.relationship_graph.settings.allow_duplicate_contacts", False)
    app = create_app(session_factory=session_factory, push_gateway=FakeGateway(), clock=clock, start_sweeper=False)
    with TestClient(app) as client:
        _register(client)
        first = {"name": "Mom", "auth_code": _issue_code(client), "apns_token": "apns-mom"}
        assert client.post("/api/contacts", json=first).status_code == 200

        code = _issue_code(client)
        resp = client.post("/api/contacts", json={"name": "Mom", "auth_code": code, "apns_token": "apns-mom"})
        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "relationship_exists"

        assert client.get("/api/auth-code", params={"code": code}).status_code == 200
        resp = client.post("/api/contacts", json={"name": "Dad", "auth_code": code, "apns_token": "apns-dad"})
        assert resp.status_code == 200


def test_emergency_fanout_and_alert_status(api):
    _register(api)
    for name, token in (("Mom", "apns-mom"), ("Old phone", "dead-token")):
        code = _issue_code(api)
        api.post("/api/contacts", json={"name": name, "auth_code": code, "apns_token": token})

    resp = api.post("/api/emergency", json={"device_id": "ring-1", "emergency_type": "fall", "message": "Help"})
    assert resp.status_code == 200
    triggered = resp.json()["data"]
    assert triggered["recipients"] == 2
    assert triggered["status"] == "created"

    alert = api.get(f"/api/alerts/{triggered['alert_id']}").json()["data"]
    assert alert["owner_user_id"] == "owner-1"
    assert alert["status"] == "partial_failure"
    outcomes = {r["name"]: (r["outcome"], r["last_error"]) for r in alert["recipients"]}
    assert outcomes == {"Mom": ("delivered", None), "Old phone": ("failed_permanent", "Unregistered")}

    history = api.get("/api/alerts", params={"user_id": "owner-1"}).json()["data"]["alerts"]
    assert [a["alert_id"] for a in history] == [triggered["alert_id"]]

    contacts = api.get("/api/contacts", params={"user_id": "owner-1"}).json()["data"]["contacts"]
    assert {c["name"]: c["token_flagged"] for c in contacts} == {"Mom": False, "Old phone": True}


def test_emergency_without_contacts(api):
    _register(api)

    resp = api.post("/api/emergency", json={"user_id": "owner-1"})

    assert resp.json()["data"]["status"] == "no_recipients"
    assert api.gateway.calls == []


def test_emergency_from_unknown_device_is_not_filed_under_an_owner(api):
    resp = api.post("/api/emergency", json={"device_id": "ghost-ring", "device_tokens": ["apns-friend"]})
    assert resp.status_code == 200

    alert = api.get(f"/api/alerts/{resp.json()['data']['alert_id']}").json()["data"]
    assert alert["owner_user_id"] is None
    assert alert["owner_device_id"] == "ghost-ring"
    assert alert["status"] == "all_delivered"
    for user_id in ("ghost-ring", "anonymous"):
        assert api.get("/api/alerts", params={"user_id": user_id}).json()["data"]["alerts"] == []


def test_emergency_requires_a_target(api):
    resp = api.post("/api/emergency", json={"emergency_type": "fall"})

    assert resp.status_code == 422


def test_unknown_alert(api):
    resp = api.get("/api/alerts/42")

    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "alert_not_found"
