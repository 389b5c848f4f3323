from __future__ import annotations

import pytest
import requests

from siren.services.push_gateway import HttpPushGateway, PushOutcome


class DummyResponse:
    def __init__(self, status_code: int, payload=None) -> None:
        self.status_code = status_code
        self._payload = payload

    def json(self):
        if self._payload is None:
            raise ValueError("no json body")
        return self._payload


class DummySession:
    def __init__(self, response: DummyResponse | None = None, error: Exception | None = None) -> None:
        self.response = response
        self.error = error
        self.captured = None

    def post(self, url: str, json: dict, headers: dict, timeout: float) -> DummyResponse:
        self.captured = {"url": url, "json": json, "headers": headers, "timeout": timeout}
        if self.error is not None:
            raise self.error
        return self.response


def test_send_posts_critical_payload():
    session = DummySession(DummyResponse(200, {"id": "abc"}))
    gateway = HttpPushGateway(session, url="https://push.example.test/send", timeout=2.5)

    result = gateway.send("tok-1", "SIREN RING EMERGENCY", "Help", critical=True, data={"alert_id": 7})

    assert result.outcome is PushOutcome.DELIVERED
    assert session.captured["url"] == "https://push.example.test/send"
    assert session.captured["timeout"] == 2.5
    body = session.captured["json"]
    assert body["token"] == "tok-1"
    assert body["priority"] == "high"
    assert body["sound"] == "critical"
    assert body["data"] == {"alert_id": "7"}


@pytest.mark.parametrize(
    "status_code, payload, outcome, reason",
    [
        (410, {"reason": "Unregistered"}, PushOutcome.PERMANENT_ERROR, "Unregistered"),
        (400, {"reason": "BadDeviceToken"}, PushOutcome.PERMANENT_ERROR, "BadDeviceToken"),
        (500, {"reason": "BadDeviceToken"}, PushOutcome.PERMANENT_ERROR, "BadDeviceToken"),
        (503, None, PushOutcome.RETRYABLE_ERROR, "http_503"),
        (429, {"error": "TooManyRequests"}, PushOutcome.RETRYABLE_ERROR, "TooManyRequests"),
        (418, None, PushOutcome.PERMANENT_ERROR, "http_418"),
    ],
)
def test_classify(status_code, payload, outcome, reason):
    result = HttpPushGateway.classify(DummyResponse(status_code, payload))

    assert result.outcome is outcome
    assert result.reason == reason


@pytest.mark.parametrize(
    "error, reason",
    [
        (requests.Timeout("slow"), "timeout"),
        (requests.ConnectionError("refused"), "connection_error"),
        (requests.RequestException("odd"), "request_error"),
    ],
)
def test_transport_errors_are_retryable(error, reason):
    gateway = HttpPushGateway(DummySession(error=error), url="https://push.example.test/send")

    result = gateway.send("tok-1", "t", "b", critical=False)

    assert result.outcome is PushOutcome.RETRYABLE_ERROR
    assert result.reason == reason
