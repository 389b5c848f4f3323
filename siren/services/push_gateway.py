"""Client for the push relay that fronts APNs/FCM."""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Any, Protocol

import requests

from siren.core.config import settings

logger = logging.getLogger(__name__)

PERMANENT_STATUS_CODES = {400, 403, 404, 410}
RETRYABLE_STATUS_CODES = {408, 425, 429}
PERMANENT_REASONS = {"BadDeviceToken", "Unregistered", "ExpiredToken", "DeviceTokenNotForTopic"}


class PushOutcome(str, enum.Enum):
    DELIVERED = "delivered"
    RETRYABLE_ERROR = "retryable_error"
    PERMANENT_ERROR = "permanent_error"


@dataclass(slots=True)
class PushResult:
    outcome: PushOutcome
    reason: str | None = None


class PushGateway(Protocol):
    def send(
        self,
        token: str,
        title: str,
        body: str,
        *,
        critical: bool,
        data: dict[str, Any] | None = None,
    ) -> PushResult: ...


class HttpPushGateway:
    def __init__(
        self,
        session: requests.Session | None = None,
        *,
        url: str | None = None,
        timeout: float | None = None,
    ) -> None:
        self.url = url or settings.push_gateway_url
        self.timeout = timeout if timeout is not None else settings.push_timeout_seconds
        self.session = session or requests.Session()
        self.headers = {"Content-Type": "application/json"}
        if settings.push_gateway_api_key:
            self.headers["Authorization"] = f"Bearer {settings.push_gateway_api_key}"

    def send(
        self,
        token: str,
        title: str,
        body: str,
        *,
        critical: bool,
        data: dict[str, Any] | None = None,
    ) -> PushResult:
        payload = {
            "token": token,
            "title": title,
            "body": body,
            "critical": critical,
            "priority": "high" if critical else "normal",
            "sound": "critical" if critical else "default",
            "data": {k: str(v) for k, v in (data or {}).items()},
        }
        try:
            resp = self.session.post(self.url, json=payload, headers=self.headers, timeout=self.timeout)
        except requests.Timeout as exc:
            logger.warning("Push gateway timed out: %s", exc)
            return PushResult(PushOutcome.RETRYABLE_ERROR, "timeout")
        except requests.ConnectionError as exc:
            logger.warning("Push gateway unreachable: %s", exc)
            return PushResult(PushOutcome.RETRYABLE_ERROR, "connection_error")
        except requests.RequestException as exc:
            logger.warning("Push gateway request failed: %s", exc)
            return PushResult(PushOutcome.RETRYABLE_ERROR, "request_error")
        return self.classify(resp)

    @staticmethod
    def classify(resp: requests.Response) -> PushResult:
        reason = None
        try:
            body = resp.json()
            if isinstance(body, dict):
                reason = body.get("reason") or body.get("error")
        except ValueError:
            pass

        if 200 <= resp.status_code < 300:
            return PushResult(PushOutcome.DELIVERED)
        if reason in PERMANENT_REASONS or resp.status_code in PERMANENT_STATUS_CODES:
            return PushResult(PushOutcome.PERMANENT_ERROR, reason or f"http_{resp.status_code}")
        if resp.status_code >= 500 or resp.status_code in RETRYABLE_STATUS_CODES:
            return PushResult(PushOutcome.RETRYABLE_ERROR, reason or f"http_{resp.status_code}")
        return PushResult(PushOutcome.PERMANENT_ERROR, reason or f"http_{resp.status_code}")
