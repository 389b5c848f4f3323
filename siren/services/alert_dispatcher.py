"""Emergency alert fan-out.

An alert moves through ``created -> dispatching -> {all_delivered,
partial_failure, total_failure}``. Owners without contacts go straight to
``no_recipients``; a trigger inside the debounce window is recorded as
``debounced``. Events are never deleted.

Each recipient is delivered on its own worker with its own retry budget, so
one unreachable phone cannot hold up the others.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Any, Callable, Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from siren.core.cache import claim_once
from siren.core.clock import Clock, utcnow
from siren.core.config import settings
from siren.core.errors import AlertNotFound
from siren.db.models import AlertEvent, AlertRecipient
from siren.services.device_registry import DeviceRegistry
from siren.services.push_gateway import PushGateway, PushOutcome, PushResult
from siren.services.relationship_graph import RelationshipGraph

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class _Target:
    recipient_id: int
    token: str


class AlertDispatcher:
    def __init__(
        self,
        session_factory: sessionmaker[Session],
        graph: RelationshipGraph,
        registry: DeviceRegistry,
        gateway: PushGateway,
        *,
        clock: Clock = utcnow,
        sleep: Callable[[float], None] = time.sleep,
        max_attempts: int | None = None,
        backoff_base: float | None = None,
        max_workers: int | None = None,
        debounce_seconds: int | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.graph = graph
        self.registry = registry
        self.gateway = gateway
        self.clock = clock
        self.sleep = sleep
        self.max_attempts = max(1, max_attempts or settings.alert_max_attempts)
        self.backoff_base = settings.alert_backoff_base_seconds if backoff_base is None else backoff_base
        self.max_workers = max(1, max_workers or settings.alert_max_workers)
        self.debounce_seconds = (
            settings.alert_debounce_seconds if debounce_seconds is None else debounce_seconds
        )
        self._record_lock = threading.Lock()

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #
    def trigger(
        self,
        owner_user_id: str | None,
        *,
        emergency_type: str = "emergency",
        message: str | None = None,
        priority: str = "critical",
        owner_device_id: str | None = None,
        extra_tokens: Iterable[str] = (),
    ) -> AlertEvent:
        now = self.clock()
        event = AlertEvent(
            owner_user_id=owner_user_id,
            owner_device_id=owner_device_id,
            emergency_type=emergency_type,
            priority=priority,
            message=message or settings.push_default_message,
            status="created",
            triggered_at=now,
        )

        if self._is_debounced(owner_user_id or owner_device_id):
            event.status = "debounced"
            event.completed_at = now
            logger.warning("Alert for owner %s suppressed by debounce window", owner_user_id)
        else:
            event.recipients = self._build_recipients(owner_user_id, extra_tokens, now)
            if not event.recipients:
                event.status = "no_recipients"
                event.completed_at = now
                logger.warning("Alert for owner %s has no recipients", owner_user_id)

        with self._record_lock, self.session_factory() as db:
            db.add(event)
            db.commit()
            alert_id = event.alert_id
            logger.info(
                "Alert %s created for owner %s with %s recipient(s)",
                alert_id,
                owner_user_id,
                len(event.recipients),
            )
            return self._load(db, alert_id)

    def dispatch(self, alert_id: int) -> AlertEvent:
        with self._record_lock, self.session_factory() as db:
            event = db.get(AlertEvent, alert_id)
            if event is None:
                raise AlertNotFound(alert_id)
            if event.status != "created":
                return self._load(db, alert_id)
            now = self.clock()
            event.status = "dispatching"
            event.dispatched_at = now
            targets: list[_Target] = []
            for recipient in event.recipients:
                if recipient.push_token:
                    targets.append(_Target(recipient_id=recipient.recipient_id, token=recipient.push_token))
                else:
                    recipient.outcome = "failed_permanent"
                    recipient.last_error = "missing_push_token"
                    recipient.updated_at = now
            db.commit()
            payload = self._payload(event)

        if targets:
            with ThreadPoolExecutor(
                max_workers=min(len(targets), self.max_workers),
                thread_name_prefix=f"alert-{alert_id}",
            ) as pool:
                futures = [pool.submit(self._deliver, target, payload) for target in targets]
                for future in as_completed(futures):
                    future.result()

        return self._finalize(alert_id)

    def trigger_and_dispatch(self, owner_user_id: str | None, **kwargs: Any) -> AlertEvent:
        event = self.trigger(owner_user_id, **kwargs)
        if event.is_terminal:
            return event
        return self.dispatch(event.alert_id)

    def get_alert(self, alert_id: int) -> AlertEvent:
        with self.session_factory() as db:
            return self._load(db, alert_id)

    def alerts_for(self, owner_user_id: str, limit: int = 50) -> list[AlertEvent]:
        with self.session_factory() as db:
            return list(
                db.scalars(
                    select(AlertEvent)
                    .where(AlertEvent.owner_user_id == owner_user_id)
                    .order_by(AlertEvent.triggered_at.desc(), AlertEvent.alert_id.desc())
                    .limit(limit)
                ).all()
            )

    # ------------------------------------------------------------------ #
    # Delivery
    # ------------------------------------------------------------------ #
    def _deliver(self, target: _Target, payload: dict[str, Any]) -> str:
        for attempt in range(1, self.max_attempts + 1):
            result = self._send(target.token, payload)

            if result.outcome is PushOutcome.DELIVERED:
                self._record(target.recipient_id, "delivered", attempt, None)
                return "delivered"

            if result.outcome is PushOutcome.PERMANENT_ERROR:
                self._record(target.recipient_id, "failed_permanent", attempt, result.reason)
                self._flag_token(target.token)
                return "failed_permanent"

            if attempt >= self.max_attempts:
                logger.error(
                    "Recipient %s unreachable after %s attempt(s): %s",
                    target.recipient_id,
                    attempt,
                    result.reason,
                )
                self._record(target.recipient_id, "failed_permanent", attempt, "upstream_unavailable")
                return "failed_permanent"

            self._record(target.recipient_id, "failed_retryable", attempt, result.reason)
            wait = self.backoff_base * (2 ** (attempt - 1))
            logger.warning(
                "Push to recipient %s failed (%s), retrying in %ss",
                target.recipient_id,
                result.reason,
                wait,
            )
            if wait > 0:
                self.sleep(wait)
        return "failed_permanent"

    def _send(self, token: str, payload: dict[str, Any]) -> PushResult:
        try:
            return self.gateway.send(
                token,
                payload["title"],
                payload["body"],
                critical=payload["critical"],
                data=payload["data"],
            )
        except Exception:
            logger.exception("Push gateway raised unexpectedly")
            return PushResult(PushOutcome.RETRYABLE_ERROR, "gateway_error")

    def _record(self, recipient_id: int, outcome: str, attempts: int, error: str | None) -> None:
        with self._record_lock, self.session_factory() as db:
            recipient = db.get(AlertRecipient, recipient_id)
            if recipient is None:
                return
            recipient.outcome = outcome
            recipient.attempts = attempts
            recipient.last_error = error
            recipient.updated_at = self.clock()
            db.commit()

    def _flag_token(self, token: str) -> None:
        # Flagged only; the token stays until the device reports a new one.
        with self._record_lock:
            self.graph.flag_stale_token(token)
            self.registry.flag_push_token(token)

    def _finalize(self, alert_id: int) -> AlertEvent:
        with self._record_lock, self.session_factory() as db:
            event = self._load(db, alert_id)
            outcomes = [recipient.outcome for recipient in event.recipients]
            delivered = outcomes.count("delivered")
            if delivered == len(outcomes):
                event.status = "all_delivered"
            elif delivered == 0:
                event.status = "total_failure"
            else:
                event.status = "partial_failure"
            event.completed_at = self.clock()
            db.commit()
            log = logger.info if event.status == "all_delivered" else logger.error
            log("Alert %s finished as %s (%s/%s delivered)", alert_id, event.status, delivered, len(outcomes))
            return self._load(db, alert_id)

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #
    def _build_recipients(self, owner_user_id: str | None, extra_tokens: Iterable[str], now) -> list[AlertRecipient]:
        recipients: list[AlertRecipient] = []
        seen_tokens: set[str] = set()
        # Token-only alerts have no owner and so no contacts.
        contacts = self.graph.contacts_of(owner_user_id) if owner_user_id else []
        for contact in contacts:
            token = contact.contact_push_token
            if token:
                seen_tokens.add(token)
            recipients.append(
                AlertRecipient(
                    position=len(recipients),
                    relationship_id=contact.relationship_id,
                    contact_device_id=contact.contact_device_id,
                    contact_name=contact.contact_name,
                    push_token=token,
                    outcome="pending",
                    attempts=0,
                    updated_at=now,
                )
            )
        for token in extra_tokens:
            token = (token or "").strip()
            if not token or token in seen_tokens:
                continue
            seen_tokens.add(token)
            recipients.append(
                AlertRecipient(position=len(recipients), push_token=token, outcome="pending", attempts=0, updated_at=now)
            )
        return recipients

    def _is_debounced(self, key: str | None) -> bool:
        if self.debounce_seconds <= 0 or not key:
            return False
        return not claim_once(f"siren:alert:debounce:{key}", self.debounce_seconds)

    def _payload(self, event: AlertEvent) -> dict[str, Any]:
        return {
            "title": settings.push_alert_title,
            "body": event.message or settings.push_default_message,
            "critical": event.priority == "critical",
            "data": {
                "owner_user_id": event.owner_user_id,
                "alert_id": event.alert_id,
                "emergency_type": event.emergency_type,
                "timestamp": event.triggered_at.isoformat(),
            },
        }

    @staticmethod
    def _load(db: Session, alert_id: int) -> AlertEvent:
        event = db.scalar(
            select(AlertEvent)
            .where(AlertEvent.alert_id == alert_id)
            .execution_options(populate_existing=True)
        )
        if event is None:
            raise AlertNotFound(alert_id)
        return event
