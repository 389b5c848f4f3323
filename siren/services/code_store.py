"""Short-lived authentication codes that vouch for an owner's device.

An owner issues a 6-digit code from their phone and reads it out to the
person they want as an emergency contact. The contact redeems it once to
learn the owner's identity and record the relationship. Codes live for ten
minutes; only an HMAC of the code is persisted.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import secrets
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable

from sqlalchemy import delete, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from siren.core.clock import Clock, utcnow
from siren.core.config import settings
from siren.core.errors import (
    CodeAlreadyConsumed,
    CodeExpired,
    CodeNotFound,
    CodeRevoked,
    CodeSpaceExhausted,
    DeviceNotRegistered,
)
from siren.db.models import AuthCode, Device

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class IssuedCode:
    code: str
    owner_device_id: str
    issued_at: datetime
    expires_at: datetime


@dataclass(slots=True)
class CodeOwner:
    owner_user_id: str | None
    owner_device_id: str
    owner_display_name: str | None
    has_app: bool


@dataclass(slots=True)
class ActiveCodeStatus:
    owner_device_id: str
    active: bool
    expires_at: datetime | None = None


@dataclass(slots=True)
class SweepResult:
    expired: int
    purged: int


class CodeStore:
    def __init__(
        self,
        session_factory: sessionmaker[Session],
        *,
        clock: Clock = utcnow,
        code_generator: Callable[[], str] | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.clock = clock
        self.ttl = timedelta(minutes=settings.auth_code_ttl_minutes)
        self.retention = timedelta(hours=settings.auth_code_retention_hours)
        self._generate_code = code_generator or self._random_code
        self._lock = threading.Lock()

    def issue(self, owner_device_id: str) -> IssuedCode:
        with self._lock, self.session_factory() as db:
            device = db.get(Device, owner_device_id)
            if device is None or not device.registered:
                raise DeviceNotRegistered(owner_device_id)

            now = self.clock()
            self._revoke_active(db, owner_device_id, now)

            for _ in range(settings.auth_code_max_attempts):
                code = self._generate_code()
                code_hash = self._hash_code(code)
                if db.scalar(select(AuthCode.code_id).where(AuthCode.code_hash == code_hash)) is not None:
                    logger.debug("Auth code collision, regenerating")
                    continue
                record = AuthCode(
                    code_hash=code_hash,
                    owner_device_id=owner_device_id,
                    owner_user_id=device.owner_user_id,
                    issued_at=now,
                    expires_at=now + self.ttl,
                )
                db.add(record)
                try:
                    db.commit()
                except IntegrityError:
                    db.rollback()
                    self._revoke_active(db, owner_device_id, now)
                    continue
                logger.info("Issued auth code for device %s (expires %s)", owner_device_id, record.expires_at)
                return IssuedCode(
                    code=code,
                    owner_device_id=owner_device_id,
                    issued_at=record.issued_at,
                    expires_at=record.expires_at,
                )

        logger.error("Could not allocate a unique auth code for device %s", owner_device_id)
        raise CodeSpaceExhausted()

    def lookup(self, code: str) -> CodeOwner:
        """Resolve a code to its owner without consuming it."""
        with self.session_factory() as db:
            record = self._get_checked(db, code)
            return self._owner_of(db, record)

    def redeem(self, code: str, redeemed_by: str | None = None, db: Session | None = None) -> CodeOwner:
        """Consume ``code`` exactly once.

        When ``db`` is given the consume joins the caller's transaction, so a
        rollback there leaves the code redeemable.
        """
        if db is not None:
            with self._lock:
                return self._redeem(db, code, redeemed_by)
        with self._lock, self.session_factory() as own_db:
            owner = self._redeem(own_db, code, redeemed_by)
            own_db.commit()
            return owner

    def cancel(self, owner_device_id: str) -> int:
        with self._lock, self.session_factory() as db:
            revoked = self._revoke_active(db, owner_device_id, self.clock())
            db.commit()
        if revoked:
            logger.info("Cancelled %s auth code(s) for device %s", revoked, owner_device_id)
        return revoked

    def active_code(self, owner_device_id: str) -> ActiveCodeStatus:
        with self.session_factory() as db:
            expires_at = db.scalar(
                select(AuthCode.expires_at)
                .where(AuthCode.owner_device_id == owner_device_id, *self._active_clauses(self.clock()))
                .order_by(AuthCode.expires_at.desc())
            )
        return ActiveCodeStatus(
            owner_device_id=owner_device_id,
            active=expires_at is not None,
            expires_at=expires_at,
        )

    def sweep_expired(self) -> SweepResult:
        now = self.clock()
        cutoff = now - self.retention
        with self.session_factory() as db:
            expired = db.execute(
                update(AuthCode)
                .where(*self._active_clauses(now, include_unexpired=False), AuthCode.expires_at < now)
                .values(expired_at=now)
                .execution_options(synchronize_session=False)
            ).rowcount
            purged = db.execute(
                delete(AuthCode).where(
                    or_(
                        AuthCode.expires_at < cutoff,
                        AuthCode.consumed_at < cutoff,
                        AuthCode.revoked_at < cutoff,
                    )
                )
                .execution_options(synchronize_session=False)
            ).rowcount
            db.commit()
        if expired or purged:
            logger.info("Auth code sweep: %s expired, %s purged", expired, purged)
        return SweepResult(expired=expired, purged=purged)

    def _redeem(self, db: Session, code: str, redeemed_by: str | None) -> CodeOwner:
        record = self._get_checked(db, code)
        # The conditional update is the compare-and-swap; a concurrent
        # redeemer (or another process) that got here first leaves rowcount 0.
        result = db.execute(
            update(AuthCode)
            .where(
                AuthCode.code_id == record.code_id,
                AuthCode.consumed_at.is_(None),
                AuthCode.revoked_at.is_(None),
            )
            .values(consumed_at=self.clock(), consumed_by=redeemed_by)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise CodeAlreadyConsumed()
        logger.info("Auth code for device %s redeemed", record.owner_device_id)
        return self._owner_of(db, record)

    def _get_checked(self, db: Session, code: str) -> AuthCode:
        record = db.scalar(select(AuthCode).where(AuthCode.code_hash == self._hash_code(code)))
        if record is None:
            raise CodeNotFound()
        if record.consumed_at is not None:
            raise CodeAlreadyConsumed()
        if record.revoked_at is not None:
            raise CodeRevoked()
        if record.expired_at is not None or self.clock() > record.expires_at:
            raise CodeExpired()
        return record

    def _owner_of(self, db: Session, record: AuthCode) -> CodeOwner:
        device = db.get(Device, record.owner_device_id)
        return CodeOwner(
            owner_user_id=record.owner_user_id or (device.owner_user_id if device else None),
            owner_device_id=record.owner_device_id,
            owner_display_name=device.display_name if device else None,
            has_app=bool(device and device.push_token),
        )

    def _revoke_active(self, db: Session, owner_device_id: str, now: datetime) -> int:
        return db.execute(
            update(AuthCode)
            .where(AuthCode.owner_device_id == owner_device_id, *self._active_clauses(now))
            .values(revoked_at=now)
        ).rowcount

    @staticmethod
    def _active_clauses(now: datetime, include_unexpired: bool = True) -> tuple:
        clauses = (
            AuthCode.consumed_at.is_(None),
            AuthCode.revoked_at.is_(None),
            AuthCode.expired_at.is_(None),
        )
        if include_unexpired:
            clauses += (AuthCode.expires_at >= now,)
        return clauses

    @staticmethod
    def _random_code() -> str:
        length = settings.auth_code_length
        return str(secrets.randbelow(10**length)).zfill(length)

    @staticmethod
    def _hash_code(code: str) -> str:
        secret = settings.auth_code_hmac_secret.encode("utf-8")
        return hmac.new(secret, msg=code.strip().encode("utf-8"), digestmod=hashlib.sha256).hexdigest()
