"""ABOUTME: One-time password issuance and verification with rate limiting and lockout
ABOUTME: Codes live in memory; durable rows are written in the background for audit and recovery"""

import math
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

import structlog

from charityguard.config import SecurityCfg
from charityguard.domain.otp import OtpRecord, PersistedOtp
from charityguard.domain.value_objects import RateLimitKind
from charityguard.service_layer.background import AbstractBackgroundWorker, InlineBackgroundWorker
from charityguard.service_layer.exceptions import LockoutError, RateLimitError, describe_wait
from charityguard.service_layer.repositories import (
    OtpRecordStore,
    PersistentStore,
    SlidingWindowStore,
    WindowEntry,
)
from charityguard.translations import gettext as _

logger = structlog.get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True, slots=True)
class RateLimitStatus:
    limited: bool
    reason: str = ""
    retry_after_seconds: int = 0
    kind: RateLimitKind | None = None


NOT_LIMITED = RateLimitStatus(limited=False)


def _seconds_until(moment: datetime, now: datetime) -> int:
    return max(1, math.ceil((moment - now).total_seconds()))


class OTPManager:
    """Owns every OTP record. One outstanding code per identity."""

    def __init__(
        self,
        records: OtpRecordStore,
        windows: SlidingWindowStore,
        persistent_store: PersistentStore | None = None,
        worker: AbstractBackgroundWorker | None = None,
        settings: SecurityCfg | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._records = records
        self._windows = windows
        self._persistent_store = persistent_store
        self._worker = worker or InlineBackgroundWorker()
        self.settings = settings or SecurityCfg()
        self._now = clock

    @property
    def max_attempts(self) -> int:
        return self.settings.otp_max_attempts

    # -- rate limiting and lockout ------------------------------------------

    def is_request_rate_limited(self, identity: str) -> RateLimitStatus:
        """Lockout is checked before the request window; the two counters are independent."""
        now = self._now()
        lockout_ends = self._lockout_ends_at(identity, now)
        if lockout_ends is not None:
            retry_after = _seconds_until(lockout_ends, now)
            return RateLimitStatus(
                limited=True,
                reason=_(
                    "Too many failed attempts. Please try again in %(wait)s", wait=describe_wait(retry_after)
                ),
                retry_after_seconds=retry_after,
                kind=RateLimitKind.LOCKOUT,
            )

        window = self.settings.otp_rate_window
        limit = self.settings.otp_max_requests_per_window
        requests = self._recent(self._requests_key(identity), now - window)
        if len(requests) >= limit:
            retry_after = _seconds_until(requests[-limit].at + window, now)
            return RateLimitStatus(
                limited=True,
                reason=_(
                    "Too many code requests. Please try again in %(wait)s", wait=describe_wait(retry_after)
                ),
                retry_after_seconds=retry_after,
                kind=RateLimitKind.REQUESTS,
            )
        return NOT_LIMITED

    def check_request_allowed(self, identity: str) -> None:
        status = self.is_request_rate_limited(identity)
        if not status.limited:
            return
        if status.kind == RateLimitKind.LOCKOUT:
            raise LockoutError(status.retry_after_seconds)
        raise RateLimitError(status.retry_after_seconds)

    def reserve_request(self, identity: str) -> None:
        """Check both limits and record the request as one step.

        Concurrent callers for the same identity are serialised on the request window,
        so no more than the allowed number of requests get through.

        Raises:
            LockoutError: too many failed verifications
            RateLimitError: too many requests in the window
        """
        with self._windows.lock(self._requests_key(identity)):
            self.check_request_allowed(identity)
            self.track_request(identity)

    def is_locked_out(self, identity: str, now: datetime | None = None) -> bool:
        return self._lockout_ends_at(identity, now or self._now()) is not None

    def track_request(self, identity: str) -> None:
        now = self._now()
        key = self._requests_key(identity)
        with self._windows.lock(key):
            entries = [e for e in self._windows.get(key) if e.at > now - self.settings.otp_rate_window]
            entries.append(WindowEntry(at=now))
            self._windows.set(key, entries)

    # -- codes ----------------------------------------------------------------

    def issue(self, identity: str, ttl_minutes: int, metadata: dict[str, Any] | None = None) -> str:
        """Create a fresh code for the identity, replacing any outstanding one."""
        now = self._now()
        record = OtpRecord.issue(identity, ttl_minutes, now, metadata=metadata)
        with self._records.lock(identity):
            self._records.put(record)
        logger.info("otp issued", identity=identity, expires_at=record.expires_at.isoformat())

        if self._persistent_store is not None:
            row = PersistedOtp(
                email=identity,
                code=record.code,
                expires_at=record.expires_at,
                payload=metadata,
                created_at=now,
            )
            self._worker.submit(self._persistent_store.save_otp, row, description="persist otp")
        return record.code

    def verify(self, identity: str, code: str) -> dict[str, Any] | bool | None:
        """Check a code. Returns the stored metadata (or True) on success, None otherwise.

        Every call counts as an attempt. The record is removed on success, on expiry
        and once attempts exceed the maximum. Wrong guesses keep the record.
        """
        now = self._now()
        with self._records.lock(identity):
            if self.is_locked_out(identity, now):
                logger.warning("otp verification refused during lockout", identity=identity)
                return None

            record = self._records.get(identity)
            if record is None:
                self._record_failure(identity, now)
                return None

            attempts = record.register_attempt()
            if record.is_expired(now):
                self._records.delete(identity)
                self._record_failure(identity, now)
                logger.info("otp expired", identity=identity)
                return None
            if attempts > self.max_attempts:
                self._records.delete(identity)
                self._record_failure(identity, now)
                logger.warning("otp attempts exhausted", identity=identity, attempts=attempts)
                return None

            if record.matches(code):
                self._records.delete(identity)
                self._clear_failures(identity)
                logger.info("otp verified", identity=identity)
                if self._persistent_store is not None:
                    self._worker.submit(
                        self._persistent_store.mark_otp_used, identity, record.code, description="mark otp used"
                    )
                return record.metadata or True

            self._records.put(record)
            self._record_failure(identity, now)
            return None

    def invalidate(self, identity: str) -> None:
        with self._records.lock(identity):
            self._records.delete(identity)

    def cleanup(self) -> int:
        """Drop expired codes and empty counters. Returns the number of codes removed."""
        now = self._now()
        removed = self._records.purge_expired(now)
        horizon = now - max(self.settings.otp_lock_time, self.settings.otp_rate_window)
        for key in self._windows.keys():
            with self._windows.lock(key):
                self._windows.set(key, [e for e in self._windows.get(key) if e.at > horizon])
        return removed

    # -- internals ------------------------------------------------------------

    @staticmethod
    def _requests_key(identity: str) -> str:
        return f"otp-requests:{identity}"

    @staticmethod
    def _failures_key(identity: str) -> str:
        return f"otp-failures:{identity}"

    def _recent(self, key: str, since: datetime) -> list[WindowEntry]:
        return [e for e in self._windows.get(key) if e.at > since]

    def _lockout_ends_at(self, identity: str, now: datetime) -> datetime | None:
        lock_time: timedelta = self.settings.otp_lock_time
        failures = self._recent(self._failures_key(identity), now - lock_time)
        if len(failures) < self.max_attempts:
            return None
        # lockout lasts until enough failures age out of the window
        return failures[-self.max_attempts].at + lock_time

    def _record_failure(self, identity: str, now: datetime) -> None:
        key = self._failures_key(identity)
        with self._windows.lock(key):
            entries = [e for e in self._windows.get(key) if e.at > now - self.settings.otp_lock_time]
            entries.append(WindowEntry(at=now))
            self._windows.set(key, entries)
        if len(entries) == self.max_attempts:
            logger.warning("identity locked out after failed otp verifications", identity=identity)

    def _clear_failures(self, identity: str) -> None:
        key = self._failures_key(identity)
        with self._windows.lock(key):
            self._windows.set(key, [])
