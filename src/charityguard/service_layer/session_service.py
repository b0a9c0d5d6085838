"""ABOUTME: Fingerprint-bound sessions with concurrency caps and idle/absolute expiry
ABOUTME: Eviction and admission happen under one lock; a periodic task sweeps expired sessions"""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

import structlog

from charityguard.config import SecurityCfg
from charityguard.domain.sessions import ActiveSession, SessionData, compute_fingerprint
from charityguard.service_layer.background import PeriodicTask
from charityguard.service_layer.repositories import SessionTable

logger = structlog.get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True, slots=True)
class SessionStatistics:
    total_sessions: int
    active_sessions: int
    expired_sessions: int
    unique_users: int
    average_session_age_seconds: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalSessions": self.total_sessions,
            "activeSessions": self.active_sessions,
            "expiredSessions": self.expired_sessions,
            "uniqueUsers": self.unique_users,
            "averageSessionAgeSeconds": round(self.average_session_age_seconds, 1),
        }


class SessionManager:
    def __init__(
        self,
        table: SessionTable,
        settings: SecurityCfg | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._table = table
        self.settings = settings or SecurityCfg()
        self._now = clock
        self._cleanup_task = PeriodicTask("session-cleanup", self.settings.session_cleanup_interval, self.cleanup)

    fingerprint_for = staticmethod(compute_fingerprint)

    def create_session(
        self,
        user_id: str,
        ip_address: str,
        user_agent: str,
        device_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> ActiveSession:
        """Admit a new session, evicting the least recently active one if the user is at the cap."""
        now = self._now()
        session = SessionData.create(
            user_id=user_id,
            ip_address=ip_address,
            user_agent=user_agent,
            now=now,
            timeout=self.settings.session_timeout,
            device_id=device_id,
            metadata=metadata,
        )
        with self._table.lock():
            live = []
            for existing in self._table.for_user(user_id):
                if existing.is_expired(now):
                    self._table.delete(existing.session_id)
                else:
                    live.append(existing)
            live.sort(key=lambda s: s.last_activity)
            while len(live) >= self.settings.max_concurrent_sessions:
                evicted = live.pop(0)
                self._table.delete(evicted.session_id)
                logger.info(
                    "session evicted, concurrent session limit reached",
                    user_id=user_id,
                    session_id=evicted.session_id,
                )
            self._table.put(session)
        logger.info("session created", user_id=user_id, session_id=session.session_id, ip_address=ip_address)
        return session.to_view(now)

    def get_session(self, session_id: str) -> ActiveSession | None:
        now = self._now()
        with self._table.lock():
            session = self._table.get(session_id)
            if session is None:
                return None
            if session.is_expired(now):
                self._table.delete(session_id)
                return None
            return session.to_view(now)

    def validate_session(
        self, session_id: str, expected_fingerprint: str, expected_ip: str | None = None
    ) -> bool:
        now = self._now()
        with self._table.lock():
            session = self._table.get(session_id)
            if session is None:
                return False
            if session.is_expired(now):
                self._table.delete(session_id)
                return False
            if session.fingerprint != expected_fingerprint:
                self._table.delete(session_id)
                logger.warning(
                    "session fingerprint mismatch, possible hijack", user_id=session.user_id, session_id=session_id
                )
                return False
            if expected_ip is not None and session.ip_address != expected_ip:
                # tolerated: mobile and NAT clients change address
                logger.warning(
                    "session ip address changed",
                    user_id=session.user_id,
                    session_id=session_id,
                    old_ip=session.ip_address,
                    new_ip=expected_ip,
                )
            if session.is_idle(now, self.settings.session_activity_timeout):
                self._table.delete(session_id)
                logger.info("session idle timeout", user_id=session.user_id, session_id=session_id)
                return False
            return True

    def update_activity(self, session_id: str) -> bool:
        now = self._now()
        with self._table.lock():
            session = self._table.get(session_id)
            if session is None or session.is_expired(now):
                return False
            session.touch(now)
            self._table.put(session)
            return True

    def update_metadata(self, session_id: str, patch: dict[str, Any]) -> bool:
        with self._table.lock():
            session = self._table.get(session_id)
            if session is None or session.is_expired(self._now()):
                return False
            session.metadata.update(patch)
            self._table.put(session)
            return True

    def destroy_session(self, session_id: str) -> bool:
        with self._table.lock():
            removed = self._table.delete(session_id)
        if removed is not None:
            logger.info("session destroyed", user_id=removed.user_id, session_id=session_id)
        return removed is not None

    def destroy_user_sessions(self, user_id: str) -> int:
        with self._table.lock():
            sessions = self._table.for_user(user_id)
            for session in sessions:
                self._table.delete(session.session_id)
        if sessions:
            logger.info("user sessions destroyed", user_id=user_id, count=len(sessions))
        return len(sessions)

    def get_user_sessions(self, user_id: str) -> list[ActiveSession]:
        now = self._now()
        with self._table.lock():
            sessions = [s for s in self._table.for_user(user_id) if not s.is_expired(now)]
        return sorted((s.to_view(now) for s in sessions), key=lambda v: v.last_activity, reverse=True)

    def cleanup(self) -> int:
        """Remove sessions past their absolute or idle timeout. Safe to run repeatedly."""
        now = self._now()
        with self._table.lock():
            stale = [
                s
                for s in self._table.all()
                if s.is_expired(now) or s.is_idle(now, self.settings.session_activity_timeout)
            ]
            for session in stale:
                self._table.delete(session.session_id)
        if stale:
            logger.info("expired sessions removed", count=len(stale))
        return len(stale)

    def get_statistics(self) -> SessionStatistics:
        now = self._now()
        sessions = self._table.all()
        active = [s for s in sessions if not s.is_expired(now)]
        ages = [(now - s.created_at).total_seconds() for s in active]
        return SessionStatistics(
            total_sessions=len(sessions),
            active_sessions=len(active),
            expired_sessions=len(sessions) - len(active),
            unique_users=len({s.user_id for s in active}),
            average_session_age_seconds=sum(ages) / len(ages) if ages else 0.0,
        )

    def start_cleanup_task(self) -> None:
        self._cleanup_task.start()

    def stop_cleanup_task(self) -> None:
        self._cleanup_task.stop()

    @property
    def cleanup_task(self) -> PeriodicTask:
        return self._cleanup_task
