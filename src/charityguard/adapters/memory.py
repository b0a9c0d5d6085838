"""ABOUTME: In-process implementations of the security state stores
ABOUTME: Lock-protected dicts and a bounded deque, used by a single-instance deployment"""

import threading
from collections import deque
from contextlib import AbstractContextManager
from datetime import datetime
from typing import Any

from charityguard.domain.activity import ActivityEvent, ThreatReport
from charityguard.domain.otp import OtpRecord
from charityguard.domain.sessions import SessionData
from charityguard.domain.tokens import TokenRecord
from charityguard.service_layer.repositories import (
    EventLog,
    OtpRecordStore,
    SessionTable,
    SlidingWindowStore,
    ThreatRegistry,
    TokenCache,
    WindowEntry,
)

DEFAULT_EVENT_CAPACITY = 10_000


class PartitionedLock:
    """A fixed set of re-entrant locks; a key always maps to the same stripe.

    Two keys may share a stripe, which only costs some contention.
    """

    def __init__(self, stripes: int = 64) -> None:
        if stripes <= 0:
            raise ValueError("stripes must be positive")
        self._locks = [threading.RLock() for _ in range(stripes)]

    def for_key(self, key: str) -> threading.RLock:
        return self._locks[hash(key) % len(self._locks)]


class InMemoryOtpRecordStore(OtpRecordStore):
    def __init__(self) -> None:
        self._records: dict[str, OtpRecord] = {}
        self._guard = threading.Lock()
        self._key_locks = PartitionedLock()

    def lock(self, identity: str) -> AbstractContextManager[Any]:
        return self._key_locks.for_key(identity)

    def get(self, identity: str) -> OtpRecord | None:
        with self._guard:
            return self._records.get(identity)

    def put(self, record: OtpRecord) -> None:
        with self._guard:
            self._records[record.identity] = record

    def delete(self, identity: str) -> None:
        with self._guard:
            self._records.pop(identity, None)

    def purge_expired(self, now: datetime) -> int:
        with self._guard:
            expired = [identity for identity, record in self._records.items() if record.is_expired(now)]
            for identity in expired:
                del self._records[identity]
        return len(expired)


class InMemorySlidingWindowStore(SlidingWindowStore):
    def __init__(self) -> None:
        self._entries: dict[str, list[WindowEntry]] = {}
        self._guard = threading.Lock()
        self._key_locks = PartitionedLock()

    def lock(self, key: str) -> AbstractContextManager[Any]:
        return self._key_locks.for_key(key)

    def get(self, key: str) -> list[WindowEntry]:
        with self._guard:
            return list(self._entries.get(key, []))

    def set(self, key: str, entries: list[WindowEntry]) -> None:
        with self._guard:
            if entries:
                self._entries[key] = list(entries)
            else:
                self._entries.pop(key, None)

    def keys(self) -> list[str]:
        with self._guard:
            return list(self._entries)


class InMemoryTokenCache(TokenCache):
    def __init__(self) -> None:
        self._records: dict[str, TokenRecord] = {}
        self._lock = threading.RLock()

    def lock(self) -> AbstractContextManager[Any]:
        return self._lock

    def get(self, token: str) -> TokenRecord | None:
        with self._lock:
            return self._records.get(token)

    def put(self, record: TokenRecord) -> None:
        with self._lock:
            self._records[record.token] = record

    def delete(self, token: str) -> bool:
        with self._lock:
            return self._records.pop(token, None) is not None

    def all(self) -> list[TokenRecord]:
        with self._lock:
            return list(self._records.values())


class InMemorySessionTable(SessionTable):
    def __init__(self) -> None:
        self._sessions: dict[str, SessionData] = {}
        self._lock = threading.RLock()

    def lock(self) -> AbstractContextManager[Any]:
        return self._lock

    def get(self, session_id: str) -> SessionData | None:
        with self._lock:
            return self._sessions.get(session_id)

    def put(self, session: SessionData) -> None:
        with self._lock:
            self._sessions[session.session_id] = session

    def delete(self, session_id: str) -> SessionData | None:
        with self._lock:
            return self._sessions.pop(session_id, None)

    def for_user(self, user_id: str) -> list[SessionData]:
        with self._lock:
            return [s for s in self._sessions.values() if s.user_id == user_id]

    def all(self) -> list[SessionData]:
        with self._lock:
            return list(self._sessions.values())


class InMemoryEventLog(EventLog):
    def __init__(self, capacity: int = DEFAULT_EVENT_CAPACITY) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self._events: deque[ActivityEvent] = deque(maxlen=capacity)
        self._lock = threading.RLock()

    @property
    def capacity(self) -> int:
        assert self._events.maxlen is not None
        return self._events.maxlen

    def lock(self) -> AbstractContextManager[Any]:
        return self._lock

    def append(self, event: ActivityEvent) -> None:
        with self._lock:
            self._events.append(event)

    def snapshot(self) -> list[ActivityEvent]:
        with self._lock:
            return list(self._events)

    def prune_before(self, cutoff: datetime) -> int:
        with self._lock:
            kept = [e for e in self._events if e.timestamp > cutoff]
            removed = len(self._events) - len(kept)
            self._events.clear()
            self._events.extend(kept)
        return removed


class InMemoryThreatRegistry(ThreatRegistry):
    def __init__(self) -> None:
        self._reports: dict[str, ThreatReport] = {}
        self._lock = threading.RLock()

    def lock(self) -> AbstractContextManager[Any]:
        return self._lock

    def add(self, report: ThreatReport) -> None:
        with self._lock:
            self._reports[report.id] = report

    def get(self, report_id: str) -> ThreatReport | None:
        with self._lock:
            return self._reports.get(report_id)

    def all(self) -> list[ThreatReport]:
        with self._lock:
            return list(self._reports.values())
