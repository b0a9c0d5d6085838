"""ABOUTME: Abstract repository and store interfaces used by the security services
ABOUTME: Services depend only on these contracts so in-process and database backends are interchangeable"""

from __future__ import annotations

import abc
import uuid
from collections.abc import Iterable
from contextlib import AbstractContextManager
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from charityguard.domain.activity import ActivityEvent, ThreatReport
from charityguard.domain.audit import AuditEntry
from charityguard.domain.otp import OtpRecord, PersistedOtp
from charityguard.domain.people import Donor, Employee
from charityguard.domain.sessions import SessionData
from charityguard.domain.tokens import PersistedToken, TokenRecord

# ---------------------------------------------------------------------------
# Database repositories, used through a unit of work
# ---------------------------------------------------------------------------


class AbstractRepository(abc.ABC):
    """Base repository interface providing common operations."""

    @abc.abstractmethod
    def add(self, item: Any) -> None:
        """Add an item to the repository."""
        raise NotImplementedError

    @abc.abstractmethod
    def get(self, item_id: uuid.UUID) -> Any | None:
        """Get an item by its ID."""
        raise NotImplementedError

    @abc.abstractmethod
    def all(self) -> Iterable[Any]:
        """List all items in the repository."""
        raise NotImplementedError


class EmployeeRepository(AbstractRepository):
    @abc.abstractmethod
    def get_by_email(self, email: str) -> Employee | None:
        raise NotImplementedError

    @abc.abstractmethod
    def filter(self, active: bool | None = None) -> Iterable[Employee]:
        raise NotImplementedError


class DonorRepository(AbstractRepository):
    @abc.abstractmethod
    def get_by_email(self, email: str) -> Donor | None:
        raise NotImplementedError


class PersistedOtpRepository(AbstractRepository):
    @abc.abstractmethod
    def get_unused(self, email: str, code: str) -> PersistedOtp | None:
        """Most recent unused row for this email and code."""
        raise NotImplementedError

    @abc.abstractmethod
    def delete_expired(self, before: datetime) -> int:
        raise NotImplementedError


class PersistedTokenRepository(abc.ABC):
    @abc.abstractmethod
    def add(self, item: PersistedToken) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    def get_by_token(self, token: str) -> PersistedToken | None:
        raise NotImplementedError

    @abc.abstractmethod
    def delete_expired(self, before: datetime) -> int:
        raise NotImplementedError


class AuditEntryRepository(AbstractRepository):
    @abc.abstractmethod
    def recent(self, limit: int = 100) -> Iterable[AuditEntry]:
        raise NotImplementedError


# ---------------------------------------------------------------------------
# Collaborators the services talk to
# ---------------------------------------------------------------------------


class EmployeeDirectory(abc.ABC):
    """Read-only lookup of staff accounts."""

    @abc.abstractmethod
    def get_by_email(self, email: str) -> Employee | None:
        raise NotImplementedError


class DonorDirectory(abc.ABC):
    @abc.abstractmethod
    def get_by_email(self, email: str) -> Donor | None:
        raise NotImplementedError

    @abc.abstractmethod
    def save(self, donor: Donor) -> Donor:
        """Insert or update by email. Returns the stored donor."""
        raise NotImplementedError


class PersistentStore(abc.ABC):
    """Durable OTP and token rows. Every method may raise; callers treat it as best effort."""

    @abc.abstractmethod
    def save_otp(self, otp: PersistedOtp) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    def mark_otp_used(self, email: str, code: str) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    def save_token(self, token: PersistedToken) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    def get_token(self, token: str) -> PersistedToken | None:
        raise NotImplementedError


class AuditSink(abc.ABC):
    @abc.abstractmethod
    def record(self, actor: str, action: str, details: dict[str, Any] | None = None) -> None:
        raise NotImplementedError


# ---------------------------------------------------------------------------
# Shared mutable state of the security services
#
# lock(key) returns the mutual exclusion guard for a key. Services hold it
# around every read-modify-write so updates for one key are applied in
# arrival order and none are lost.
# ---------------------------------------------------------------------------


class OtpRecordStore(abc.ABC):
    @abc.abstractmethod
    def lock(self, identity: str) -> AbstractContextManager[Any]:
        raise NotImplementedError

    @abc.abstractmethod
    def get(self, identity: str) -> OtpRecord | None:
        raise NotImplementedError

    @abc.abstractmethod
    def put(self, record: OtpRecord) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    def delete(self, identity: str) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    def purge_expired(self, now: datetime) -> int:
        raise NotImplementedError


@dataclass(frozen=True, slots=True)
class WindowEntry:
    at: datetime
    ref: str = ""


class SlidingWindowStore(abc.ABC):
    """Per-key lists of timestamped entries backing the sliding-window counters."""

    @abc.abstractmethod
    def lock(self, key: str) -> AbstractContextManager[Any]:
        raise NotImplementedError

    @abc.abstractmethod
    def get(self, key: str) -> list[WindowEntry]:
        raise NotImplementedError

    @abc.abstractmethod
    def set(self, key: str, entries: list[WindowEntry]) -> None:
        """Replace the entries for a key. An empty list removes the key."""
        raise NotImplementedError

    @abc.abstractmethod
    def keys(self) -> list[str]:
        raise NotImplementedError


class TokenCache(abc.ABC):
    @abc.abstractmethod
    def lock(self) -> AbstractContextManager[Any]:
        raise NotImplementedError

    @abc.abstractmethod
    def get(self, token: str) -> TokenRecord | None:
        raise NotImplementedError

    @abc.abstractmethod
    def put(self, record: TokenRecord) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    def delete(self, token: str) -> bool:
        raise NotImplementedError

    @abc.abstractmethod
    def all(self) -> list[TokenRecord]:
        raise NotImplementedError


class SessionTable(abc.ABC):
    @abc.abstractmethod
    def lock(self) -> AbstractContextManager[Any]:
        raise NotImplementedError

    @abc.abstractmethod
    def get(self, session_id: str) -> SessionData | None:
        raise NotImplementedError

    @abc.abstractmethod
    def put(self, session: SessionData) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    def delete(self, session_id: str) -> SessionData | None:
        raise NotImplementedError

    @abc.abstractmethod
    def for_user(self, user_id: str) -> list[SessionData]:
        raise NotImplementedError

    @abc.abstractmethod
    def all(self) -> list[SessionData]:
        raise NotImplementedError


class EventLog(abc.ABC):
    """Append-only, bounded buffer of activity events. Oldest events fall off first."""

    @abc.abstractmethod
    def lock(self) -> AbstractContextManager[Any]:
        raise NotImplementedError

    @abc.abstractmethod
    def append(self, event: ActivityEvent) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    def snapshot(self) -> list[ActivityEvent]:
        """Events oldest first."""
        raise NotImplementedError

    @abc.abstractmethod
    def prune_before(self, cutoff: datetime) -> int:
        raise NotImplementedError

    @property
    @abc.abstractmethod
    def capacity(self) -> int:
        raise NotImplementedError


class ThreatRegistry(abc.ABC):
    @abc.abstractmethod
    def lock(self) -> AbstractContextManager[Any]:
        raise NotImplementedError

    @abc.abstractmethod
    def add(self, report: ThreatReport) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    def get(self, report_id: str) -> ThreatReport | None:
        raise NotImplementedError

    @abc.abstractmethod
    def all(self) -> list[ThreatReport]:
        raise NotImplementedError
