"""ABOUTME: Fake collaborator implementations for testing
ABOUTME: In-memory directories, stores, sinks and a controllable clock implementing the real interfaces"""

import uuid
from collections.abc import Iterable
from datetime import UTC, datetime, timedelta
from typing import Any

from charityguard.adapters.email import EmailAdapter
from charityguard.domain.audit import AuditEntry
from charityguard.domain.otp import PersistedOtp
from charityguard.domain.people import Donor, Employee, normalise_email
from charityguard.domain.tokens import PersistedToken
from charityguard.service_layer.repositories import (
    AbstractRepository,
    AuditEntryRepository,
    AuditSink,
    DonorDirectory,
    DonorRepository,
    EmployeeDirectory,
    EmployeeRepository,
    PersistedOtpRepository,
    PersistedTokenRepository,
    PersistentStore,
)
from charityguard.service_layer.unit_of_work import AbstractUnitOfWork


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2025, 1, 15, 9, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class FakeEmployeeDirectory(EmployeeDirectory):
    def __init__(self, employees: Iterable[Employee] = ()) -> None:
        self.employees = {e.email: e for e in employees}

    def add(self, employee: Employee) -> Employee:
        self.employees[employee.email] = employee
        return employee

    def get_by_email(self, email: str) -> Employee | None:
        return self.employees.get(normalise_email(email))


class FakeDonorDirectory(DonorDirectory):
    def __init__(self, donors: Iterable[Donor] = ()) -> None:
        self.donors = {d.email: d for d in donors}

    def get_by_email(self, email: str) -> Donor | None:
        return self.donors.get(normalise_email(email))

    def save(self, donor: Donor) -> Donor:
        self.donors[donor.email] = donor
        return donor


class FakePersistentStore(PersistentStore):
    """Keeps durable rows in dicts. With `fail=True` every call raises, like an unreachable database."""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.otps: list[PersistedOtp] = []
        self.tokens: dict[str, PersistedToken] = {}
        self.used_codes: list[tuple[str, str]] = []

    def _check(self) -> None:
        if self.fail:
            raise ConnectionError("database unavailable")

    def save_otp(self, otp: PersistedOtp) -> None:
        self._check()
        self.otps.append(otp)

    def mark_otp_used(self, email: str, code: str) -> None:
        self._check()
        self.used_codes.append((email, code))
        for otp in self.otps:
            if otp.email == email and otp.code == code:
                otp.mark_used()

    def save_token(self, token: PersistedToken) -> None:
        self._check()
        self.tokens[token.token] = token

    def get_token(self, token: str) -> PersistedToken | None:
        self._check()
        return self.tokens.get(token)


class FakeAuditSink(AuditSink):
    def __init__(self) -> None:
        self.entries: list[tuple[str, str, dict[str, Any]]] = []

    def record(self, actor: str, action: str, details: dict[str, Any] | None = None) -> None:
        self.entries.append((actor, action, dict(details or {})))

    def actions(self) -> list[str]:
        return [action for _actor, action, _details in self.entries]


class FakeEmailAdapter(EmailAdapter):
    def __init__(self, succeed: bool = True) -> None:
        self.succeed = succeed
        self.sent: list[tuple[str, str, str]] = []

    def send_email(self, to: str, subject: str, text_body: str) -> bool:
        if self.succeed:
            self.sent.append((to, subject, text_body))
        return self.succeed

    def last_code_for(self, email: str) -> str:
        """The six digit code in the most recent message to `email`."""
        for to, _subject, body in reversed(self.sent):
            if to == email:
                for word in body.replace(".", " ").split():
                    if len(word) == 6 and word.isdigit():
                        return word
        raise AssertionError(f"no code was sent to {email}")


class FakeRepository(AbstractRepository):
    """Base fake repository with in-memory storage."""

    def __init__(self, items: list[Any] | None = None):
        self._items = list(items) if items else []

    def add(self, item: Any) -> None:
        """Add an item to the repository."""
        self._items.append(item)

    def get(self, item_id: uuid.UUID) -> Any | None:
        """Get an item by its ID."""
        for item in self._items:
            if item.id == item_id:
                return item
        return None

    def all(self) -> Iterable[Any]:
        """Get all items in the repository."""
        return list(self._items)


class FakeEmployeeRepository(FakeRepository, EmployeeRepository):
    def get_by_email(self, email: str) -> Employee | None:
        for employee in self._items:
            if employee.email == email:
                return employee
        return None

    def filter(self, active: bool | None = None) -> Iterable[Employee]:
        found = sorted(self._items, key=lambda e: e.email)
        if active is not None:
            found = [e for e in found if e.active == active]
        return found


class FakeDonorRepository(FakeRepository, DonorRepository):
    def get_by_email(self, email: str) -> Donor | None:
        for donor in self._items:
            if donor.email == email:
                return donor
        return None


class FakePersistedOtpRepository(FakeRepository, PersistedOtpRepository):
    def get_unused(self, email: str, code: str) -> PersistedOtp | None:
        matches = [o for o in self._items if o.email == email and o.code == code and not o.used]
        return max(matches, key=lambda o: o.created_at) if matches else None

    def delete_expired(self, before: datetime) -> int:
        expired = [o for o in self._items if o.expires_at < before]
        self._items = [o for o in self._items if o not in expired]
        return len(expired)


class FakePersistedTokenRepository(PersistedTokenRepository):
    def __init__(self) -> None:
        self._items: dict[str, PersistedToken] = {}

    def add(self, item: PersistedToken) -> None:
        self._items[item.token] = item

    def get_by_token(self, token: str) -> PersistedToken | None:
        return self._items.get(token)

    def delete_expired(self, before: datetime) -> int:
        expired = [t for t, row in self._items.items() if row.expires_at < before]
        for token in expired:
            del self._items[token]
        return len(expired)


class FakeAuditEntryRepository(FakeRepository, AuditEntryRepository):
    def recent(self, limit: int = 100) -> Iterable[AuditEntry]:
        return sorted(self._items, key=lambda e: e.created_at, reverse=True)[:limit]


class FakeUnitOfWork(AbstractUnitOfWork):
    """Fake Unit of Work implementation for testing."""

    def __init__(self) -> None:
        self.employees = self.fake_employees = FakeEmployeeRepository()
        self.donors = self.fake_donors = FakeDonorRepository()
        self.otp_tokens = self.fake_otp_tokens = FakePersistedOtpRepository()
        self.auth_tokens = self.fake_auth_tokens = FakePersistedTokenRepository()
        self.audit_entries = self.fake_audit_entries = FakeAuditEntryRepository()
        self.committed = False

    def __enter__(self) -> AbstractUnitOfWork:
        return self

    def __exit__(self, *args) -> None:
        pass

    def commit(self) -> None:
        """Mark as committed."""
        self.committed = True

    def rollback(self) -> None:
        self.committed = False
