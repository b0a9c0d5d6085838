"""ABOUTME: Integration tests for the SQLAlchemy repositories and database-backed collaborators
ABOUTME: Runs against an in-memory SQLite database with the imperative mappers started"""

from datetime import UTC, datetime, timedelta

from charityguard.adapters.audit import SqlAlchemyAuditSink
from charityguard.adapters.memory import InMemoryTokenCache
from charityguard.adapters.sql_store import (
    SqlAlchemyDonorDirectory,
    SqlAlchemyEmployeeDirectory,
    SqlAlchemyPersistentStore,
)
from charityguard.domain.otp import PersistedOtp
from charityguard.domain.people import Donor, Employee
from charityguard.domain.tokens import PersistedToken
from charityguard.service_layer.background import InlineBackgroundWorker
from charityguard.service_layer.token_service import TokenStore
from charityguard.service_layer.unit_of_work import SqlAlchemyUnitOfWork

NOW = datetime(2025, 1, 15, 9, 0, tzinfo=UTC)


def _uow_factory(session_factory):
    def factory():
        return SqlAlchemyUnitOfWork(session_factory)

    return factory


class TestEmployeeRepository:
    def test_add_and_get_by_email(self, sqlite_session_factory):
        with SqlAlchemyUnitOfWork(sqlite_session_factory) as uow:
            uow.employees.add(
                Employee(email="alice@charity.org", name="Alice", role="manager", permissions=["audit:view"])
            )

        with SqlAlchemyUnitOfWork(sqlite_session_factory) as uow:
            employee = uow.employees.get_by_email("alice@charity.org")
            assert employee is not None
            assert employee.name == "Alice"
            assert employee.has_permission("audit:view")
            assert employee.created_at.tzinfo is not None

    def test_filter_by_active(self, sqlite_session_factory):
        with SqlAlchemyUnitOfWork(sqlite_session_factory) as uow:
            uow.employees.add(Employee(email="sam@charity.org", name="Sam"))
            uow.employees.add(Employee(email="ivan@charity.org", name="Ivan", active=False))

        with SqlAlchemyUnitOfWork(sqlite_session_factory) as uow:
            assert [e.email for e in uow.employees.filter()] == ["ivan@charity.org", "sam@charity.org"]
            assert [e.email for e in uow.employees.filter(active=True)] == ["sam@charity.org"]

    def test_rollback_on_error(self, sqlite_session_factory):
        try:
            with SqlAlchemyUnitOfWork(sqlite_session_factory) as uow:
                uow.employees.add(Employee(email="sam@charity.org", name="Sam"))
                raise RuntimeError("abort")
        except RuntimeError:
            pass

        with SqlAlchemyUnitOfWork(sqlite_session_factory) as uow:
            assert uow.employees.get_by_email("sam@charity.org") is None


class TestDurableRows:
    """Test the durable OTP and token rows."""

    def test_otp_row_round_trip_with_metadata(self, sqlite_session_factory):
        store = SqlAlchemyPersistentStore(_uow_factory(sqlite_session_factory))
        metadata = {"name": "Nadia Noor", "phone": "0509876543", "isRegistration": True}

        store.save_otp(PersistedOtp(email="nadia@example.com", code="123456", expires_at=NOW, payload=metadata))
        store.mark_otp_used("nadia@example.com", "123456")

        with SqlAlchemyUnitOfWork(sqlite_session_factory) as uow:
            rows = list(uow.otp_tokens.all())
            assert len(rows) == 1
            assert rows[0].payload == metadata
            assert rows[0].used is True
            assert uow.otp_tokens.get_unused("nadia@example.com", "123456") is None

    def test_token_row_round_trip(self, sqlite_session_factory):
        store = SqlAlchemyPersistentStore(_uow_factory(sqlite_session_factory))

        store.save_token(
            PersistedToken(
                token="a" * 64, email="alice@charity.org", expires_at=NOW + timedelta(hours=24), created_at=NOW
            )
        )

        row = store.get_token("a" * 64)
        assert row is not None
        assert row.email == "alice@charity.org"
        assert row.created_at == NOW
        assert store.get_token("missing") is None

    def test_delete_expired(self, sqlite_session_factory):
        with SqlAlchemyUnitOfWork(sqlite_session_factory) as uow:
            uow.otp_tokens.add(
                PersistedOtp(email="a@charity.org", code="111111", expires_at=NOW - timedelta(minutes=1))
            )
            uow.otp_tokens.add(
                PersistedOtp(email="b@charity.org", code="222222", expires_at=NOW + timedelta(minutes=1))
            )
            uow.auth_tokens.add(PersistedToken(token="old", email="a@charity.org", expires_at=NOW - timedelta(hours=1)))
            uow.auth_tokens.add(PersistedToken(token="new", email="a@charity.org", expires_at=NOW + timedelta(hours=1)))

        with SqlAlchemyUnitOfWork(sqlite_session_factory) as uow:
            assert uow.otp_tokens.delete_expired(NOW) == 1
            assert uow.auth_tokens.delete_expired(NOW) == 1

        with SqlAlchemyUnitOfWork(sqlite_session_factory) as uow:
            assert [o.code for o in uow.otp_tokens.all()] == ["222222"]
            assert uow.auth_tokens.get_by_token("new") is not None

    def test_token_recovered_after_restart(self, sqlite_session_factory):
        """Test that a token issued before a restart is accepted through the durable store."""
        store = SqlAlchemyPersistentStore(_uow_factory(sqlite_session_factory))
        before = TokenStore(cache=InMemoryTokenCache(), persistent_store=store, worker=InlineBackgroundWorker())
        token = before.issue("alice@charity.org")

        after = TokenStore(cache=InMemoryTokenCache(), persistent_store=store, worker=InlineBackgroundWorker())

        assert after.verify(token) is None
        assert after.verify_durable(token) == "alice@charity.org"


class TestDirectories:
    def test_employee_directory_returns_detached_copy(self, sqlite_session_factory):
        with SqlAlchemyUnitOfWork(sqlite_session_factory) as uow:
            uow.employees.add(Employee(email="alice@charity.org", name="Alice", permissions=["audit:view"]))
        directory = SqlAlchemyEmployeeDirectory(_uow_factory(sqlite_session_factory))

        employee = directory.get_by_email(" ALICE@charity.org")

        assert employee is not None
        assert employee.name == "Alice"
        assert employee.permissions == ["audit:view"]
        assert directory.get_by_email("nobody@charity.org") is None

    def test_donor_directory_creates_then_updates(self, sqlite_session_factory):
        directory = SqlAlchemyDonorDirectory(_uow_factory(sqlite_session_factory))

        directory.save(Donor(email="nadia@example.com", name="Nadia Noor", phone="0509876543"))
        donor = directory.get_by_email("nadia@example.com")
        assert donor is not None
        donor.record_login(NOW)
        directory.save(donor)

        stored = directory.get_by_email("nadia@example.com")
        assert stored.name == "Nadia Noor"
        assert stored.last_login_at == NOW
        with SqlAlchemyUnitOfWork(sqlite_session_factory) as uow:
            assert len(list(uow.donors.all())) == 1


class TestAuditSink:
    def test_entries_are_stored(self, sqlite_session_factory):
        sink = SqlAlchemyAuditSink(_uow_factory(sqlite_session_factory), InlineBackgroundWorker())

        sink.record("alice@charity.org", "send_otp", {"expiresIn": "5 minutes"})

        with SqlAlchemyUnitOfWork(sqlite_session_factory) as uow:
            entries = list(uow.audit_entries.recent())
            assert len(entries) == 1
            assert entries[0].actor == "alice@charity.org"
            assert entries[0].details == {"expiresIn": "5 minutes"}
