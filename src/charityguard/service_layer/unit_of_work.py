"""ABOUTME: Unit of Work pattern implementation for transaction management
ABOUTME: Coordinates repository operations within database transactions"""

from __future__ import annotations

import abc
from types import TracebackType

from sqlalchemy.orm import Session, sessionmaker

from charityguard.adapters.sql_repository import (
    SqlAlchemyAuditEntryRepository,
    SqlAlchemyDonorRepository,
    SqlAlchemyEmployeeRepository,
    SqlAlchemyPersistedOtpRepository,
    SqlAlchemyPersistedTokenRepository,
)
from charityguard.service_layer.repositories import (
    AuditEntryRepository,
    DonorRepository,
    EmployeeRepository,
    PersistedOtpRepository,
    PersistedTokenRepository,
)


class AbstractUnitOfWork(abc.ABC):
    """Abstract Unit of Work interface."""

    employees: EmployeeRepository
    donors: DonorRepository
    otp_tokens: PersistedOtpRepository
    auth_tokens: PersistedTokenRepository
    audit_entries: AuditEntryRepository

    def __enter__(self) -> AbstractUnitOfWork:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if exc_type is not None:
            self.rollback()
        else:
            self.commit()

    @abc.abstractmethod
    def commit(self) -> None:
        """Commit the current transaction."""
        raise NotImplementedError

    @abc.abstractmethod
    def rollback(self) -> None:
        """Rollback the current transaction."""
        raise NotImplementedError


class SqlAlchemyUnitOfWork(AbstractUnitOfWork):
    """SQLAlchemy implementation of Unit of Work pattern.

    A fresh session is opened on every `with` block, so one instance can be reused
    sequentially, but not shared between threads at the same time.
    """

    def __init__(self, session_factory: sessionmaker) -> None:
        self.session_factory = session_factory
        self._session: Session | None = None

    @property
    def session(self) -> Session:
        if self._session is None:
            self._session = self.session_factory()
        assert isinstance(self._session, Session)
        return self._session

    def __enter__(self) -> SqlAlchemyUnitOfWork:
        self.employees = SqlAlchemyEmployeeRepository(self.session)
        self.donors = SqlAlchemyDonorRepository(self.session)
        self.otp_tokens = SqlAlchemyPersistedOtpRepository(self.session)
        self.auth_tokens = SqlAlchemyPersistedTokenRepository(self.session)
        self.audit_entries = SqlAlchemyAuditEntryRepository(self.session)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        try:
            if exc_type is not None:
                self.rollback()
            else:
                self.commit()
        finally:
            self.session.close()
            self._session = None

    def commit(self) -> None:
        """Commit the current transaction."""
        self.session.commit()

    def rollback(self) -> None:
        """Rollback the current transaction."""
        self.session.rollback()

    def flush(self) -> None:
        """Flush pending changes to the database without committing."""
        self.session.flush()
