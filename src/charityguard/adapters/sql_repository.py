"""ABOUTME: SQLAlchemy implementations of repository interfaces
ABOUTME: Provides concrete database operations using SQLAlchemy sessions"""

from __future__ import annotations

import uuid
from collections.abc import Iterable
from datetime import datetime

from sqlalchemy.orm import Session

from charityguard.adapters import orm
from charityguard.domain.audit import AuditEntry
from charityguard.domain.otp import PersistedOtp
from charityguard.domain.people import Donor, Employee
from charityguard.domain.tokens import PersistedToken
from charityguard.service_layer.repositories import (
    AuditEntryRepository,
    DonorRepository,
    EmployeeRepository,
    PersistedOtpRepository,
    PersistedTokenRepository,
)


class SqlAlchemyRepository:
    """Base SQLAlchemy repository with common functionality."""

    def __init__(self, session: Session) -> None:
        self.session = session


class SqlAlchemyEmployeeRepository(SqlAlchemyRepository, EmployeeRepository):
    def add(self, item: Employee) -> None:
        self.session.add(item)

    def get(self, item_id: uuid.UUID) -> Employee | None:
        return self.session.query(Employee).filter_by(id=item_id).first()

    def all(self) -> Iterable[Employee]:
        return self.session.query(Employee).order_by(orm.employees.c.email).all()

    def get_by_email(self, email: str) -> Employee | None:
        return self.session.query(Employee).filter_by(email=email).first()

    def filter(self, active: bool | None = None) -> Iterable[Employee]:
        query = self.session.query(Employee)
        if active is not None:
            query = query.filter(orm.employees.c.active == active)
        return query.order_by(orm.employees.c.email).all()


class SqlAlchemyDonorRepository(SqlAlchemyRepository, DonorRepository):
    def add(self, item: Donor) -> None:
        self.session.add(item)

    def get(self, item_id: uuid.UUID) -> Donor | None:
        return self.session.query(Donor).filter_by(id=item_id).first()

    def all(self) -> Iterable[Donor]:
        return self.session.query(Donor).all()

    def get_by_email(self, email: str) -> Donor | None:
        return self.session.query(Donor).filter_by(email=email).first()


class SqlAlchemyPersistedOtpRepository(SqlAlchemyRepository, PersistedOtpRepository):
    def add(self, item: PersistedOtp) -> None:
        self.session.add(item)

    def get(self, item_id: uuid.UUID) -> PersistedOtp | None:
        return self.session.query(PersistedOtp).filter_by(id=item_id).first()

    def all(self) -> Iterable[PersistedOtp]:
        return self.session.query(PersistedOtp).all()

    def get_unused(self, email: str, code: str) -> PersistedOtp | None:
        return (
            self.session.query(PersistedOtp)
            .filter_by(email=email, code=code, used=False)
            .order_by(orm.otp_tokens.c.created_at.desc())
            .first()
        )

    def delete_expired(self, before: datetime) -> int:
        return self.session.query(PersistedOtp).filter(orm.otp_tokens.c.expires_at < before).delete()


class SqlAlchemyPersistedTokenRepository(SqlAlchemyRepository, PersistedTokenRepository):
    def add(self, item: PersistedToken) -> None:
        self.session.merge(item)

    def get_by_token(self, token: str) -> PersistedToken | None:
        return self.session.query(PersistedToken).filter_by(token=token).first()

    def delete_expired(self, before: datetime) -> int:
        return self.session.query(PersistedToken).filter(orm.auth_tokens.c.expires_at < before).delete()


class SqlAlchemyAuditEntryRepository(SqlAlchemyRepository, AuditEntryRepository):
    def add(self, item: AuditEntry) -> None:
        self.session.add(item)

    def get(self, item_id: uuid.UUID) -> AuditEntry | None:
        return self.session.query(AuditEntry).filter_by(id=item_id).first()

    def all(self) -> Iterable[AuditEntry]:
        return self.session.query(AuditEntry).all()

    def recent(self, limit: int = 100) -> Iterable[AuditEntry]:
        return self.session.query(AuditEntry).order_by(orm.audit_entries.c.created_at.desc()).limit(limit).all()
