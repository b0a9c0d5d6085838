"""ABOUTME: Database-backed collaborators of the security services
ABOUTME: Durable OTP/token rows and employee/donor lookups, each call in its own unit of work"""

from collections.abc import Callable

from charityguard.domain.otp import PersistedOtp
from charityguard.domain.people import Donor, Employee, normalise_email
from charityguard.domain.tokens import PersistedToken
from charityguard.service_layer.repositories import DonorDirectory, EmployeeDirectory, PersistentStore
from charityguard.service_layer.unit_of_work import AbstractUnitOfWork

UowFactory = Callable[[], AbstractUnitOfWork]


class SqlAlchemyPersistentStore(PersistentStore):
    def __init__(self, uow_factory: UowFactory) -> None:
        self.uow_factory = uow_factory

    def save_otp(self, otp: PersistedOtp) -> None:
        with self.uow_factory() as uow:
            uow.otp_tokens.add(otp)

    def mark_otp_used(self, email: str, code: str) -> None:
        with self.uow_factory() as uow:
            row = uow.otp_tokens.get_unused(email, code)
            if row is not None:
                row.mark_used()

    def save_token(self, token: PersistedToken) -> None:
        with self.uow_factory() as uow:
            uow.auth_tokens.add(token)

    def get_token(self, token: str) -> PersistedToken | None:
        with self.uow_factory() as uow:
            row = uow.auth_tokens.get_by_token(token)
            if row is None:
                return None
            return PersistedToken(
                token=row.token, email=row.email, expires_at=row.expires_at, created_at=row.created_at
            )


class SqlAlchemyEmployeeDirectory(EmployeeDirectory):
    def __init__(self, uow_factory: UowFactory) -> None:
        self.uow_factory = uow_factory

    def get_by_email(self, email: str) -> Employee | None:
        with self.uow_factory() as uow:
            employee = uow.employees.get_by_email(normalise_email(email))
            return employee.create_detached_copy() if employee else None


class SqlAlchemyDonorDirectory(DonorDirectory):
    def __init__(self, uow_factory: UowFactory) -> None:
        self.uow_factory = uow_factory

    def get_by_email(self, email: str) -> Donor | None:
        with self.uow_factory() as uow:
            donor = uow.donors.get_by_email(normalise_email(email))
            return donor.create_detached_copy() if donor else None

    def save(self, donor: Donor) -> Donor:
        with self.uow_factory() as uow:
            existing = uow.donors.get_by_email(donor.email)
            if existing is None:
                uow.donors.add(donor)
                stored = donor
            else:
                existing.name = donor.name or existing.name
                existing.phone = donor.phone or existing.phone
                existing.last_login_at = donor.last_login_at or existing.last_login_at
                stored = existing
            uow.commit()
            return stored.create_detached_copy()
