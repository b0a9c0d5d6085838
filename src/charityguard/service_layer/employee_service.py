"""ABOUTME: Employee account administration and durable-row maintenance
ABOUTME: Used by the CLI; every function runs inside the unit of work it is given"""

from datetime import UTC, datetime

import structlog

from charityguard.domain.audit import AuditEntry
from charityguard.domain.people import ALL_PERMISSIONS, Employee, normalise_email, normalise_permissions

from .exceptions import IdentityAlreadyExists, IdentityNotFound, ValidationError
from .security import is_valid_email
from .unit_of_work import AbstractUnitOfWork

logger = structlog.get_logger(__name__)

OWNER_ROLE = "owner"


def add_employee(
    uow: AbstractUnitOfWork,
    email: str,
    name: str,
    role: str = "",
    phone: str = "",
    permissions: list[str] | None = None,
    notes: str = "",
) -> Employee:
    """
    Create a new active employee.

    Raises:
        ValidationError: If the email is malformed or the name is empty
        IdentityAlreadyExists: If an employee with this email exists
    """
    email = normalise_email(email)
    if not is_valid_email(email):
        raise ValidationError(field="email")
    if not name.strip():
        raise ValidationError(field="name")
    with uow:
        if uow.employees.get_by_email(email) is not None:
            raise IdentityAlreadyExists(email)
        employee = Employee(
            email=email,
            name=name.strip(),
            role=role,
            phone=phone,
            notes=notes,
            permissions=permissions or [],
        )
        uow.employees.add(employee)
        uow.audit_entries.add(AuditEntry(actor="cli", action="employee_added", details={"email": email}))
        detached = employee.create_detached_copy()
        uow.commit()
    logger.info("employee added", email=email, role=role)
    return detached


def list_employees(uow: AbstractUnitOfWork, active: bool | None = None) -> list[Employee]:
    with uow:
        return [e.create_detached_copy() for e in uow.employees.filter(active=active)]


def set_employee_active(uow: AbstractUnitOfWork, email: str, active: bool) -> bool:
    """Returns False when the employee already had the requested state."""
    email = normalise_email(email)
    with uow:
        employee = uow.employees.get_by_email(email)
        if employee is None:
            raise IdentityNotFound(email)
        if employee.active == active:
            return False
        if active:
            employee.activate()
        else:
            employee.deactivate()
        uow.audit_entries.add(
            AuditEntry(
                actor="cli", action="employee_activated" if active else "employee_deactivated", details={"email": email}
            )
        )
        uow.commit()
    logger.info("employee active flag changed", email=email, active=active)
    return True


def ensure_owner(uow: AbstractUnitOfWork, email: str, name: str = "Owner") -> tuple[Employee, bool]:
    """Make sure the owner account exists, is active and holds every permission.

    Returns the owner and whether anything was created or changed.
    """
    email = normalise_email(email)
    if not is_valid_email(email):
        raise ValidationError(field="email")
    with uow:
        owner = uow.employees.get_by_email(email)
        changed = False
        if owner is None:
            owner = Employee(email=email, name=name, role=OWNER_ROLE, permissions=[ALL_PERMISSIONS])
            uow.employees.add(owner)
            changed = True
        else:
            if not owner.active:
                owner.activate()
                changed = True
            if ALL_PERMISSIONS not in normalise_permissions(owner.permissions):
                owner.permissions = [ALL_PERMISSIONS]
                changed = True
            if owner.role != OWNER_ROLE:
                owner.role = OWNER_ROLE
                changed = True
        if changed:
            uow.audit_entries.add(AuditEntry(actor="cli", action="owner_ensured", details={"email": email}))
        detached = owner.create_detached_copy()
        uow.commit()
    return detached, changed


def purge_expired_rows(uow: AbstractUnitOfWork, now: datetime | None = None) -> dict[str, int]:
    """Delete durable OTP and token rows past their expiry."""
    now = now or datetime.now(UTC)
    with uow:
        removed = {
            "otps": uow.otp_tokens.delete_expired(now),
            "tokens": uow.auth_tokens.delete_expired(now),
        }
        uow.commit()
    logger.info("expired durable rows removed", **removed)
    return removed


def recent_audit_entries(uow: AbstractUnitOfWork, limit: int = 50) -> list[AuditEntry]:
    with uow:
        return [
            AuditEntry(
                actor=e.actor, action=e.action, details=dict(e.details or {}), entry_id=e.id, created_at=e.created_at
            )
            for e in uow.audit_entries.recent(limit)
        ]
