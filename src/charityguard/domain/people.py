"""ABOUTME: Employee and donor domain models
ABOUTME: Employees carry an active flag and area:action permissions; donors log in with an OTP"""

import json
import uuid
from datetime import UTC, datetime
from typing import Any

ALL_PERMISSIONS = "*"


def normalise_email(email: str) -> str:
    return email.strip().lower()


def normalise_permissions(raw: Any) -> list[str]:
    """Permissions may be stored as a list or as a JSON encoded list. Anything else means none."""
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            return []
    if not isinstance(raw, list | tuple):
        return []
    return [str(p) for p in raw if isinstance(p, str) and p.strip()]


class Employee:
    def __init__(
        self,
        email: str,
        name: str,
        role: str = "",
        phone: str = "",
        notes: str = "",
        active: bool = True,
        permissions: Any = None,
        employee_id: uuid.UUID | None = None,
        created_at: datetime | None = None,
    ):
        self.id = employee_id or uuid.uuid4()
        self.email = normalise_email(email)
        self.name = name
        self.role = role
        self.phone = phone
        self.notes = notes
        self.active = active
        self.permissions = normalise_permissions(permissions)
        self.created_at = created_at or datetime.now(UTC)

    def has_permission(self, permission: str) -> bool:
        perms = normalise_permissions(self.permissions)
        return ALL_PERMISSIONS in perms or permission in perms

    def deactivate(self) -> None:
        self.active = False

    def activate(self) -> None:
        self.active = True

    def create_detached_copy(self) -> "Employee":
        return Employee(
            email=self.email,
            name=self.name,
            role=self.role,
            phone=self.phone,
            notes=self.notes,
            active=self.active,
            permissions=list(normalise_permissions(self.permissions)),
            employee_id=self.id,
            created_at=self.created_at,
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Employee):
            return False
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)


class Donor:
    def __init__(
        self,
        email: str,
        name: str = "",
        phone: str = "",
        donor_id: uuid.UUID | None = None,
        created_at: datetime | None = None,
        last_login_at: datetime | None = None,
    ):
        self.id = donor_id or uuid.uuid4()
        self.email = normalise_email(email)
        self.name = name
        self.phone = phone
        self.created_at = created_at or datetime.now(UTC)
        self.last_login_at = last_login_at

    def record_login(self, when: datetime | None = None) -> None:
        self.last_login_at = when or datetime.now(UTC)

    def create_detached_copy(self) -> "Donor":
        return Donor(
            email=self.email,
            name=self.name,
            phone=self.phone,
            donor_id=self.id,
            created_at=self.created_at,
            last_login_at=self.last_login_at,
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Donor):
            return False
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)
