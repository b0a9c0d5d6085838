"""ABOUTME: Audit trail entry domain model
ABOUTME: Records who performed which security-relevant action and with what details"""

import uuid
from datetime import UTC, datetime
from typing import Any


class AuditEntry:
    def __init__(
        self,
        actor: str,
        action: str,
        details: dict[str, Any] | None = None,
        entry_id: uuid.UUID | None = None,
        created_at: datetime | None = None,
    ):
        self.id = entry_id or uuid.uuid4()
        self.actor = actor
        self.action = action
        self.details = dict(details or {})
        self.created_at = created_at or datetime.now(UTC)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AuditEntry):
            return False
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)
