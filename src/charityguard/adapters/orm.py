"""ABOUTME: SQLAlchemy table definitions for imperative mapping
ABOUTME: Employees, donors, durable OTP and token rows, and the audit trail"""

import uuid
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import JSON, TIMESTAMP, Boolean, Column, Index, String, Table, Text, TypeDecorator
from sqlalchemy.dialects.postgresql import UUID as PostgresUUID
from sqlalchemy.engine.interfaces import Dialect
from sqlalchemy.orm import registry
from sqlalchemy.sql.sqltypes import String as SQLString


def aware_utcnow() -> datetime:  # pragma: no cover
    return datetime.now(UTC)


class TZAwareDatetime(TypeDecorator):
    """Timezone-aware datetimes, also on databases that drop the zone (SQLite)."""

    impl = TIMESTAMP
    cache_ok = True

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        kwargs.setdefault("timezone", True)
        super().__init__(*args, **kwargs)

    def process_result_value(self, value: Any, dialect: Dialect) -> datetime | None:
        if value is None:
            return value

        # If the datetime is naive, assume it's UTC and make it aware
        if isinstance(value, datetime) and value.tzinfo is None:
            return value.replace(tzinfo=UTC)

        return value


class CrossDatabaseUUID(TypeDecorator):
    """Native UUID on PostgreSQL, CHAR(36) elsewhere."""

    impl = SQLString
    cache_ok = True

    def load_dialect_impl(self, dialect: Dialect) -> Any:
        if dialect.name == "postgresql":
            return dialect.type_descriptor(PostgresUUID(as_uuid=True))
        return dialect.type_descriptor(SQLString(36))

    def process_bind_param(self, value: Any, dialect: Dialect) -> Any:
        if value is None:
            return value
        if isinstance(value, str):
            value = uuid.UUID(value)
        if not isinstance(value, uuid.UUID):
            raise TypeError(f"Expected UUID or string, got {type(value)}")
        return value if dialect.name == "postgresql" else str(value)

    def process_result_value(self, value: Any, dialect: Dialect) -> uuid.UUID | None:
        if value is None or isinstance(value, uuid.UUID):
            return value
        return uuid.UUID(str(value))


mapper_registry = registry()
metadata = mapper_registry.metadata

employees = Table(
    "employees",
    metadata,
    Column("id", CrossDatabaseUUID(), primary_key=True, default=uuid.uuid4),
    Column("email", String(255), nullable=False, unique=True),
    Column("name", String(200), nullable=False, default=""),
    Column("role", String(100), nullable=False, default=""),
    Column("phone", String(32), nullable=False, default=""),
    Column("notes", Text, nullable=False, default=""),
    Column("active", Boolean, nullable=False, default=True),
    Column("permissions", JSON, nullable=False, default=list),
    Column("created_at", TZAwareDatetime(), nullable=False, default=aware_utcnow),
)

donors = Table(
    "donors",
    metadata,
    Column("id", CrossDatabaseUUID(), primary_key=True, default=uuid.uuid4),
    Column("email", String(255), nullable=False, unique=True),
    Column("name", String(200), nullable=False, default=""),
    Column("phone", String(32), nullable=False, default=""),
    Column("created_at", TZAwareDatetime(), nullable=False, default=aware_utcnow),
    Column("last_login_at", TZAwareDatetime(), nullable=True),
)

otp_tokens = Table(
    "otp_tokens",
    metadata,
    Column("id", CrossDatabaseUUID(), primary_key=True, default=uuid.uuid4),
    Column("email", String(255), nullable=False),
    Column("code", String(12), nullable=False),
    Column("expires_at", TZAwareDatetime(), nullable=False),
    Column("used", Boolean, nullable=False, default=False),
    Column("metadata", JSON, nullable=True, key="payload"),
    Column("created_at", TZAwareDatetime(), nullable=False, default=aware_utcnow),
    Index("ix_otp_tokens_email_code", "email", "code"),
)

auth_tokens = Table(
    "auth_tokens",
    metadata,
    Column("token", String(128), primary_key=True),
    Column("email", String(255), nullable=False, index=True),
    Column("expires_at", TZAwareDatetime(), nullable=False),
    Column("created_at", TZAwareDatetime(), nullable=False, default=aware_utcnow),
)

audit_entries = Table(
    "audit_entries",
    metadata,
    Column("id", CrossDatabaseUUID(), primary_key=True, default=uuid.uuid4),
    Column("actor", String(255), nullable=False, index=True),
    Column("action", String(100), nullable=False),
    Column("details", JSON, nullable=False, default=dict),
    Column("created_at", TZAwareDatetime(), nullable=False, default=aware_utcnow, index=True),
)
