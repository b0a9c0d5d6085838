"""ABOUTME: Database connection setup and imperative mapping for CharityGuard
ABOUTME: Configures SQLAlchemy sessions and maps domain objects to tables"""

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import clear_mappers as sqla_clear_mappers
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from charityguard.adapters import orm
from charityguard.config import bool_environ_get, get_db_uri
from charityguard.domain.audit import AuditEntry
from charityguard.domain.otp import PersistedOtp
from charityguard.domain.people import Donor, Employee
from charityguard.domain.tokens import PersistedToken


class DatabaseError(Exception):
    """Base exception for database-related errors."""


def create_db_engine(database_url: str = "", echo: bool = False) -> Engine:
    database_url = database_url or get_db_uri()
    echo = bool_environ_get("DB_ECHO") or echo
    extra_args: dict[str, object] = {}
    if database_url.startswith("postgresql://"):
        extra_args = {
            "pool_pre_ping": True,  # Verify connections before use
            "pool_recycle": 3600,  # Recycle connections after 1 hour
            "pool_size": 10,
            "max_overflow": 20,
        }
    elif database_url == "sqlite:///:memory:":
        # one shared connection, so every thread sees the same in-memory database
        extra_args = {"connect_args": {"check_same_thread": False}, "poolclass": StaticPool}
    return create_engine(database_url, echo=echo, **extra_args)


def create_session_factory(database_url: str = "", echo: bool = False) -> sessionmaker:
    """Create a SQLAlchemy session factory with proper configuration."""
    return sessionmaker(bind=create_db_engine(database_url, echo), expire_on_commit=False)


_mappers_started = False


def start_mappers() -> None:
    """Map domain objects to tables. Safe to call more than once."""
    global _mappers_started

    if _mappers_started:
        return

    try:
        orm.mapper_registry.map_imperatively(Employee, orm.employees)
        orm.mapper_registry.map_imperatively(Donor, orm.donors)
        orm.mapper_registry.map_imperatively(PersistedOtp, orm.otp_tokens)
        orm.mapper_registry.map_imperatively(PersistedToken, orm.auth_tokens)
        orm.mapper_registry.map_imperatively(AuditEntry, orm.audit_entries)

        _mappers_started = True

    except Exception as e:  # pragma: no cover
        raise DatabaseError(f"Failed to start mappers: {e}") from e


def clear_mappers() -> None:
    sqla_clear_mappers()

    global _mappers_started
    _mappers_started = False


def create_tables(session_factory: sessionmaker) -> None:
    engine = session_factory.kw["bind"]
    orm.metadata.create_all(engine)
