"""ABOUTME: Wires the security services to their stores and collaborators
ABOUTME: Returns a SecurityCore container; callers may swap any collaborator, tests use fakes"""

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime

import structlog
from sqlalchemy.orm import sessionmaker

from charityguard.adapters import database, memory
from charityguard.adapters.audit import SqlAlchemyAuditSink
from charityguard.adapters.email import EmailAdapter, get_email_adapter
from charityguard.adapters.sql_store import (
    SqlAlchemyDonorDirectory,
    SqlAlchemyEmployeeDirectory,
    SqlAlchemyPersistentStore,
)
from charityguard.config import EmailCfg, SecurityCfg, get_db_uri
from charityguard.service_layer import unit_of_work
from charityguard.service_layer.activity_monitor import ActivityMonitor
from charityguard.service_layer.background import AbstractBackgroundWorker, PeriodicTask, ThreadedBackgroundWorker
from charityguard.service_layer.otp_service import OTPManager
from charityguard.service_layer.repositories import AuditSink, DonorDirectory, EmployeeDirectory, PersistentStore
from charityguard.service_layer.session_service import SessionManager
from charityguard.service_layer.token_service import TokenStore

logger = structlog.get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass
class SecurityCore:
    otp: OTPManager
    tokens: TokenStore
    sessions: SessionManager
    monitor: ActivityMonitor
    employees: EmployeeDirectory
    donors: DonorDirectory
    audit: AuditSink
    email: EmailAdapter
    settings: SecurityCfg
    worker: AbstractBackgroundWorker
    uow_factory: Callable[[], unit_of_work.AbstractUnitOfWork] | None = None
    maintenance_task: PeriodicTask = field(init=False)

    def __post_init__(self) -> None:
        # sessions have their own cleanup task
        self.maintenance_task = PeriodicTask(
            "otp-token-event-cleanup", self.settings.session_cleanup_interval, self.sweep
        )

    def sweep(self) -> dict[str, int]:
        """Drop expired codes, tokens and old activity in one go."""
        removed = {
            "otps": self.otp.cleanup(),
            "tokens": self.tokens.cleanup(),
            "events": self.monitor.cleanup(),
        }
        logger.debug("maintenance sweep finished", **removed)
        return removed

    def start_background_tasks(self) -> None:
        self.sessions.start_cleanup_task()
        self.maintenance_task.start()

    def stop_background_tasks(self) -> None:
        self.sessions.stop_cleanup_task()
        self.maintenance_task.stop()
        self.worker.shutdown(wait=False)


def bootstrap(
    start_orm: bool = True,
    session_factory: sessionmaker | None = None,
    database_url: str = "",
    create_schema: bool = False,
    settings: SecurityCfg | None = None,
    email_adapter: EmailAdapter | None = None,
    worker: AbstractBackgroundWorker | None = None,
    employees: EmployeeDirectory | None = None,
    donors: DonorDirectory | None = None,
    persistent_store: PersistentStore | None = None,
    audit_sink: AuditSink | None = None,
    clock: Callable[[], datetime] = _utcnow,
) -> SecurityCore:
    settings = settings or SecurityCfg.from_env()
    worker = worker or ThreadedBackgroundWorker()

    uow_factory = None
    needs_database = None in (employees, donors, persistent_store, audit_sink)
    if needs_database:
        if start_orm:
            database.start_mappers()
        if session_factory is None:
            session_factory = database.create_session_factory(database_url or get_db_uri())
        if create_schema:
            database.create_tables(session_factory)
        factory = session_factory

        def uow_factory() -> unit_of_work.AbstractUnitOfWork:
            return unit_of_work.SqlAlchemyUnitOfWork(factory)

    if employees is None:
        employees = SqlAlchemyEmployeeDirectory(uow_factory)
    if donors is None:
        donors = SqlAlchemyDonorDirectory(uow_factory)
    if persistent_store is None:
        persistent_store = SqlAlchemyPersistentStore(uow_factory)
    if audit_sink is None:
        audit_sink = SqlAlchemyAuditSink(uow_factory, worker)

    otp = OTPManager(
        records=memory.InMemoryOtpRecordStore(),
        windows=memory.InMemorySlidingWindowStore(),
        persistent_store=persistent_store,
        worker=worker,
        settings=settings,
        clock=clock,
    )
    tokens = TokenStore(
        cache=memory.InMemoryTokenCache(),
        persistent_store=persistent_store,
        worker=worker,
        ttl=settings.token_ttl,
        clock=clock,
    )
    sessions = SessionManager(table=memory.InMemorySessionTable(), settings=settings, clock=clock)
    monitor = ActivityMonitor(
        events=memory.InMemoryEventLog(),
        threats=memory.InMemoryThreatRegistry(),
        windows=memory.InMemorySlidingWindowStore(),
        audit_sink=audit_sink,
        settings=settings,
        clock=clock,
    )

    return SecurityCore(
        otp=otp,
        tokens=tokens,
        sessions=sessions,
        monitor=monitor,
        employees=employees,
        donors=donors,
        audit=audit_sink,
        email=email_adapter or get_email_adapter(EmailCfg.from_env()),
        settings=settings,
        worker=worker,
        uow_factory=uow_factory,
    )
