"""ABOUTME: Audit sink implementations
ABOUTME: Structured log output always; database rows written off the request path when configured"""

from typing import Any

import structlog

from charityguard.adapters.sql_store import UowFactory
from charityguard.domain.audit import AuditEntry
from charityguard.service_layer.background import AbstractBackgroundWorker
from charityguard.service_layer.repositories import AuditSink

audit_logger = structlog.get_logger("charityguard.audit")


class LoggingAuditSink(AuditSink):
    def record(self, actor: str, action: str, details: dict[str, Any] | None = None) -> None:
        audit_logger.info("audit", actor=actor, action=action, details=details or {})


class SqlAlchemyAuditSink(LoggingAuditSink):
    """Logs the entry, then stores it in the background."""

    def __init__(self, uow_factory: UowFactory, worker: AbstractBackgroundWorker) -> None:
        self.uow_factory = uow_factory
        self.worker = worker

    def record(self, actor: str, action: str, details: dict[str, Any] | None = None) -> None:
        super().record(actor, action, details)
        entry = AuditEntry(actor=actor, action=action, details=details)
        self.worker.submit(self._store, entry, description="store audit entry")

    def _store(self, entry: AuditEntry) -> None:
        with self.uow_factory() as uow:
            uow.audit_entries.add(entry)
