"""ABOUTME: Activity monitoring and threat detection for authentication-relevant events
ABOUTME: Classifies risk, keeps a bounded event buffer and raises brute force, injection and anomaly reports"""

import json
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

import structlog

from charityguard.config import SecurityCfg
from charityguard.domain.activity import (
    ATTACK_EVENT_THREATS,
    BRUTE_FORCE_EVENT_TYPES,
    THREAT_SEVERITY,
    ActivityEvent,
    ThreatReport,
    classify_risk,
    generate_event_id,
    generate_threat_id,
)
from charityguard.domain.threat_signatures import scan
from charityguard.domain.value_objects import ActivityEventType, ThreatType
from charityguard.service_layer.repositories import (
    AuditSink,
    EventLog,
    SlidingWindowStore,
    ThreatRegistry,
    WindowEntry,
)

logger = structlog.get_logger(__name__)

BRUTE_FORCE_THRESHOLD = 10
BRUTE_FORCE_WINDOW = timedelta(seconds=60)

VELOCITY_WINDOW = timedelta(minutes=5)
VELOCITY_THRESHOLD = 20
ANOMALY_SAMPLE_SIZE = 50
ANOMALY_DURATION_FACTOR = 3

DEFAULT_RETENTION_DAYS = 30


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True, slots=True)
class ActivityStatistics:
    total_events: int
    suspicious_events: int
    failed_operations: int
    active_threat_reports: int
    event_density: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalEvents": self.total_events,
            "suspiciousEvents": self.suspicious_events,
            "failedOperations": self.failed_operations,
            "activeThreatReports": self.active_threat_reports,
            "eventDensity": round(self.event_density, 4),
        }


class ActivityMonitor:
    """Owns activity events and threat reports."""

    def __init__(
        self,
        events: EventLog,
        threats: ThreatRegistry,
        windows: SlidingWindowStore,
        audit_sink: AuditSink | None = None,
        settings: SecurityCfg | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._events = events
        self._threats = threats
        self._windows = windows
        self._audit_sink = audit_sink
        self.settings = settings or SecurityCfg()
        self._now = clock

    # -- ingestion ------------------------------------------------------------

    def log_event(
        self,
        event_type: ActivityEventType,
        actor: str,
        ip_address: str,
        user_agent: str,
        success: bool,
        details: dict[str, Any] | None = None,
        duration_ms: float | None = None,
        session_id: str | None = None,
    ) -> ActivityEvent:
        now = self._now()
        event = ActivityEvent(
            id=generate_event_id(now),
            timestamp=now,
            event_type=event_type,
            actor=actor,
            ip_address=ip_address,
            user_agent=user_agent,
            risk_level=classify_risk(event_type, success),
            success=success,
            details=dict(details or {}),
            duration_ms=duration_ms,
            session_id=session_id,
        )
        self._events.append(event)
        log = logger.warning if event.risk_level.is_suspicious else logger.info
        log(
            "activity event",
            event_type=event_type.value,
            actor=actor,
            ip_address=ip_address,
            success=success,
            risk_level=event.risk_level.value,
        )
        self.detect_threats(event)
        return event

    def log_login_attempt(self, identity: str, ip_address: str, user_agent: str, success: bool) -> ActivityEvent:
        self._track_attempt(f"login:{identity}:{ip_address}", success, identity=identity, ip_address=ip_address)
        return self.log_event(
            ActivityEventType.LOGIN_SUCCESS if success else ActivityEventType.LOGIN_FAILURE,
            identity,
            ip_address,
            user_agent,
            success,
            {"method": "email"},
        )

    def log_otp_attempt(
        self, identity: str, ip_address: str, user_agent: str, success: bool, email: str | None = None
    ) -> ActivityEvent:
        email = email or identity
        self._track_attempt(f"otp:{email}:{ip_address}", success, identity=email, ip_address=ip_address)
        return self.log_event(
            ActivityEventType.OTP_VERIFIED if success else ActivityEventType.OTP_FAILED,
            identity,
            ip_address,
            user_agent,
            success,
            {"email": email},
        )

    def log_sensitive_operation(
        self,
        actor: str,
        operation: str,
        ip_address: str,
        user_agent: str,
        details: dict[str, Any] | None = None,
        duration_ms: float | None = None,
        event_type: ActivityEventType = ActivityEventType.DATA_CREATED,
    ) -> ActivityEvent:
        return self.log_event(
            event_type,
            actor,
            ip_address,
            user_agent,
            True,
            {"operation": operation, **(details or {})},
            duration_ms,
        )

    # -- detection ------------------------------------------------------------

    def detect_threats(self, event: ActivityEvent) -> list[ThreatReport]:
        """Run the detectors in order and return any reports they opened."""
        opened: list[ThreatReport] = []

        report = self._detect_brute_force(event)
        if report is not None:
            opened.append(report)

        opened.extend(self._detect_signatures(event))

        report = self._detect_anomaly(event)
        if report is not None:
            opened.append(report)
        return opened

    def _detect_brute_force(self, event: ActivityEvent) -> ThreatReport | None:
        if event.success or event.event_type not in BRUTE_FORCE_EVENT_TYPES:
            return None
        key = f"brute-force:{self._actor_key(event.actor, event.ip_address)}"
        with self._windows.lock(key):
            entries = [e for e in self._windows.get(key) if e.at > event.timestamp - BRUTE_FORCE_WINDOW]
            entries.append(WindowEntry(at=event.timestamp, ref=event.id))
            self._windows.set(key, entries)
            if len(entries) < BRUTE_FORCE_THRESHOLD:
                return None

            with self._threats.lock():
                open_report = self._find_open_report(ThreatType.BRUTE_FORCE, event.actor, event.ip_address)
                if open_report is not None:
                    open_report.add_event(event.id)
                    return None
                return self._open_report(
                    event,
                    ThreatType.BRUTE_FORCE,
                    f"{len(entries)} failed attempts within {int(BRUTE_FORCE_WINDOW.total_seconds())} seconds",
                    event_ids=[e.ref for e in entries],
                )

    def _detect_signatures(self, event: ActivityEvent) -> list[ThreatReport]:
        threat_types: list[ThreatType] = []
        mapped = ATTACK_EVENT_THREATS.get(event.event_type)
        if mapped is not None:
            threat_types.append(mapped)
        if event.details:
            content = json.dumps(event.details, default=str, ensure_ascii=False)
            threat_types.extend(t for t in scan(content) if t not in threat_types)

        descriptions = {
            ThreatType.XSS: "Script injection attempt detected",
            ThreatType.SQL_INJECTION: "SQL injection attempt detected",
        }
        with self._threats.lock():
            return [self._open_report(event, t, descriptions[t]) for t in threat_types]

    def _detect_anomaly(self, event: ActivityEvent) -> ThreatReport | None:
        actor_events = [e for e in self._events.snapshot() if e.actor == event.actor]
        recent = [e for e in actor_events if e.timestamp > event.timestamp - VELOCITY_WINDOW]
        if len(recent) <= VELOCITY_THRESHOLD:
            return None

        sample = actor_events[-ANOMALY_SAMPLE_SIZE:]
        average = sum(e.duration_ms or 0 for e in sample) / len(sample)
        if not event.duration_ms or event.duration_ms <= average * ANOMALY_DURATION_FACTOR:
            return None
        with self._threats.lock():
            return self._open_report(
                event,
                ThreatType.ANOMALOUS_BEHAVIOR,
                f"Operation took {event.duration_ms:.0f}ms against an average of {average:.0f}ms",
            )

    # -- queries --------------------------------------------------------------

    def get_recent_events(self, limit: int = 100) -> list[ActivityEvent]:
        return list(reversed(self._events.snapshot()))[:limit]

    def get_user_events(self, actor: str, limit: int = 100) -> list[ActivityEvent]:
        return [e for e in reversed(self._events.snapshot()) if e.actor == actor][:limit]

    def get_ip_events(self, ip_address: str, limit: int = 100) -> list[ActivityEvent]:
        return [e for e in reversed(self._events.snapshot()) if e.ip_address == ip_address][:limit]

    def get_suspicious_events(self, limit: int = 50) -> list[ActivityEvent]:
        return [e for e in reversed(self._events.snapshot()) if e.risk_level.is_suspicious][:limit]

    def get_active_threat_reports(self) -> list[ThreatReport]:
        return sorted(
            (r for r in self._threats.all() if not r.resolved), key=lambda r: r.timestamp, reverse=True
        )

    def get_threat_report(self, report_id: str) -> ThreatReport | None:
        return self._threats.get(report_id)

    def resolve_threat(self, report_id: str, actions: list[str], resolved_by: str = "system") -> bool:
        with self._threats.lock():
            report = self._threats.get(report_id)
            if report is None or not report.resolve(actions):
                return False
        logger.info("threat report resolved", report_id=report_id, resolved_by=resolved_by, actions=actions)
        self._audit(resolved_by, "THREAT_RESOLVED", {"reportId": report_id, "actions": list(actions)})
        return True

    def get_statistics(self) -> ActivityStatistics:
        events = self._events.snapshot()
        suspicious = sum(1 for e in events if e.risk_level.is_suspicious)
        return ActivityStatistics(
            total_events=len(events),
            suspicious_events=suspicious,
            failed_operations=sum(1 for e in events if not e.success),
            active_threat_reports=sum(1 for r in self._threats.all() if not r.resolved),
            event_density=suspicious / len(events) if events else 0.0,
        )

    def cleanup(self, days_old: int = DEFAULT_RETENTION_DAYS) -> int:
        """Drop events older than `days_old` days. Returns how many were removed."""
        now = self._now()
        removed = self._events.prune_before(now - timedelta(days=days_old))
        horizon = now - max(self.settings.attempt_tracking_window, BRUTE_FORCE_WINDOW)
        for key in self._windows.keys():
            with self._windows.lock(key):
                self._windows.set(key, [e for e in self._windows.get(key) if e.at > horizon])
        if removed:
            logger.info("old activity events removed", count=removed, days_old=days_old)
        return removed

    # -- internals ------------------------------------------------------------

    @staticmethod
    def _actor_key(actor: str, ip_address: str) -> str:
        return f"{actor}:{ip_address}"

    def _track_attempt(self, key: str, success: bool, identity: str, ip_address: str) -> None:
        now = self._now()
        with self._windows.lock(key):
            if success:
                self._windows.set(key, [])
                return
            entries = [e for e in self._windows.get(key) if e.at > now - self.settings.attempt_tracking_window]
            entries.append(WindowEntry(at=now))
            self._windows.set(key, entries)
        if len(entries) >= self.settings.fraud_threshold:
            logger.warning(
                "repeated failed attempts", identity=identity, ip_address=ip_address, failures=len(entries)
            )

    def _find_open_report(self, threat_type: ThreatType, actor: str, ip_address: str) -> ThreatReport | None:
        for report in self._threats.all():
            if (
                not report.resolved
                and report.threat_type == threat_type
                and report.actor == actor
                and report.ip_address == ip_address
            ):
                return report
        return None

    def _open_report(
        self,
        event: ActivityEvent,
        threat_type: ThreatType,
        description: str,
        event_ids: list[str] | None = None,
    ) -> ThreatReport:
        report = ThreatReport(
            report_id=generate_threat_id(event.timestamp),
            timestamp=event.timestamp,
            actor=event.actor,
            ip_address=event.ip_address,
            threat_type=threat_type,
            severity=THREAT_SEVERITY[threat_type],
            description=description,
            event_ids=event_ids or [event.id],
        )
        self._threats.add(report)
        logger.error(
            "security threat detected",
            threat_type=threat_type.value,
            severity=report.severity.value,
            actor=event.actor,
            ip_address=event.ip_address,
            report_id=report.id,
            description=description,
        )
        self._audit("system", "THREAT_DETECTED", report.to_dict())
        return report

    def _audit(self, actor: str, action: str, details: dict[str, Any]) -> None:
        if self._audit_sink is None:
            return
        try:
            self._audit_sink.record(actor, action, details)
        except Exception:
            logger.exception("could not record audit entry", action=action)
