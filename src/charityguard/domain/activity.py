"""ABOUTME: Activity events, threat reports and the risk classification table
ABOUTME: Events are immutable; threat reports can only move from open to resolved"""

import secrets
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from charityguard.domain.value_objects import ActivityEventType, RiskLevel, ThreatType


def _generate_id(prefix: str, now: datetime) -> str:
    return f"{prefix}_{int(now.timestamp() * 1000)}_{secrets.token_hex(5)}"


def generate_event_id(now: datetime) -> str:
    return _generate_id("EVT", now)


def generate_threat_id(now: datetime) -> str:
    return _generate_id("THR", now)


# Attack categories carry their risk whatever the outcome.
ATTACK_EVENT_RISK: dict[ActivityEventType, RiskLevel] = {
    ActivityEventType.XSS_ATTEMPT: RiskLevel.HIGH,
    ActivityEventType.SQL_INJECTION_ATTEMPT: RiskLevel.CRITICAL,
    ActivityEventType.BRUTE_FORCE_ATTEMPT: RiskLevel.CRITICAL,
}

# (event type, success) -> risk
RISK_RULES: dict[tuple[ActivityEventType, bool], RiskLevel] = {
    (ActivityEventType.LOGIN_FAILURE, False): RiskLevel.HIGH,
    (ActivityEventType.LOGIN_ATTEMPT, False): RiskLevel.HIGH,
    (ActivityEventType.OTP_FAILED, False): RiskLevel.HIGH,
    (ActivityEventType.OTP_VERIFIED, False): RiskLevel.HIGH,
    (ActivityEventType.PASSWORD_CHANGED, True): RiskLevel.MEDIUM,
    (ActivityEventType.PASSWORD_RESET, True): RiskLevel.MEDIUM,
    (ActivityEventType.PERMISSION_CHANGED, True): RiskLevel.MEDIUM,
    (ActivityEventType.USER_DELETED, True): RiskLevel.MEDIUM,
    (ActivityEventType.DATA_DELETED, True): RiskLevel.MEDIUM,
    (ActivityEventType.DATA_EXPORTED, True): RiskLevel.MEDIUM,
}

# Events of these types are counted towards brute force detection when they fail.
BRUTE_FORCE_EVENT_TYPES = frozenset({ActivityEventType.LOGIN_FAILURE, ActivityEventType.OTP_FAILED})

# Events whose type already names an attack raise the matching threat report.
ATTACK_EVENT_THREATS: dict[ActivityEventType, ThreatType] = {
    ActivityEventType.XSS_ATTEMPT: ThreatType.XSS,
    ActivityEventType.SQL_INJECTION_ATTEMPT: ThreatType.SQL_INJECTION,
}

THREAT_SEVERITY: dict[ThreatType, RiskLevel] = {
    ThreatType.BRUTE_FORCE: RiskLevel.CRITICAL,
    ThreatType.XSS: RiskLevel.HIGH,
    ThreatType.SQL_INJECTION: RiskLevel.CRITICAL,
    ThreatType.ANOMALOUS_BEHAVIOR: RiskLevel.MEDIUM,
}


def classify_risk(event_type: ActivityEventType, success: bool) -> RiskLevel:
    if event_type in ATTACK_EVENT_RISK:
        return ATTACK_EVENT_RISK[event_type]
    rule = RISK_RULES.get((event_type, success))
    if rule is not None:
        return rule
    return RiskLevel.LOW if success else RiskLevel.MEDIUM


@dataclass(frozen=True, slots=True)
class ActivityEvent:
    id: str
    timestamp: datetime
    event_type: ActivityEventType
    actor: str
    ip_address: str
    user_agent: str
    risk_level: RiskLevel
    success: bool
    details: dict[str, Any] = field(default_factory=dict)
    duration_ms: float | None = None
    session_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "eventType": self.event_type.value,
            "actor": self.actor,
            "ipAddress": self.ip_address,
            "userAgent": self.user_agent,
            "riskLevel": self.risk_level.value,
            "success": self.success,
            "details": self.details,
            "durationMs": self.duration_ms,
            "sessionId": self.session_id,
        }


class ThreatReport:
    """A named security concern built from one or more activity events."""

    def __init__(
        self,
        report_id: str,
        timestamp: datetime,
        actor: str,
        ip_address: str,
        threat_type: ThreatType,
        severity: RiskLevel,
        description: str,
        event_ids: list[str] | None = None,
    ):
        self.id = report_id
        self.timestamp = timestamp
        self.actor = actor
        self.ip_address = ip_address
        self.threat_type = threat_type
        self.severity = severity
        self.description = description
        self.event_ids: list[str] = list(event_ids or [])
        self.actions: list[str] = []
        self.resolved = False

    def add_event(self, event_id: str) -> None:
        if event_id not in self.event_ids:
            self.event_ids.append(event_id)

    def resolve(self, actions: list[str]) -> bool:
        """Close the report. Returns False if it was already resolved."""
        if self.resolved:
            return False
        self.resolved = True
        self.actions = list(actions)
        return True

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "actor": self.actor,
            "ipAddress": self.ip_address,
            "threatType": self.threat_type.value,
            "severity": self.severity.value,
            "events": list(self.event_ids),
            "description": self.description,
            "actions": list(self.actions),
            "resolved": self.resolved,
        }
