"""Domain models for CharityGuard."""

from .activity import ActivityEvent, ThreatReport, classify_risk
from .value_objects import ActivityEventType, RiskLevel, ThreatType

__all__ = ["ActivityEvent", "ActivityEventType", "RiskLevel", "ThreatReport", "ThreatType", "classify_risk"]
