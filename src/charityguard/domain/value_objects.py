"""ABOUTME: Value objects and enums shared by the security domain models
ABOUTME: Defines activity event types, risk levels, threat types and rate-limit kinds"""

from enum import Enum


class ActivityEventType(Enum):
    LOGIN_ATTEMPT = "LOGIN_ATTEMPT"
    LOGIN_SUCCESS = "LOGIN_SUCCESS"
    LOGIN_FAILURE = "LOGIN_FAILURE"
    LOGOUT = "LOGOUT"
    TIMEOUT = "TIMEOUT"

    OTP_SENT = "OTP_SENT"
    OTP_VERIFIED = "OTP_VERIFIED"
    OTP_FAILED = "OTP_FAILED"
    PASSWORD_CHANGED = "PASSWORD_CHANGED"
    PASSWORD_RESET = "PASSWORD_RESET"

    DATA_CREATED = "DATA_CREATED"
    DATA_UPDATED = "DATA_UPDATED"
    DATA_DELETED = "DATA_DELETED"
    DATA_EXPORTED = "DATA_EXPORTED"

    USER_CREATED = "USER_CREATED"
    USER_DELETED = "USER_DELETED"
    USER_MODIFIED = "USER_MODIFIED"
    PERMISSION_CHANGED = "PERMISSION_CHANGED"

    SUSPICIOUS_ACTIVITY = "SUSPICIOUS_ACTIVITY"
    BRUTE_FORCE_ATTEMPT = "BRUTE_FORCE_ATTEMPT"
    XSS_ATTEMPT = "XSS_ATTEMPT"
    SQL_INJECTION_ATTEMPT = "SQL_INJECTION_ATTEMPT"
    UNAUTHORIZED_ACCESS = "UNAUTHORIZED_ACCESS"


class RiskLevel(Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"

    @property
    def is_suspicious(self) -> bool:
        return self in (RiskLevel.HIGH, RiskLevel.CRITICAL)


class ThreatType(Enum):
    BRUTE_FORCE = "brute-force"
    XSS = "xss"
    SQL_INJECTION = "sql-injection"
    ANOMALOUS_BEHAVIOR = "anomalous-behavior"


class RateLimitKind(Enum):
    # too many OTP requests in the rolling window
    REQUESTS = "requests"
    # too many failed verifications
    LOCKOUT = "lockout"
