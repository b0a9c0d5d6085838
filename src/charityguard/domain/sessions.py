"""ABOUTME: Session domain model bound to a client fingerprint
ABOUTME: Tracks absolute and idle expiry and exposes a read-only view of active sessions"""

import hashlib
import secrets
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any


def generate_session_id() -> str:
    return secrets.token_hex(32)


def compute_fingerprint(user_id: str, ip_address: str, user_agent: str) -> str:
    """Hash binding a session to the (user, IP, user-agent) triple it was created from."""
    return hashlib.sha256(f"{user_id}:{ip_address}:{user_agent}".encode()).hexdigest()


class SessionData:
    def __init__(
        self,
        session_id: str,
        user_id: str,
        fingerprint: str,
        created_at: datetime,
        expires_at: datetime,
        ip_address: str,
        user_agent: str,
        device_id: str | None = None,
        metadata: dict[str, Any] | None = None,
        last_activity: datetime | None = None,
    ):
        self.session_id = session_id
        self.user_id = user_id
        self.fingerprint = fingerprint
        self.created_at = created_at
        self.expires_at = expires_at
        self.last_activity = last_activity or created_at
        self.ip_address = ip_address
        self.user_agent = user_agent
        self.device_id = device_id
        self.metadata: dict[str, Any] = dict(metadata or {})

    @classmethod
    def create(
        cls,
        user_id: str,
        ip_address: str,
        user_agent: str,
        now: datetime,
        timeout: timedelta,
        device_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> "SessionData":
        return cls(
            session_id=generate_session_id(),
            user_id=user_id,
            fingerprint=compute_fingerprint(user_id, ip_address, user_agent),
            created_at=now,
            expires_at=now + timeout,
            ip_address=ip_address,
            user_agent=user_agent,
            device_id=device_id,
            metadata=metadata,
        )

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

    def is_idle(self, now: datetime, activity_timeout: timedelta) -> bool:
        return now - self.last_activity > activity_timeout

    def touch(self, now: datetime) -> None:
        self.last_activity = now

    def to_view(self, now: datetime) -> "ActiveSession":
        return ActiveSession(
            session_id=self.session_id,
            user_id=self.user_id,
            fingerprint=self.fingerprint,
            created_at=self.created_at,
            expires_at=self.expires_at,
            last_activity=self.last_activity,
            ip_address=self.ip_address,
            user_agent=self.user_agent,
            device_id=self.device_id,
            metadata=dict(self.metadata),
            remaining_time=max(self.expires_at - now, timedelta(0)),
            activity_duration=now - self.created_at,
        )


@dataclass(frozen=True, slots=True)
class ActiveSession:
    """Snapshot of a live session handed out to callers."""

    session_id: str
    user_id: str
    fingerprint: str
    created_at: datetime
    expires_at: datetime
    last_activity: datetime
    ip_address: str
    user_agent: str
    device_id: str | None
    remaining_time: timedelta
    activity_duration: timedelta
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "sessionId": self.session_id,
            "userId": self.user_id,
            "createdAt": self.created_at.isoformat(),
            "expiresAt": self.expires_at.isoformat(),
            "lastActivity": self.last_activity.isoformat(),
            "ipAddress": self.ip_address,
            "userAgent": self.user_agent,
            "deviceId": self.device_id,
            "remainingSeconds": int(self.remaining_time.total_seconds()),
            "activitySeconds": int(self.activity_duration.total_seconds()),
        }
