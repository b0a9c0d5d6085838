"""ABOUTME: One-time password domain models
ABOUTME: In-memory OTP records with attempt counting and the durable OTP row kept for auditing"""

import secrets
import uuid
from datetime import UTC, datetime, timedelta
from typing import Any

OTP_LENGTH = 6


def generate_otp_code(length: int = OTP_LENGTH) -> str:
    """Generate a uniformly random numeric code, zero padded to `length` digits."""
    return f"{secrets.randbelow(10**length):0{length}d}"


class OtpRecord:
    """The single outstanding code for an identity."""

    def __init__(
        self,
        identity: str,
        code: str,
        expires_at: datetime,
        attempts: int = 0,
        metadata: dict[str, Any] | None = None,
    ):
        self.identity = identity
        self.code = code
        self.expires_at = expires_at
        self.attempts = attempts
        self.metadata = metadata

    @classmethod
    def issue(
        cls, identity: str, ttl_minutes: int, now: datetime, metadata: dict[str, Any] | None = None
    ) -> "OtpRecord":
        if ttl_minutes <= 0:
            raise ValueError("OTP lifetime must be positive")
        return cls(
            identity=identity,
            code=generate_otp_code(),
            expires_at=now + timedelta(minutes=ttl_minutes),
            metadata=metadata,
        )

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

    def register_attempt(self) -> int:
        self.attempts += 1
        return self.attempts

    def matches(self, code: str) -> bool:
        return secrets.compare_digest(self.code, code)


class PersistedOtp:
    """Durable copy of an issued OTP, kept so codes survive a restart and can be audited."""

    def __init__(
        self,
        email: str,
        code: str,
        expires_at: datetime,
        used: bool = False,
        payload: dict[str, Any] | None = None,
        otp_id: uuid.UUID | None = None,
        created_at: datetime | None = None,
    ):
        self.id = otp_id or uuid.uuid4()
        self.email = email
        self.code = code
        self.expires_at = expires_at
        self.used = used
        # registration details carried by the code, stored in the "metadata" column
        self.payload = payload
        self.created_at = created_at or datetime.now(UTC)

    def mark_used(self) -> None:
        self.used = True

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PersistedOtp):
            return False
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)
