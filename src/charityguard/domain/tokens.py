"""ABOUTME: Bearer token domain models
ABOUTME: Opaque tokens bound to an identity with a fixed absolute lifetime"""

import secrets
from datetime import UTC, datetime, timedelta

TOKEN_BYTES = 32


def generate_token(nbytes: int = TOKEN_BYTES) -> str:
    return secrets.token_hex(nbytes)


class TokenRecord:
    """An issued bearer token. Valid while `now - created_at < ttl`."""

    def __init__(self, token: str, identity: str, created_at: datetime):
        self.token = token
        self.identity = identity
        self.created_at = created_at

    def is_valid(self, now: datetime, ttl: timedelta) -> bool:
        return now - self.created_at < ttl


class PersistedToken:
    """Durable token row used to recover sessions after a restart."""

    def __init__(
        self,
        token: str,
        email: str,
        expires_at: datetime,
        created_at: datetime | None = None,
    ):
        self.token = token
        self.email = email
        self.expires_at = expires_at
        self.created_at = created_at or datetime.now(UTC)

    def to_record(self) -> TokenRecord:
        return TokenRecord(token=self.token, identity=self.email, created_at=self.created_at)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PersistedToken):
            return False
        return self.token == other.token

    def __hash__(self) -> int:
        return hash(self.token)
