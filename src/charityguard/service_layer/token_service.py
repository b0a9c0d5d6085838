"""ABOUTME: Bearer token issuance and verification with a durable fallback
ABOUTME: Memory is authoritative; durable rows only help recover tokens after a restart"""

from collections.abc import Callable
from datetime import UTC, datetime, timedelta

import structlog

from charityguard.domain.tokens import PersistedToken, TokenRecord, generate_token
from charityguard.service_layer.background import AbstractBackgroundWorker, InlineBackgroundWorker
from charityguard.service_layer.repositories import PersistentStore, TokenCache

logger = structlog.get_logger(__name__)

DEFAULT_TOKEN_TTL = timedelta(hours=24)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class TokenStore:
    def __init__(
        self,
        cache: TokenCache,
        persistent_store: PersistentStore | None = None,
        worker: AbstractBackgroundWorker | None = None,
        ttl: timedelta = DEFAULT_TOKEN_TTL,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._cache = cache
        self._persistent_store = persistent_store
        self._worker = worker or InlineBackgroundWorker()
        self.ttl = ttl
        self._now = clock
        # token -> moment after which the revocation no longer matters (its TTL has passed anyway)
        self._revoked: dict[str, datetime] = {}

    def issue(self, identity: str) -> str:
        now = self._now()
        token = generate_token()
        self._cache.put(TokenRecord(token=token, identity=identity, created_at=now))

        if self._persistent_store is not None:
            row = PersistedToken(token=token, email=identity, expires_at=now + self.ttl, created_at=now)
            self._worker.submit(self._persistent_store.save_token, row, description="persist token")
        return token

    def verify(self, token: str) -> str | None:
        """Memory-only lookup. Expired entries are dropped on sight."""
        if not token:
            return None
        now = self._now()
        with self._cache.lock():
            record = self._cache.get(token)
            if record is None:
                return None
            if not record.is_valid(now, self.ttl):
                self._cache.delete(token)
                return None
            return record.identity

    def verify_durable(self, token: str) -> str | None:
        """Memory first, then the durable store on a miss. A durable hit is cached again."""
        identity = self.verify(token)
        if identity is not None or not token or self._persistent_store is None:
            return identity

        try:
            row = self._persistent_store.get_token(token)
        except Exception:
            logger.exception("durable token lookup failed, continuing without it")
            return None
        if row is None:
            return None
        with self._cache.lock():
            if token in self._revoked:
                return None

        record = row.to_record()
        if not record.is_valid(self._now(), self.ttl):
            return None
        self._cache.put(record)
        logger.info("token restored from durable store", identity=record.identity)
        return record.identity

    def invalidate(self, token: str) -> bool:
        """Memory-only removal.

        The durable row is left in place; the token is remembered as revoked until
        its TTL would have run out so the durable fallback cannot bring it back.
        """
        with self._cache.lock():
            self._revoked[token] = self._now() + self.ttl
            return self._cache.delete(token)

    def invalidate_identity(self, identity: str) -> int:
        with self._cache.lock():
            tokens = [r.token for r in self._cache.all() if r.identity == identity]
            for token in tokens:
                self.invalidate(token)
        return len(tokens)

    def cleanup(self) -> int:
        now = self._now()
        with self._cache.lock():
            expired = [r.token for r in self._cache.all() if not r.is_valid(now, self.ttl)]
            for token in expired:
                self._cache.delete(token)
            self._revoked = {t: until for t, until in self._revoked.items() if until > now}
        return len(expired)
