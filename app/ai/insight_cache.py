"""Tracionar — Insight Cache.

In-process memo of generated narratives keyed by a fingerprint of the full
input. Entries live for a fixed TTL from generation time; an expired entry is
treated as absent and overwritten by the next generation.
"""

import asyncio
import hashlib
import json
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Dict, Optional

from app.config import settings
from app.core.logging import get_logger
from app.models.analytics_models import InsightPayload
from app.models.entities import utcnow

logger = get_logger("ai.cache")

Generator = Callable[[], Awaitable[InsightPayload]]


def fingerprint(kind: str, *parts: Any) -> str:
    """Deterministic SHA-256 digest of an operation's input."""
    canonical = json.dumps(
        [kind, list(parts)], sort_keys=True, separators=(",", ":"), default=str
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


@dataclass
class CacheEntry:
    payload: InsightPayload
    generated_at: datetime


class InsightCache:
    """Fingerprint → (payload, generated_at), expiry checked on read."""

    def __init__(
        self,
        ttl_seconds: int = 3600,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.ttl = timedelta(seconds=ttl_seconds)
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        # One in-flight generation per fingerprint
        self._locks: Dict[str, asyncio.Lock] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def _is_fresh(self, entry: CacheEntry, now: datetime) -> bool:
        return now - entry.generated_at < self.ttl

    def get(self, key: str) -> Optional[InsightPayload]:
        entry = self._entries.get(key)
        if entry is None or not self._is_fresh(entry, self._clock()):
            return None
        return entry.payload

    async def get_or_generate(self, key: str, generator: Generator) -> InsightPayload:
        """Return the cached payload or run ``generator`` and store its result.

        Concurrent callers with the same key wait for the first generation
        instead of running their own. A failing generator propagates and
        leaves the cache as it was.
        """
        cached = self.get(key)
        if cached is not None:
            logger.info("Insight served from cache", extra={"fingerprint": key})
            return cached

        async with self._locks.setdefault(key, asyncio.Lock()):
            # Filled while this caller waited
            cached = self.get(key)
            if cached is not None:
                logger.info("Insight served from cache", extra={"fingerprint": key})
                return cached

            payload = await generator()
            self._entries[key] = CacheEntry(payload=payload, generated_at=self._clock())
            return payload

    def purge_expired(self) -> int:
        now = self._clock()
        stale = [k for k, e in self._entries.items() if not self._is_fresh(e, now)]
        for key in stale:
            del self._entries[key]
        # Idle locks only; a held one still guards a running generation
        for key in [k for k, lock in self._locks.items() if not lock.locked()]:
            del self._locks[key]
        if stale:
            logger.info(f"Purged {len(stale)} expired insight cache entries")
        return len(stale)

    def clear(self) -> None:
        self._entries.clear()
        self._locks = {k: lock for k, lock in self._locks.items() if lock.locked()}


insight_cache = InsightCache(ttl_seconds=settings.insight_cache_ttl_seconds)
