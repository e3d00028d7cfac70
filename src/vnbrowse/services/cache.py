"""In-memory response cache with TTL and namespace invalidation.

Keys are built by :meth:`ResponseCache.fingerprint` from a namespace and the
exact request parameters. Parameters are serialized with orjson using sorted
keys, so two logically identical requests collide on the same key regardless
of the order their dictionaries were built in.
"""

from __future__ import annotations

import hashlib
import logging
import time
from collections.abc import Callable
from typing import Any

import orjson
from pydantic import BaseModel, ConfigDict, Field

from vnbrowse.shared.constants import CacheConfig
from vnbrowse.shared.errors import create_validation_error

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


class CacheEntry(BaseModel):
    """A cached payload and the clock reading after which it is dead."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    key: str = Field(..., description="Namespaced request fingerprint")
    expires_at: float = Field(..., description="Clock reading at which the entry expires")
    payload: Any = Field(..., description="The decoded response payload")

    def is_expired(self, now: float) -> bool:
        return now > self.expires_at


class ResponseCache:
    """TTL cache for decoded remote responses.

    A read past ``expires_at`` evicts the entry and counts as a miss.
    Entries are replaced, never mutated.

    Args:
        ttl_seconds: Lifetime of each entry.
        clock: Monotonic time source, injectable for tests.
    """

    def __init__(
        self,
        ttl_seconds: float = CacheConfig.TTL,
        clock: Clock = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._hits = 0
        self._misses = 0

    @staticmethod
    def fingerprint(namespace: str, params: Any) -> str:
        """Deterministic key for ``params`` within ``namespace``."""
        try:
            serialized = orjson.dumps(params, option=orjson.OPT_SORT_KEYS)
        except TypeError as e:
            raise create_validation_error(
                "Request parameters are not serializable",
                field=namespace,
                operation="cache_fingerprint",
                original_error=e,
            ) from e
        digest = hashlib.sha256(serialized).hexdigest()
        return f"{namespace}{CacheConfig.KEY_SEPARATOR}{digest}"

    def get(self, key: str) -> Any | None:
        """Return the cached payload, or None on a miss."""
        entry = self._entries.get(key)
        if entry is None:
            self._misses += 1
            return None
        if entry.is_expired(self._clock()):
            del self._entries[key]
            self._misses += 1
            logger.debug("Cache entry expired: %s", key)
            return None
        self._hits += 1
        return entry.payload

    def put(self, key: str, payload: Any) -> None:
        self._entries[key] = CacheEntry(
            key=key,
            expires_at=self._clock() + self.ttl_seconds,
            payload=payload,
        )

    def invalidate(
        self,
        namespace: str | None = None,
        predicate: Callable[[str], bool] | None = None,
    ) -> int:
        """Drop entries in ``namespace`` and/or matching ``predicate``.

        With neither argument every entry is dropped.

        Returns:
            Number of entries removed.
        """
        prefix = f"{namespace}{CacheConfig.KEY_SEPARATOR}" if namespace else None

        def matches(key: str) -> bool:
            if prefix is not None and not key.startswith(prefix):
                return False
            return predicate is None or predicate(key)

        doomed = [key for key in self._entries if matches(key)]
        for key in doomed:
            del self._entries[key]
        if doomed:
            logger.debug("Invalidated %d cache entries (namespace=%s)", len(doomed), namespace)
        return len(doomed)

    def purge_expired(self) -> int:
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def __len__(self) -> int:
        return len(self._entries)

    def get_stats(self) -> dict[str, Any]:
        total = self._hits + self._misses
        return {
            "entries": len(self._entries),
            "hits": self._hits,
            "misses": self._misses,
            "hit_ratio": (self._hits / total) if total else 0.0,
            "ttl_seconds": self.ttl_seconds,
        }
