"""In-memory translation cache with TTL expiry and FIFO eviction.

Entries are keyed by request fingerprint (``target_language:normalized_text``).
Expired entries are removed lazily on access and in bulk by ``sweep_expired``,
which the scheduler runs on a timer.
"""

import logging
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Optional

from translation_gateway.metrics.translation_metrics import (
    translation_cache_evictions_total,
    translation_cache_lookups_total,
)

logger = logging.getLogger(__name__)


def make_fingerprint(text: str, target_language: str) -> str:
    """Build the key under which interchangeable requests collapse."""
    return f"{target_language}:{(text or '').strip().lower()}"


@dataclass
class CacheEntry:
    fingerprint: str
    result: str
    stored_at: float
    tokens: int


class TranslationCache:
    """Bounded TTL cache for translation results.

    Eviction is FIFO: when the cache is full the oldest inserted entry is
    dropped, regardless of how recently it was read.
    """

    DEFAULT_TTL = 3600  # 1 hour in seconds

    def __init__(
        self,
        max_size: int = 1000,
        ttl_seconds: float = DEFAULT_TTL,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the cache.

        Args:
            max_size: Maximum number of entries to store.
            ttl_seconds: Age after which an entry is treated as absent.
            clock: Time source in seconds.
        """
        if max_size <= 0:
            raise ValueError("max_size must be positive")
        self.max_size = max_size
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def _is_expired(self, entry: CacheEntry, now: float) -> bool:
        return now - entry.stored_at > self.ttl_seconds

    def get(self, fingerprint: str) -> Optional[str]:
        """Get a cached translation.

        Args:
            fingerprint: Request fingerprint.

        Returns:
            Cached result, or None on a miss or an expired entry.
        """
        entry = self._entries.get(fingerprint)
        if entry is not None:
            if not self._is_expired(entry, self._clock()):
                self.hits += 1
                translation_cache_lookups_total.labels(result="hit").inc()
                return entry.result
            del self._entries[fingerprint]
            translation_cache_evictions_total.labels(reason="expired").inc()

        self.misses += 1
        translation_cache_lookups_total.labels(result="miss").inc()
        return None

    def put(self, fingerprint: str, result: str, tokens: int = 0) -> None:
        """Store a translation, evicting the oldest entry if full.

        Args:
            fingerprint: Request fingerprint.
            result: Translated text.
            tokens: Estimated token cost of the source text.
        """
        if fingerprint in self._entries:
            # Re-insert so the refreshed entry becomes the newest
            del self._entries[fingerprint]
        while len(self._entries) >= self.max_size:
            evicted, _ = self._entries.popitem(last=False)
            translation_cache_evictions_total.labels(reason="capacity").inc()
            logger.debug(f"Evicted oldest cache entry: {evicted[:50]}")

        self._entries[fingerprint] = CacheEntry(
            fingerprint=fingerprint,
            result=result,
            stored_at=self._clock(),
            tokens=tokens,
        )

    def sweep_expired(self) -> int:
        """Remove all expired entries.

        Returns:
            Number of entries removed.
        """
        now = self._clock()
        expired = [
            key for key, entry in self._entries.items() if self._is_expired(entry, now)
        ]
        for key in expired:
            del self._entries[key]

        if expired:
            translation_cache_evictions_total.labels(reason="expired").inc(len(expired))
            logger.info(f"Cleaned up {len(expired)} expired cache entries")
        return len(expired)

    def clear(self) -> None:
        """Clear all entries and reset counters."""
        self._entries.clear()
        self.hits = 0
        self.misses = 0

    def stats(self) -> dict:
        """Get cache statistics.

        Returns:
            Dict with hits, misses, size, max_size and hit_rate.
        """
        total = self.hits + self.misses
        hit_rate = self.hits / total if total > 0 else 0
        return {
            "hits": self.hits,
            "misses": self.misses,
            "size": len(self._entries),
            "max_size": self.max_size,
            "hit_rate": hit_rate,
        }

    def entry_stats(self) -> dict:
        """Get entry counts split by expiry state.

        Returns:
            Dict with total, expired and active entry counts.
        """
        now = self._clock()
        total = len(self._entries)
        expired = sum(
            1 for entry in self._entries.values() if self._is_expired(entry, now)
        )
        return {
            "total_entries": total,
            "expired_entries": expired,
            "active_entries": total - expired,
        }
