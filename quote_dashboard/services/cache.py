"""
Cache management for quote batches.

Holds the most recent successful batch in memory with a freshness window.
Used only as a fallback when a live refresh fails.
"""
import time
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Tuple

from ..config import settings
from ..logging_config import get_logger
from ..schemas import QuoteRecord

logger = get_logger(__name__)


@dataclass(frozen=True)
class CacheEntry:
    """One captured batch and the clock time it was stored."""
    snapshot: Tuple[QuoteRecord, ...]
    captured_at: float


class QuoteCache:
    """
    Single-entry in-memory cache with time-to-live (TTL) support.

    Every store replaces the previous batch wholesale, so a snapshot
    never mixes records from two refreshes. Expired entries are not erased,
    they just stop being served.
    """

    def __init__(
        self,
        ttl_seconds: Optional[int] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        """
        Initialize the cache.

        Args:
            ttl_seconds: Freshness window. Defaults to config value.
            clock: Returns the current time in seconds. Defaults to time.time.
        """
        self._entry: Optional[CacheEntry] = None
        self._ttl = ttl_seconds if ttl_seconds is not None else settings.cache_ttl_seconds
        self._clock = clock or time.time

    def store(self, records: Iterable[QuoteRecord]) -> None:
        """
        Replace the held batch.

        Args:
            records: Quote records from one successful refresh.
        """
        self._entry = CacheEntry(snapshot=tuple(records), captured_at=self._clock())
        logger.debug(f"Cached batch of {len(self._entry.snapshot)} quotes")

    def fetch_if_fresh(self) -> List[QuoteRecord]:
        """
        Get the held batch if it is still inside the freshness window.

        Returns:
            The cached records, or an empty list if nothing fresh is held.
        """
        if self._entry is None:
            return []
        age = self._clock() - self._entry.captured_at
        if age < self._ttl:
            logger.debug(f"Cache hit ({age:.0f}s old)")
            return list(self._entry.snapshot)
        logger.debug(f"Cache stale ({age:.0f}s old)")
        return []

    def clear(self) -> int:
        """
        Drop the held batch.

        Returns:
            Number of records cleared.
        """
        count = len(self._entry.snapshot) if self._entry else 0
        self._entry = None
        logger.info(f"Cleared {count} cached quotes")
        return count

    @property
    def age_seconds(self) -> Optional[float]:
        """Age of the held batch, or None if nothing has been stored."""
        if self._entry is None:
            return None
        return self._clock() - self._entry.captured_at

    @property
    def ttl_seconds(self) -> int:
        return self._ttl


# Singleton instance
_quote_cache: Optional[QuoteCache] = None


def get_quote_cache() -> QuoteCache:
    """Get the singleton quote cache instance."""
    global _quote_cache
    if _quote_cache is None:
        _quote_cache = QuoteCache()
    return _quote_cache
