# Minimal TTL memo cache for derived governance analytics
import hashlib
import json
import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def build_cache_key(namespace: str, payload: Any) -> str:
    """Hash a request payload (filter spec, options, chain) into a stable key."""
    if hasattr(payload, "model_dump"):
        payload = payload.model_dump(mode="json")
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
    digest = hashlib.sha256(canonical.encode("utf-8")).hexdigest()
    return f"{namespace}:{digest}"


class AnalysisCache:
    """Simple TTL cache for filter/similarity/distribution results"""

    def __init__(self, ttl_minutes: int = 30, max_entries: int = 256):
        self.ttl_minutes = ttl_minutes
        self.max_entries = max_entries
        self._memory_cache: Dict[str, Dict[str, Any]] = {}
        self._cache_lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    def get(self, cache_key: str) -> Optional[Any]:
        """Get a cached value if it exists and is fresh"""
        with self._cache_lock:
            cache_entry = self._memory_cache.get(cache_key)
            if cache_entry is None:
                self._misses += 1
                logger.debug(f"Cache MISS for {cache_key}")
                return None
            if not self._is_cache_fresh(cache_entry["stored_at"]):
                del self._memory_cache[cache_key]
                self._misses += 1
                logger.debug(f"Cache EXPIRED for {cache_key}")
                return None
            self._hits += 1
            logger.debug(f"Cache HIT for {cache_key}")
            return cache_entry["data"]

    def store(self, cache_key: str, value: Any) -> None:
        """Store a value with TTL, evicting the oldest entry when full"""
        with self._cache_lock:
            self._memory_cache[cache_key] = {
                "data": value,
                "stored_at": datetime.now(timezone.utc),
            }
            self._cleanup_expired_memory_cache()
            while len(self._memory_cache) > self.max_entries:
                oldest = min(self._memory_cache, key=lambda k: self._memory_cache[k]["stored_at"])
                del self._memory_cache[oldest]

    def get_or_compute(self, cache_key: str, compute: Callable[[], T]) -> T:
        """Return the cached value or compute, store and return it."""
        cached = self.get(cache_key)
        if cached is not None:
            return cached
        value = compute()
        self.store(cache_key, value)
        return value

    def invalidate(self, prefix: str = "") -> int:
        """Drop every entry whose key starts with prefix (all entries by default)"""
        with self._cache_lock:
            keys = [key for key in self._memory_cache if key.startswith(prefix)]
            for key in keys:
                del self._memory_cache[key]
        if keys:
            logger.info(f"Invalidated {len(keys)} cache entries")
        return len(keys)

    def _is_cache_fresh(self, stored_at: datetime) -> bool:
        """Check if cached entry is still fresh"""
        expiry_time = stored_at + timedelta(minutes=self.ttl_minutes)
        return datetime.now(timezone.utc) < expiry_time

    def _cleanup_expired_memory_cache(self) -> None:
        """Remove expired entries; caller holds the lock"""
        expired_keys = [
            key for key, entry in self._memory_cache.items() if not self._is_cache_fresh(entry["stored_at"])
        ]
        for key in expired_keys:
            del self._memory_cache[key]
        if expired_keys:
            logger.info(f"Cleaned up {len(expired_keys)} expired cache entries")

    def get_cache_stats(self) -> Dict[str, Any]:
        """Get cache statistics for monitoring"""
        with self._cache_lock:
            memory_count = len(self._memory_cache)
        return {
            "memory_cache_entries": memory_count,
            "ttl_minutes": self.ttl_minutes,
            "max_entries": self.max_entries,
            "hits": self._hits,
            "misses": self._misses,
        }
