"""LRU response cache for GET calls.

Entries are keyed by method and normalized path, expire after a TTL and are
evicted least-recently-used once the store is full. All operations take a
lock so concurrent requests can share one cache.
"""

import logging
import re
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from .config import env_float, env_int

_MAX_AGE = re.compile(r"max-age=(\d+)")


@dataclass
class CacheEntry:
    key: str
    data: Any
    status_code: int
    inserted_at: float
    last_accessed_at: float
    ttl: float
    etag: Optional[str] = None


@dataclass(frozen=True)
class HttpCacheConfig:
    max_size: int = 100
    default_ttl: float = 300.0
    respect_cache_control: bool = True


@dataclass
class CacheStats:
    hits: int
    misses: int
    size: int
    max_size: int
    hit_rate: float
    evictions: int
    expirations: int


class HttpCache:
    """Bounded, time-boxed store of successful GET responses"""

    def __init__(self, config: Optional[HttpCacheConfig] = None, clock: Callable[[], float] = time.monotonic):
        self.config = config or HttpCacheConfig()
        self._clock = clock
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._lock = threading.RLock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._expirations = 0

    @staticmethod
    def cache_key(path: str, method: str = "GET") -> str:
        return f"{method.upper()}:{path}"

    def _ttl_from_headers(self, headers: Optional[Dict[str, str]]) -> Optional[float]:
        if not headers or not self.config.respect_cache_control:
            return None
        cache_control = {k.lower(): v for k, v in headers.items()}.get("cache-control")
        if not cache_control:
            return None
        match = _MAX_AGE.search(cache_control)
        if match:
            return float(match.group(1))
        if "no-cache" in cache_control or "no-store" in cache_control:
            return 0.0
        return None

    def get(self, path: str, method: str = "GET") -> Optional[CacheEntry]:
        key = self.cache_key(path, method)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None
            now = self._clock()
            if now - entry.inserted_at > entry.ttl:
                del self._entries[key]
                self._expirations += 1
                self._misses += 1
                return None
            entry.last_accessed_at = now
            self._entries.move_to_end(key)
            self._hits += 1
            return entry

    def set(
        self,
        path: str,
        data: Any,
        status_code: int,
        method: str = "GET",
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        ttl = self._ttl_from_headers(headers)
        if method.upper() != "GET" and ttl is None:
            return
        if ttl == 0:
            return
        key = self.cache_key(path, method)
        now = self._clock()
        etag = None
        if headers:
            etag = {k.lower(): v for k, v in headers.items()}.get("etag")
        with self._lock:
            if key not in self._entries and len(self._entries) >= self.config.max_size:
                evicted, _ = self._entries.popitem(last=False)
                self._evictions += 1
                logging.debug(f"[HttpCache] Evicted {evicted}")
            self._entries[key] = CacheEntry(
                key=key,
                data=data,
                status_code=status_code,
                inserted_at=now,
                last_accessed_at=now,
                ttl=ttl if ttl is not None else self.config.default_ttl,
                etag=etag,
            )
            self._entries.move_to_end(key)

    def has(self, path: str, method: str = "GET") -> bool:
        """Whether a live entry exists; does not count as a hit or miss"""
        with self._lock:
            entry = self._entries.get(self.cache_key(path, method))
            return entry is not None and self._clock() - entry.inserted_at <= entry.ttl

    def invalidate(self, path: str, method: str = "GET") -> None:
        with self._lock:
            self._entries.pop(self.cache_key(path, method), None)

    def get_etag(self, path: str, method: str = "GET") -> Optional[str]:
        entry = self.get(path, method)
        return entry.etag if entry else None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._hits = 0
            self._misses = 0
            self._evictions = 0
            self._expirations = 0

    def get_stats(self) -> CacheStats:
        with self._lock:
            total = self._hits + self._misses
            hit_rate = round(self._hits / total * 100, 2) if total else 0.0
            return CacheStats(
                hits=self._hits,
                misses=self._misses,
                size=len(self._entries),
                max_size=self.config.max_size,
                hit_rate=hit_rate,
                evictions=self._evictions,
                expirations=self._expirations,
            )


def create_http_cache_from_env() -> HttpCache:
    """Build a cache from CONTROLPLANE_CACHE_MAX_SIZE and CONTROLPLANE_CACHE_TTL (seconds)"""
    defaults = HttpCacheConfig()
    config = HttpCacheConfig(
        max_size=env_int("CACHE_MAX_SIZE", defaults.max_size),
        default_ttl=env_float("CACHE_TTL", defaults.default_ttl),
    )
    logging.info(f"[HttpCache] max {config.max_size} entries, ttl {config.default_ttl:g}s")
    return HttpCache(config)


__all__ = [
    "CacheEntry",
    "HttpCacheConfig",
    "CacheStats",
    "HttpCache",
    "create_http_cache_from_env",
]
