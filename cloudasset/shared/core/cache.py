"""
In-memory cross-reference cache.

Provider APIs expose networks, subnets, instances and clusters as independent
lists that reference each other through opaque links (e.g. GCP selfLink
URLs). Collectors running concurrently write short summaries keyed by those
links so that other collectors can resolve a link to a normalized id.

Entries expire after a per-entry TTL (collectors use twice their poll
period) and the cache is bounded: a full cache drops expired entries first
and then the least recently used one. Writes never fail.
"""

from __future__ import annotations

import threading
import time
from collections import OrderedDict
from collections.abc import Callable
from datetime import timedelta
from typing import Generic, Optional, TypeVar

import structlog

logger = structlog.get_logger()

V = TypeVar("V")

DEFAULT_MAX_SIZE = 8192


class LinkCache(Generic[V]):
    """
    Bounded, TTL-expiring link -> summary store.

    Safe for concurrent callers: GCP SDK calls run in worker threads and
    write summaries from there, so state is guarded by a threading lock.
    Expired entries read as absent even before they are purged.
    """

    def __init__(
        self,
        name: str = "links",
        max_size: int = DEFAULT_MAX_SIZE,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_size < 1:
            raise ValueError("max_size must be >= 1")
        self.name = name
        self.max_size = max_size
        self._clock = clock
        self._entries: OrderedDict[str, tuple[float, V]] = OrderedDict()
        self._lock = threading.Lock()

    def put(self, link: str, value: V, ttl: timedelta | float) -> None:
        ttl_seconds = ttl.total_seconds() if isinstance(ttl, timedelta) else float(ttl)
        with self._lock:
            now = self._clock()
            if link in self._entries:
                del self._entries[link]
            elif len(self._entries) >= self.max_size:
                self._make_room(now)
            self._entries[link] = (now + ttl_seconds, value)

    def get(self, link: str) -> Optional[V]:
        with self._lock:
            entry = self._entries.get(link)
            if entry is None:
                return None
            expires_at, value = entry
            if expires_at <= self._clock():
                del self._entries[link]
                return None
            self._entries.move_to_end(link)
            return value

    def items(self) -> list[tuple[str, V]]:
        """Snapshot of unexpired entries, oldest first. Does not affect recency."""
        with self._lock:
            now = self._clock()
            return [
                (link, value)
                for link, (expires_at, value) in self._entries.items()
                if expires_at > now
            ]

    def values(self) -> list[V]:
        return [value for _, value in self.items()]

    def __len__(self) -> int:
        with self._lock:
            now = self._clock()
            return sum(1 for expires_at, _ in self._entries.values() if expires_at > now)

    def __contains__(self, link: object) -> bool:
        return isinstance(link, str) and self.get(link) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def _make_room(self, now: float) -> None:
        expired = [link for link, (expires_at, _) in self._entries.items() if expires_at <= now]
        for link in expired:
            del self._entries[link]
        while len(self._entries) >= self.max_size:
            evicted_link, _ = self._entries.popitem(last=False)
            logger.debug("link_cache_evicted", cache=self.name, link=evicted_link)
