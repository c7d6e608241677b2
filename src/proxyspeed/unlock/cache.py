"""Time-bounded cache of unlock results.

Entries are keyed by proxy name and platform. Expired entries are dropped
lazily on lookup and by a background sweeper thread. Lookups return a copy
so callers can stamp their own fields without touching the cached value.
"""
from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field, replace
from typing import Callable, Dict, Optional

from ..constants import UNLOCK_CACHE_SWEEP_INTERVAL, UNLOCK_CACHE_TTL
from ..models import UnlockResult

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    result: UnlockResult
    expires_at: float


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    entries: int = 0
    created_at: float = field(default_factory=time.time)

    @property
    def hit_ratio(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0


class UnlockCache:
    def __init__(
        self,
        default_ttl: float = UNLOCK_CACHE_TTL,
        sweep_interval: float = UNLOCK_CACHE_SWEEP_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
        start_sweeper: bool = True,
    ):
        self.default_ttl = default_ttl
        self.sweep_interval = sweep_interval
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self._stats = CacheStats()
        self._stopped = threading.Event()
        self._sweeper: Optional[threading.Thread] = None
        if start_sweeper:
            self._sweeper = threading.Thread(
                target=self._sweep_loop, name="unlock-cache-sweeper", daemon=True
            )
            self._sweeper.start()

    @staticmethod
    def key(proxy_name: str, platform: str) -> str:
        return f"{proxy_name}:{platform}"

    def get(self, proxy_name: str, platform: str) -> Optional[UnlockResult]:
        key = self.key(proxy_name, platform)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._stats.misses += 1
                return None
            if self._clock() >= entry.expires_at:
                del self._entries[key]
                self._stats.misses += 1
                return None
            self._stats.hits += 1
            return replace(entry.result)

    def set(
        self,
        proxy_name: str,
        platform: str,
        result: UnlockResult,
        ttl: Optional[float] = None,
    ) -> None:
        ttl = self.default_ttl if ttl is None or ttl <= 0 else ttl
        with self._lock:
            self._entries[self.key(proxy_name, platform)] = CacheEntry(
                result=replace(result), expires_at=self._clock() + ttl
            )

    def delete(self, proxy_name: str, platform: str) -> None:
        with self._lock:
            self._entries.pop(self.key(proxy_name, platform), None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def sweep(self) -> int:
        """Drop expired entries and return how many were removed."""
        now = self._clock()
        with self._lock:
            expired = [k for k, e in self._entries.items() if now >= e.expires_at]
            for key in expired:
                del self._entries[key]
        if expired:
            logger.debug("Unlock cache sweep removed %d entries", len(expired))
        return len(expired)

    def stats(self) -> CacheStats:
        with self._lock:
            return replace(self._stats, entries=len(self._entries))

    def _sweep_loop(self) -> None:
        while not self._stopped.wait(self.sweep_interval):
            self.sweep()

    def close(self) -> None:
        self._stopped.set()
        if self._sweeper is not None:
            self._sweeper.join(timeout=1)
            self._sweeper = None

    def __enter__(self) -> "UnlockCache":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
