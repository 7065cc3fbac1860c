"""TTL response cache shared by the fetch layer.

An explicit object injected into the fetcher and adapters, so tests get a
fresh cache and nothing leaks between panes or test cases. Entries carry
their own TTL: short for candles, long for symbol/metadata lookups.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Hashable
from dataclasses import dataclass
from typing import Any

import structlog

log = structlog.get_logger()


@dataclass(frozen=True)
class _Entry:
    value: Any
    stored_at: float
    ttl: float


class TTLCache:
    """In-memory key/value cache with per-entry time-to-live.

    Reads never block and never touch the network. An expired entry is
    evicted on read. The clock is injectable for tests.
    """

    def __init__(
        self,
        default_ttl: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if default_ttl < 0:
            raise ValueError(f"default_ttl must be >= 0, got {default_ttl}")
        self._default_ttl = default_ttl
        self._clock = clock
        self._entries: dict[Hashable, _Entry] = {}
        self.hits = 0
        self.misses = 0

    def get(self, key: Hashable) -> Any | None:
        """Return the cached value, or None if absent or expired."""
        entry = self._entries.get(key)
        if entry is None:
            self.misses += 1
            return None
        if self._clock() - entry.stored_at >= entry.ttl:
            del self._entries[key]
            self.misses += 1
            return None
        self.hits += 1
        return entry.value

    def set(self, key: Hashable, value: Any, ttl: float | None = None) -> None:
        """Store a value. ``ttl`` overrides the default for this entry."""
        effective = self._default_ttl if ttl is None else ttl
        self._entries[key] = _Entry(value=value, stored_at=self._clock(), ttl=effective)

    def invalidate(self, key: Hashable) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()
        log.debug("cache_cleared")

    def __contains__(self, key: object) -> bool:
        entry = self._entries.get(key)  # type: ignore[arg-type]
        if entry is None:
            return False
        return self._clock() - entry.stored_at < entry.ttl

    def __len__(self) -> int:
        return len(self._entries)
