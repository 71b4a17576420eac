from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Generic, Optional, TypeVar

T = TypeVar("T")

CATEGORIES = "categories"
EXPENSES = "expenses"


@dataclass(frozen=True)
class CachedCollection(Generic[T]):
    items: tuple[T, ...]
    version: int
    fetched_at: float


@dataclass
class CollectionCache:
    """Per-owner collection cache keyed by ``(kind, owner)``.

    Entries are dropped explicitly after a successful mutation; ``ttl_secs``
    bounds how long an untouched entry is served. Invalidation bumps the key's
    version, so a fetch that started before it is returned but not stored.
    """

    ttl_secs: Optional[float] = None
    clock: Callable[[], float] = time.monotonic
    _entries: dict[tuple[str, str], CachedCollection] = field(default_factory=dict)
    _versions: dict[tuple[str, str], int] = field(default_factory=dict)
    _generation: int = 0
    _lock: threading.RLock = field(default_factory=threading.RLock, repr=False)

    def get(self, kind: str, owner: str) -> Optional[CachedCollection]:
        key = (kind, owner)
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self.ttl_secs is not None and self.clock() - entry.fetched_at > self.ttl_secs:
            del self._entries[key]
            return None
        return entry

    def put(self, kind: str, owner: str, items) -> CachedCollection:
        key = (kind, owner)
        with self._lock:
            version = self._versions.get(key, 0) + 1
            self._versions[key] = version
            entry = CachedCollection(tuple(items), version, self.clock())
            self._entries[key] = entry
            return entry

    def get_or_fetch(self, kind: str, owner: str, fetch: Callable[[], list]) -> list:
        entry = self.get(kind, owner)
        if entry is not None:
            return list(entry.items)
        key = (kind, owner)
        seen = (self._generation, self._versions.get(key, 0))
        items = fetch()
        with self._lock:
            # A mutation landed while fetching; serve the result uncached.
            if (self._generation, self._versions.get(key, 0)) != seen:
                return list(items)
            return list(self.put(kind, owner, items).items)

    def invalidate(self, kind: str, owner: str) -> None:
        key = (kind, owner)
        with self._lock:
            self._entries.pop(key, None)
            self._versions[key] = self._versions.get(key, 0) + 1

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._generation += 1
