"""
Read-through caches for collaborator lookups.

Catalog and market collaborators may be backed by slow or rate-limited
sources. These wrappers memoise every answer, misses included, so repeated
lookups during a ranking pass hit the source once. Thread-safe: the ranker
resolves items from several worker threads.
"""
from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Callable, Dict, Generic, Hashable, Optional, Tuple, TypeVar

from .catalog import CatalogLookup
from .market import MarketPriceOracle
from .models import BlueprintDef, ItemRef, PriceQuote

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


@dataclass
class CacheStats:
    """Hit/miss counters of a cache."""
    hits: int = 0
    misses: int = 0

    @property
    def lookups(self) -> int:
        return self.hits + self.misses


class _Memo(Generic[K, V]):
    """Lock-protected dictionary memo. Loader exceptions are not cached."""

    def __init__(self) -> None:
        self._entries: Dict[K, Optional[V]] = {}
        self._lock = threading.Lock()
        self.stats = CacheStats()

    def get(self, key: K, loader: Callable[[], Optional[V]]) -> Optional[V]:
        with self._lock:
            if key in self._entries:
                self.stats.hits += 1
                return self._entries[key]
        value = loader()
        with self._lock:
            self.stats.misses += 1
            self._entries.setdefault(key, value)
            return self._entries[key]

    def invalidate(self, key: K) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class CachedCatalog:
    """Memoising wrapper around a :class:`CatalogLookup`."""

    def __init__(self, source: CatalogLookup):
        self._source = source
        self._items: _Memo[str, ItemRef] = _Memo()
        self._blueprints: _Memo[str, BlueprintDef] = _Memo()

    def get_item(self, item_id: str) -> Optional[ItemRef]:
        return self._items.get(item_id, lambda: self._source.get_item(item_id))

    def get_blueprint(self, item_id: str) -> Optional[BlueprintDef]:
        return self._blueprints.get(item_id, lambda: self._source.get_blueprint(item_id))

    def invalidate(self, item_id: str) -> None:
        """Forget the cached item and blueprint of ``item_id``."""
        self._items.invalidate(item_id)
        self._blueprints.invalidate(item_id)

    @property
    def stats(self) -> Tuple[CacheStats, CacheStats]:
        """(item stats, blueprint stats)"""
        return self._items.stats, self._blueprints.stats

    def clear(self) -> None:
        self._items.clear()
        self._blueprints.clear()


class CachedPriceOracle:
    """Memoising wrapper around a :class:`MarketPriceOracle`."""

    def __init__(self, source: MarketPriceOracle):
        self._source = source
        self._quotes: _Memo[Tuple[str, Optional[str]], PriceQuote] = _Memo()

    def get_price(self, item_id: str, facility_id: Optional[str] = None) -> Optional[PriceQuote]:
        return self._quotes.get(
            (item_id, facility_id),
            lambda: self._source.get_price(item_id, facility_id),
        )

    def invalidate(self, item_id: str, facility_id: Optional[str] = None) -> None:
        self._quotes.invalidate((item_id, facility_id))

    @property
    def stats(self) -> CacheStats:
        return self._quotes.stats

    def clear(self) -> None:
        self._quotes.clear()
