"""Two-tier local cache: symbol search results and full per-symbol datasets.

Both tiers sit on an injected :class:`KeyValueStore`. Search results never
expire; datasets are fresh for a fixed window measured from capture time and
re-evaluated on every read. Anything that fails to decode is a cache miss.
"""
from __future__ import annotations

import json
import logging
import time
from datetime import timedelta
from typing import Any, Callable, Dict, List, Optional, Sequence

from stockscan.domain.models.financials import CacheEntry, StockData, SymbolMatch
from stockscan.infrastructure.db.base import KeyValueStore

logger = logging.getLogger(__name__)

SEARCH_CACHE_KEY = "searchSymbolCache_v1"
DATA_KEY_PREFIX = "symbolData:"
TIMESTAMP_KEY_PREFIX = "symbolDataTimestamp:"
DEFAULT_TTL = timedelta(hours=24)

Clock = Callable[[], float]


class SearchCache:
    """Search results keyed by the exact query text (no trimming or case folding)."""

    def __init__(self, store: KeyValueStore) -> None:
        self._store = store

    def get(self, query: str) -> Optional[List[SymbolMatch]]:
        entries = self._load().get(query)
        if entries is None:
            return None
        try:
            return [SymbolMatch(symbol=str(item["symbol"]), name=str(item["name"])) for item in entries]
        except (KeyError, TypeError) as exc:
            logger.debug("Ignoring malformed search cache entry for %r: %s", query, exc)
            return None

    def put(self, query: str, matches: Sequence[SymbolMatch]) -> None:
        cache = self._load()
        cache[query] = [match.to_dict() for match in matches]
        self._store.set(SEARCH_CACHE_KEY, json.dumps(cache))

    def clear(self) -> None:
        self._store.delete(SEARCH_CACHE_KEY)

    def _load(self) -> Dict[str, Any]:
        raw = self._store.get(SEARCH_CACHE_KEY)
        if not raw:
            return {}
        try:
            parsed = json.loads(raw)
        except ValueError as exc:
            logger.debug("Search cache is not valid JSON; starting empty: %s", exc)
            return {}
        if not isinstance(parsed, dict):
            logger.debug("Search cache has unexpected shape %s; starting empty", type(parsed).__name__)
            return {}
        return parsed


class DatasetCache:
    """Full :class:`StockData` records with an epoch-millisecond capture stamp."""

    def __init__(self, store: KeyValueStore, *, ttl: timedelta = DEFAULT_TTL, clock: Clock = time.time) -> None:
        self._store = store
        self._ttl_ms = int(ttl.total_seconds() * 1000)
        self._clock = clock

    @property
    def ttl(self) -> timedelta:
        return timedelta(milliseconds=self._ttl_ms)

    def now_ms(self) -> int:
        return int(self._clock() * 1000)

    def read(self, symbol: str) -> Optional[CacheEntry[StockData]]:
        """Return the stored entry regardless of age, or None when absent or malformed."""
        key = _symbol_key(symbol)
        raw_data = self._store.get(DATA_KEY_PREFIX + key)
        raw_stamp = self._store.get(TIMESTAMP_KEY_PREFIX + key)
        if not raw_data or not raw_stamp:
            return None
        try:
            payload = StockData.from_dict(json.loads(raw_data))
            captured_at = int(raw_stamp.strip())
        except (ValueError, KeyError, TypeError) as exc:
            logger.debug("Cached dataset for %s is unreadable; treating as miss: %s", key, exc)
            return None
        return CacheEntry(payload=payload, captured_at_ms=captured_at)

    def is_fresh(self, entry: CacheEntry[StockData]) -> bool:
        return entry.age_ms(self.now_ms()) < self._ttl_ms

    def get_fresh(self, symbol: str) -> Optional[StockData]:
        entry = self.read(symbol)
        if entry is None or not self.is_fresh(entry):
            return None
        return entry.payload

    def put(self, symbol: str, data: StockData) -> CacheEntry[StockData]:
        """Overwrite the entry for ``symbol`` and stamp it with the current time."""
        key = _symbol_key(symbol)
        captured_at = self.now_ms()
        self._store.set(DATA_KEY_PREFIX + key, json.dumps(data.to_dict()))
        self._store.set(TIMESTAMP_KEY_PREFIX + key, str(captured_at))
        return CacheEntry(payload=data, captured_at_ms=captured_at)

    def evict(self, symbol: str) -> None:
        key = _symbol_key(symbol)
        self._store.delete(DATA_KEY_PREFIX + key)
        self._store.delete(TIMESTAMP_KEY_PREFIX + key)


class CacheManager:
    """Bundle of the search and dataset caches sharing one store."""

    def __init__(self, store: KeyValueStore, *, ttl: timedelta = DEFAULT_TTL, clock: Clock = time.time) -> None:
        self.store = store
        self.search = SearchCache(store)
        self.datasets = DatasetCache(store, ttl=ttl, clock=clock)

    def clear(self) -> int:
        """Drop the search cache and every cached dataset; returns datasets removed."""
        self.search.clear()
        removed = 0
        for key in list(self.store.keys(DATA_KEY_PREFIX)):
            self.datasets.evict(key[len(DATA_KEY_PREFIX):])
            removed += 1
        return removed


def _symbol_key(symbol: str) -> str:
    return symbol.strip().upper()
