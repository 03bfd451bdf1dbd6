"""Bounded, thread-safe memoization of constructed compressor objects."""

from __future__ import annotations

import dataclasses
import hashlib
import json
import re
import threading
from collections import OrderedDict
from collections.abc import Callable, Mapping
from typing import Any, TypeVar

from site_minifier.errors import UnknownCompressorTypeError

# Compressors are heavyweight engine objects, so the per-type limit stays small.
MAX_CACHE_SIZE = 10

COMPRESSOR_TYPES = ("css", "js", "html")

DEFAULT_CACHE_KEY = "default"
CACHE_KEY_LENGTH = 16

T = TypeVar("T")


@dataclasses.dataclass(frozen=True, slots=True)
class CacheStatistics:
    """Snapshot of the cache counters."""

    hits: int = 0
    misses: int = 0
    evictions: int = 0

    @property
    def lookups(self) -> int:
        return self.hits + self.misses


def generate_cache_key(config_subset: Mapping[str, Any] | None) -> str:
    """Derive a short, order-independent key from a configuration subset.

    Nested mappings are serialized with sorted, stringified keys; compiled
    patterns contribute their full source and flags, and any other value
    without a JSON form contributes its ``repr``.
    """
    if not config_subset:
        return DEFAULT_CACHE_KEY
    # Sort dict keys for consistent hashing
    serialized = json.dumps(_canonical(config_subset), sort_keys=True, default=repr)
    return hashlib.sha256(serialized.encode()).hexdigest()[:CACHE_KEY_LENGTH]


def _canonical(value: Any) -> Any:
    """JSON-ready copy of *value*: string keys throughout, patterns by source and flags."""
    if isinstance(value, Mapping):
        return {str(k): _canonical(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_canonical(v) for v in value]
    if isinstance(value, re.Pattern):
        # repr() truncates long patterns
        return {"pattern": value.pattern, "flags": value.flags}
    return value


class CompressorCache:
    """One LRU sub-cache per compressor type, guarded by a single lock.

    Create one instance per host process (or per build) and share it; all
    operations are safe to call from multiple threads. The factory passed to
    :meth:`get_or_create` runs while the lock is held, so it must not call
    back into the same cache.
    """

    def __init__(self, max_size: int = MAX_CACHE_SIZE) -> None:
        if max_size < 1:
            raise ValueError(f"max_size must be at least 1, got {max_size}")
        self.max_size = max_size
        self._lock = threading.Lock()
        self._caches: dict[str, OrderedDict[str, Any]] = {t: OrderedDict() for t in COMPRESSOR_TYPES}
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def _sub_cache(self, compressor_type: str) -> OrderedDict[str, Any]:
        try:
            return self._caches[compressor_type]
        except KeyError:
            raise UnknownCompressorTypeError(compressor_type) from None

    def get_or_create(self, compressor_type: str, cache_key: str, factory: Callable[[], T]) -> T:
        """Return the cached object for *cache_key*, building it with *factory* on a miss.

        A factory that raises propagates to the caller and nothing is cached.
        """
        with self._lock:
            cache = self._sub_cache(compressor_type)

            if cache_key in cache:
                cache.move_to_end(cache_key)
                self._hits += 1
                return cache[cache_key]

            compressor = factory()
            self._misses += 1

            if len(cache) >= self.max_size:
                cache.popitem(last=False)
                self._evictions += 1

            cache[cache_key] = compressor
            return compressor

    def clear_all(self) -> None:
        """Empty every sub-cache and reset the statistics."""
        with self._lock:
            for cache in self._caches.values():
                cache.clear()
            self._hits = 0
            self._misses = 0
            self._evictions = 0

    def stats(self) -> CacheStatistics:
        with self._lock:
            return CacheStatistics(hits=self._hits, misses=self._misses, evictions=self._evictions)

    def cache_sizes(self) -> dict[str, int]:
        """Current entry count per compressor type, plus a ``total``."""
        with self._lock:
            sizes = {t: len(cache) for t, cache in self._caches.items()}
        sizes["total"] = sum(sizes.values())
        return sizes

    def hit_ratio(self) -> float:
        """Fraction of lookups served from cache; 0.0 before any lookup."""
        with self._lock:
            total = self._hits + self._misses
            if total == 0:
                return 0.0
            return self._hits / total
