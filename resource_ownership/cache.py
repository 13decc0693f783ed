"""TTL cache for ownership decisions."""

import time
from collections import OrderedDict
from typing import Any, Dict, Hashable, Optional, Tuple

from sqlalchemy.orm import Session

from .config import CacheConfig
from .refs import EntityRef

CACHE_INFO_KEY = "resource_ownership.cache"

_MISSING = object()


class DecisionCache:
    """LRU cache with time-to-live for ownership decisions.

    Keys are tuples starting with the configured prefix and the resource
    reference so that all decisions about one resource can be dropped together.
    """

    def __init__(self, ttl: int = 3600, prefix: str = "ownership_", max_size: int = 10000):
        self.ttl = ttl
        self.prefix = prefix
        self.max_size = max_size
        self.cache: "OrderedDict[Hashable, Any]" = OrderedDict()
        self.timestamps: Dict[Hashable, float] = {}

        # Stats
        self.hits = 0
        self.misses = 0

    @classmethod
    def from_config(cls, config: CacheConfig) -> Optional["DecisionCache"]:
        if not config.enabled:
            return None
        return cls(ttl=config.ttl, prefix=config.prefix)

    def resource_prefix(self, resource: EntityRef) -> Tuple[str, str, str]:
        return (self.prefix, resource.type, resource.id)

    def key(self, resource: EntityRef, *parts: Any) -> Tuple[str, ...]:
        return self.resource_prefix(resource) + tuple(str(p) for p in parts)

    def get(self, key: Hashable, default: Any = _MISSING) -> Any:
        """Get item from cache if present and not expired."""
        if key not in self.cache:
            self.misses += 1
            return default

        if time.monotonic() - self.timestamps[key] > self.ttl:
            del self.cache[key]
            del self.timestamps[key]
            self.misses += 1
            return default

        self.cache.move_to_end(key)
        self.hits += 1
        return self.cache[key]

    def set(self, key: Hashable, value: Any) -> None:
        if key in self.cache:
            self.cache.move_to_end(key)
        elif len(self.cache) >= self.max_size:
            oldest_key = next(iter(self.cache))
            del self.cache[oldest_key]
            del self.timestamps[oldest_key]

        self.cache[key] = value
        self.timestamps[key] = time.monotonic()

    def remember(self, key: Hashable, compute) -> Any:
        """Cached value of ``key``, computing and storing it on a miss."""
        value = self.get(key)
        if value is _MISSING:
            value = compute()
            self.set(key, value)
        return value

    def invalidate_resource(self, resource: EntityRef) -> int:
        """Drop every decision about ``resource``. Returns how many were dropped."""
        prefix = self.resource_prefix(resource)
        stale = [
            key
            for key in self.cache
            if isinstance(key, tuple) and key[: len(prefix)] == prefix
        ]
        for key in stale:
            del self.cache[key]
            del self.timestamps[key]
        return len(stale)

    def clear(self) -> None:
        self.cache.clear()
        self.timestamps.clear()

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0

    def stats(self) -> Dict[str, Any]:
        return {
            "size": len(self.cache),
            "max_size": self.max_size,
            "ttl": self.ttl,
            "hits": self.hits,
            "misses": self.misses,
            "hit_rate": f"{self.hit_rate * 100:.1f}%",
        }

    def __len__(self) -> int:
        return len(self.cache)


def bind_cache(session: Session, cache: Optional[DecisionCache]) -> None:
    """Attach ``cache`` to ``session`` so model hooks can drop stale decisions."""
    if cache is not None:
        session.info[CACHE_INFO_KEY] = cache


def cache_of(session: Optional[Session]) -> Optional[DecisionCache]:
    if session is None:
        return None
    return session.info.get(CACHE_INFO_KEY)
