"""
In-memory client cache for the signed-in user's recipes.

One RecipeCache exists per user session. Entries are keyed by tuples:
("recipes",) holds the ordered list, ("recipes", <id>) a single recipe and
("favourite", <id>) the favourite state shown while a toggle is in flight.
Invalidation marks entries stale; the next get() is a miss and the caller
refetches.
"""

import copy
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

from recipevault.core.results import Result
from recipevault.services.metrics import (
    record_cache_hit,
    record_cache_miss,
    record_rollback,
)

logger = logging.getLogger(__name__)

LIST_KEY = ("recipes",)


def entity_key(recipe_id: str) -> tuple:
    return ("recipes", recipe_id)


def favourite_key(recipe_id: str) -> tuple:
    return ("favourite", recipe_id)


@dataclass
class CacheEntry:
    data: Any
    stale: bool = False


class RecipeCache:
    def __init__(self) -> None:
        self._entries: Dict[tuple, CacheEntry] = {}

    def get(self, key: tuple) -> Optional[Any]:
        """Fresh data for `key`, or None on a miss or stale entry."""
        entry = self._entries.get(key)
        if entry is None or entry.stale:
            record_cache_miss(key)
            logger.debug("Cache miss for %s", key)
            return None
        record_cache_hit(key)
        return entry.data

    def peek(self, key: tuple) -> Optional[Any]:
        """Data for `key` regardless of staleness. Does not count as a read."""
        entry = self._entries.get(key)
        return None if entry is None else entry.data

    def contains(self, key: tuple) -> bool:
        return key in self._entries

    def is_stale(self, key: tuple) -> bool:
        entry = self._entries.get(key)
        return entry is None or entry.stale

    def set(self, key: tuple, data: Any) -> None:
        self._entries[key] = CacheEntry(data=data)

    def update(self, key: tuple, fn: Callable[[Any], Any]) -> None:
        """Replace the data for `key` with fn(data). No-op when the key is absent."""
        entry = self._entries.get(key)
        if entry is not None:
            entry.data = fn(entry.data)

    def remove(self, key: tuple) -> None:
        self._entries.pop(key, None)

    def snapshot(self, key: tuple) -> Optional[Any]:
        data = self.peek(key)
        return None if data is None else copy.deepcopy(data)

    def invalidate(self, prefix: tuple = LIST_KEY) -> None:
        """Mark every entry whose key starts with `prefix` stale."""
        for key, entry in self._entries.items():
            if key[: len(prefix)] == prefix:
                entry.stale = True

    def clear(self) -> None:
        self._entries.clear()


async def optimistic_update(
    cache: RecipeCache,
    key: tuple,
    apply: Callable[[Optional[Any]], Optional[Any]],
    commit: Callable[[], Awaitable[Result]],
    operation: str,
    invalidate: Optional[tuple] = None,
) -> Result:
    """
    Snapshot `key`, write apply(snapshot) to the cache, then await commit().

    A failed commit restores the snapshot (or drops the key if there was
    none). When `invalidate` is given, that prefix is invalidated afterwards
    whatever the outcome.
    """
    snapshot = cache.snapshot(key)
    speculative = apply(copy.deepcopy(snapshot))
    if speculative is not None:
        cache.set(key, speculative)

    def restore() -> None:
        if snapshot is None:
            cache.remove(key)
        else:
            cache.set(key, snapshot)
        record_rollback(operation)

    try:
        try:
            result = await commit()
        except Exception:
            restore()
            raise
        if not result.is_ok:
            restore()
            logger.info("Rolled back optimistic %s: %s", operation, result.error.message)
        return result
    finally:
        if invalidate is not None:
            cache.invalidate(invalidate)
