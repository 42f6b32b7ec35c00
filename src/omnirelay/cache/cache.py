"""In-memory response cache with TTL expiry and LRU eviction."""

from __future__ import annotations

import asyncio
import hashlib
import json
import re
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Pattern, Union

from pydantic import BaseModel, ConfigDict, Field

from ..core.config_schema import CacheConfig
from ..util.log import Log

log = Log.create({"service": "cache"})

# Operation names whose cached results belong to each data category.
CATEGORY_OPERATIONS: Dict[str, tuple[str, ...]] = {
    "tasks": ("get_all_tasks", "get_task_by_id", "search_tasks"),
    "projects": ("get_all_projects", "get_project_by_id"),
    "tags": ("get_all_tags",),
    "folders": ("get_all_folders",),
    "perspectives": ("get_perspectives",),
}

KEY_HASH_LENGTH = 16


class CacheStats(BaseModel):
    hits: int = 0
    misses: int = 0
    evictions: int = 0
    size: int = 0
    max_size: int = Field(0, alias="maxSize")
    hit_rate: float = Field(0.0, alias="hitRate")

    model_config = ConfigDict(populate_by_name=True)


@dataclass(frozen=True)
class CacheEntry:
    value: Any
    stored_at: float
    ttl: float

    def expired(self, now: float) -> bool:
        return now - self.stored_at > self.ttl


def generate_key(operation: str, params: Optional[Dict[str, Any]] = None) -> str:
    """Deterministic key: ``<operation>:<first 16 hex chars of md5>``.

    Parameters are serialized with sorted keys at every depth, so structurally
    equal parameters always produce the same key.
    """
    canonical = json.dumps(params or {}, sort_keys=True, separators=(",", ":"), default=str)
    digest = hashlib.md5(f"{operation}:{canonical}".encode("utf-8")).hexdigest()
    return f"{operation}:{digest[:KEY_HASH_LENGTH]}"


class CacheManager:
    """Bounded key/value cache.

    Entries expire ``ttl`` seconds after they were stored. When full, the
    least recently used entry is evicted to make room. A background task
    started with ``start()`` purges expired entries every
    ``cleanup_interval`` seconds; ``destroy()`` stops it and empties the cache.
    """

    def __init__(
        self,
        config: Optional[CacheConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config or CacheConfig()
        self._clock = clock
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._task: Optional[asyncio.Task[None]] = None

    generate_key = staticmethod(generate_key)

    def get(self, key: str, default: Any = None) -> Any:
        """Return the cached value, or ``default`` on a miss or expired entry."""
        entry = self._entries.get(key)
        if entry is None:
            self._count_miss()
            return default
        if entry.expired(self._clock()):
            del self._entries[key]
            self._count_miss()
            return default
        self._entries.move_to_end(key)
        if self.config.enable_stats:
            self._hits += 1
        return entry.value

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        if key not in self._entries and len(self._entries) >= self.config.max_entries:
            self._evict_lru()
        entry = CacheEntry(
            value=value,
            stored_at=self._clock(),
            ttl=ttl if ttl is not None else self.config.default_ttl,
        )
        self._entries[key] = entry
        self._entries.move_to_end(key)

    def has(self, key: str) -> bool:
        entry = self._entries.get(key)
        if entry is None:
            return False
        if entry.expired(self._clock()):
            del self._entries[key]
            return False
        return True

    def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        self._entries.clear()
        self._hits = self._misses = self._evictions = 0

    def size(self) -> int:
        return len(self._entries)

    def invalidate_by_pattern(self, pattern: Union[str, Pattern[str]]) -> int:
        regex = re.compile(pattern) if isinstance(pattern, str) else pattern
        doomed = [key for key in self._entries if regex.search(key)]
        for key in doomed:
            del self._entries[key]
        if doomed:
            log.debug("invalidated entries", {"pattern": regex.pattern, "count": len(doomed)})
        return len(doomed)

    def invalidate_by_category(self, category: str) -> int:
        operations = CATEGORY_OPERATIONS.get(category)
        if operations is None:
            raise ValueError(
                f"Unknown cache category {category!r}; expected one of "
                + ", ".join(sorted(CATEGORY_OPERATIONS))
            )
        return self.invalidate_by_pattern(
            "^(" + "|".join(re.escape(op) for op in operations) + "):"
        )

    def purge_expired(self) -> int:
        now = self._clock()
        doomed = [key for key, entry in self._entries.items() if entry.expired(now)]
        for key in doomed:
            del self._entries[key]
        return len(doomed)

    def get_stats(self) -> CacheStats:
        total = self._hits + self._misses
        return CacheStats(
            hits=self._hits,
            misses=self._misses,
            evictions=self._evictions,
            size=len(self._entries),
            max_size=self.config.max_entries,
            hit_rate=self._hits / total if total else 0.0,
        )

    def start(self) -> None:
        """Start the periodic cleanup task on the running loop."""
        if self._task is not None and not self._task.done():
            return
        self._task = asyncio.get_running_loop().create_task(self._cleanup_loop())

    async def destroy(self) -> None:
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self.clear()

    async def _cleanup_loop(self) -> None:
        while True:
            await asyncio.sleep(self.config.cleanup_interval)
            removed = self.purge_expired()
            if removed:
                log.debug("purged expired entries", {"count": removed})

    def _count_miss(self) -> None:
        if self.config.enable_stats:
            self._misses += 1

    def _evict_lru(self) -> None:
        key, _ = self._entries.popitem(last=False)
        if self.config.enable_stats:
            self._evictions += 1
        log.debug("evicted entry", {"key": key})
