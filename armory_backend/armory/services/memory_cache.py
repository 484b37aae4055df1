"""
In-process enchantment cache with lazy TTL expiry.

Freshness is decided at read time; stale entries stay in the map until they
are overwritten by the next successful fetch. Every `set` also schedules a
best-effort upsert into the durable store. Persistence failures are logged
and never affect the in-memory result.
"""
import asyncio
import logging
import time
from typing import Callable, Dict, Iterable, Optional, Set

from armory.services.enchantment_store import EnchantmentStore
from armory.services.resolution import CacheEntry, Resolution

logger = logging.getLogger(__name__)


class MemoryCache:

    def __init__(
        self,
        ttl_seconds: float,
        empty_ttl_seconds: Optional[float] = None,
        store: Optional[EnchantmentStore] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.ttl = ttl_seconds
        self.empty_ttl = ttl_seconds if empty_ttl_seconds is None else empty_ttl_seconds
        self.store = store
        self._clock = clock
        self._entries: Dict[int, CacheEntry] = {}
        self._pending_writes: Set[asyncio.Task] = set()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: int) -> bool:
        return key in self._entries

    def get(self, key: int) -> Optional[CacheEntry]:
        return self._entries.get(key)

    def get_fresh(self, key: int) -> Optional[Resolution]:
        """Return the cached resolution only if it is younger than the TTL."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if not entry.is_fresh(self._clock()):
            logger.debug(f"[CACHE] Stale entry for enchantment {key}, refetching")
            return None
        return entry.resolution

    def set(self, key: int, resolution: Resolution) -> CacheEntry:
        """Parsed-but-empty results (no item) only live for empty_ttl."""
        ttl = self.ttl if resolution.item_id is not None else self.empty_ttl
        entry = CacheEntry(resolution=resolution, fetched_at=self._clock(), ttl=ttl)
        self._entries[key] = entry
        if self.store is not None:
            self._schedule_persist(key, resolution)
        return entry

    def load(self, entries: Iterable[CacheEntry]) -> int:
        """Hydrate from durable rows (startup or read-through). Does not write back."""
        count = 0
        for entry in entries:
            self._entries[entry.resolution.key] = entry
            count += 1
        return count

    def clear(self) -> None:
        self._entries.clear()
        logger.info("[CACHE] Memory cache cleared")

    @property
    def pending_writes(self) -> int:
        return len(self._pending_writes)

    async def drain(self) -> None:
        """Wait for every scheduled persistence write to finish."""
        while self._pending_writes:
            await asyncio.gather(*list(self._pending_writes), return_exceptions=True)

    def _schedule_persist(self, key: int, resolution: Resolution) -> None:
        task = asyncio.get_running_loop().create_task(self._persist(key, resolution))
        self._pending_writes.add(task)
        task.add_done_callback(self._pending_writes.discard)

    async def _persist(self, key: int, resolution: Resolution) -> None:
        try:
            await self.store.upsert(key, resolution)
        except Exception as e:
            logger.error(f"[CACHE] Persisting enchantment {key} failed: {e}")
