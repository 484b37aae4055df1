"""
Enchantment Resolver Service

Resolves TrinityCore enchantment ids (spell_item_enchantment) to the item
that applies them, scraped from WotLKDB.

Strategy per lookup:
1. key < 1 -> "Unknown" immediately, nothing else touched
2. Fresh memory cache hit -> return it
3. Already in flight -> await the same future as the other callers
4. Resolver closed -> placeholder, nothing queued
5. Otherwise register, enqueue, await

Workers (bounded by the dispatch scheduler) first check the durable store
for a fresh resolved row, otherwise fetch + extract, then:
- success -> memory cache + durable store, settle waiters
- parsed-but-empty -> same, but the memory entry only lives for empty_ttl
- recoverable failure -> delayed requeue at queue head with exponential backoff
- retries exhausted -> placeholder to waiters, NOT cached anywhere

resolve() never raises. Callers only see failure as category "unknown".
"""
import asyncio
import logging
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from armory.adapters.wotlkdb_adapter import WotLKDBAdapter
from armory.core.exceptions import RecoverableFetchError
from armory.services.cooldown import CooldownTracker
from armory.services.dispatch import DispatchScheduler, RateGate
from armory.services.enchantment_store import EnchantmentStore
from armory.services.inflight_registry import InFlightRegistry
from armory.services.memory_cache import MemoryCache
from armory.services.resolution import QueueItem, Resolution, ResolutionState
from armory.services.retry_policy import RetryPolicy

logger = logging.getLogger(__name__)


class ResolverProfile(str, Enum):
    FULL = "full"      # persistence, cooldown-aware retries with backoff
    SIMPLE = "simple"  # memory only, any error falls back immediately


@dataclass
class ResolverConfig:
    max_concurrent: int = 3
    min_interval: float = 0.5          # seconds between dispatches
    max_retries: int = 3
    backoff_base: float = 1.0          # seconds
    fetch_timeout: float = 10.0
    ban_penalty: float = 60.0
    cache_ttl: timedelta = timedelta(days=7)
    empty_ttl: timedelta = timedelta(seconds=60)  # pages with no item reference
    persist: bool = True

    @classmethod
    def for_profile(cls, profile: ResolverProfile, **overrides) -> "ResolverConfig":
        config = cls(**overrides)
        if profile is ResolverProfile.SIMPLE:
            config.max_retries = 0
            config.backoff_base = 0.0
            config.persist = False
        return config

    @classmethod
    def from_settings(cls, settings) -> "ResolverConfig":
        return cls.for_profile(
            ResolverProfile(settings.RESOLVER_PROFILE),
            max_concurrent=settings.RESOLVER_MAX_CONCURRENT,
            min_interval=settings.RESOLVER_MIN_INTERVAL_MS / 1000,
            max_retries=settings.RESOLVER_MAX_RETRIES,
            backoff_base=settings.RESOLVER_BACKOFF_BASE_SECONDS,
            fetch_timeout=settings.RESOLVER_FETCH_TIMEOUT_SECONDS,
            ban_penalty=settings.RESOLVER_BAN_PENALTY_SECONDS,
            cache_ttl=timedelta(days=settings.RESOLVER_CACHE_TTL_DAYS),
            empty_ttl=timedelta(seconds=settings.RESOLVER_EMPTY_TTL_SECONDS),
        )


class EnchantmentResolver:
    """
    Single entry point for enchantment lookups. Owns all resolver state:
    no module-level caches or queues.

    Usage:
        resolver = EnchantmentResolver.from_settings(settings, AsyncSessionLocal, engine)
        await resolver.start()
        resolution = await resolver.resolve(3539)
        await resolver.close()
    """

    def __init__(
        self,
        adapter: WotLKDBAdapter,
        config: Optional[ResolverConfig] = None,
        store: Optional[EnchantmentStore] = None,
        cooldown: Optional[CooldownTracker] = None,
        retry_policy: Optional[RetryPolicy] = None,
        cache: Optional[MemoryCache] = None,
    ):
        self.config = config or ResolverConfig()
        self.adapter = adapter
        self.store = store if self.config.persist else None
        self.cooldown = cooldown or adapter.cooldown
        self.retry_policy = retry_policy or RetryPolicy(
            max_retries=self.config.max_retries,
            base_delay=self.config.backoff_base,
        )
        self.cache = cache or MemoryCache(
            ttl_seconds=self.config.cache_ttl.total_seconds(),
            empty_ttl_seconds=self.config.empty_ttl.total_seconds(),
            store=self.store,
        )
        self.registry = InFlightRegistry()
        self.scheduler = DispatchScheduler(
            handler=self._process,
            max_concurrent=self.config.max_concurrent,
            rate_gate=RateGate(self.config.min_interval),
        )
        self._started = False
        self._closed = False
        self._start_lock = asyncio.Lock()

    @classmethod
    def from_settings(cls, settings, session_factory=None, engine=None) -> "EnchantmentResolver":
        config = ResolverConfig.from_settings(settings)
        cooldown = CooldownTracker(penalty_seconds=config.ban_penalty)
        adapter = WotLKDBAdapter(
            cooldown=cooldown,
            base_url=settings.WOTLKDB_BASE_URL,
            timeout=config.fetch_timeout,
            user_agents=settings.RESOLVER_USER_AGENTS,
            debug_html_dir=settings.RESOLVER_DEBUG_HTML_DIR or None,
        )
        store = None
        if config.persist and session_factory is not None:
            store = EnchantmentStore(session_factory, engine=engine)
        logger.info(
            f"[RESOLVER] Configured: profile={settings.RESOLVER_PROFILE}, "
            f"max_concurrent={config.max_concurrent}, min_interval={config.min_interval}s, "
            f"max_retries={config.max_retries}, persist={store is not None}"
        )
        return cls(adapter=adapter, config=config, store=store, cooldown=cooldown)

    # ==========================================================================
    # LIFECYCLE
    # ==========================================================================

    async def start(self) -> None:
        """Hydrate the memory cache from the durable store. Safe to call twice."""
        async with self._start_lock:
            if self._started:
                return
            if self.store is not None:
                entries = await self.store.load_recent(self.config.cache_ttl)
                loaded = self.cache.load(entries)
                logger.info(f"[RESOLVER] Hydrated {loaded} enchantments from persistent cache")
            self._started = True

    async def close(self) -> None:
        self._closed = True
        await self.scheduler.close()
        # Anything still waiting would otherwise hang forever
        for key in list(self.registry.keys()):
            future = self.registry.get(key)
            self.registry.release(key)
            if future is not None and not future.done():
                future.set_result(Resolution.placeholder(key))
        await self.cache.drain()
        await self.adapter.close()

    # ==========================================================================
    # PUBLIC API
    # ==========================================================================

    async def resolve(self, key: int) -> Resolution:
        if key is None or key < 1:
            return Resolution.invalid(key)

        try:
            if not self._started:
                await self.start()

            cached = self.cache.get_fresh(key)
            if cached is not None:
                logger.debug(f"[RESOLVER] Cache HIT for enchantment {key} -> Item {cached.item_id}")
                return cached

            if self._closed:
                logger.warning(f"[RESOLVER] Resolver closed, not queueing enchantment {key}")
                return Resolution.placeholder(key)

            future, is_new = self.registry.try_register(key)
            if is_new:
                self.scheduler.submit(QueueItem(key=key, future=future))
            return await asyncio.shield(future)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception(f"[RESOLVER] Unexpected error resolving enchantment {key}")
            return Resolution.placeholder(key)

    async def resolve_multiple(self, keys: Iterable[int]) -> List[Resolution]:
        """
        Resolve a batch. Duplicates and non-positive ids are dropped; one
        result per remaining unique id, in first-seen order.
        """
        unique_keys = list(dict.fromkeys(k for k in keys if k is not None and k > 0))
        logger.info(f"[RESOLVER] Resolving batch of {len(unique_keys)} enchantments")

        results = await asyncio.gather(
            *(self.resolve(key) for key in unique_keys),
            return_exceptions=True,
        )
        return [
            result if isinstance(result, Resolution) else Resolution.placeholder(key)
            for key, result in zip(unique_keys, results)
        ]

    def get_cache_stats(self) -> Dict[str, Any]:
        active_until = self.cooldown.active_until()
        return {
            "size": len(self.cache),
            "inFlightCount": len(self.registry),
            "queueDepth": len(self.scheduler.queue),
            "cooldownActiveUntil": active_until.isoformat() if active_until else None,
            "activeWorkers": self.scheduler.active,
            "retriesScheduled": self.scheduler.retries_scheduled,
        }

    def clear_cache(self) -> None:
        """Drop the in-memory layer only; durable rows stay."""
        self.cache.clear()

    # ==========================================================================
    # WORKER
    # ==========================================================================

    async def _process(self, item: QueueItem) -> None:
        try:
            stored = await self._read_through(item)
            if stored is not None:
                self._finish(item, ResolutionState.SUCCESS, stored)
                return
            state, resolution = await self._attempt(item)
        except Exception:
            logger.exception(f"[RESOLVER] Worker failed for enchantment {item.key}")
            state, resolution = ResolutionState.EXHAUSTED_FALLBACK, Resolution.placeholder(item.key)

        if state is ResolutionState.RETRY_SCHEDULED:
            return

        if state in (ResolutionState.SUCCESS, ResolutionState.EMPTY_FALLBACK):
            self.cache.set(item.key, resolution)

        self._finish(item, state, resolution)

    def _finish(self, item: QueueItem, state: ResolutionState, resolution: Resolution) -> None:
        self.registry.release(item.key)
        item.settle(resolution)
        logger.info(
            f"[RESOLVER] Resolved: {item.key} -> Item {resolution.item_id or 'NULL'} ({state.value})"
        )

    async def _read_through(self, item: QueueItem) -> Optional[Resolution]:
        """
        First attempt only: serve a fresh durable row the memory layer no
        longer holds (restart window, clear_cache) without scraping.
        """
        if self.store is None or item.attempt > 0:
            return None
        entry = await self.store.get_recent(item.key, self.config.cache_ttl)
        if entry is None:
            return None
        self.cache.load([entry])
        logger.info(f"[RESOLVER] Persistent cache HIT for {item.key} -> Item {entry.resolution.item_id}")
        return entry.resolution

    async def _attempt(self, item: QueueItem):
        try:
            extracted = await self.adapter.fetch(item.key, attempt=item.attempt)
        except RecoverableFetchError as e:
            return self._on_recoverable_failure(item, e)

        if extracted is None:
            return ResolutionState.EMPTY_FALLBACK, Resolution.placeholder(item.key)

        return ResolutionState.SUCCESS, Resolution(
            key=item.key,
            item_id=extracted.item_id,
            name=extracted.name or f"Enchantment {item.key}",
            category=extracted.category,
        )

    def _on_recoverable_failure(self, item: QueueItem, error: RecoverableFetchError):
        logger.error(f"[RESOLVER] Error resolving {item.key}: {error.to_dict()}")
        decision = self.retry_policy.decide(item.attempt)

        if decision.should_retry:
            logger.info(
                f"[RESOLVER] Retry {item.attempt + 1}/{self.retry_policy.max_retries} "
                f"for {item.key} in {decision.delay:.1f}s"
            )
            self.scheduler.requeue_after(item.next_attempt(), decision.delay)
            return decision.state, None

        logger.warning(f"[RESOLVER] Giving up on {item.key} after {item.attempt + 1} attempts")
        return ResolutionState.EXHAUSTED_FALLBACK, Resolution.placeholder(item.key)
