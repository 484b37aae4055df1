"""
Durable Enchantment Store

Persists resolved enchantments to the wotlkdb_cache table so a restart does
not have to re-scrape WotLKDB.

Every public method degrades gracefully: if the database is down the
resolver keeps working from memory, it just loses cross-restart persistence.
"""
import logging
from datetime import timedelta
from typing import Callable, List, Optional

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert

from armory.core.database import Base
from armory.core.exceptions import StoreError
from armory.core.utils import to_epoch, utcnow
from armory.models.enchantment_cache import EnchantmentCacheRecord
from armory.services.resolution import CacheEntry, EnchantmentCategory, Resolution

logger = logging.getLogger(__name__)


def _record_to_resolution(record: EnchantmentCacheRecord) -> Resolution:
    try:
        category = EnchantmentCategory(record.category)
    except ValueError:
        category = EnchantmentCategory.UNKNOWN
    return Resolution(
        key=record.enchantment_id,
        item_id=record.item_id,
        name=record.name,
        category=category,
    )


class EnchantmentStore:
    """
    Row-level upserts keyed by enchantment id. No cross-key locking:
    concurrent upserts for different keys touch different rows.

    Usage:
        store = EnchantmentStore(AsyncSessionLocal)
        entries = await store.load_recent(timedelta(days=7))
        await store.upsert(3539, resolution)
    """

    def __init__(self, session_factory: Callable, engine=None):
        self._session_factory = session_factory
        self._engine = engine

    async def ensure_schema(self) -> None:
        """Create wotlkdb_cache if it does not exist yet."""
        if self._engine is None:
            return
        try:
            async with self._engine.begin() as conn:
                await conn.run_sync(
                    Base.metadata.create_all,
                    tables=[EnchantmentCacheRecord.__table__],
                )
        except Exception as e:
            raise StoreError(
                f"Could not create {EnchantmentCacheRecord.__tablename__}: {e}",
                details={"table": EnchantmentCacheRecord.__tablename__},
            ) from e

    async def load_recent(self, max_age: timedelta) -> List[CacheEntry]:
        """
        Load resolved rows updated within max_age as cache entries. Rows
        without an item (parsed-but-empty pages) are skipped so they get
        re-scraped instead of pinning a placeholder for the whole TTL.

        fetched_at comes from updated_at so the entry expires in memory
        exactly when it would have expired in the table.
        """
        threshold = utcnow() - max_age
        ttl = max_age.total_seconds()

        try:
            async with self._session_factory() as db:
                result = await db.execute(
                    select(EnchantmentCacheRecord).where(
                        EnchantmentCacheRecord.updated_at > threshold,
                        EnchantmentCacheRecord.item_id.is_not(None),
                    )
                )
                records = result.scalars().all()
        except Exception as e:
            logger.error(f"[STORE] Loading persistent cache failed: {e}")
            return []

        entries = [
            CacheEntry(
                resolution=_record_to_resolution(record),
                fetched_at=to_epoch(record.updated_at),
                ttl=ttl,
            )
            for record in records
        ]
        logger.info(f"[STORE] Persistent cache loaded: {len(entries)} entries")
        return entries

    async def get_recent(self, key: int, max_age: timedelta) -> Optional[CacheEntry]:
        """Read-through for a single key; None when missing, empty, stale or on error."""
        threshold = utcnow() - max_age

        try:
            async with self._session_factory() as db:
                result = await db.execute(
                    select(EnchantmentCacheRecord).where(
                        EnchantmentCacheRecord.enchantment_id == key,
                        EnchantmentCacheRecord.updated_at > threshold,
                    ).limit(1)
                )
                record = result.scalars().first()
        except Exception as e:
            logger.error(f"[STORE] Reading enchantment {key} failed: {e}")
            return None

        if record is None or record.item_id is None:
            return None
        return CacheEntry(
            resolution=_record_to_resolution(record),
            fetched_at=to_epoch(record.updated_at),
            ttl=max_age.total_seconds(),
        )

    async def upsert(self, key: int, resolution: Resolution) -> bool:
        """Insert or update one enchantment. Returns False on failure."""
        now = utcnow()
        stmt = insert(EnchantmentCacheRecord).values(
            enchantment_id=key,
            item_id=resolution.item_id,
            name=resolution.name,
            category=resolution.category.value,
            created_at=now,
            updated_at=now,
        ).on_conflict_do_update(
            index_elements=["enchantment_id"],
            set_={
                "item_id": resolution.item_id,
                "name": resolution.name,
                "category": resolution.category.value,
                "updated_at": now,
            },
        )

        try:
            async with self._session_factory() as db:
                await db.execute(stmt)
                await db.commit()
        except Exception as e:
            logger.error(f"[STORE] Saving enchantment {key} failed: {e}")
            return False

        logger.debug(f"[STORE] Upserted enchantment {key} -> {resolution.item_id}")
        return True
