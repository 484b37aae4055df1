"""
Enchantment resolution value types.

Resolution is what callers see. CacheEntry and QueueItem are the resolver's
internal bookkeeping around it.
"""
import asyncio
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Dict, Optional


class EnchantmentCategory(str, Enum):
    GEM = "gem"
    ENCHANT = "enchant"
    UNKNOWN = "unknown"


class ResolutionState(str, Enum):
    """Lifecycle of a single key's resolution attempt."""
    PENDING = "pending"
    FETCHING = "fetching"
    SUCCESS = "success"
    EMPTY_FALLBACK = "empty_fallback"
    RETRY_SCHEDULED = "retry_scheduled"
    EXHAUSTED_FALLBACK = "exhausted_fallback"


@dataclass(frozen=True)
class Resolution:
    key: int
    item_id: Optional[int]
    name: str
    category: EnchantmentCategory = EnchantmentCategory.UNKNOWN

    @classmethod
    def invalid(cls, key: int) -> "Resolution":
        """Result for ids that can never resolve (key < 1)."""
        return cls(key=key, item_id=None, name="Unknown")

    @classmethod
    def placeholder(cls, key: int) -> "Resolution":
        """Result when WotLKDB could not tell us what the enchantment is."""
        return cls(key=key, item_id=None, name=f"Enchantment {key}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "enchantmentId": self.key,
            "itemId": self.item_id,
            "name": self.name,
            "type": self.category.value,
        }


@dataclass
class CacheEntry:
    resolution: Resolution
    fetched_at: float  # epoch seconds
    ttl: float  # seconds

    def is_fresh(self, now: float) -> bool:
        return now - self.fetched_at < self.ttl


@dataclass
class QueueItem:
    """
    One pending resolution. Every waiter for the key observes `future`;
    retries reuse it with a bumped attempt counter.
    """
    key: int
    future: asyncio.Future
    attempt: int = 0

    def next_attempt(self) -> "QueueItem":
        return replace(self, attempt=self.attempt + 1)

    def settle(self, resolution: Resolution) -> None:
        if not self.future.done():
            self.future.set_result(resolution)
