# Services layer for enchantment resolution
from armory.services.resolution import (
    CacheEntry,
    EnchantmentCategory,
    QueueItem,
    Resolution,
    ResolutionState,
)
