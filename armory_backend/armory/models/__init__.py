from armory.models.enchantment_cache import EnchantmentCacheRecord

__all__ = ["EnchantmentCacheRecord"]
