"""
Enchantment Cache Model

Durable half of the enchantment resolver cache. One row per enchantment id,
upserted after every successful (or parsed-but-empty) WotLKDB lookup.
Rows older than the cache TTL are ignored at startup, not deleted.
"""
from sqlalchemy import Column, Integer, String, DateTime, Index

from armory.core.database import Base
from armory.core.utils import utcnow


class EnchantmentCacheRecord(Base):
    """Resolved enchantment id -> item mapping scraped from WotLKDB."""
    __tablename__ = "wotlkdb_cache"

    enchantment_id = Column(Integer, primary_key=True, autoincrement=False)
    item_id = Column(Integer, nullable=True)  # NULL = page had no item reference
    name = Column(String(255), nullable=False)
    category = Column(String(16), nullable=False, default="unknown")  # gem, enchant, unknown

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("idx_wotlkdb_cache_updated", "updated_at"),
    )

    def __repr__(self):
        return f"<EnchantmentCacheRecord {self.enchantment_id} -> {self.item_id} ({self.category})>"
