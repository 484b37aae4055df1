"""
Database engine for the persistent enchantment cache.

Only wotlkdb_cache lives here. Writes come from the resolver's persist tasks
(at most one per finished lookup), reads only at startup, so the pool is
sized from the resolver's worker count rather than request traffic.
"""
from typing import Any, Dict

from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import declarative_base

from armory.core.config import Settings, settings


def pool_options(config: Settings) -> Dict[str, Any]:
    """Production honours the DB_* knobs; anything else gets a small local pool."""
    if config.ENVIRONMENT == "production":
        return {
            "pool_size": max(config.DB_POOL_SIZE, config.RESOLVER_MAX_CONCURRENT),
            "max_overflow": config.DB_MAX_OVERFLOW,
            "pool_recycle": config.DB_POOL_RECYCLE,
            "pool_pre_ping": True,
        }
    return {
        "pool_size": config.RESOLVER_MAX_CONCURRENT,
        "max_overflow": 2,
        "pool_pre_ping": True,
    }


engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    **pool_options(settings),
)

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

Base = declarative_base()
