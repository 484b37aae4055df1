"""
Armory Backend
FastAPI application entry point for the enchantment resolver.

- Enchantment resolver built once in the lifespan and shared via app.state
- wotlkdb_cache table created on startup if missing
- Persistent cache loaded before the first request is served
- Rate limiting with SlowAPI
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from slowapi.errors import RateLimitExceeded

from armory.api.routes import enchantments
from armory.core.config import settings
from armory.core.database import AsyncSessionLocal, engine
from armory.core.exceptions import StoreError
from armory.core.rate_limit import limiter, rate_limit_exceeded_handler
from armory.services.enchantment_resolver import EnchantmentResolver

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the resolver, load the persistent cache, close everything on shutdown."""
    resolver = getattr(app.state, "enchantment_resolver", None)
    if resolver is None:
        resolver = EnchantmentResolver.from_settings(settings, AsyncSessionLocal, engine)
        app.state.enchantment_resolver = resolver

    if resolver.store is not None:
        try:
            await resolver.store.ensure_schema()
        except StoreError as e:
            logger.error(f"[STARTUP] Schema check failed, running without persistence guarantees: {e.to_dict()}")

    await resolver.start()
    logger.info(f"[STARTUP] Enchantment resolver ready: {resolver.get_cache_stats()}")

    yield

    await resolver.close()
    logger.info("[SHUTDOWN] Enchantment resolver closed")


app = FastAPI(
    lifespan=lifespan,
    title=f"{settings.APP_NAME} API",
    description="Resolves game-server enchantment ids to item metadata scraped from WotLKDB.",
    version="1.0.0",
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

app.include_router(enchantments.router, prefix="/api")


@app.get("/health")
async def health_check():
    """Liveness plus resolver cache stats."""
    resolver = getattr(app.state, "enchantment_resolver", None)
    return {
        "status": "healthy",
        "environment": settings.ENVIRONMENT,
        "resolver": resolver.get_cache_stats() if resolver else None,
    }
