"""
Enchantment resolution routes.

Thin HTTP layer over EnchantmentResolver. Lookups that can hit WotLKDB are
rate limited per client IP with the scraping limit.
"""
from typing import List

from fastapi import APIRouter, Depends, Request

from armory.core.config import settings
from armory.core.rate_limit import limiter
from armory.schemas.enchantment import (
    CacheStatsResponse,
    EquipmentRequest,
    EquipmentResponse,
    ResolutionResponse,
    ResolveBatchRequest,
)
from armory.services.enchantment_resolver import EnchantmentResolver
from armory.services.equipment_enchantments import resolve_equipment

router = APIRouter(prefix="/enchantments", tags=["enchantments"])


def get_resolver(request: Request) -> EnchantmentResolver:
    """The resolver instance created in the app lifespan."""
    return request.app.state.enchantment_resolver


@router.get("/stats", response_model=CacheStatsResponse)
async def cache_stats(resolver: EnchantmentResolver = Depends(get_resolver)):
    """Cache size, in-flight lookups, queue depth and ban cooldown."""
    return resolver.get_cache_stats()


@router.delete("/cache")
async def clear_cache(resolver: EnchantmentResolver = Depends(get_resolver)):
    """Clear the in-memory cache. Persisted rows are kept."""
    resolver.clear_cache()
    return {"success": True, "message": "Enchantment cache cleared"}


@router.post("/resolve", response_model=List[ResolutionResponse])
@limiter.limit(settings.RATE_LIMIT_SCRAPING)
async def resolve_batch(
    request: Request,
    payload: ResolveBatchRequest,
    resolver: EnchantmentResolver = Depends(get_resolver),
):
    """Resolve unique positive ids; duplicates and ids < 1 are dropped."""
    resolutions = await resolver.resolve_multiple(payload.enchantment_ids)
    return [r.to_dict() for r in resolutions]


@router.post("/equipment", response_model=EquipmentResponse)
@limiter.limit(settings.RATE_LIMIT_SCRAPING)
async def resolve_item_enchantments(
    request: Request,
    payload: EquipmentRequest,
    resolver: EnchantmentResolver = Depends(get_resolver),
):
    """Resolve every slot of an item_instance.enchantments string."""
    return await resolve_equipment(resolver, payload.enchantments)


@router.get("/{enchantment_id}", response_model=ResolutionResponse)
@limiter.limit(settings.RATE_LIMIT_SCRAPING)
async def resolve_enchantment(
    request: Request,
    enchantment_id: int,
    resolver: EnchantmentResolver = Depends(get_resolver),
):
    """Resolve one enchantment id. Always 200; unknowns have type "unknown"."""
    resolution = await resolver.resolve(enchantment_id)
    return resolution.to_dict()
