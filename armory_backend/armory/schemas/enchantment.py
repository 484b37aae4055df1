"""
Enchantment Schemas

Pydantic models for the enchantment resolver API. Field aliases keep the
camelCase wire names the character dashboard already consumes.
"""
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


# ==================== Request Schemas ====================


class ResolveBatchRequest(BaseModel):
    """Resolve several enchantment ids at once."""
    enchantment_ids: List[int] = Field(..., max_length=100)


class EquipmentRequest(BaseModel):
    """Raw item_instance.enchantments string from the characters DB."""
    enchantments: str = Field("", max_length=1024)

    @field_validator("enchantments")
    @classmethod
    def strip_enchantments(cls, v):
        return v.strip()


# ==================== Response Schemas ====================


class ResolutionResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    enchantment_id: int = Field(..., alias="enchantmentId")
    item_id: Optional[int] = Field(None, alias="itemId")
    name: str
    type: str = Field(..., description="gem, enchant or unknown")


class EquipmentResponse(BaseModel):
    permanent: Optional[ResolutionResponse] = None
    temporary: Optional[ResolutionResponse] = None
    gems: List[ResolutionResponse] = []
    prismatic: Optional[ResolutionResponse] = None


class CacheStatsResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    size: int
    in_flight_count: int = Field(..., alias="inFlightCount")
    queue_depth: int = Field(..., alias="queueDepth")
    cooldown_active_until: Optional[str] = Field(None, alias="cooldownActiveUntil")
    active_workers: int = Field(0, alias="activeWorkers")
    retries_scheduled: int = Field(0, alias="retriesScheduled")
