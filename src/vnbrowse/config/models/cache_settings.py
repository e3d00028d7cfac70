"""Cache configuration model."""

from __future__ import annotations

from pydantic import BaseModel, Field

from vnbrowse.shared.constants import CacheConfig


class CacheSettings(BaseModel):
    """Response cache configuration."""

    enabled: bool = Field(default=True, description="Enable response caching")
    ttl: int = Field(
        default=CacheConfig.TTL,
        gt=0,
        description="Cache time-to-live in seconds",
    )


__all__ = ["CacheSettings"]
