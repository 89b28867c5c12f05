"""Utilities module - durable cache client."""
from questledger.config import get_settings
from questledger.utils.cache import DurableCache
from questledger.utils.datetime_helpers import ensure_utc

settings = get_settings()

# Create singleton instances
durable_cache = DurableCache(
    settings.redis_url if settings.redis_url else None,
    default_ttl=settings.quest_cache_ttl_seconds,
)

__all__ = ["durable_cache", "ensure_utc"]
