"""API client, caching and background refresh.

Modules:
    client: Relay API client for usage and subscription endpoints
    cache: Tiered-freshness cache records
    refresh: Detached background revalidation
"""

from relay_watch.api.cache import (
    CACHE_DIR,
    HARD_TTL,
    CacheEntry,
    CacheKind,
    FreshnessTier,
    get_cached_subscriptions,
    get_cached_usage,
    get_freshness,
    load,
    save_cached_subscriptions,
    save_cached_usage,
    store,
)
from relay_watch.api.client import (
    DEFAULT_TIMEOUT,
    fetch_subscriptions,
    fetch_subscriptions_payload,
    fetch_usage,
    fetch_usage_payload,
)
from relay_watch.api.refresh import REFRESH_DELAY, refresh_now, schedule_refresh

__all__ = [
    # Cache
    "CACHE_DIR",
    "HARD_TTL",
    "CacheKind",
    "FreshnessTier",
    "CacheEntry",
    "get_freshness",
    "store",
    "load",
    "get_cached_usage",
    "save_cached_usage",
    "get_cached_subscriptions",
    "save_cached_subscriptions",
    # Client
    "DEFAULT_TIMEOUT",
    "fetch_usage_payload",
    "fetch_subscriptions_payload",
    "fetch_usage",
    "fetch_subscriptions",
    # Refresh
    "REFRESH_DELAY",
    "refresh_now",
    "schedule_refresh",
]
