"""
Caching utilities for expensive read-side queries.
Uses Redis (django-redis) when configured, the local-memory cache otherwise.
"""
from django.core.cache import cache
from django.db import transaction
from functools import wraps
import hashlib
import logging

logger = logging.getLogger(__name__)

# Cache TTLs (in seconds)
INVENTORY_SUMMARY_CACHE_TTL = 300  # 5 minutes
PRODUCTION_STATS_CACHE_TTL = 120  # 2 minutes

INVENTORY_SUMMARY_PREFIX = 'inventory_summary'
PRODUCTION_STATS_PREFIX = 'production_stats'


def make_cache_key(prefix, *args, **kwargs):
    """Generate a unique cache key from arguments"""
    key_data = f"{prefix}:{args}:{sorted(kwargs.items())}"
    # Hash it to keep key length reasonable
    key_hash = hashlib.md5(key_data.encode()).hexdigest()
    return f"{prefix}:{key_hash}"


def cached_query(cache_ttl=60, key_prefix="query"):
    """
    Decorator to cache expensive queries

    Usage:
        @cached_query(cache_ttl=120, key_prefix="inventory_summary")
        def get_expensive_data():
            return data
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            cache_key = make_cache_key(key_prefix, *args, **kwargs)

            cached_data = cache.get(cache_key)
            if cached_data is not None:
                logger.debug(f"Cache HIT for {key_prefix}: {cache_key}")
                return cached_data

            logger.debug(f"Cache MISS for {key_prefix}: {cache_key}")
            result = func(*args, **kwargs)
            cache.set(cache_key, result, cache_ttl)
            return result
        return wrapper
    return decorator


def invalidate_stock_caches():
    """Drop cached stock aggregates once the surrounding transaction commits"""
    def _drop():
        cache.delete_many([
            make_cache_key(INVENTORY_SUMMARY_PREFIX),
            make_cache_key(PRODUCTION_STATS_PREFIX),
        ])
        logger.debug("Invalidated inventory summary and production stats caches")

    transaction.on_commit(_drop)
