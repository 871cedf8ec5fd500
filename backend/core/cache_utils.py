"""
Caching helpers for the cached read endpoints.

Reads go through get_or_build. Writes that update a cached value ahead of the
database (reorders, lead moves) go through optimistic_cache_write so that a
failed write restores the value that was cached before it.
"""
from contextlib import contextmanager
import logging

from django.core.cache import cache

logger = logging.getLogger(__name__)


def get_or_build(cache_key, builder, ttl):
    """
    Return the cached value for cache_key, building and caching it on a miss.

    Usage:
        data = get_or_build(JOB_STATUS_LIST_KEY, build_status_list, WORKFLOW_CACHE_TTL)
    """
    cached_data = cache.get(cache_key)
    if cached_data is not None:
        logger.debug(f"Cache HIT for {cache_key}")
        return cached_data

    logger.debug(f"Cache MISS for {cache_key}")
    data = builder()
    cache.set(cache_key, data, ttl)
    return data


def invalidate_keys(keys):
    """Delete an explicit list of cache keys"""
    keys = [key for key in dict.fromkeys(keys) if key]
    if not keys:
        return
    cache.delete_many(keys)
    logger.debug(f"Invalidated cache keys: {', '.join(keys)}")


@contextmanager
def optimistic_cache_write(cache_key, value, ttl):
    """
    Write value to cache_key before the block runs and restore the previous
    value if the block raises.

    The block is expected to persist the change that value describes. Signals
    fired inside the block may delete the key, which leaves it to be rebuilt
    on the next read.
    """
    snapshot = cache.get(cache_key)
    cache.set(cache_key, value, ttl)
    try:
        yield
    except Exception:
        if snapshot is None:
            cache.delete(cache_key)
        else:
            cache.set(cache_key, snapshot, ttl)
        logger.warning(f"Rolled back optimistic cache write for {cache_key}")
        raise
