"""
db/
----
Cache access layer for the day planner.

The engine itself persists nothing. The only store is Redis (redis-py),
used as a volatile cache of external travel-time responses:
    traveltime:{cache_key}   TTL = TRAVEL_TIME_CACHE_TTL (24 h)

Public exports:
    from db import get_redis, get_travel_response, set_travel_response
"""

from db.redis_client import (
    get_redis,
    get_travel_response,
    invalidate_travel_cache,
    set_travel_response,
)

__all__ = ["get_redis", "get_travel_response", "set_travel_response", "invalidate_travel_cache"]
