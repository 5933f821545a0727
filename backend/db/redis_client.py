"""
db/redis_client.py
-------------------
redis-py client: singleton plus helpers for the travel-time response cache.

Key schema:

  traveltime:{cache_key}
       Type : String (JSON)
       TTL  : TRAVEL_TIME_CACHE_TTL  (default 86,400 s = 24 hours)
       Value: {"mode": {"duration": {"value", "text"}, "distance": {"text"}}, ...}

  cache_key is built by TravelTimeTool from origin/destination rounded to
  4 decimals, the sorted mode list and the departure hour.

Environment variables (set in config.py):
    REDIS_HOST              default: localhost
    REDIS_PORT              default: 6379
    REDIS_DB                default: 0
    REDIS_PASSWORD          default: ""  (empty = no auth)
    TRAVEL_TIME_CACHE_TTL   default: 86400
"""

from __future__ import annotations

import json
import logging
from typing import Any

import redis

import config

logger = logging.getLogger(__name__)

# Module-level singleton; initialised lazily on first call to get_redis()
_client: redis.Redis | None = None

_KEY_PREFIX = "traveltime:"


def get_redis() -> redis.Redis:
    """Return the singleton Redis client, creating it on first call."""
    global _client
    if _client is None:
        kwargs: dict[str, Any] = {
            "host":             config.REDIS_HOST,
            "port":             config.REDIS_PORT,
            "db":               config.REDIS_DB,
            "decode_responses": True,
        }
        if config.REDIS_PASSWORD:
            kwargs["password"] = config.REDIS_PASSWORD
        _client = redis.Redis(**kwargs)
    return _client


def _travel_key(cache_key: str) -> str:
    return f"{_KEY_PREFIX}{cache_key}"


def get_travel_response(cache_key: str) -> dict | None:
    """
    Cached per-mode results for a lookup, or None on miss.
    A corrupt entry is treated as a miss.
    """
    raw = get_redis().get(_travel_key(cache_key))
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except (TypeError, ValueError):
        logger.warning("Discarding unreadable travel-time cache entry %s", cache_key)
        return None


def set_travel_response(cache_key: str, results: dict, ttl: int | None = None) -> None:
    """Write one lookup's per-mode results with TRAVEL_TIME_CACHE_TTL expiry."""
    get_redis().setex(
        _travel_key(cache_key),
        ttl or config.TRAVEL_TIME_CACHE_TTL,
        json.dumps(results),
    )


def invalidate_travel_cache() -> int:
    """
    Delete every cached travel-time response.

    Returns: number of keys deleted.
    """
    r = get_redis()
    keys = list(r.scan_iter(f"{_KEY_PREFIX}*"))
    if keys:
        return r.delete(*keys)
    return 0
