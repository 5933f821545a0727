"""
modules/tool_usage/travel_time_tool.py
----------------------------------------
Travel-time lookup backed by the Google Distance Matrix API.

This is the concrete implementation of the capability the scheduling
engine consumes through TravelTimeFetcher:

    await tool.calculate_travel_time(origin, destination, ["driving", "walking"])
      -> {"success": True,  "data": {"results": {mode: {...}}, "cache_key": str}}
       | {"success": False, "error": {"message": str}}

Endpoint (one request per mode):
    GET https://maps.googleapis.com/maps/api/distancematrix/json
        ?origins=lat,lng&destinations=lat,lng&mode=<mode>&units=metric&key=...
        [&departure_time=<unix s>]   driving / transit with a departure time
        [&traffic_model=best_guess]  driving

Response fields used:
    status                      "OK" for the request as a whole
    rows[0].elements[0].status  "OK" when a route exists for this mode
    rows[0].elements[0].duration / .distance  → {"value", "text"}

Behaviour:
  - Origin and destination closer than SAME_LOCATION_RADIUS_M (100 m)
    resolve to zero for every mode without any HTTP call.
  - USE_STUB_TRAVEL_TIME (default) estimates durations from the haversine
    distance and STUB_SPEEDS_KMH; no external calls.
  - Responses are cached for TRAVEL_TIME_CACHE_TTL (24 h) keyed by the
    coordinates rounded to 4 decimals, the sorted modes and the departure
    hour; "memory" or "redis" per TRAVEL_TIME_CACHE_BACKEND.
"""

from __future__ import annotations
import asyncio
import logging
import math
import time
from datetime import datetime
from typing import Optional, Sequence

import redis
import requests

import config
from db.redis_client import get_travel_response, set_travel_response
from modules.tool_usage.distance_tool import haversine_m
from schemas.activity import Coordinates, TravelMode

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────────────────────
# Formatting helpers (Distance Matrix text style)
# ─────────────────────────────────────────────────────────────────────────────

def _duration_text(seconds: int) -> str:
    minutes = max(0, int(round(seconds / 60)))
    if minutes < 60:
        return f"{minutes} min" if minutes == 1 else f"{minutes} mins"
    hours, rest = divmod(minutes, 60)
    label = "hour" if hours == 1 else "hours"
    return f"{hours} {label}" if rest == 0 else f"{hours} {label} {rest} mins"


def _distance_text(meters: float) -> str:
    if meters < 1000:
        return f"{int(round(meters))} m"
    return f"{meters / 1000:.1f} km"


def _mode_result(mode: str, seconds: int, meters: float) -> dict:
    return {
        "mode": mode,
        "duration": {"text": _duration_text(seconds), "value": int(seconds)},
        "distance": {"text": _distance_text(meters), "value": int(round(meters))},
        "status": "OK",
    }


def _failure(message: str) -> dict:
    return {"success": False, "error": {"message": message}}


def is_valid_coordinates(coords: Optional[Coordinates]) -> bool:
    if coords is None:
        return False
    lat, lng = coords.lat, coords.lng
    if not isinstance(lat, (int, float)) or not isinstance(lng, (int, float)):
        return False
    return -90 <= lat <= 90 and -180 <= lng <= 180


def build_cache_key(
    origin: Coordinates,
    destination: Coordinates,
    modes: Sequence[str],
    departure_time: Optional[datetime] = None,
) -> str:
    """"{lat4},{lng4}|{lat4},{lng4}|{sorted modes}|{hour or 'now'}" with coordinates × 10^4."""
    origin_key = f"{round(origin.lat * 10000)},{round(origin.lng * 10000)}"
    destination_key = f"{round(destination.lat * 10000)},{round(destination.lng * 10000)}"
    modes_key = ",".join(sorted(modes))
    time_key = str(int(departure_time.timestamp() // 3600)) if departure_time else "now"
    return f"{origin_key}|{destination_key}|{modes_key}|{time_key}"


# ─────────────────────────────────────────────────────────────────────────────
# TravelTimeTool
# ─────────────────────────────────────────────────────────────────────────────

class TravelTimeTool:
    """
    Usage:
        tool = TravelTimeTool()
        response = tool.lookup(origin, destination, ["driving", "walking"])
        response = await tool.calculate_travel_time(origin, destination, ["transit"])
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        use_stub: Optional[bool] = None,
        cache_backend: Optional[str] = None,
        timeout: Optional[int] = None,
    ) -> None:
        self.api_key = config.GOOGLE_MAPS_API_KEY if api_key is None else api_key
        self.use_stub = config.USE_STUB_TRAVEL_TIME if use_stub is None else use_stub
        self.cache_backend = (cache_backend or config.TRAVEL_TIME_CACHE_BACKEND).lower()
        self.timeout = timeout or config.TRAVEL_TIME_REQUEST_TIMEOUT
        self._memory: dict[str, tuple[float, dict]] = {}

    # ── public API ────────────────────────────────────────────────────────

    async def calculate_travel_time(
        self,
        origin: Coordinates,
        destination: Coordinates,
        modes: Sequence[str],
        departure_time: Optional[datetime] = None,
    ) -> dict:
        """Async form of `lookup`; the blocking HTTP work runs in a worker thread."""
        return await asyncio.to_thread(self.lookup, origin, destination, list(modes), departure_time)

    def lookup(
        self,
        origin: Coordinates,
        destination: Coordinates,
        modes: Sequence[str] = config.ALWAYS_FETCH_MODES,
        departure_time: Optional[datetime] = None,
    ) -> dict:
        if not is_valid_coordinates(origin) or not is_valid_coordinates(destination):
            return _failure("Invalid coordinates provided")

        valid_modes = [m for m in dict.fromkeys(modes) if m in TravelMode.values()]
        if not valid_modes:
            return _failure("No supported travel mode requested")

        key = build_cache_key(origin, destination, valid_modes, departure_time)
        cached = self._cache_get(key)
        if cached is not None:
            return {"success": True, "data": {"results": cached, "cache_key": key}}

        distance_m = haversine_m(origin, destination)
        if distance_m < config.SAME_LOCATION_RADIUS_M:
            results = {mode: _mode_result(mode, 0, 0) for mode in valid_modes}
        elif self.use_stub:
            results = {mode: self._stub_result(mode, distance_m) for mode in valid_modes}
        else:
            if not self.api_key:
                return _failure("Google Maps API key not configured")
            results = {}
            for mode in valid_modes:
                result = self._fetch_mode(origin, destination, mode, departure_time)
                if result is not None:
                    results[mode] = result
            if not results:
                return _failure("Unable to calculate travel time for any transport mode")

        self._cache_set(key, results)
        return {"success": True, "data": {"results": results, "cache_key": key}}

    def clear_cache(self) -> None:
        self._memory.clear()

    def cache_stats(self) -> dict:
        now = time.monotonic()
        ages = [now - stored_at for stored_at, _ in self._memory.values()]
        return {
            "backend": self.cache_backend,
            "size": len(self._memory),
            "oldest_age_s": max(ages) if ages else 0,
            "newest_age_s": min(ages) if ages else 0,
        }

    # ── live API ──────────────────────────────────────────────────────────

    def _fetch_mode(
        self,
        origin: Coordinates,
        destination: Coordinates,
        mode: str,
        departure_time: Optional[datetime],
    ) -> Optional[dict]:
        params = {
            "origins": f"{origin.lat},{origin.lng}",
            "destinations": f"{destination.lat},{destination.lng}",
            "mode": mode,
            "units": "metric",
            "key": self.api_key,
        }
        if departure_time and mode in (TravelMode.DRIVING.value, TravelMode.TRANSIT.value):
            params["departure_time"] = str(int(departure_time.timestamp()))
        if mode == TravelMode.DRIVING.value:
            params["traffic_model"] = "best_guess"

        try:
            resp = requests.get(config.DISTANCE_MATRIX_URL, params=params, timeout=self.timeout)
            resp.raise_for_status()
            data = resp.json()
        except (requests.RequestException, ValueError) as exc:
            logger.warning("Distance Matrix request failed for %s: %s", mode, exc)
            return None

        if data.get("status") != "OK":
            logger.warning("Distance Matrix API error for %s: %s", mode, data.get("status"))
            return None

        rows = data.get("rows") or [{}]
        elements = rows[0].get("elements") or [{}]
        element = elements[0]
        if element.get("status") != "OK" or "duration" not in element:
            logger.info("No route found for %s mode", mode)
            return None

        return {
            "mode": mode,
            "duration": element["duration"],
            "distance": element.get("distance", {}),
            "status": element["status"],
        }

    # ── stub ──────────────────────────────────────────────────────────────

    @staticmethod
    def _stub_result(mode: str, distance_m: float) -> dict:
        """Haversine distance at the per-mode urban speed in STUB_SPEEDS_KMH."""
        speed_kmh = config.STUB_SPEEDS_KMH.get(mode, config.STUB_SPEEDS_KMH["driving"])
        seconds = int(math.ceil((distance_m / 1000.0) / speed_kmh * 3600))
        return _mode_result(mode, seconds, distance_m)

    # ── response cache ────────────────────────────────────────────────────

    def _cache_get(self, key: str) -> Optional[dict]:
        if self.cache_backend == "redis":
            try:
                return get_travel_response(key)
            except redis.RedisError as exc:
                logger.warning("Redis travel-time cache unavailable: %s", exc)
                return None

        entry = self._memory.get(key)
        if entry is None:
            return None
        stored_at, results = entry
        if time.monotonic() - stored_at > config.TRAVEL_TIME_CACHE_TTL:
            del self._memory[key]
            return None
        return results

    def _cache_set(self, key: str, results: dict) -> None:
        if self.cache_backend == "redis":
            try:
                set_travel_response(key, results)
            except redis.RedisError as exc:
                logger.warning("Redis travel-time cache write failed: %s", exc)
            return

        now = time.monotonic()
        expired = [k for k, (stored_at, _) in self._memory.items()
                   if now - stored_at > config.TRAVEL_TIME_CACHE_TTL]
        for k in expired:
            del self._memory[k]

        # oldest first; re-inserting moves a key to the back
        self._memory.pop(key, None)
        while self._memory and len(self._memory) >= config.TRAVEL_TIME_CACHE_MAX_ENTRIES:
            del self._memory[next(iter(self._memory))]
        self._memory[key] = (now, results)
