"""
api/routes/health.py
--------------------
Health-check endpoint, also reporting which travel-time backend is active.
"""
from __future__ import annotations

from fastapi import APIRouter

import config

router = APIRouter()


@router.get("/health", summary="Health check")
def health() -> dict:
    """Returns 200 OK when the service is running."""
    return {
        "status": "ok",
        "service": "dayplanner-backend",
        "travel_time": "stub" if config.USE_STUB_TRAVEL_TIME else "google",
        "travel_time_cache": config.TRAVEL_TIME_CACHE_BACKEND,
    }
