"""
config.py
---------
Central configuration for the day-planner scheduling engine.
Operational settings are loaded from environment variables; scheduling
thresholds are fixed business constants and are not env-overridable.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from the backend directory (if it exists) so env vars in that file
# are picked up by os.getenv() below.  Won't override vars already set in the shell.
_env_path = Path(__file__).parent / ".env"
if _env_path.exists():
    load_dotenv(_env_path, override=False)


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


# ── Day window (minutes unit) ─────────────────────────────────────────────────
DAY_START_HOUR: int = 6     # 06:00
DAY_END_HOUR:   int = 23    # 23:00 → 17 waking hours
MINUTES_PER_DAY: int = 24 * 60

# ── Conflict detection ────────────────────────────────────────────────────────
TRAVEL_SAFETY_MARGIN_MIN:      int = 5    # added to every travel-shortfall fix
SHORTFALL_ERROR_THRESHOLD_MIN: int = 15   # shortfall > 15 min → error, else warning

# Meal windows: (name, start, end, ideal)
MEAL_WINDOWS: list[tuple[str, str, str, str]] = [
    ("breakfast", "07:00", "10:00", "08:30"),
    ("lunch",     "11:30", "14:30", "12:30"),
    ("dinner",    "17:30", "21:00", "19:00"),
]

# Place types treated as a meal stop
MEAL_CATEGORIES: tuple[str, ...] = ("restaurant", "cafe", "meal_takeaway")

# Typical venue hours per place type: (open, close, open weekdays or None = daily)
# Weekdays use datetime.date.weekday() numbering (Mon=0 … Sun=6).
VENUE_HOURS: dict[str, tuple[str, str, tuple[int, ...] | None]] = {
    "museum":             ("09:00", "17:00", None),
    "tourist_attraction": ("08:00", "18:00", None),
    "shopping_mall":      ("10:00", "22:00", None),
    "restaurant":         ("11:00", "22:00", None),
    "bar":                ("17:00", "02:00", None),
    "bank":               ("09:00", "17:00", (0, 1, 2, 3, 4)),
    "post_office":        ("09:00", "17:00", (0, 1, 2, 3, 4, 5)),
}

# ── Free time ─────────────────────────────────────────────────────────────────
MIN_GAP_MINUTES:    int = 15
SHORT_GAP_MINUTES:  int = 30    # gap < 30 → short
LONG_GAP_MINUTES:   int = 120   # gap ≥ 120 → long
MAX_SUGGESTIONS_PER_GAP: int = 4

# ── Efficiency ────────────────────────────────────────────────────────────────
OPTIMAL_ACTIVE_RATIO: float = 0.65
OPTIMAL_SCORE_THRESHOLD: int = 85
OVERPACKED_RATIO:  float = 0.8
UNDERPACKED_RATIO: float = 0.3
TRAVEL_HEAVY_RATIO: float = 0.25

# ── Route optimisation ────────────────────────────────────────────────────────
EARTH_RADIUS_M: float = 6_371_000.0
WALKING_SPEED_M_PER_MIN: float = 50.0   # walking-equivalent speed for savings
MIN_STOPS_FOR_OPTIMIZATION: int = 3
CLUSTER_PRIORITY: list[str] = [
    "restaurant", "tourist_attraction", "museum", "shopping_mall", "other",
]

# ── Commute rendering ─────────────────────────────────────────────────────────
DEFAULT_TRAVEL_MODE: str = "driving"
ALWAYS_FETCH_MODES: tuple[str, ...] = ("driving", "walking")
COMMUTE_BUFFER_MINUTES: int = int(os.getenv("COMMUTE_BUFFER_MINUTES", "10"))
COMMUTE_TIGHT_RATIO: float = 0.8
GRID_MINUTES_PER_SLOT: int = int(os.getenv("GRID_MINUTES_PER_SLOT", "30"))
GRID_SLOT_HEIGHT_PX:   int = int(os.getenv("GRID_SLOT_HEIGHT_PX", "48"))
GRID_MIN_BLOCK_PX:     int = 22

# ── Travel-time lookup (Google Distance Matrix) ───────────────────────────────
# Obtain at: https://console.cloud.google.com/apis/credentials
# Enable:  Distance Matrix API
# Set env: GOOGLE_MAPS_API_KEY=AIza...
GOOGLE_MAPS_API_KEY: str = os.getenv("GOOGLE_MAPS_API_KEY", "")
DISTANCE_MATRIX_URL: str = os.getenv(
    "DISTANCE_MATRIX_URL",
    "https://maps.googleapis.com/maps/api/distancematrix/json",
)
# Stub (haversine) mode is the default; no external API calls are made.
USE_STUB_TRAVEL_TIME: bool = _env_flag("USE_STUB_TRAVEL_TIME", "true")
TRAVEL_TIME_REQUEST_TIMEOUT: int = int(os.getenv("TRAVEL_TIME_REQUEST_TIMEOUT", "10"))
SAME_LOCATION_RADIUS_M: float = 100.0

# Stub speeds per travel mode (km/h)
STUB_SPEEDS_KMH: dict[str, float] = {
    "walking":   4.5,
    "bicycling": 15.0,
    "transit":   18.0,
    "driving":   20.0,   # urban driving
}

# Response cache: "memory" | "redis"
TRAVEL_TIME_CACHE_BACKEND: str = os.getenv("TRAVEL_TIME_CACHE_BACKEND", "memory")
TRAVEL_TIME_CACHE_TTL: int = int(os.getenv("TRAVEL_TIME_CACHE_TTL", "86400"))  # 24 hours
TRAVEL_TIME_CACHE_MAX_ENTRIES: int = int(os.getenv("TRAVEL_TIME_CACHE_MAX_ENTRIES", "1000"))  # memory backend only

# ── Redis ─────────────────────────────────────────────────────────────────────
REDIS_HOST: str        = os.getenv("REDIS_HOST",     "localhost")
REDIS_PORT: int        = int(os.getenv("REDIS_PORT", "6379"))
REDIS_DB: int          = int(os.getenv("REDIS_DB",   "0"))
REDIS_PASSWORD: str    = os.getenv("REDIS_PASSWORD", "")

# ── Logging ───────────────────────────────────────────────────────────────────
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
STRUCTURED_LOGS_ENABLED: bool = _env_flag("STRUCTURED_LOGS_ENABLED", "false")
LOGS_DIR: str = os.getenv("LOGS_DIR", str(Path(__file__).resolve().parent / "logs"))
