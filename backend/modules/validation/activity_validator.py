"""
modules/validation/activity_validator.py
------------------------------------------
Turns raw itinerary-activity records (JSON bodies, CLI input files) into
ScheduledActivity snapshots.

Two record shapes are accepted:

  Flat:
    {"id", "name", "date": "YYYY-MM-DD", "start_time", "end_time",
     "coordinates": {"lat", "lng"} | [lng, lat], "categories" | "types",
     "notes", "travel_mode_to_next", "is_deleted" | "deleted_at"}

  Nested (itinerary row joined with its place):
    {"itinerary_activity_id", "date", "start_time", "end_time", "notes",
     "travel_mode", "deleted_at",
     "activity": {"name", "coordinates": [lng, lat], "types"}}

Checks:
  ✓ Non-empty id
  ✓ date parses as ISO YYYY-MM-DD (if present)
  ✓ start_time / end_time parse as HH:MM[:SS] (if present)
  ✓ start_time < end_time when both are present
  ✓ Latitude in [-90, 90], longitude in [-180, 180] (if present)
  ✓ travel mode is one of walking / driving / transit / bicycling (if present)

Usage:
    from modules.validation import parse_activities, validate_activity_record

    result = validate_activity_record(record)
    if not result:
        print(result.errors)

    activities = parse_activities(records)   # deleted / id-less records dropped
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Iterable, Mapping, Optional

from modules.commute.segments import to_coordinates
from modules.scheduling.time_model import parse_time_to_minutes
from schemas.activity import Coordinates, ScheduledActivity, TravelMode

logger = logging.getLogger(__name__)


# ── Result dataclass ───────────────────────────────────────────────────────────

@dataclass
class ValidationResult:
    """
    Outcome of a single validation run.

    Attributes:
        valid:  True iff there are zero errors.
        errors: Human-readable list of failure reasons.
        record: The input record dict (for logging purposes).
    """
    valid: bool
    errors: list[str] = field(default_factory=list)
    record: dict = field(default_factory=dict, repr=False)

    def __bool__(self) -> bool:
        return self.valid


# ── Field extraction (shape-agnostic) ──────────────────────────────────────────

def _place(record: Mapping[str, Any]) -> Mapping[str, Any]:
    place = record.get("activity")
    return place if isinstance(place, Mapping) else {}


def _raw_id(record: Mapping[str, Any]) -> str:
    value = record.get("id", record.get("itinerary_activity_id"))
    return "" if value is None else str(value).strip()


def _raw_name(record: Mapping[str, Any]) -> str:
    return str(record.get("name") or _place(record).get("name") or "")


def _raw_categories(record: Mapping[str, Any]) -> tuple[str, ...]:
    values = record.get("categories") or record.get("types") or _place(record).get("types") or ()
    if isinstance(values, str):
        values = [values]
    return tuple(str(v) for v in values if v)


def _raw_mode(record: Mapping[str, Any]) -> Optional[str]:
    mode = record.get("travel_mode_to_next", record.get("travel_mode"))
    return str(mode).lower() if mode else None


def _is_deleted(record: Mapping[str, Any]) -> bool:
    return bool(record.get("is_deleted")) or record.get("deleted_at") is not None


def _coordinates(value: Any) -> Optional[Coordinates]:
    """Accept {"lat", "lng"} mappings as well as stored [lng, lat] pairs."""
    if isinstance(value, Mapping):
        lat, lng = value.get("lat"), value.get("lng", value.get("lon"))
        if isinstance(lat, bool) or isinstance(lng, bool):
            return None
        if not isinstance(lat, (int, float)) or not isinstance(lng, (int, float)):
            return None
        if not math.isfinite(lat) or not math.isfinite(lng):
            return None
        return Coordinates(lat=float(lat), lng=float(lng))
    return to_coordinates(value)


def _raw_coordinates(record: Mapping[str, Any]) -> Any:
    if "coordinates" in record:
        return record["coordinates"]
    return _place(record).get("coordinates")


def _parse_date(value: Any) -> Optional[date]:
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        return date.fromisoformat(value.strip()[:10])
    except ValueError:
        return None


def _time_or_none(value: Any) -> Optional[str]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return str(value).strip()


# ── Validation ─────────────────────────────────────────────────────────────────

def validate_activity_record(record: Any) -> ValidationResult:
    """Report every problem with one raw record; never raises."""
    if not isinstance(record, Mapping):
        return ValidationResult(valid=False, errors=[f"record must be an object (got {type(record).__name__})"])

    errors: list[str] = []
    if not _raw_id(record):
        errors.append("id / itinerary_activity_id must not be empty")

    raw_date = record.get("date")
    if raw_date not in (None, "") and _parse_date(raw_date) is None:
        errors.append(f"date must be YYYY-MM-DD (got {raw_date!r})")

    start_raw, end_raw = _time_or_none(record.get("start_time")), _time_or_none(record.get("end_time"))
    start = parse_time_to_minutes(start_raw) if start_raw else None
    end = parse_time_to_minutes(end_raw) if end_raw else None
    if start_raw and start is None:
        errors.append(f"start_time must be HH:MM[:SS] (got {start_raw!r})")
    if end_raw and end is None:
        errors.append(f"end_time must be HH:MM[:SS] (got {end_raw!r})")
    if start is not None and end is not None and end <= start:
        errors.append(f"start_time must be before end_time (got {start_raw} → {end_raw})")

    raw_coords = _raw_coordinates(record)
    if raw_coords is not None:
        coords = _coordinates(raw_coords)
        if coords is None:
            errors.append(f"coordinates must be [lng, lat] or {{lat, lng}} (got {raw_coords!r})")
        else:
            if not (-90.0 <= coords.lat <= 90.0):
                errors.append(f"latitude {coords.lat} out of range [-90, 90]")
            if not (-180.0 <= coords.lng <= 180.0):
                errors.append(f"longitude {coords.lng} out of range [-180, 180]")

    mode = _raw_mode(record)
    if mode is not None and mode not in TravelMode.values():
        errors.append(f"travel mode must be one of {TravelMode.values()} (got {mode!r})")

    return ValidationResult(valid=not errors, errors=errors, record=dict(record))


# ── Parsing ────────────────────────────────────────────────────────────────────

def parse_activity(record: Any, strict: bool = False) -> Optional[ScheduledActivity]:
    """
    Build a ScheduledActivity from a raw record.

    Returns None for deleted records, records without an id and (when
    ``strict``) records that fail validation. In lenient mode unusable
    fields are dropped instead: bad coordinates or dates become None and
    unusable times are kept as given, so the engine excludes the activity
    only from the checks that need them.
    """
    result = validate_activity_record(record)
    if not isinstance(record, Mapping) or not _raw_id(record):
        logger.debug("Skipping activity record without id: %s", result.errors)
        return None
    if _is_deleted(record):
        return None
    if strict and not result:
        logger.info("Rejecting activity %s: %s", _raw_id(record), "; ".join(result.errors))
        return None

    coords = _coordinates(_raw_coordinates(record))
    if coords is not None and not (-90.0 <= coords.lat <= 90.0 and -180.0 <= coords.lng <= 180.0):
        coords = None

    mode = _raw_mode(record)
    return ScheduledActivity(
        id=_raw_id(record),
        name=_raw_name(record),
        date=_parse_date(record.get("date")),
        start_time=_time_or_none(record.get("start_time")),
        end_time=_time_or_none(record.get("end_time")),
        coordinates=coords,
        categories=_raw_categories(record),
        notes=str(record.get("notes") or ""),
        travel_mode_to_next=mode if mode in TravelMode.values() else None,
        is_deleted=False,
    )


def parse_activities(records: Iterable[Any], strict: bool = False) -> list[ScheduledActivity]:
    """Parse a batch, silently dropping records `parse_activity` rejects."""
    activities = []
    for record in records:
        activity = parse_activity(record, strict=strict)
        if activity is not None:
            activities.append(activity)
    return activities


def filter_valid(records: Iterable[Any]) -> list[Any]:
    """Return only the records that pass validation, logging the rest."""
    valid = []
    for record in records:
        result = validate_activity_record(record)
        if result:
            valid.append(record)
        else:
            logger.warning("Invalid activity record: %s", "; ".join(result.errors))
    return valid
