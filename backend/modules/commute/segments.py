"""
modules/commute/segments.py
----------------------------
Builds one commute segment per consecutive activity pair per day.

Segment keys are stable across recomputes: they combine the two activity ids
with coordinates rounded to 5 decimal places (~1 m), so geocoding jitter does
not invalidate cached travel times while a genuinely moved stop does.

Key format:
    "{from_id}->{to_id}:{lat},{lng}|{lat},{lng}"
Request key (one per segment and travel mode):
    "{segment_key}::{mode}"
"""

from __future__ import annotations
import math
from collections import defaultdict
from datetime import date
from typing import Iterable, Optional, Sequence

import config
from modules.scheduling.conflict_detector import sort_by_start
from modules.scheduling.time_model import interval_for, parse_time_to_minutes
from schemas.activity import Coordinates, ScheduledActivity, TravelMode
from schemas.scheduling import CommuteSegment, CommuteState, SegmentStop

_REQUEST_KEY_SEP = "::"


# ── Keys ──────────────────────────────────────────────────────────────────────

def _round5(value: float) -> str:
    """Round to 5 decimals and drop trailing zeros (12.480000 → "12.48")."""
    text = f"{round(value, 5):.5f}".rstrip("0").rstrip(".")
    return "0" if text in ("-0", "") else text


def build_commute_segment_key(
    from_id: str,
    to_id: str,
    origin: Coordinates,
    destination: Coordinates,
) -> str:
    return (
        f"{from_id}->{to_id}:"
        f"{_round5(origin.lat)},{_round5(origin.lng)}|"
        f"{_round5(destination.lat)},{_round5(destination.lng)}"
    )


def get_commute_request_key(segment_key: str, mode: str) -> str:
    return f"{segment_key}{_REQUEST_KEY_SEP}{mode}"


def segment_key_of_request(request_key: str) -> str:
    return request_key.split(_REQUEST_KEY_SEP, 1)[0]


def get_commute_overlay_id(segment_key: str) -> str:
    return f"commute:{segment_key}"


def to_coordinates(value: object) -> Optional[Coordinates]:
    """
    Convert a stored ``[lng, lat]`` pair into Coordinates.
    Returns None for anything that is not two finite numbers.
    """
    if not isinstance(value, (list, tuple)) or len(value) != 2:
        return None
    lng, lat = value
    if isinstance(lat, bool) or isinstance(lng, bool):
        return None
    if not isinstance(lat, (int, float)) or not isinstance(lng, (int, float)):
        return None
    if not math.isfinite(lat) or not math.isfinite(lng):
        return None
    return Coordinates(lat=float(lat), lng=float(lng))


# ── Segment construction ──────────────────────────────────────────────────────

def preferred_mode_for(activity: ScheduledActivity) -> str:
    mode = activity.travel_mode_to_next
    if mode in TravelMode.values():
        return mode
    return config.DEFAULT_TRAVEL_MODE


def group_by_day(activities: Iterable[ScheduledActivity]) -> dict[date, list[ScheduledActivity]]:
    """Scheduled, non-deleted activities keyed by calendar day (sorted by date)."""
    days: dict[date, list[ScheduledActivity]] = defaultdict(list)
    for activity in activities:
        if activity.is_deleted or activity.date is None:
            continue
        days[activity.date].append(activity)
    return dict(sorted(days.items()))


def _stop(activity: ScheduledActivity) -> SegmentStop:
    return SegmentStop(
        id=activity.id,
        name=activity.display_name,
        start_time=activity.start_time or "",
        end_time=activity.end_time or "",
        coordinates=activity.coordinates,
        travel_mode_to_next=activity.travel_mode_to_next,
    )


def build_day_segments(
    activities: Iterable[ScheduledActivity],
    day_index: int = 0,
) -> list[CommuteSegment]:
    """
    Segments for one day's activities. A pair yields a segment only if both
    activities have coordinates and a usable time range.
    """
    segments: list[CommuteSegment] = []
    ordered = sort_by_start(activities)

    for current, nxt in zip(ordered, ordered[1:]):
        if current.coordinates is None or nxt.coordinates is None:
            continue
        cur_iv = interval_for(current.start_time, current.end_time)
        next_iv = interval_for(nxt.start_time, nxt.end_time)
        if cur_iv is None or next_iv is None:
            continue

        segments.append(CommuteSegment(
            key=build_commute_segment_key(current.id, nxt.id, current.coordinates, nxt.coordinates),
            day_index=day_index,
            from_stop=_stop(current),
            to_stop=_stop(nxt),
            preferred_mode=preferred_mode_for(current),
            origin=current.coordinates,
            destination=nxt.coordinates,
            gap_minutes=next_iv.start - cur_iv.end,
        ))
    return segments


def build_commute_segments(
    activities: Iterable[ScheduledActivity],
    days: Optional[Sequence[date]] = None,
) -> list[CommuteSegment]:
    """
    Segments for every day. ``days`` fixes the day_index order (e.g. the
    itinerary's visible columns); by default the sorted distinct dates are used.
    """
    by_day = group_by_day(activities)
    day_list = list(days) if days is not None else list(by_day)
    segments: list[CommuteSegment] = []
    for index, day in enumerate(day_list):
        segments.extend(build_day_segments(by_day.get(day, []), day_index=index))
    return segments


# ── Commute state ─────────────────────────────────────────────────────────────

def classify_commute(
    available_minutes: int,
    travel_minutes: Optional[int],
    buffer_minutes: int = config.COMMUTE_BUFFER_MINUTES,
    include_buffer: bool = True,
) -> CommuteState:
    """
    unknown   travel time not resolved (loading or failed)
    conflict  travel (+ buffer) does not fit the gap
    tight     fits, but uses more than 80% of the gap
    ok        otherwise
    """
    if travel_minutes is None:
        return CommuteState.UNKNOWN
    required = travel_minutes + (buffer_minutes if include_buffer else 0)
    if required > available_minutes:
        return CommuteState.CONFLICT
    if available_minutes > 0 and required > available_minutes * config.COMMUTE_TIGHT_RATIO:
        return CommuteState.TIGHT
    return CommuteState.OK


def suggest_shift(
    segment: CommuteSegment,
    travel_minutes: int,
    buffer_minutes: int = config.COMMUTE_BUFFER_MINUTES,
    include_buffer: bool = True,
    minutes_per_slot: int = config.GRID_MINUTES_PER_SLOT,
) -> Optional[int]:
    """
    Minutes to push the next activity so the commute fits, snapped up to the
    grid slot size. 0 when no shift is needed; None when the shifted
    activity would run past midnight or its times are unusable.
    """
    required = travel_minutes + (buffer_minutes if include_buffer else 0)
    raw_delta = max(0, required - segment.gap_minutes)
    if raw_delta == 0:
        return 0
    delta = math.ceil(raw_delta / minutes_per_slot) * minutes_per_slot

    start = parse_time_to_minutes(segment.to_stop.start_time)
    end = parse_time_to_minutes(segment.to_stop.end_time)
    if start is None or end is None:
        return None
    if end + delta >= config.MINUTES_PER_DAY:
        return None
    return delta
