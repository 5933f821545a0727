"""
modules/scheduling/free_time.py
---------------------------------
Idle-time gaps in a day and what to do with them.

Gaps are the complement of the union of activity intervals inside the
day window (06:00–23:00), so overlapping or nested activities never open
a phantom gap. Only gaps of at least MIN_GAP_MINUTES are reported.

Suggestions come from a fixed rule table:
  meal window at the gap start   → breakfast / lunch / dinner
  short  (< 30 min)              → take a break, travel buffer
  medium (30–119 min)            → explore nearby, quick activity, meal (≥ 60)
  long   (≥ 120 min)             → major attraction, neighbourhood walk,
                                   extended break, long meal (outside meal times)
  start of day                   → morning routine first
  end of day                     → evening dining, wind down
At most MAX_SUGGESTIONS_PER_GAP are kept; no suggestion is longer than its gap.
"""

from __future__ import annotations
from dataclasses import replace
from typing import Iterable

import config
from modules.scheduling.conflict_detector import timed_activities
from modules.scheduling.time_model import minutes_to_time_string, parse_time_to_minutes
from schemas.activity import ScheduledActivity
from schemas.scheduling import (
    FreeTimeGap,
    FreeTimeSuggestion,
    GapCategory,
    GapPosition,
    Priority,
    TimeInterval,
)

_DAY_START = config.DAY_START_HOUR * 60
_DAY_END = config.DAY_END_HOUR * 60
_DAY_SPAN = _DAY_END - _DAY_START


def _meal_windows() -> list[tuple[str, TimeInterval]]:
    return [
        (meal, TimeInterval(parse_time_to_minutes(start), parse_time_to_minutes(end)))
        for meal, start, end, _ in config.MEAL_WINDOWS
    ]


# (title, description, max duration, icon) per meal
_MEAL_SUGGESTIONS = {
    "breakfast": ("Breakfast", "Start your day with a good breakfast", 60, "🥐"),
    "lunch":     ("Lunch", "Take a lunch break to refuel", 90, "🥗"),
    "dinner":    ("Dinner", "Enjoy dinner at a local restaurant", 120, "🍽️"),
}


def _suggestion(kind: str, title: str, description: str, minutes: int, icon: str,
                priority: Priority) -> FreeTimeSuggestion:
    return FreeTimeSuggestion(
        type=kind,
        title=title,
        description=description,
        duration_minutes=minutes,
        icon=icon,
        priority=priority,
    )


# ── Classification ────────────────────────────────────────────────────────────

def categorize_gap(minutes: int) -> GapCategory:
    if minutes < config.SHORT_GAP_MINUTES:
        return GapCategory.SHORT
    if minutes < config.LONG_GAP_MINUTES:
        return GapCategory.MEDIUM
    return GapCategory.LONG


def overlaps_meal_time(start: int, end: int) -> bool:
    """Inclusive check: touching a meal window counts."""
    for _, window in _meal_windows():
        if window.start <= start <= window.end:
            return True
        if window.start <= end <= window.end:
            return True
        if start <= window.start and end >= window.end:
            return True
    return False


# ── Suggestions ───────────────────────────────────────────────────────────────

def _meal_suggestions(start: int, duration: int) -> list[FreeTimeSuggestion]:
    out = []
    for meal, window in _meal_windows():
        if window.start <= start <= window.end:
            title, description, cap, icon = _MEAL_SUGGESTIONS[meal]
            out.append(_suggestion("meal", title, description, min(duration, cap), icon, Priority.HIGH))
    return out


def generate_suggestions(start: int, end: int, position: GapPosition) -> list[FreeTimeSuggestion]:
    duration = end - start
    meal_time = overlaps_meal_time(start, end)
    suggestions: list[FreeTimeSuggestion] = []

    if meal_time:
        suggestions.extend(_meal_suggestions(start, duration))

    category = categorize_gap(duration)
    if category is GapCategory.SHORT:
        suggestions += [
            _suggestion("rest", "Take a break", "Rest, grab a coffee, or use the restroom",
                        15, "☕", Priority.MEDIUM),
            _suggestion("travel_buffer", "Travel buffer", "Allow extra time for transportation",
                        min(duration, 20), "🚶", Priority.HIGH),
        ]
    elif category is GapCategory.MEDIUM:
        suggestions += [
            _suggestion("explore_nearby", "Explore nearby", "Visit a nearby attraction, shop, or café",
                        min(duration - 15, 90), "🗺️", Priority.HIGH),
            _suggestion("activity", "Quick activity", "Museum visit, shopping, or sightseeing",
                        min(duration - 10, 90), "🏛️", Priority.MEDIUM),
        ]
        if duration >= 60:
            suggestions.append(_suggestion(
                "meal", "Meal time", "Find a restaurant or café for a proper meal",
                60, "🍽️", Priority.MEDIUM,
            ))
    else:
        suggestions += [
            _suggestion("activity", "Major attraction", "Visit a museum, landmark, or major attraction",
                        min(duration - 30, 180), "🏰", Priority.HIGH),
            _suggestion("explore_nearby", "Neighborhood exploration",
                        "Walk around, discover local shops and cafés",
                        min(duration - 30, 120), "🚶‍♂️", Priority.MEDIUM),
            _suggestion("rest", "Extended break", "Return to hotel, rest, or enjoy leisure time",
                        min(duration, 120), "🏨", Priority.LOW),
        ]
        if not meal_time:
            suggestions.append(_suggestion(
                "meal", "Long meal", "Enjoy a leisurely lunch or dinner experience",
                90, "🍽️", Priority.MEDIUM,
            ))

    if position is GapPosition.START_OF_DAY:
        suggestions.insert(0, _suggestion(
            "meal", "Morning routine", "Breakfast, coffee, and prepare for the day",
            min(duration, 90), "🌅", Priority.HIGH,
        ))
    elif position is GapPosition.END_OF_DAY:
        suggestions += [
            _suggestion("meal", "Evening dining", "Dinner and drinks to end the day",
                        min(duration, 120), "🌙", Priority.MEDIUM),
            _suggestion("rest", "Wind down", "Return to accommodation and relax",
                        min(duration, 60), "🛏️", Priority.LOW),
        ]

    return [
        replace(s, duration_minutes=max(0, min(s.duration_minutes, duration)))
        for s in suggestions[:config.MAX_SUGGESTIONS_PER_GAP]
    ]


def full_day_suggestions() -> list[FreeTimeSuggestion]:
    return [
        _suggestion("activity", "Plan your day", "Add activities from your wishlist to fill this day",
                    480, "📋", Priority.HIGH),
        _suggestion("explore_nearby", "Explore the area",
                    "Take a walking tour or discover the neighborhood", 240, "🗺️", Priority.MEDIUM),
        _suggestion("rest", "Rest day", "Take it easy and enjoy a relaxed day", 360, "😌", Priority.LOW),
    ]


# ── Gap detection ─────────────────────────────────────────────────────────────

def _full_day_gap() -> FreeTimeGap:
    return FreeTimeGap(
        start_time=minutes_to_time_string(_DAY_START),
        end_time=minutes_to_time_string(_DAY_END),
        duration_minutes=_DAY_SPAN,
        category=GapCategory.LONG,
        position=GapPosition.FULL_DAY,
        meal_overlap=True,
        suggestions=tuple(full_day_suggestions()),
    )


def _free_intervals(busy: list[TimeInterval]) -> list[TimeInterval]:
    """Complement of the union of ``busy`` within the day window."""
    free: list[TimeInterval] = []
    cursor = _DAY_START
    for interval in sorted(busy, key=lambda iv: iv.start):
        start, end = max(interval.start, _DAY_START), min(interval.end, _DAY_END)
        if end <= start:
            continue
        if start > cursor:
            free.append(TimeInterval(cursor, start))
        cursor = max(cursor, end)
    if cursor < _DAY_END:
        free.append(TimeInterval(cursor, _DAY_END))
    return free


def _position(interval: TimeInterval) -> GapPosition:
    at_start = interval.start == _DAY_START
    at_end = interval.end == _DAY_END
    if at_start and at_end:
        return GapPosition.FULL_DAY
    if at_start:
        return GapPosition.START_OF_DAY
    if at_end:
        return GapPosition.END_OF_DAY
    return GapPosition.BETWEEN_ACTIVITIES


def detect_free_time_gaps(activities: Iterable[ScheduledActivity]) -> list[FreeTimeGap]:
    """Free gaps of one day's activities, in chronological order."""
    busy = [interval for _, interval in timed_activities(activities)]
    if not busy:
        return [_full_day_gap()]

    gaps = []
    for interval in _free_intervals(busy):
        if interval.duration < config.MIN_GAP_MINUTES:
            continue
        position = _position(interval)
        if position is GapPosition.FULL_DAY:
            # Every activity lies outside the window.
            gaps.append(_full_day_gap())
            continue
        gaps.append(FreeTimeGap(
            start_time=minutes_to_time_string(interval.start),
            end_time=minutes_to_time_string(interval.end),
            duration_minutes=interval.duration,
            category=categorize_gap(interval.duration),
            position=position,
            meal_overlap=overlaps_meal_time(interval.start, interval.end),
            suggestions=tuple(generate_suggestions(interval.start, interval.end, position)),
        ))
    return gaps


def get_free_time_summary(activities: Iterable[ScheduledActivity]) -> dict:
    """Totals for a day: free minutes, largest gap, gap count and utilisation %."""
    snapshot = list(activities)
    gaps = detect_free_time_gaps(snapshot)
    scheduled = sum(interval.duration for _, interval in timed_activities(snapshot))
    return {
        "total_free_minutes": sum(g.duration_minutes for g in gaps),
        "largest_gap_minutes": max((g.duration_minutes for g in gaps), default=0),
        "gap_count": len(gaps),
        "utilization_percent": int(scheduled / _DAY_SPAN * 100 + 0.5),
    }


class FreeTimeAdvisor:
    """Thin object wrapper so the API and DayAnalyzer can share one instance."""

    def gaps(self, activities: Iterable[ScheduledActivity]) -> list[FreeTimeGap]:
        return detect_free_time_gaps(activities)

    def summary(self, activities: Iterable[ScheduledActivity]) -> dict:
        return get_free_time_summary(activities)
