"""
modules/scheduling/conflict_detector.py
-----------------------------------------
Detects and classifies scheduling conflicts in one day's activities.

Four independent sweeps, all over a snapshot of the activities:

  overlap              adjacent pair with a.end > b.start                → error
  insufficient_travel  adjacent pair whose gap is shorter than the
                       resolved travel time                              → error if the
                                                                           shortfall > 15 min,
                                                                           else warning
  meal_timing          a meal window fully covered by non-meal
                       activities with no meal stop inside it            → warning
  closed_venue         start outside the typical hours of the
                       activity's place type (or on a closed weekday)    → warning

Conflicts only *offer* resolutions; nothing is applied here. Activities
with missing or unparsable times are excluded from the affected sweep,
so detection degrades gracefully and never raises.
"""

from __future__ import annotations
import math
from typing import Iterable, Mapping, Optional

import config
from modules.scheduling.time_model import (
    interval_for,
    minutes_to_time_string,
    parse_time_to_minutes,
)
from schemas.activity import ScheduledActivity
from schemas.scheduling import (
    ClosedVenueConflict,
    Conflict,
    ConflictResolution,
    InsufficientTravelConflict,
    MealTimingConflict,
    OverlapConflict,
    ResolutionAction,
    Severity,
    TimeInterval,
    TravelTimeResult,
)

_WEEKDAY_NAMES = ("Mondays", "Tuesdays", "Wednesdays", "Thursdays", "Fridays", "Saturdays", "Sundays")
_MEAL_NAME_KEYWORDS = ("breakfast", "lunch", "dinner")


# ── Snapshot helpers ──────────────────────────────────────────────────────────

def _active(activities: Iterable[ScheduledActivity]) -> list[ScheduledActivity]:
    return [a for a in activities if not a.is_deleted]


def sort_by_start(activities: Iterable[ScheduledActivity]) -> list[ScheduledActivity]:
    """Stable sort by start time; missing or unparsable start times go last."""
    def _key(activity: ScheduledActivity) -> tuple[bool, int]:
        start = parse_time_to_minutes(activity.start_time)
        return (start is None, start if start is not None else 0)
    return sorted(_active(activities), key=_key)


def timed_activities(
    activities: Iterable[ScheduledActivity],
) -> list[tuple[ScheduledActivity, TimeInterval]]:
    """Activities with a usable [start, end) interval, sorted by start."""
    out: list[tuple[ScheduledActivity, TimeInterval]] = []
    for activity in sort_by_start(activities):
        interval = interval_for(activity.start_time, activity.end_time)
        if interval is not None:
            out.append((activity, interval))
    return out


def is_meal_activity(activity: ScheduledActivity) -> bool:
    if any(c in config.MEAL_CATEGORIES for c in activity.categories):
        return True
    name = activity.name.lower()
    return any(word in name for word in _MEAL_NAME_KEYWORDS)


# ── Overlap ───────────────────────────────────────────────────────────────────

def detect_overlap_conflicts(activities: Iterable[ScheduledActivity]) -> list[Conflict]:
    conflicts: list[Conflict] = []
    timed = timed_activities(activities)

    for (current, cur_iv), (nxt, next_iv) in zip(timed, timed[1:]):
        if cur_iv.end <= next_iv.start:
            continue
        overlap = cur_iv.end - next_iv.start
        conflicts.append(OverlapConflict(
            severity=Severity.ERROR,
            message=(
                f"{current.display_name} overlaps with {nxt.display_name} "
                f"by {overlap} minutes"
            ),
            activity_ids=(current.id, nxt.id),
            suggestions=(
                ConflictResolution(
                    action=ResolutionAction.ADJUST_TIME,
                    description=f"End {current.display_name} at {minutes_to_time_string(next_iv.start)}",
                    new_end_time=minutes_to_time_string(next_iv.start),
                ),
                ConflictResolution(
                    action=ResolutionAction.ADJUST_TIME,
                    description=f"Start {nxt.display_name} at {minutes_to_time_string(cur_iv.end)}",
                    new_start_time=minutes_to_time_string(cur_iv.end),
                ),
            ),
            overlap_minutes=overlap,
        ))
    return conflicts


# ── Travel time ───────────────────────────────────────────────────────────────

def detect_travel_time_conflicts(
    activities: Iterable[ScheduledActivity],
    travel_times: Mapping[str, Optional[TravelTimeResult]],
) -> list[Conflict]:
    """
    ``travel_times`` maps a *from* activity id to the travel time of the leg
    leaving it. Missing or None entries (unknown / failed lookups) suppress
    the check for that pair.
    """
    conflicts: list[Conflict] = []
    timed = timed_activities(activities)
    margin = config.TRAVEL_SAFETY_MARGIN_MIN

    for (current, cur_iv), (nxt, next_iv) in zip(timed, timed[1:]):
        travel = travel_times.get(current.id)
        if travel is None:
            continue

        available = next_iv.start - cur_iv.end
        required = math.ceil(travel.duration_seconds / 60)
        if available >= required:
            continue

        shortfall = required - available
        severity = (
            Severity.ERROR if shortfall > config.SHORTFALL_ERROR_THRESHOLD_MIN else Severity.WARNING
        )
        later_start = minutes_to_time_string(next_iv.start + shortfall + margin)
        earlier_end = minutes_to_time_string(cur_iv.end - shortfall - margin)
        conflicts.append(InsufficientTravelConflict(
            severity=severity,
            message=(
                f"Not enough time to travel from {current.display_name} to {nxt.display_name}. "
                f"Need {required}m but only have {available}m."
            ),
            activity_ids=(current.id, nxt.id),
            suggestions=(
                ConflictResolution(
                    action=ResolutionAction.ADJUST_TIME,
                    description=f"Start {nxt.display_name} at {later_start}",
                    new_start_time=later_start,
                ),
                ConflictResolution(
                    action=ResolutionAction.ADJUST_TIME,
                    description=f"End {current.display_name} at {earlier_end}",
                    new_end_time=earlier_end,
                ),
            ),
            required_minutes=required,
            available_minutes=available,
            mode=travel.mode,
        ))
    return conflicts


# ── Meals ─────────────────────────────────────────────────────────────────────

def detect_meal_timing_conflicts(activities: Iterable[ScheduledActivity]) -> list[Conflict]:
    conflicts: list[Conflict] = []
    timed = timed_activities(activities)

    for meal, start, end, ideal in config.MEAL_WINDOWS:
        window = TimeInterval(parse_time_to_minutes(start), parse_time_to_minutes(end))

        has_meal = any(
            is_meal_activity(activity) and interval.overlaps(window)
            for activity, interval in timed
        )
        if has_meal:
            continue

        blocking = [activity for activity, interval in timed if interval.covers(window)]
        if not blocking:
            continue

        conflicts.append(MealTimingConflict(
            severity=Severity.WARNING,
            message=f"{meal.capitalize()} time ({start}-{end}) is blocked by activities",
            activity_ids=tuple(a.id for a in blocking),
            suggestions=(
                ConflictResolution(
                    action=ResolutionAction.SUGGEST_ALTERNATIVE,
                    description=f"Consider adding a {meal} break around {ideal}",
                ),
                ConflictResolution(
                    action=ResolutionAction.ADJUST_TIME,
                    description=f"Shorten activities to allow for {meal} time",
                ),
            ),
            meal=meal,
            window_start=start,
            window_end=end,
        ))
    return conflicts


# ── Venue hours ───────────────────────────────────────────────────────────────

def _is_within_hours(start: int, opens: int, closes: int) -> bool:
    if closes < opens:
        # Overnight hours such as a bar's 17:00–02:00.
        return start >= opens or start <= closes
    return opens <= start <= closes


def detect_venue_hour_conflicts(activities: Iterable[ScheduledActivity]) -> list[Conflict]:
    conflicts: list[Conflict] = []

    for activity in _active(activities):
        start = parse_time_to_minutes(activity.start_time)
        if start is None or not activity.categories:
            continue

        for category in activity.categories:
            hours = config.VENUE_HOURS.get(category)
            if hours is None:
                continue
            opens_s, closes_s, open_days = hours
            opens, closes = parse_time_to_minutes(opens_s), parse_time_to_minutes(closes_s)
            label = category.replace("_", " ")

            if open_days is not None and activity.date is not None \
                    and activity.date.weekday() not in open_days:
                conflicts.append(ClosedVenueConflict(
                    severity=Severity.WARNING,
                    message=(
                        f"{activity.display_name} may be closed on "
                        f"{_WEEKDAY_NAMES[activity.date.weekday()]}. "
                        f"{label}s typically open {opens_s}-{closes_s} on limited days"
                    ),
                    activity_ids=(activity.id,),
                    suggestions=(
                        ConflictResolution(
                            action=ResolutionAction.SUGGEST_ALTERNATIVE,
                            description="Move this visit to a day the venue is open",
                        ),
                    ),
                    category=category,
                    opens=opens_s,
                    closes=closes_s,
                ))
                break

            if not _is_within_hours(start, opens, closes):
                conflicts.append(ClosedVenueConflict(
                    severity=Severity.WARNING,
                    message=(
                        f"{activity.display_name} may be closed at {activity.start_time}. "
                        f"{label}s typically open {opens_s}-{closes_s}"
                    ),
                    activity_ids=(activity.id,),
                    suggestions=(
                        ConflictResolution(
                            action=ResolutionAction.ADJUST_TIME,
                            description=f"Move to {opens_s} when venue opens",
                            new_start_time=minutes_to_time_string(opens),
                        ),
                        ConflictResolution(
                            action=ResolutionAction.SUGGEST_ALTERNATIVE,
                            description="Check venue-specific hours before visiting",
                        ),
                    ),
                    category=category,
                    opens=opens_s,
                    closes=closes_s,
                ))
                break  # one closed-venue conflict per activity
    return conflicts


# ── Aggregation ───────────────────────────────────────────────────────────────

def detect_all_conflicts(
    activities: Iterable[ScheduledActivity],
    travel_times: Optional[Mapping[str, Optional[TravelTimeResult]]] = None,
) -> list[Conflict]:
    """All conflicts for one day's activities, in sweep order."""
    snapshot = list(activities)
    return [
        *detect_overlap_conflicts(snapshot),
        *detect_travel_time_conflicts(snapshot, travel_times or {}),
        *detect_meal_timing_conflicts(snapshot),
        *detect_venue_hour_conflicts(snapshot),
    ]


def group_conflicts_by_severity(conflicts: Iterable[Conflict]) -> dict[str, list[Conflict]]:
    conflicts = list(conflicts)
    return {
        "errors":   [c for c in conflicts if c.severity is Severity.ERROR],
        "warnings": [c for c in conflicts if c.severity is Severity.WARNING],
    }


def get_conflict_summary(conflicts: Iterable[Conflict]) -> str:
    grouped = group_conflicts_by_severity(conflicts)
    errors, warnings = len(grouped["errors"]), len(grouped["warnings"])
    if errors == 0 and warnings == 0:
        return "No scheduling conflicts detected"

    parts = []
    if errors:
        parts.append(f"{errors} error{'s' if errors > 1 else ''}")
    if warnings:
        parts.append(f"{warnings} warning{'s' if warnings > 1 else ''}")
    return ", ".join(parts)
