"""
modules/planning/day_analyzer.py
----------------------------------
One-call analysis of a calendar day.

analyze_day() is a pure function of (activities, travel-time cache): it
filters the day's activities, builds commute segments, reads the
preferred-mode travel times already in the cache, and runs every engine
component over the same snapshot:

    segments → conflicts → free time → efficiency → layout → route options

Fetching travel times is the caller's job (TravelTimeFetcher.refresh);
re-run analyze_day once new results have been merged.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, Optional

from modules.commute.overlap_layout import activity_events, commute_events, default_grid, layout_blocks
from modules.commute.segments import build_day_segments, classify_commute, group_by_day
from modules.commute.travel_time_cache import TravelTimeCache
from modules.observability.logger import StructuredLogger
from modules.planning.route_optimizer import RouteOptimizer
from modules.scheduling.conflict_detector import detect_all_conflicts, get_conflict_summary
from modules.scheduling.efficiency import calculate_day_efficiency
from modules.scheduling.free_time import detect_free_time_gaps, get_free_time_summary
from schemas.activity import ScheduledActivity
from schemas.scheduling import (
    BlockLayout,
    CommuteSegment,
    Conflict,
    EfficiencyMetrics,
    FreeTimeGap,
    GridConfig,
    OptimizedRoute,
)

__all__ = ["DayReport", "analyze_day", "analyze_itinerary", "group_by_day"]


@dataclass
class DayReport:
    day: date
    activities: list[ScheduledActivity]
    segments: list[CommuteSegment]
    commute_states: dict[str, str]
    conflicts: list[Conflict]
    conflict_summary: str
    free_time: list[FreeTimeGap]
    free_time_summary: dict
    efficiency: EfficiencyMetrics
    layout: list[BlockLayout]
    routes: list[OptimizedRoute] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "day": self.day.isoformat(),
            "activity_ids": [a.id for a in self.activities],
            "segments": [s.to_dict() for s in self.segments],
            "commute_states": dict(self.commute_states),
            "conflicts": [c.to_dict() for c in self.conflicts],
            "conflict_summary": self.conflict_summary,
            "free_time": [g.to_dict() for g in self.free_time],
            "free_time_summary": dict(self.free_time_summary),
            "efficiency": self.efficiency.to_dict(),
            "layout": [b.to_dict() for b in self.layout],
            "routes": [r.to_dict() for r in self.routes],
        }


def analyze_day(
    activities: Iterable[ScheduledActivity],
    day: date,
    cache: Optional[TravelTimeCache] = None,
    grid: Optional[GridConfig] = None,
    day_index: int = 0,
    event_logger: Optional[StructuredLogger] = None,
) -> DayReport:
    day_activities = group_by_day(activities).get(day, [])
    if cache is None:
        cache = TravelTimeCache()
    grid = grid or default_grid()

    segments = build_day_segments(day_activities, day_index=day_index)
    travel = cache.results_by_activity(segments)

    commute_states = {}
    for segment in segments:
        result = travel.get(segment.from_stop.id)
        state = classify_commute(
            segment.gap_minutes,
            result.duration_minutes if result is not None else None,
        )
        commute_states[segment.key] = state.value

    conflicts = detect_all_conflicts(day_activities, travel)
    events = activity_events(day_activities) + commute_events(
        segments, cache, minutes_per_slot=grid.minutes_per_slot,
    )

    report = DayReport(
        day=day,
        activities=day_activities,
        segments=segments,
        commute_states=commute_states,
        conflicts=conflicts,
        conflict_summary=get_conflict_summary(conflicts),
        free_time=detect_free_time_gaps(day_activities),
        free_time_summary=get_free_time_summary(day_activities),
        efficiency=calculate_day_efficiency(day_activities, travel),
        layout=layout_blocks(events, grid),
        routes=RouteOptimizer().optimize(day_activities),
    )

    if event_logger is not None:
        event_logger.log("day_analysis", "DAY_ANALYSIS", {
            "day": day.isoformat(),
            "activities": len(day_activities),
            "segments": len(segments),
            "conflicts": len(conflicts),
            "score": report.efficiency.score,
        })
    return report


def analyze_itinerary(
    activities: Iterable[ScheduledActivity],
    cache: Optional[TravelTimeCache] = None,
    grid: Optional[GridConfig] = None,
    event_logger: Optional[StructuredLogger] = None,
) -> list[DayReport]:
    """One DayReport per calendar day that has activities, in date order."""
    snapshot = list(activities)
    return [
        analyze_day(snapshot, day, cache=cache, grid=grid, day_index=index, event_logger=event_logger)
        for index, day in enumerate(group_by_day(snapshot))
    ]
