"""
modules/scheduling/efficiency.py
----------------------------------
Scores how well a day uses its waking hours (06:00–23:00, 1020 min).

    active = Σ activity durations
    travel = Σ ceil(travel seconds / 60)     (resolved legs only)
    free   = max(0, total − active − travel)
    score  = clamp(100 − |active/total − 0.65| × 200, 0, 100), rounded

65 % active time scores 100; every percentage point away costs 2.
"""

from __future__ import annotations
import math
from typing import Iterable, Mapping, Optional

import config
from modules.scheduling.conflict_detector import timed_activities
from schemas.activity import ScheduledActivity
from schemas.scheduling import (
    EfficiencyBreakdown,
    EfficiencyMetrics,
    EfficiencyRecommendation,
    Priority,
    RecommendationType,
    TravelTimeResult,
)

_TOTAL_WAKING_MINUTES = (config.DAY_END_HOUR - config.DAY_START_HOUR) * 60


def score_for_active_ratio(active_ratio: float) -> int:
    raw = 100 - abs(active_ratio - config.OPTIMAL_ACTIVE_RATIO) * 200
    return max(0, min(100, int(math.floor(raw + 0.5))))


def generate_recommendation(
    score: int,
    active_ratio: float,
    travel_ratio: float,
    activity_count: int,
) -> EfficiencyRecommendation:
    if score >= config.OPTIMAL_SCORE_THRESHOLD:
        return EfficiencyRecommendation(
            type=RecommendationType.OPTIMAL,
            message="Your day is well-balanced with good mix of activities and free time!",
            suggestions=("Great planning! Your schedule looks optimal.",),
            priority=Priority.LOW,
        )
    if active_ratio > config.OVERPACKED_RATIO:
        return EfficiencyRecommendation(
            type=RecommendationType.OVERPACKED,
            message="Your day might be too packed. Consider reducing activities or extending durations.",
            suggestions=(
                "Remove 1-2 less important activities",
                "Add buffer time between activities",
                "Consider shorter activity durations",
            ),
            priority=Priority.HIGH,
        )
    if active_ratio < config.UNDERPACKED_RATIO:
        return EfficiencyRecommendation(
            type=RecommendationType.UNDERPACKED,
            message=(
                "You have lots of free time. Consider adding more activities "
                "to make the most of your day."
            ),
            suggestions=(
                "Add activities from your wishlist",
                "Explore nearby attractions during gaps",
                "Consider longer activities or experiences",
            ),
            priority=Priority.MEDIUM,
        )
    if travel_ratio > config.TRAVEL_HEAVY_RATIO:
        return EfficiencyRecommendation(
            type=RecommendationType.UNBALANCED,
            message="You're spending a lot of time traveling. Try grouping activities by location.",
            suggestions=(
                "Group activities by neighborhood",
                "Use faster transportation when possible",
                "Consider activities within walking distance",
            ),
            priority=Priority.MEDIUM,
        )

    if activity_count > 8:
        tip = "Consider fewer, longer activities"
    elif activity_count < 3 and active_ratio > 0.4:
        tip = "Add variety with different types of activities"
    else:
        tip = "Adjust activity timing for better flow"
    return EfficiencyRecommendation(
        type=RecommendationType.UNBALANCED,
        message="Your schedule could be optimized for better flow and efficiency.",
        suggestions=(tip,),
        priority=Priority.LOW,
    )


def calculate_day_efficiency(
    activities: Iterable[ScheduledActivity],
    travel_times: Optional[Mapping[str, Optional[TravelTimeResult]]] = None,
) -> EfficiencyMetrics:
    """
    ``travel_times`` is the same from-activity-id mapping the ConflictDetector
    takes; unknown legs (None) contribute nothing.
    """
    timed = timed_activities(activities)
    total = _TOTAL_WAKING_MINUTES
    active = sum(interval.duration for _, interval in timed)
    travel = sum(
        math.ceil(result.duration_seconds / 60)
        for result in (travel_times or {}).values()
        if result is not None
    )
    free = max(0, total - active - travel)

    active_ratio = active / total
    travel_ratio = travel / total
    score = score_for_active_ratio(active_ratio)

    return EfficiencyMetrics(
        score=score,
        active_ratio=active_ratio,
        free_time_ratio=free / total,
        travel_time_ratio=travel_ratio,
        recommendation=generate_recommendation(score, active_ratio, travel_ratio, len(timed)),
        breakdown=EfficiencyBreakdown(
            total_waking_minutes=total,
            active_minutes=active,
            travel_minutes=travel,
            free_minutes=free,
            scheduled_activities=len(timed),
        ),
    )


def calculate_multi_day_efficiency(day_metrics: Iterable[EfficiencyMetrics]) -> dict:
    metrics = list(day_metrics)
    if not metrics:
        return {
            "average_score": 0,
            "best_day": 0,
            "worst_day": 0,
            "total_activities": 0,
            "total_active_minutes": 0,
        }
    scores = [m.score for m in metrics]
    return {
        "average_score": int(math.floor(sum(scores) / len(scores) + 0.5)),
        "best_day": max(scores),
        "worst_day": min(scores),
        "total_activities": sum(m.breakdown.scheduled_activities for m in metrics),
        "total_active_minutes": sum(m.breakdown.active_minutes for m in metrics),
    }


class EfficiencyScorer:
    def score_day(
        self,
        activities: Iterable[ScheduledActivity],
        travel_times: Optional[Mapping[str, Optional[TravelTimeResult]]] = None,
    ) -> EfficiencyMetrics:
        return calculate_day_efficiency(activities, travel_times)

    def score_days(self, day_metrics: Iterable[EfficiencyMetrics]) -> dict:
        return calculate_multi_day_efficiency(day_metrics)
