"""
modules/planning/route_optimizer.py
-------------------------------------
Heuristic reorderings of one day's stops that reduce travel.

Three strategies are evaluated side by side; none of them is "the" answer,
the user picks one and `apply_route` re-maps the day's time slots onto it.

  shortest_distance    greedy nearest-neighbour from the first stop
                       (strict <, so ties keep input order)
  activity_clustering  bucket by primary category in CLUSTER_PRIORITY order;
                       unknown categories fall into "other"
  time_optimized       meal-category stops first (stable), the rest by start time

Distances are great-circle sums; durations assume the walking-equivalent
speed of config.WALKING_SPEED_M_PER_MIN (50 m/min). The caller's list is
never mutated.
"""

from __future__ import annotations
from dataclasses import replace
from datetime import date
from typing import Iterable, Optional, Sequence

import config
from modules.scheduling.conflict_detector import sort_by_start
from modules.tool_usage.distance_tool import DistanceTool, _round_half_up
from schemas.activity import ScheduledActivity
from schemas.scheduling import OptimizationStrategy, OptimizedRoute, RouteSavings


def day_route_candidates(
    activities: Iterable[ScheduledActivity],
    day: Optional[date] = None,
) -> list[ScheduledActivity]:
    """Stops eligible for optimisation: on ``day`` (if given), with coordinates, by start time."""
    return sort_by_start(
        a for a in activities
        if a.coordinates is not None and (day is None or a.date == day)
    )


# ── Strategies (ordering only) ────────────────────────────────────────────────

def nearest_neighbor_order(
    stops: Sequence[ScheduledActivity],
    tool: Optional[DistanceTool] = None,
) -> list[ScheduledActivity]:
    if not stops:
        return []
    tool = tool or DistanceTool()
    matrix = tool.distance_matrix_m([s.coordinates for s in stops])

    unvisited = list(range(1, len(stops)))
    path = [0]
    while unvisited:
        current = path[-1]
        nearest = unvisited[0]
        nearest_distance = float("inf")
        for idx in unvisited:
            if matrix[current][idx] < nearest_distance:
                nearest, nearest_distance = idx, matrix[current][idx]
        path.append(nearest)
        unvisited.remove(nearest)
    return [stops[i] for i in path]


def clustered_order(stops: Sequence[ScheduledActivity]) -> list[ScheduledActivity]:
    buckets: dict[str, list[ScheduledActivity]] = {name: [] for name in config.CLUSTER_PRIORITY}
    for stop in stops:
        category = stop.primary_category
        buckets[category if category in buckets else "other"].append(stop)
    return [stop for name in config.CLUSTER_PRIORITY for stop in buckets[name]]


def _is_meal_stop(stop: ScheduledActivity) -> bool:
    # categories only; a "Lunch cruise" sight is not a meal stop
    return any(c in config.MEAL_CATEGORIES for c in stop.categories)


def time_optimized_order(stops: Sequence[ScheduledActivity]) -> list[ScheduledActivity]:
    def _key(stop: ScheduledActivity) -> tuple[bool, bool, str]:
        return (not _is_meal_stop(stop), stop.start_time is None, stop.start_time or "")
    return sorted(stops, key=_key)


_ORDERINGS = {
    OptimizationStrategy.SHORTEST_DISTANCE:   nearest_neighbor_order,
    OptimizationStrategy.ACTIVITY_CLUSTERING: clustered_order,
    OptimizationStrategy.TIME_OPTIMIZED:      time_optimized_order,
}


# ── Route evaluation ──────────────────────────────────────────────────────────

def build_route(
    strategy: OptimizationStrategy,
    original: Sequence[ScheduledActivity],
    optimized: Sequence[ScheduledActivity],
    tool: Optional[DistanceTool] = None,
) -> OptimizedRoute:
    tool = tool or DistanceTool()
    original_m = tool.path_distance_m([s.coordinates for s in original])
    optimized_m = tool.path_distance_m([s.coordinates for s in optimized])
    saved_m = original_m - optimized_m
    gain = (saved_m / original_m) * 100 if original_m > 0 else 0.0

    return OptimizedRoute(
        strategy=strategy,
        original_order=tuple(s.id for s in original),
        optimized_order=tuple(s.id for s in optimized),
        original_distance_meters=original_m,
        optimized_distance_meters=optimized_m,
        original_duration_minutes=tool.duration_minutes(original_m),
        optimized_duration_minutes=tool.duration_minutes(optimized_m),
        savings=RouteSavings(
            distance_saved=saved_m,
            time_saved_minutes=_round_half_up(saved_m / tool.speed_m_per_min),
            efficiency_gain_percent=gain,
        ),
    )


class RouteOptimizer:
    """
    Usage:
        optimizer = RouteOptimizer()
        routes = optimizer.optimize(activities, day=date(2025, 6, 1))
        new_day = apply_route(activities, routes[0])
    """

    def __init__(self, tool: Optional[DistanceTool] = None) -> None:
        self.tool = tool or DistanceTool()

    def optimize(
        self,
        activities: Iterable[ScheduledActivity],
        day: Optional[date] = None,
    ) -> list[OptimizedRoute]:
        """One OptimizedRoute per strategy; [] when fewer than 3 stops qualify."""
        stops = day_route_candidates(activities, day)
        if len(stops) < config.MIN_STOPS_FOR_OPTIMIZATION:
            return []
        return [self.route_for(strategy, stops) for strategy in _ORDERINGS]

    def route_for(
        self,
        strategy: OptimizationStrategy,
        stops: Sequence[ScheduledActivity],
    ) -> OptimizedRoute:
        if strategy is OptimizationStrategy.SHORTEST_DISTANCE:
            ordered = nearest_neighbor_order(stops, self.tool)
        else:
            ordered = _ORDERINGS[strategy](stops)
        return build_route(strategy, stops, ordered, self.tool)


def apply_route(
    activities: Iterable[ScheduledActivity],
    route: OptimizedRoute,
) -> list[ScheduledActivity]:
    """
    Reorder the route's stops and hand them the day's existing time slots in
    order: the i-th stop of the new order gets the i-th earliest slot. Stops
    beyond the number of timed slots keep their own times. Returns new
    activity objects; stops not in the route are not returned.
    """
    by_id = {a.id: a for a in activities}
    stops = [by_id[i] for i in route.optimized_order if i in by_id]

    slots = sorted(
        ((by_id[i].start_time, by_id[i].end_time) for i in route.original_order
         if i in by_id and by_id[i].start_time),
        key=lambda slot: slot[0],
    )

    applied = []
    for index, stop in enumerate(stops):
        if index < len(slots):
            start, end = slots[index]
            applied.append(replace(stop, start_time=start, end_time=end or stop.end_time))
        else:
            applied.append(replace(stop))
    return applied
