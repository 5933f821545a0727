"""
modules/tool_usage/distance_tool.py
-------------------------------------
Great-circle distances between activity coordinates (haversine formula).
No external HTTP calls are made.

Config knobs (config.py):
  EARTH_RADIUS_M          -- sphere radius used by the formula (6,371,000 m)
  WALKING_SPEED_M_PER_MIN -- walking-equivalent speed for route durations (50 m/min)
"""

from __future__ import annotations
import math
from typing import Optional, Sequence

import config
from schemas.activity import Coordinates

# ---------------------------------------------------------------------------
# Pure maths
# ---------------------------------------------------------------------------


def haversine_m(origin: Coordinates, destination: Coordinates) -> float:
    """Great-circle distance between two points in metres."""
    phi1, phi2 = math.radians(origin.lat), math.radians(destination.lat)
    d_phi = math.radians(destination.lat - origin.lat)
    d_lam = math.radians(destination.lng - origin.lng)
    a = (
        math.sin(d_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lam / 2) ** 2
    )
    return 2 * config.EARTH_RADIUS_M * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def haversine_km(origin: Coordinates, destination: Coordinates) -> float:
    return haversine_m(origin, destination) / 1000.0


def travel_time_minutes(distance_m: float, speed_m_per_min: float) -> float:
    """Convert a distance to minutes at a constant speed."""
    if speed_m_per_min <= 0:
        raise ValueError("speed_m_per_min must be positive")
    if distance_m <= 0:
        return 0.0
    return distance_m / speed_m_per_min


def path_distance_m(points: Sequence[Coordinates]) -> float:
    """Sum of consecutive great-circle legs along an ordered path."""
    return sum(haversine_m(a, b) for a, b in zip(points, points[1:]))


# ---------------------------------------------------------------------------
# DistanceTool
# ---------------------------------------------------------------------------


class DistanceTool:
    """
    Distances and walking-equivalent durations between coordinates.
    Used by the RouteOptimizer and the stub travel-time lookup.
    """

    def __init__(self, speed_m_per_min: Optional[float] = None) -> None:
        self.speed_m_per_min: float = speed_m_per_min or config.WALKING_SPEED_M_PER_MIN

    def distance_m(self, origin: Coordinates, destination: Coordinates) -> float:
        return haversine_m(origin, destination)

    def path_distance_m(self, points: Sequence[Coordinates]) -> float:
        return path_distance_m(points)

    def duration_minutes(self, distance_m: float) -> int:
        """Walking-equivalent minutes for a distance, rounded to the nearest minute."""
        return _round_half_up(travel_time_minutes(distance_m, self.speed_m_per_min))

    def distance_matrix_m(self, points: Sequence[Coordinates]) -> list[list[float]]:
        """Full n x n matrix of great-circle distances [metres]."""
        n = len(points)
        return [
            [0.0 if i == j else haversine_m(points[i], points[j]) for j in range(n)]
            for i in range(n)
        ]


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))
