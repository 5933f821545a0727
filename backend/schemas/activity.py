"""
schemas/activity.py
-------------------
Input-side dataclasses: the scheduled activity records every engine
component consumes.

Activities are immutable snapshots (frozen dataclasses). Scheduling actions
such as applying an optimized route return *new* activities via
``dataclasses.replace`` and never mutate the caller's list.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Optional


class TravelMode(str, Enum):
    """Travel modes understood by the travel-time lookup."""
    WALKING   = "walking"
    DRIVING   = "driving"
    TRANSIT   = "transit"
    BICYCLING = "bicycling"

    @classmethod
    def values(cls) -> list[str]:
        return [m.value for m in cls]


@dataclass(frozen=True)
class Coordinates:
    """A WGS-84 point in decimal degrees."""
    lat: float
    lng: float

    def as_tuple(self) -> tuple[float, float]:
        return (self.lat, self.lng)


@dataclass(frozen=True)
class ScheduledActivity:
    """
    A place/time entry on an itinerary day.

    ``start_time`` / ``end_time`` are wall-clock strings ("HH:MM" or
    "HH:MM:SS") and may be absent independently. ``categories`` holds the
    place types; the first entry is the primary category.
    ``date`` is None for activities that are not yet placed on a day.
    """
    id: str
    name: str = ""
    date: Optional[date] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    coordinates: Optional[Coordinates] = None
    categories: tuple[str, ...] = field(default_factory=tuple)
    notes: str = ""
    travel_mode_to_next: Optional[str] = None
    is_deleted: bool = False

    @property
    def primary_category(self) -> str:
        return self.categories[0] if self.categories else "other"

    @property
    def display_name(self) -> str:
        return self.name or "Activity"

    @property
    def is_scheduled(self) -> bool:
        """True when the activity sits on a day with both times set."""
        return self.date is not None and bool(self.start_time) and bool(self.end_time)
