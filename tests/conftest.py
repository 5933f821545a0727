"""Shared fixtures for the scheduling-engine tests."""

from __future__ import annotations

from datetime import date
from typing import Optional

import pytest

from schemas.activity import Coordinates, ScheduledActivity

MONDAY = date(2025, 6, 2)
SATURDAY = date(2025, 6, 7)
SUNDAY = date(2025, 6, 8)


def build_activity(
    activity_id: str,
    start: Optional[str] = None,
    end: Optional[str] = None,
    lat: Optional[float] = None,
    lng: Optional[float] = None,
    categories: tuple[str, ...] = (),
    day: Optional[date] = MONDAY,
    mode: Optional[str] = None,
    name: Optional[str] = None,
    deleted: bool = False,
) -> ScheduledActivity:
    return ScheduledActivity(
        id=activity_id,
        name=name if name is not None else f"Stop {activity_id}",
        date=day,
        start_time=start,
        end_time=end,
        coordinates=Coordinates(lat, lng) if lat is not None and lng is not None else None,
        categories=tuple(categories),
        travel_mode_to_next=mode,
        is_deleted=deleted,
    )


@pytest.fixture
def make_activity():
    return build_activity


@pytest.fixture
def rome_day(make_activity):
    """Three timed stops with coordinates on one Monday in Rome."""
    return [
        make_activity("colosseum", "09:00", "11:00", 41.8902, 12.4922, ("tourist_attraction",)),
        make_activity("lunch", "12:00", "13:00", 41.8986, 12.4769, ("restaurant",), mode="walking"),
        make_activity("vatican", "14:00", "16:30", 41.9065, 12.4536, ("museum",), mode="transit"),
    ]
