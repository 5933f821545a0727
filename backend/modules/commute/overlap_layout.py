"""
modules/commute/overlap_layout.py
-----------------------------------
Side-by-side column layout for blocks that share a day's timeline.

Greedy interval-graph colouring:
  1. Sort by (start, commute blocks first, end).
  2. Walk the list, growing a cluster while start < cluster_end.
  3. Each block takes the smallest column not used by an already placed,
     still-overlapping block of the same cluster.
  4. column_count = highest column in the cluster + 1.

Touching intervals ([0,30] and [30,60]) do not overlap. The engine only
produces geometry; rendering is the caller's business.
"""

from __future__ import annotations
import math
from typing import Iterable, Mapping, Optional, Sequence

import config
from modules.commute.segments import get_commute_overlay_id
from modules.commute.travel_time_cache import TravelTimeCache
from modules.scheduling.time_model import interval_for, parse_time_to_minutes
from schemas.activity import ScheduledActivity
from schemas.scheduling import (
    BlockLayout,
    ColumnAssignment,
    CommuteSegment,
    GridConfig,
    LayoutEvent,
    LayoutKind,
    TravelTimeResult,
)


# ── Event construction ────────────────────────────────────────────────────────

def activity_events(
    activities: Iterable[ScheduledActivity],
    kind: LayoutKind = LayoutKind.ACTIVITY,
) -> list[LayoutEvent]:
    """Timed, non-deleted activities as layout events."""
    events = []
    for activity in activities:
        if activity.is_deleted:
            continue
        interval = interval_for(activity.start_time, activity.end_time)
        if interval is None:
            continue
        events.append(LayoutEvent(id=activity.id, start=interval.start, end=interval.end, kind=kind))
    return events


def commute_events(
    segments: Iterable[CommuteSegment],
    travel_times: Optional[TravelTimeCache | Mapping[str, Optional[TravelTimeResult]]] = None,
    minutes_per_slot: int = config.GRID_MINUTES_PER_SLOT,
) -> list[LayoutEvent]:
    """
    One commute block per segment, starting when the *from* activity ends.

    ``travel_times`` is either a TravelTimeCache (looked up in the segment's
    preferred mode) or a mapping segment_key -> result. While a leg is
    unknown it is drawn one slot long.
    """
    events = []
    for segment in segments:
        start = parse_time_to_minutes(segment.from_stop.end_time)
        if start is None:
            continue

        if isinstance(travel_times, TravelTimeCache):
            result = travel_times.get(segment.key, segment.preferred_mode)
        elif travel_times is not None:
            result = travel_times.get(segment.key)
        else:
            result = None

        if result is None:
            rendered = minutes_per_slot
        else:
            rendered = int(math.floor(result.duration_seconds / 60 + 0.5))

        events.append(LayoutEvent(
            id=get_commute_overlay_id(segment.key),
            start=start,
            end=start + max(rendered, 1),
            kind=LayoutKind.COMMUTE,
        ))
    return events


# ── Column assignment ─────────────────────────────────────────────────────────

def _sort_key(event: LayoutEvent) -> tuple[int, int, int]:
    return (event.start, 0 if event.kind is LayoutKind.COMMUTE else 1, event.end)


def assign_columns(events: Iterable[LayoutEvent]) -> dict[str, ColumnAssignment]:
    """Map event id -> (column, column_count). Event ids must be unique."""
    assignments: dict[str, ColumnAssignment] = {}
    cluster: list[tuple[LayoutEvent, int]] = []
    cluster_end = 0

    def _close_cluster() -> None:
        count = max(column for _, column in cluster) + 1
        for placed, column in cluster:
            assignments[placed.id] = ColumnAssignment(column=column, column_count=count)

    for event in sorted(events, key=_sort_key):
        if cluster and event.start >= cluster_end:
            _close_cluster()
            cluster = []

        used = {column for placed, column in cluster if placed.end > event.start}
        column = 0
        while column in used:
            column += 1

        cluster_end = max(cluster_end, event.end) if cluster else event.end
        cluster.append((event, column))

    if cluster:
        _close_cluster()
    return assignments


# ── Geometry ──────────────────────────────────────────────────────────────────

def block_geometry(event: LayoutEvent, grid: GridConfig) -> tuple[float, float]:
    """(top_px, height_px) of one block, clamped inside the grid."""
    px_per_minute = grid.slot_height_px / grid.minutes_per_slot
    top = (event.start - grid.grid_start_minutes) * px_per_minute
    height = max(float(grid.min_block_px), (event.end - event.start) * px_per_minute)
    top = max(2.0, min(top, grid.grid_height_px - height - 2))
    return top, height


def layout_blocks(
    events: Sequence[LayoutEvent],
    grid: Optional[GridConfig] = None,
) -> list[BlockLayout]:
    """Full renderer instructions for every event, in timeline order."""
    grid = grid or default_grid()
    columns = assign_columns(events)
    blocks = []
    for event in sorted(events, key=_sort_key):
        assignment = columns[event.id]
        top, height = block_geometry(event, grid)
        blocks.append(BlockLayout(
            id=event.id,
            kind=event.kind,
            column=assignment.column,
            column_count=assignment.column_count,
            top_px=top,
            height_px=height,
        ))
    return blocks


def default_grid() -> GridConfig:
    slots = config.MINUTES_PER_DAY // config.GRID_MINUTES_PER_SLOT
    return GridConfig(
        grid_start_minutes=0,
        minutes_per_slot=config.GRID_MINUTES_PER_SLOT,
        slot_height_px=config.GRID_SLOT_HEIGHT_PX,
        grid_height_px=slots * config.GRID_SLOT_HEIGHT_PX,
        min_block_px=config.GRID_MIN_BLOCK_PX,
    )
