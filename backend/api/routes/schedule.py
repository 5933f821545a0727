"""
api/routes/schedule.py
-----------------------
Scheduling-engine endpoints. Every request carries the activity snapshot it
is about; nothing is persisted except the per-itinerary travel-time cache
used by /analyze when fetch_travel is set.

  POST /v1/schedule/conflicts       conflicts + severity summary for one day
  POST /v1/schedule/segments        commute segments for every day
  POST /v1/schedule/layout          column layout for a day's blocks
  POST /v1/schedule/free-time       gaps with suggestions + summary
  POST /v1/schedule/efficiency      per-day scores + multi-day summary
  POST /v1/schedule/optimize        route options for one day
  POST /v1/schedule/optimize/apply  re-timed activities for one strategy
  POST /v1/schedule/analyze         full DayReport(s), optionally fetching
                                    travel times first

``travel_times`` in request bodies maps a *from* activity id to the leg
that leaves it (the shape ConflictDetector consumes).
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

import config
from modules.commute.overlap_layout import activity_events, commute_events, layout_blocks
from modules.commute.segments import build_commute_segments, build_day_segments, group_by_day
from modules.commute.travel_time_cache import TravelTimeCache, TravelTimeFetcher
from modules.observability.logger import StructuredLogger
from modules.planning.day_analyzer import analyze_day, analyze_itinerary
from modules.planning.route_optimizer import RouteOptimizer, apply_route
from modules.scheduling.conflict_detector import (
    detect_all_conflicts,
    get_conflict_summary,
    group_conflicts_by_severity,
)
from modules.scheduling.efficiency import calculate_day_efficiency, calculate_multi_day_efficiency
from modules.scheduling.free_time import detect_free_time_gaps, get_free_time_summary
from modules.tool_usage.travel_time_tool import TravelTimeTool
from modules.validation import parse_activities
from schemas.activity import ScheduledActivity
from schemas.scheduling import GridConfig, OptimizationStrategy, TravelTimeResult

logger = logging.getLogger(__name__)

router = APIRouter()

# itinerary_id -> {"cache": TravelTimeCache, "fetcher": TravelTimeFetcher}
_store: dict[str, dict] = {}
_events = StructuredLogger()


# ── Request schemas ────────────────────────────────────────────────────────────

class TravelTimeIn(BaseModel):
    duration_seconds: int = Field(ge=0)
    duration_text: str = ""
    mode: str = config.DEFAULT_TRAVEL_MODE
    distance_text: Optional[str] = None


class ScheduleRequest(BaseModel):
    activities: list[dict[str, Any]]
    date: Optional[str] = None                        # "YYYY-MM-DD"; omit = treat input as one day
    travel_times: dict[str, TravelTimeIn] = {}


class GridIn(BaseModel):
    grid_start_minutes: int = Field(0, ge=0)
    minutes_per_slot: int = Field(config.GRID_MINUTES_PER_SLOT, gt=0)
    slot_height_px: int = Field(config.GRID_SLOT_HEIGHT_PX, gt=0)
    grid_height_px: Optional[int] = Field(None, gt=0)
    min_block_px: int = Field(config.GRID_MIN_BLOCK_PX, ge=0)


class LayoutRequest(ScheduleRequest):
    grid: GridIn = GridIn()
    include_activities: bool = True


class ApplyRouteRequest(ScheduleRequest):
    strategy: str


class AnalyzeRequest(ScheduleRequest):
    itinerary_id: Optional[str] = None
    fetch_travel: bool = False


# ── Helpers ────────────────────────────────────────────────────────────────────

def _parse_day(value: Optional[str]) -> Optional[date]:
    if value is None:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=f"Invalid date format: {exc}") from exc


def _day_activities(req: ScheduleRequest) -> list[ScheduledActivity]:
    activities = parse_activities(req.activities)
    day = _parse_day(req.date)
    if day is None:
        return activities
    return [a for a in activities if a.date == day]


def _travel_map(req: ScheduleRequest) -> dict[str, Optional[TravelTimeResult]]:
    return {
        activity_id: TravelTimeResult(
            duration_seconds=t.duration_seconds,
            duration_text=t.duration_text,
            mode=t.mode,
            distance_text=t.distance_text,
        )
        for activity_id, t in req.travel_times.items()
    }


def _seeded_cache(segments, travel: dict[str, Optional[TravelTimeResult]]) -> TravelTimeCache:
    """A cache holding the caller-supplied legs under each segment's preferred mode."""
    cache = TravelTimeCache()
    for segment in segments:
        result = travel.get(segment.from_stop.id)
        if result is not None:
            cache.merge(segment.key, {segment.preferred_mode: result})
    return cache


def _grid(grid: GridIn) -> GridConfig:
    height = grid.grid_height_px or (config.MINUTES_PER_DAY // grid.minutes_per_slot) * grid.slot_height_px
    return GridConfig(
        grid_start_minutes=grid.grid_start_minutes,
        minutes_per_slot=grid.minutes_per_slot,
        slot_height_px=grid.slot_height_px,
        grid_height_px=height,
        min_block_px=grid.min_block_px,
    )


def _stream_for(itinerary_id: str) -> str:
    return f"itinerary_{itinerary_id}"


def get_itinerary_entry(itinerary_id: str) -> dict:
    """Per-itinerary cache + fetcher, created on first use."""
    entry = _store.get(itinerary_id)
    if entry is None:
        cache = TravelTimeCache()
        fetcher = TravelTimeFetcher(
            cache,
            TravelTimeTool().calculate_travel_time,
            event_logger=_events,
            stream=_stream_for(itinerary_id),
        )
        entry = _store[itinerary_id] = {"cache": cache, "fetcher": fetcher}
    return entry


# ── Endpoints ──────────────────────────────────────────────────────────────────

@router.post("/conflicts", summary="Detect scheduling conflicts for one day")
def conflicts(req: ScheduleRequest) -> dict:
    found = detect_all_conflicts(_day_activities(req), _travel_map(req))
    grouped = group_conflicts_by_severity(found)
    return {
        "conflicts": [c.to_dict() for c in found],
        "errors": len(grouped["errors"]),
        "warnings": len(grouped["warnings"]),
        "summary": get_conflict_summary(found),
    }


@router.post("/segments", summary="Commute segments between consecutive activities")
def segments(req: ScheduleRequest) -> dict:
    activities = _day_activities(req)
    return {"segments": [s.to_dict() for s in build_commute_segments(activities)]}


@router.post("/layout", summary="Side-by-side column layout for a day's blocks")
def layout(req: LayoutRequest) -> dict:
    activities = _day_activities(req)
    grid = _grid(req.grid)
    day_segments = build_day_segments(activities)
    cache = _seeded_cache(day_segments, _travel_map(req))

    events = commute_events(day_segments, cache, minutes_per_slot=grid.minutes_per_slot)
    if req.include_activities:
        events = activity_events(activities) + events
    return {"blocks": [b.to_dict() for b in layout_blocks(events, grid)]}


@router.post("/free-time", summary="Free-time gaps and suggestions for one day")
def free_time(req: ScheduleRequest) -> dict:
    activities = _day_activities(req)
    return {
        "gaps": [g.to_dict() for g in detect_free_time_gaps(activities)],
        "summary": get_free_time_summary(activities),
    }


@router.post("/efficiency", summary="Time-utilisation score per day")
def efficiency(req: ScheduleRequest) -> dict:
    activities = _day_activities(req)
    travel = _travel_map(req)
    by_day = group_by_day(activities)

    days = []
    metrics = []
    if by_day:
        for day, day_activities in by_day.items():
            day_metrics = calculate_day_efficiency(day_activities, travel)
            metrics.append(day_metrics)
            days.append({"date": day.isoformat(), "metrics": day_metrics.to_dict()})
    else:
        day_metrics = calculate_day_efficiency(activities, travel)
        metrics.append(day_metrics)
        days.append({"date": None, "metrics": day_metrics.to_dict()})

    return {"days": days, "summary": calculate_multi_day_efficiency(metrics)}


@router.post("/optimize", summary="Route reordering options for one day")
def optimize(req: ScheduleRequest) -> dict:
    routes = RouteOptimizer().optimize(_day_activities(req))
    return {"routes": [r.to_dict() for r in routes]}


@router.post("/optimize/apply", summary="Apply one route option to the day's time slots")
def optimize_apply(req: ApplyRouteRequest) -> dict:
    try:
        strategy = OptimizationStrategy(req.strategy)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=f"Unknown strategy '{req.strategy}'") from exc

    activities = _day_activities(req)
    routes = {r.strategy: r for r in RouteOptimizer().optimize(activities)}
    route = routes.get(strategy)
    if route is None:
        raise HTTPException(
            status_code=422,
            detail=f"Route optimization requires at least {config.MIN_STOPS_FOR_OPTIMIZATION} activities",
        )

    applied = apply_route(activities, route)
    return {
        "route": route.to_dict(),
        "activities": [
            {
                "id": a.id,
                "name": a.name,
                "date": a.date.isoformat() if a.date else None,
                "start_time": a.start_time,
                "end_time": a.end_time,
            }
            for a in applied
        ],
    }


@router.post("/analyze", summary="Full per-day analysis")
async def analyze(req: AnalyzeRequest) -> dict:
    activities = _day_activities(req)
    day = _parse_day(req.date)

    if req.fetch_travel:
        entry = get_itinerary_entry(req.itinerary_id or "default")
        cache: TravelTimeCache = entry["cache"]
        fetcher: TravelTimeFetcher = entry["fetcher"]
        issued = await fetcher.refresh(build_commute_segments(activities))
        logger.info("Travel-time refresh for %s issued %d lookups", req.itinerary_id or "default", issued)
    else:
        cache = _seeded_cache(build_commute_segments(activities), _travel_map(req))

    if day is not None:
        reports = [analyze_day(activities, day, cache=cache, event_logger=_events)]
    else:
        reports = analyze_itinerary(activities, cache=cache, event_logger=_events)
    return {"days": [r.to_dict() for r in reports]}


@router.delete("/analyze/{itinerary_id}", summary="Drop an itinerary's travel-time cache")
def forget(itinerary_id: str) -> dict:
    entry = _store.pop(itinerary_id, None)
    if entry is None:
        raise HTTPException(status_code=404, detail=f"Itinerary '{itinerary_id}' has no cached travel times.")
    entry["fetcher"].close()
    _events.close(_stream_for(itinerary_id))
    return {"status": "ok", "itinerary_id": itinerary_id}
