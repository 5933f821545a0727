"""
main.py
--------
Day-planner CLI: analyse an itinerary file day by day.

Input is a JSON file holding either a list of activity records or an object
with an "activities" list (flat or nested record shapes, see
modules/validation/activity_validator.py).

Run:
  python main.py itinerary.json
  python main.py itinerary.json --date 2025-06-01 --fetch-travel
  python main.py itinerary.json --json > report.json

Notes:
  - --fetch-travel resolves commute times through TravelTimeTool, which runs
    in stub (haversine) mode unless USE_STUB_TRAVEL_TIME=false and
    GOOGLE_MAPS_API_KEY are set. Without it, travel-dependent checks are
    skipped and commute blocks are drawn at the default slot length.
"""

from __future__ import annotations
import argparse
import asyncio
import json
import logging
import sys
from datetime import date
from pathlib import Path
from typing import Optional

import config
from modules.commute.segments import build_commute_segments
from modules.commute.travel_time_cache import TravelTimeCache, TravelTimeFetcher
from modules.observability.logger import StructuredLogger
from modules.planning.day_analyzer import DayReport, analyze_day, analyze_itinerary
from modules.scheduling.efficiency import calculate_multi_day_efficiency
from modules.scheduling.time_model import format_duration
from modules.tool_usage.travel_time_tool import TravelTimeTool
from modules.validation import parse_activities
from schemas.activity import ScheduledActivity

logger = logging.getLogger("dayplanner")


def load_activities(path: Path) -> list[ScheduledActivity]:
    with open(path, encoding="utf-8") as fh:
        data = json.load(fh)
    records = data.get("activities", []) if isinstance(data, dict) else data
    if not isinstance(records, list):
        raise ValueError(f"{path}: expected a list of activities")
    return parse_activities(records)


async def fetch_travel_times(
    activities: list[ScheduledActivity],
    events: Optional[StructuredLogger] = None,
) -> TravelTimeCache:
    cache = TravelTimeCache()
    fetcher = TravelTimeFetcher(cache, TravelTimeTool().calculate_travel_time, event_logger=events, stream="cli")
    await fetcher.refresh(build_commute_segments(activities))
    fetcher.close()
    return cache


def _print_report(report: DayReport) -> None:
    print("\n" + "=" * 60)
    print(f"  {report.day.isoformat()}  ({len(report.activities)} activities)")
    print("=" * 60)

    for activity in report.activities:
        print(f"  {activity.start_time or '--:--'} – {activity.end_time or '--:--'}  {activity.display_name}")

    print(f"\n[Conflicts] {report.conflict_summary}")
    for conflict in report.conflicts:
        print(f"  ({conflict.severity.value}) {conflict.message}")
        for fix in conflict.suggestions:
            print(f"      → {fix.description}")

    if report.segments:
        print("\n[Commutes]")
        for segment in report.segments:
            state = report.commute_states.get(segment.key, "unknown")
            print(
                f"  {segment.from_stop.name} → {segment.to_stop.name}: "
                f"{segment.preferred_mode}, gap {segment.gap_minutes}m [{state}]"
            )

    summary = report.free_time_summary
    print(
        f"\n[Free time] {format_duration(summary['total_free_minutes'])} free in "
        f"{summary['gap_count']} gap(s), largest {format_duration(summary['largest_gap_minutes'])}"
    )
    for gap in report.free_time:
        titles = ", ".join(s.title for s in gap.suggestions)
        print(f"  {gap.start_time[:5]}–{gap.end_time[:5]} ({gap.category.value}): {titles}")

    metrics = report.efficiency
    print(f"\n[Efficiency] score {metrics.score}/100 ({metrics.recommendation.type.value})")
    print(f"  {metrics.recommendation.message}")

    if report.routes:
        print("\n[Route options]")
        for route in report.routes:
            saved = route.savings
            print(
                f"  {route.strategy.value:<20} saves {saved.distance_saved / 1000:.1f} km, "
                f"{saved.time_saved_minutes} min ({saved.efficiency_gain_percent:.1f}%)"
            )


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Analyse an itinerary file day by day.")
    parser.add_argument("itinerary", type=Path, help="JSON file with activity records")
    parser.add_argument("--date", help="only analyse this day (YYYY-MM-DD)")
    parser.add_argument("--fetch-travel", action="store_true", help="resolve commute travel times first")
    parser.add_argument("--json", action="store_true", help="print the report as JSON")
    args = parser.parse_args(argv)

    logging.basicConfig(level=config.LOG_LEVEL, format="%(levelname)s %(name)s: %(message)s")

    try:
        activities = load_activities(args.itinerary)
    except (OSError, ValueError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    logger.info("Loaded %d activities from %s", len(activities), args.itinerary)

    day: Optional[date] = None
    if args.date:
        try:
            day = date.fromisoformat(args.date)
        except ValueError:
            print(f"error: invalid --date {args.date!r}", file=sys.stderr)
            return 2

    events = StructuredLogger()
    cache = asyncio.run(fetch_travel_times(activities, events)) if args.fetch_travel else None

    if day is not None:
        reports = [analyze_day(activities, day, cache=cache, event_logger=events)]
    else:
        reports = analyze_itinerary(activities, cache=cache, event_logger=events)
    events.close()

    if args.json:
        print(json.dumps({
            "days": [r.to_dict() for r in reports],
            "summary": calculate_multi_day_efficiency(r.efficiency for r in reports),
        }, indent=2, ensure_ascii=False))
        return 0

    if not reports:
        print("No scheduled activities found.")
        return 0
    for report in reports:
        _print_report(report)

    overall = calculate_multi_day_efficiency(r.efficiency for r in reports)
    print("\n" + "=" * 60)
    print(
        f"  {len(reports)} day(s), {overall['total_activities']} activities, "
        f"average score {overall['average_score']} "
        f"(best {overall['best_day']}, worst {overall['worst_day']})"
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
