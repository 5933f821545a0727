import pytest

from conftest import MONDAY, SATURDAY
from modules.planning.route_optimizer import (
    RouteOptimizer,
    apply_route,
    build_route,
    clustered_order,
    day_route_candidates,
    nearest_neighbor_order,
    time_optimized_order,
)
from modules.tool_usage.distance_tool import DistanceTool, haversine_m
from schemas.activity import Coordinates
from schemas.scheduling import OptimizationStrategy


@pytest.fixture
def zigzag(make_activity):
    """Four stops on the equator visited out of order: 0 → 3 → 1 → 2 (hundredths of a degree)."""
    return [
        make_activity("a", "09:00", "10:00", 0.0, 0.00),
        make_activity("c", "10:00", "11:00", 0.0, 0.03),
        make_activity("b", "11:00", "12:00", 0.0, 0.01),
        make_activity("d", "12:00", "13:00", 0.0, 0.02),
    ]


def _ids(stops):
    return [s.id for s in stops]


# ── orderings ─────────────────────────────────────────────────────────────────

def test_nearest_neighbour_starts_at_first_stop(zigzag):
    assert _ids(nearest_neighbor_order(zigzag)) == ["a", "b", "d", "c"]


def test_nearest_neighbour_walks_square_perimeter(make_activity):
    stops = [
        make_activity("sw", "09:00", "10:00", 0.0, 0.0),
        make_activity("ne", "10:00", "11:00", 0.01, 0.01),
        make_activity("se", "11:00", "12:00", 0.0, 0.01),
        make_activity("nw", "12:00", "13:00", 0.01, 0.0),
    ]
    assert _ids(nearest_neighbor_order(stops)) in (["sw", "se", "ne", "nw"], ["sw", "nw", "ne", "se"])


def test_nearest_neighbour_ties_keep_input_order(make_activity):
    stops = [
        make_activity("start", "09:00", "10:00", 0.0, 0.0),
        make_activity("east", "10:00", "11:00", 0.0, 0.01),
        make_activity("west", "11:00", "12:00", 0.0, -0.01),
    ]
    assert _ids(nearest_neighbor_order(stops))[:2] == ["start", "east"]


def test_clustered_order_follows_category_priority(make_activity):
    stops = [
        make_activity("park", categories=("park",)),
        make_activity("museum", categories=("museum",)),
        make_activity("sight", categories=("tourist_attraction",)),
        make_activity("trattoria", categories=("restaurant",)),
        make_activity("bare"),
    ]
    assert _ids(clustered_order(stops)) == ["trattoria", "sight", "museum", "park", "bare"]


def test_time_optimized_puts_meals_first(make_activity):
    stops = [
        make_activity("walk", "09:00", "10:00"),
        make_activity("gallery", "11:00", "12:00"),
        make_activity("lunch", "13:00", "14:00", categories=("restaurant",)),
        make_activity("loose"),
    ]
    assert _ids(time_optimized_order(stops)) == ["lunch", "walk", "gallery", "loose"]


def test_time_optimized_ignores_meal_words_in_names(make_activity):
    stops = [
        make_activity("museum", "09:00", "10:00", categories=("museum",)),
        make_activity("tour", "11:00", "12:00", categories=("tourist_attraction",), name="Lunch cruise tour"),
        make_activity("cafe", "13:00", "14:00", categories=("cafe",)),
    ]
    assert _ids(time_optimized_order(stops)) == ["cafe", "museum", "tour"]


# ── evaluation ────────────────────────────────────────────────────────────────

def test_build_route_reports_savings(zigzag):
    tool = DistanceTool()
    route = build_route(OptimizationStrategy.SHORTEST_DISTANCE, zigzag, nearest_neighbor_order(zigzag), tool)

    leg = haversine_m(Coordinates(0.0, 0.0), Coordinates(0.0, 0.01))
    assert route.original_distance_meters == pytest.approx(6 * leg)
    assert route.optimized_distance_meters == pytest.approx(3 * leg)
    assert route.savings.distance_saved == pytest.approx(3 * leg)
    assert route.savings.efficiency_gain_percent == pytest.approx(50)
    assert route.savings.time_saved_minutes == tool.duration_minutes(3 * leg)
    assert route.original_order == ("a", "c", "b", "d")
    assert route.optimized_order == ("a", "b", "d", "c")


def test_identical_coordinates_give_zero_gain(make_activity):
    stops = [make_activity(str(i), f"1{i}:00", f"1{i}:30", 41.9, 12.5) for i in range(3)]
    route = build_route(OptimizationStrategy.TIME_OPTIMIZED, stops, stops)
    assert route.original_distance_meters == 0
    assert route.savings.efficiency_gain_percent == 0
    assert route.savings.time_saved_minutes == 0


def test_optimize_returns_one_route_per_strategy(zigzag):
    routes = RouteOptimizer().optimize(zigzag)
    assert [r.strategy for r in routes] == list(OptimizationStrategy)
    assert routes[0].to_dict()["strategy"] == "shortest_distance"
    assert routes[0].to_dict()["optimized_order"] == ["a", "b", "d", "c"]


def test_optimize_needs_three_stops_with_coordinates(make_activity, zigzag):
    assert RouteOptimizer().optimize(zigzag[:2]) == []
    no_coords = zigzag[:2] + [make_activity("x", "15:00", "16:00")]
    assert RouteOptimizer().optimize(no_coords) == []


def test_day_filter(make_activity, zigzag):
    other_day = make_activity("sat", "09:00", "10:00", 0.0, 0.05, day=SATURDAY)
    stops = day_route_candidates(zigzag + [other_day], MONDAY)
    assert "sat" not in _ids(stops)
    assert _ids(stops) == ["a", "c", "b", "d"]


# ── applying a route ──────────────────────────────────────────────────────────

def test_apply_route_hands_out_existing_slots(zigzag):
    route = RouteOptimizer().optimize(zigzag)[0]
    applied = apply_route(zigzag, route)

    assert [(a.id, a.start_time, a.end_time) for a in applied] == [
        ("a", "09:00", "10:00"),
        ("b", "10:00", "11:00"),
        ("d", "11:00", "12:00"),
        ("c", "12:00", "13:00"),
    ]
    # originals untouched
    assert zigzag[1].id == "c" and zigzag[1].start_time == "10:00"
    assert all(new is not old for new in applied for old in zigzag)
