import pytest

from modules.tool_usage.distance_tool import (
    DistanceTool,
    haversine_km,
    haversine_m,
    path_distance_m,
    travel_time_minutes,
)
from schemas.activity import Coordinates


def test_one_degree_of_longitude_at_equator():
    d = haversine_m(Coordinates(0, 0), Coordinates(0, 1))
    assert abs(d - 111_320) / 111_320 < 0.01


def test_same_point_is_zero_and_symmetric():
    a, b = Coordinates(41.89, 12.49), Coordinates(41.90, 12.45)
    assert haversine_m(a, a) == 0
    assert haversine_m(a, b) == pytest.approx(haversine_m(b, a))
    assert haversine_km(a, b) == pytest.approx(haversine_m(a, b) / 1000)


def test_path_distance_sums_legs():
    pts = [Coordinates(0, 0), Coordinates(0, 1), Coordinates(0, 2)]
    assert path_distance_m(pts) == pytest.approx(2 * haversine_m(pts[0], pts[1]))
    assert path_distance_m(pts[:1]) == 0


def test_travel_time_minutes():
    assert travel_time_minutes(1000, 50) == 20
    assert travel_time_minutes(0, 50) == 0
    with pytest.raises(ValueError):
        travel_time_minutes(1000, 0)


def test_duration_rounds_half_up():
    tool = DistanceTool()
    assert tool.speed_m_per_min == 50
    assert tool.duration_minutes(1000) == 20
    assert tool.duration_minutes(1025) == 21
    assert tool.duration_minutes(1024) == 20


def test_distance_matrix_shape():
    pts = [Coordinates(0, 0), Coordinates(0, 1), Coordinates(1, 0)]
    matrix = DistanceTool().distance_matrix_m(pts)
    assert len(matrix) == 3 and all(len(row) == 3 for row in matrix)
    assert all(matrix[i][i] == 0 for i in range(3))
    assert matrix[0][1] == pytest.approx(matrix[1][0])
