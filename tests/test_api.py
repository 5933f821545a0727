import pytest
from fastapi.testclient import TestClient

from api.routes import schedule
from api.server import app
from modules.observability.logger import StructuredLogger
from modules.tool_usage.travel_time_tool import TravelTimeTool

client = TestClient(app)

ROME = [
    {"id": "colosseum", "name": "Colosseum", "date": "2025-06-02",
     "start_time": "09:00", "end_time": "11:00",
     "coordinates": {"lat": 41.8902, "lng": 12.4922}, "categories": ["tourist_attraction"]},
    {"id": "lunch", "name": "Trattoria", "date": "2025-06-02",
     "start_time": "12:00", "end_time": "13:00",
     "coordinates": {"lat": 41.8986, "lng": 12.4769}, "categories": ["restaurant"],
     "travel_mode_to_next": "walking"},
    {"id": "vatican", "name": "Vatican Museums", "date": "2025-06-02",
     "start_time": "14:00", "end_time": "16:30",
     "coordinates": [12.4536, 41.9065], "categories": ["museum"]},
]


@pytest.fixture(autouse=True)
def clear_store():
    schedule._store.clear()
    yield
    schedule._store.clear()


def test_health():
    resp = client.get("/v1/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


def test_conflicts_with_overlap_and_travel():
    body = {
        "activities": [
            {"id": "a", "start_time": "09:00", "end_time": "10:30"},
            {"id": "b", "start_time": "10:00", "end_time": "11:00"},
        ],
        "travel_times": {"a": {"duration_seconds": 1200, "mode": "driving"}},
    }
    data = client.post("/v1/schedule/conflicts", json=body).json()

    assert [c["type"] for c in data["conflicts"]] == ["overlap", "insufficient_travel"]
    assert data["errors"] == 2
    assert data["summary"] == "2 errors"


def test_invalid_date_is_rejected():
    resp = client.post("/v1/schedule/conflicts", json={"activities": [], "date": "June 2nd"})
    assert resp.status_code == 422


def test_date_filter_limits_the_snapshot():
    body = {"activities": ROME + [{"id": "sat", "date": "2025-06-07",
                                   "start_time": "09:00", "end_time": "10:00"}],
            "date": "2025-06-02"}
    data = client.post("/v1/schedule/segments", json=body).json()
    assert [(s["from_stop"]["id"], s["to_stop"]["id"]) for s in data["segments"]] == [
        ("colosseum", "lunch"),
        ("lunch", "vatican"),
    ]


def test_free_time_for_empty_day():
    data = client.post("/v1/schedule/free-time", json={"activities": []}).json()
    assert [g["position"] for g in data["gaps"]] == ["full_day"]
    assert data["summary"]["total_free_minutes"] == 1020


def test_layout_blocks():
    body = {
        "activities": [
            {"id": "a", "start_time": "09:00", "end_time": "10:00"},
            {"id": "b", "start_time": "09:00", "end_time": "10:00"},
        ],
    }
    blocks = client.post("/v1/schedule/layout", json=body).json()["blocks"]
    assert sorted(b["column"] for b in blocks) == [0, 1]
    assert {b["column_count"] for b in blocks} == {2}
    assert blocks[0]["top_px"] == pytest.approx(864)


def test_layout_draws_commutes_for_known_legs():
    body = {"activities": ROME, "travel_times": {"colosseum": {"duration_seconds": 900}}}
    blocks = client.post("/v1/schedule/layout", json=body).json()["blocks"]
    commutes = [b for b in blocks if b["kind"] == "commute"]
    assert len(commutes) == 2
    assert commutes[0]["height_px"] == pytest.approx(15 * 48 / 30)


def test_efficiency_groups_by_day():
    body = {"activities": [
        {"id": "a", "date": "2025-06-02", "start_time": "06:00", "end_time": "17:03"},
        {"id": "b", "date": "2025-06-03", "start_time": "06:00", "end_time": "23:00"},
    ]}
    data = client.post("/v1/schedule/efficiency", json=body).json()
    assert [d["date"] for d in data["days"]] == ["2025-06-02", "2025-06-03"]
    assert data["summary"]["best_day"] == 100
    assert data["summary"]["worst_day"] == 30


def test_optimize_and_apply():
    routes = client.post("/v1/schedule/optimize", json={"activities": ROME}).json()["routes"]
    assert [r["strategy"] for r in routes] == ["shortest_distance", "activity_clustering", "time_optimized"]

    resp = client.post("/v1/schedule/optimize/apply", json={"activities": ROME, "strategy": "time_optimized"})
    assert resp.status_code == 200
    applied = resp.json()["activities"]
    assert [a["id"] for a in applied] == ["lunch", "colosseum", "vatican"]
    assert applied[0]["start_time"] == "09:00"


def test_apply_unknown_strategy_is_404():
    resp = client.post("/v1/schedule/optimize/apply", json={"activities": ROME, "strategy": "teleport"})
    assert resp.status_code == 404


def test_apply_with_too_few_stops_is_422():
    resp = client.post("/v1/schedule/optimize/apply",
                       json={"activities": ROME[:2], "strategy": "shortest_distance"})
    assert resp.status_code == 422


def test_analyze_with_supplied_travel_times():
    body = {"activities": ROME, "travel_times": {"colosseum": {"duration_seconds": 600}}}
    (day,) = client.post("/v1/schedule/analyze", json=body).json()["days"]
    assert day["day"] == "2025-06-02"
    assert sorted(day["commute_states"].values()) == ["ok", "unknown"]


def test_analyze_fetches_and_caches_travel_times(monkeypatch):
    monkeypatch.setattr(
        schedule, "TravelTimeTool",
        lambda: TravelTimeTool(use_stub=True, cache_backend="memory"),
    )
    body = {"activities": ROME, "itinerary_id": "rome", "fetch_travel": True}
    (day,) = client.post("/v1/schedule/analyze", json=body).json()["days"]

    assert "unknown" not in day["commute_states"].values()
    assert len(schedule._store["rome"]["cache"]) == 2

    assert client.delete("/v1/schedule/analyze/rome").status_code == 200
    assert "rome" not in schedule._store
    assert client.delete("/v1/schedule/analyze/rome").status_code == 404


def test_forget_closes_the_itinerary_log_stream(monkeypatch, tmp_path):
    events = StructuredLogger(logs_dir=tmp_path, enabled=True)
    monkeypatch.setattr(schedule, "_events", events)
    monkeypatch.setattr(
        schedule, "TravelTimeTool",
        lambda: TravelTimeTool(use_stub=True, cache_backend="memory"),
    )
    body = {"activities": ROME, "itinerary_id": "trip/42", "fetch_travel": True}
    assert client.post("/v1/schedule/analyze", json=body).status_code == 200
    assert (tmp_path / "itinerary_trip_42.jsonl").exists()

    body["itinerary_id"] = "rome"
    client.post("/v1/schedule/analyze", json=body)
    assert "itinerary_rome" in events._handles

    assert client.delete("/v1/schedule/analyze/rome").status_code == 200
    assert "itinerary_rome" not in events._handles
    events.close()
