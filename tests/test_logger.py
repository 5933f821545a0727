import json

from modules.observability.logger import StructuredLogger


def test_disabled_logger_writes_nothing(tmp_path):
    events = StructuredLogger(logs_dir=tmp_path, enabled=False)
    events.log("itinerary_1", "TRAVEL_FETCH", {"requested": 1})
    assert list(tmp_path.iterdir()) == []


def test_records_are_appended_per_stream(tmp_path):
    events = StructuredLogger(logs_dir=tmp_path / "logs", enabled=True)
    events.log("itinerary_1", "TRAVEL_FETCH", {"requested": 2})
    events.log("itinerary_1", "TRAVEL_PRUNE", {"removed": 1})
    events.log("day_analysis", "DAY_ANALYSIS", {"day": "2025-06-02"})
    events.close()

    lines = events.path_for("itinerary_1").read_text(encoding="utf-8").splitlines()
    records = [json.loads(line) for line in lines]
    assert [r["event_type"] for r in records] == ["TRAVEL_FETCH", "TRAVEL_PRUNE"]
    assert records[0]["stream"] == "itinerary_1"
    assert records[0]["payload"] == {"requested": 2}
    assert "timestamp" in records[0]

    assert events.path_for("day_analysis").exists()


def test_close_single_stream_then_reopen(tmp_path):
    events = StructuredLogger(logs_dir=tmp_path, enabled=True)
    events.log("s", "A", {})
    events.close("s")
    events.log("s", "B", {})
    events.close()

    kinds = [json.loads(line)["event_type"] for line in events.path_for("s").read_text().splitlines()]
    assert kinds == ["A", "B"]


def test_stream_names_cannot_escape_logs_dir(tmp_path):
    events = StructuredLogger(logs_dir=tmp_path, enabled=True)
    events.log("itinerary_../a/b", "TRAVEL_FETCH", {})
    events.log("..", "TRAVEL_FETCH", {})
    events.close()

    assert events.path_for("itinerary_../a/b").parent == tmp_path
    assert sorted(p.name for p in tmp_path.iterdir()) == ["_.jsonl", "itinerary_.._a_b.jsonl"]
