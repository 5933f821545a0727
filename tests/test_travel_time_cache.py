import asyncio

import pytest

from modules.commute.segments import build_day_segments, get_commute_request_key
from modules.commute.travel_time_cache import (
    TravelTimeCache,
    TravelTimeFetcher,
    parse_lookup_response,
)
from schemas.scheduling import TravelTimeResult


def _ok(modes, seconds=600):
    return {
        "success": True,
        "data": {
            "results": {
                mode: {"duration": {"value": seconds, "text": f"{seconds // 60} mins"},
                       "distance": {"text": "2.0 km"}}
                for mode in modes
            },
        },
    }


class RecordingLookup:
    def __init__(self, response=None, error=None):
        self.calls = []
        self._response = response
        self._error = error

    async def __call__(self, origin, destination, modes):
        self.calls.append((origin, destination, tuple(modes)))
        if self._error is not None:
            raise self._error
        if self._response is not None:
            return self._response
        return _ok(modes)


class RecordingEvents:
    def __init__(self):
        self.records = []

    def log(self, stream, event_type, payload):
        self.records.append((stream, event_type, payload))


@pytest.fixture
def segments(rome_day):
    return build_day_segments(rome_day)


def _result(seconds=600, mode="driving"):
    return TravelTimeResult(duration_seconds=seconds, duration_text="x", mode=mode)


# ── response parsing ──────────────────────────────────────────────────────────

def test_parse_response_per_mode():
    parsed = parse_lookup_response(_ok(["driving", "walking"], 900), ["driving", "walking", "transit"])
    assert parsed["driving"].duration_seconds == 900
    assert parsed["driving"].distance_text == "2.0 km"
    assert parsed["walking"].mode == "walking"
    assert parsed["transit"] is None


def test_parse_failure_and_missing_duration_resolve_to_none():
    assert parse_lookup_response({"success": False, "error": {"message": "boom"}}, ["driving"]) == {"driving": None}
    missing = {"success": True, "data": {"results": {"driving": {"distance": {"text": "1 km"}}}}}
    assert parse_lookup_response(missing, ["driving"]) == {"driving": None}
    assert parse_lookup_response(None, ["walking"]) == {"walking": None}


def test_zero_duration_is_a_valid_result():
    parsed = parse_lookup_response(_ok(["walking"], 0), ["walking"])
    assert parsed["walking"] is not None
    assert parsed["walking"].duration_seconds == 0


# ── cache ─────────────────────────────────────────────────────────────────────

def test_missing_modes_always_include_driving_and_walking(segments):
    cache = TravelTimeCache()
    first, second = segments            # preferred: driving, walking
    assert cache.missing_modes(first) == ["driving", "walking"]
    assert cache.missing_modes(second) == ["driving", "walking"]

    cache.merge(first.key, {"driving": None})
    cache.mark_in_flight(first.key, ["walking"])
    assert cache.missing_modes(first) == []


def test_missing_modes_adds_preferred_mode(make_activity):
    acts = [
        make_activity("a", "09:00", "10:00", 41.0, 12.0, mode="transit"),
        make_activity("b", "11:00", "12:00", 41.1, 12.1),
    ]
    segment = build_day_segments(acts)[0]
    assert TravelTimeCache().missing_modes(segment) == ["driving", "walking", "transit"]


def test_has_distinguishes_unavailable_from_unknown(segments):
    cache = TravelTimeCache()
    key = segments[0].key
    assert not cache.has(key, "driving")
    cache.merge(key, {"driving": None})
    assert cache.has(key, "driving")
    assert cache.get(key, "driving") is None


def test_prune_removes_resolved_and_in_flight_entries(segments):
    cache = TravelTimeCache()
    keep, drop = segments
    cache.merge(keep.key, {"driving": _result()})
    cache.merge(drop.key, {"driving": _result()})
    cache.mark_in_flight(drop.key, ["walking", "transit"])
    cache.mark_in_flight(keep.key, ["walking"])

    removed = cache.prune([keep.key])

    assert removed == 3
    assert cache.get(drop.key, "driving") is None
    assert not cache.has(drop.key, "driving")
    assert not cache.is_loading(drop.key, "walking")
    assert cache.is_loading(keep.key, "walking")
    assert cache.get(keep.key, "driving") is not None
    assert cache.segment_keys == frozenset({keep.key})


def test_results_by_activity_uses_preferred_mode(segments):
    cache = TravelTimeCache()
    first, second = segments
    cache.merge(first.key, {"driving": _result(300), "walking": _result(1200, "walking")})
    cache.merge(second.key, {"driving": _result(200)})

    by_activity = cache.results_by_activity(segments)
    assert by_activity["colosseum"].duration_seconds == 300
    assert by_activity["lunch"] is None                        # walking not resolved yet

    walking = cache.results_by_activity(segments, mode="walking")
    assert walking["colosseum"].duration_seconds == 1200


def test_snapshot_is_plain_data(segments):
    cache = TravelTimeCache()
    cache.merge(segments[0].key, {"driving": _result(60), "walking": None})
    snap = cache.snapshot()
    assert snap[segments[0].key]["driving"]["duration_seconds"] == 60
    assert snap[segments[0].key]["walking"] is None


# ── fetcher ───────────────────────────────────────────────────────────────────

def test_refresh_fetches_missing_modes_once(segments):
    cache = TravelTimeCache()
    lookup = RecordingLookup()
    fetcher = TravelTimeFetcher(cache, lookup)

    issued = asyncio.run(fetcher.refresh(segments))

    assert issued == 2
    assert [call[2] for call in lookup.calls] == [("driving", "walking"), ("driving", "walking")]
    assert cache.get(segments[0].key, "driving").duration_seconds == 600
    assert cache.in_flight == frozenset()

    assert asyncio.run(fetcher.refresh(segments)) == 0
    assert len(lookup.calls) == 2


def test_failed_lookup_resolves_to_unavailable(segments):
    cache = TravelTimeCache()
    fetcher = TravelTimeFetcher(cache, RecordingLookup(response={"success": False, "error": {"message": "quota"}}))
    asyncio.run(fetcher.refresh(segments[:1]))

    key = segments[0].key
    assert cache.has(key, "driving") and cache.get(key, "driving") is None
    assert cache.has(key, "walking") and cache.get(key, "walking") is None


def test_raised_exception_resolves_to_unavailable(segments):
    cache = TravelTimeCache()
    fetcher = TravelTimeFetcher(cache, RecordingLookup(error=RuntimeError("network down")))
    asyncio.run(fetcher.refresh(segments))
    assert all(cache.has(s.key, "driving") for s in segments)
    assert all(cache.get(s.key, "driving") is None for s in segments)
    assert cache.in_flight == frozenset()


def test_closed_fetcher_drops_results(segments):
    cache = TravelTimeCache()
    fetcher = TravelTimeFetcher(cache, RecordingLookup())

    class ClosingLookup(RecordingLookup):
        async def __call__(self, origin, destination, modes):
            fetcher.close()
            return _ok(modes)

    fetcher._lookup = ClosingLookup()
    asyncio.run(fetcher.refresh(segments))

    assert len(cache) == 0
    assert cache.in_flight == frozenset()
    assert asyncio.run(fetcher.refresh(segments)) == 0


def test_results_for_segments_that_became_irrelevant_are_dropped(segments):
    cache = TravelTimeCache()

    async def scenario():
        gate = asyncio.Event()

        async def slow_lookup(origin, destination, modes):
            await gate.wait()
            return _ok(modes)

        fetcher = TravelTimeFetcher(cache, slow_lookup)
        task = asyncio.create_task(fetcher.refresh(segments[:1]))
        await asyncio.sleep(0)
        assert cache.is_loading(segments[0].key, "driving")

        await fetcher.refresh([])          # segment set changed while in flight
        assert not cache.is_loading(segments[0].key, "driving")

        gate.set()
        await task

    asyncio.run(scenario())
    assert not cache.has(segments[0].key, "driving")


def test_concurrent_refreshes_never_duplicate_a_request(segments):
    cache = TravelTimeCache()
    calls = []

    async def scenario():
        gate = asyncio.Event()

        async def slow_lookup(origin, destination, modes):
            calls.append(tuple(modes))
            await gate.wait()
            return _ok(modes)

        fetcher = TravelTimeFetcher(cache, slow_lookup)
        first = asyncio.create_task(fetcher.refresh(segments[:1]))
        await asyncio.sleep(0)
        second = await fetcher.refresh(segments[:1])
        gate.set()
        await first
        return second

    assert asyncio.run(scenario()) == 0
    assert calls == [("driving", "walking")]
    assert cache.get(segments[0].key, "walking") is not None
    assert get_commute_request_key(segments[0].key, "walking") not in cache.in_flight


def test_cancelled_refresh_releases_in_flight_markers(segments):
    cache = TravelTimeCache()

    async def scenario():
        never = asyncio.Event()

        async def hanging_lookup(origin, destination, modes):
            await never.wait()

        fetcher = TravelTimeFetcher(cache, hanging_lookup)
        task = asyncio.create_task(fetcher.refresh(segments[:1]))
        await asyncio.sleep(0)
        assert cache.is_loading(segments[0].key, "driving")

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    asyncio.run(scenario())
    assert cache.in_flight == frozenset()

    lookup = RecordingLookup()
    assert asyncio.run(TravelTimeFetcher(cache, lookup).refresh(segments[:1])) == 1
    assert lookup.calls[0][2] == ("driving", "walking")
    assert cache.get(segments[0].key, "driving").duration_seconds == 600


def test_fetch_and_prune_events_are_logged(segments):
    cache = TravelTimeCache()
    events = RecordingEvents()
    fetcher = TravelTimeFetcher(cache, RecordingLookup(), event_logger=events, stream="itinerary_1")

    asyncio.run(fetcher.refresh(segments))
    asyncio.run(fetcher.refresh(segments[:1]))

    kinds = [event_type for _, event_type, _ in events.records]
    assert kinds == ["TRAVEL_FETCH", "TRAVEL_PRUNE"]
    assert events.records[0][0] == "itinerary_1"
    assert events.records[0][2]["requested"] == 2
    assert events.records[1][2]["removed"] == 1
