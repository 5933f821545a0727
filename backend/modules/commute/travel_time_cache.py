"""
modules/commute/travel_time_cache.py
--------------------------------------
Request-dedup layer over the injected travel-time lookup.

TravelTimeCache   explicitly owned state:
                    resolved   segment_key -> {mode -> TravelTimeResult | None}
                    in_flight  {"segment_key::mode", ...}
                  None is a terminal "unavailable" result until the caller
                  re-requests it.

TravelTimeFetcher the engine's only asynchronous component. On every
                  refresh it prunes entries of segments that are no longer
                  relevant, issues one lookup per segment for the modes it is
                  still missing, and merges completed results only while the
                  consumer is alive and the segment is still relevant.

The lookup is an async callable supplied by the caller:

    await calculate_travel_time(origin, destination, modes) ->
        {"success": True,  "data": {"results": {mode: {"duration": {"value", "text"},
                                                       "distance": {"text"}}}}}
      | {"success": False, "error": {"message": str}}

There is no retry, backoff or timeout at this layer.
"""

from __future__ import annotations
import asyncio
import logging
from typing import Any, Awaitable, Callable, Iterable, Mapping, Optional, Sequence

import config
from modules.commute.segments import get_commute_request_key, segment_key_of_request
from modules.observability.logger import StructuredLogger
from schemas.activity import Coordinates
from schemas.scheduling import CommuteSegment, TravelTimeResult

logger = logging.getLogger(__name__)

TravelTimeLookup = Callable[[Coordinates, Coordinates, list[str]], Awaitable[Mapping[str, Any]]]
ModeResults = dict[str, Optional[TravelTimeResult]]


# ─────────────────────────────────────────────────────────────────────────────
# Response parsing
# ─────────────────────────────────────────────────────────────────────────────

def parse_lookup_response(response: Mapping[str, Any] | None, modes: Sequence[str]) -> ModeResults:
    """
    Turn a lookup response into one entry per requested mode. Any failure,
    missing mode key or missing duration resolves that mode to None.
    A duration of 0 seconds is a valid result.
    """
    entry: ModeResults = {mode: None for mode in modes}
    if not response or not response.get("success") or not response.get("data"):
        return entry

    results = response["data"].get("results") or {}
    for mode in modes:
        chosen = results.get(mode)
        if not isinstance(chosen, Mapping):
            continue
        duration = chosen.get("duration") or {}
        value = duration.get("value")
        if value is None:
            continue
        try:
            seconds = int(value)
        except (TypeError, ValueError):
            continue
        distance = chosen.get("distance") or {}
        entry[mode] = TravelTimeResult(
            duration_seconds=seconds,
            duration_text=str(duration.get("text") or ""),
            distance_text=str(distance["text"]) if distance.get("text") else None,
            mode=mode,
        )
    return entry


# ─────────────────────────────────────────────────────────────────────────────
# Cache
# ─────────────────────────────────────────────────────────────────────────────

class TravelTimeCache:
    """Resolved travel times plus in-flight bookkeeping, keyed by segment."""

    def __init__(self) -> None:
        self._resolved: dict[str, ModeResults] = {}
        self._in_flight: set[str] = set()

    # ── reads ─────────────────────────────────────────────────────────────

    def get(self, segment_key: str, mode: str) -> Optional[TravelTimeResult]:
        return self._resolved.get(segment_key, {}).get(mode)

    def has(self, segment_key: str, mode: str) -> bool:
        """True once the mode has resolved, including to None."""
        return mode in self._resolved.get(segment_key, {})

    def is_loading(self, segment_key: str, mode: str) -> bool:
        return get_commute_request_key(segment_key, mode) in self._in_flight

    def modes_for(self, segment_key: str) -> ModeResults:
        return dict(self._resolved.get(segment_key, {}))

    @property
    def in_flight(self) -> frozenset[str]:
        return frozenset(self._in_flight)

    @property
    def segment_keys(self) -> frozenset[str]:
        return frozenset(self._resolved)

    def missing_modes(self, segment: CommuteSegment) -> list[str]:
        """
        Modes of {driving, walking, preferred} that are neither resolved nor
        already being fetched for this segment.
        """
        wanted = list(config.ALWAYS_FETCH_MODES)
        if segment.preferred_mode not in wanted:
            wanted.append(segment.preferred_mode)
        return [
            mode for mode in wanted
            if not self.has(segment.key, mode) and not self.is_loading(segment.key, mode)
        ]

    def results_by_activity(
        self,
        segments: Iterable[CommuteSegment],
        mode: Optional[str] = None,
    ) -> dict[str, Optional[TravelTimeResult]]:
        """
        Map each segment's *from* activity id to its travel time in ``mode``
        (default: the segment's preferred mode). Unresolved legs map to None.
        """
        return {
            seg.from_stop.id: self.get(seg.key, mode or seg.preferred_mode)
            for seg in segments
        }

    def snapshot(self) -> dict[str, dict[str, Optional[dict]]]:
        return {
            key: {mode: (r.to_dict() if r else None) for mode, r in modes.items()}
            for key, modes in self._resolved.items()
        }

    # ── writes ────────────────────────────────────────────────────────────

    def mark_in_flight(self, segment_key: str, modes: Iterable[str]) -> None:
        for mode in modes:
            self._in_flight.add(get_commute_request_key(segment_key, mode))

    def finish(self, segment_key: str, modes: Iterable[str]) -> None:
        for mode in modes:
            self._in_flight.discard(get_commute_request_key(segment_key, mode))

    def merge(self, segment_key: str, results: Mapping[str, Optional[TravelTimeResult]]) -> None:
        self._resolved.setdefault(segment_key, {}).update(results)

    def prune(self, relevant_keys: Iterable[str]) -> int:
        """
        Drop resolved and in-flight entries for segments not in
        ``relevant_keys``. Returns the number of entries removed.
        """
        relevant = set(relevant_keys)
        stale_resolved = [key for key in self._resolved if key not in relevant]
        for key in stale_resolved:
            del self._resolved[key]

        stale_requests = {
            request for request in self._in_flight
            if segment_key_of_request(request) not in relevant
        }
        self._in_flight -= stale_requests
        return len(stale_resolved) + len(stale_requests)

    def clear(self) -> None:
        self._resolved.clear()
        self._in_flight.clear()

    def __len__(self) -> int:
        return len(self._resolved)


# ─────────────────────────────────────────────────────────────────────────────
# Fetcher
# ─────────────────────────────────────────────────────────────────────────────

class TravelTimeFetcher:
    """
    Fills a TravelTimeCache from the injected lookup.

    Usage:
        fetcher = TravelTimeFetcher(cache, tool.calculate_travel_time)
        await fetcher.refresh(segments)      # on every segment-set change
        fetcher.close()                      # consumer torn down
    """

    def __init__(
        self,
        cache: TravelTimeCache,
        calculate_travel_time: TravelTimeLookup,
        event_logger: Optional[StructuredLogger] = None,
        stream: str = "default",
    ) -> None:
        self.cache = cache
        self._lookup = calculate_travel_time
        self._event_logger = event_logger
        self._stream = stream
        self._relevant: frozenset[str] = frozenset()
        self.alive = True

    def close(self) -> None:
        """Stop applying results; outstanding requests finish but are discarded."""
        self.alive = False

    def set_relevant(self, segments: Iterable[CommuteSegment]) -> int:
        """Record the currently relevant segment set and prune everything else."""
        self._relevant = frozenset(seg.key for seg in segments)
        removed = self.cache.prune(self._relevant)
        if removed:
            logger.debug("Pruned %d stale travel-time entries", removed)
            self._log("TRAVEL_PRUNE", {"removed": removed, "relevant": len(self._relevant)})
        return removed

    def plan_requests(self, segments: Iterable[CommuteSegment]) -> list[tuple[CommuteSegment, list[str]]]:
        requests: list[tuple[CommuteSegment, list[str]]] = []
        seen: set[str] = set()
        for segment in segments:
            if segment.key in seen:
                continue
            seen.add(segment.key)
            missing = self.cache.missing_modes(segment)
            if missing:
                requests.append((segment, missing))
        return requests

    async def refresh(self, segments: Sequence[CommuteSegment]) -> int:
        """
        Prune, then fetch every missing (segment, mode) pair concurrently.
        Returns the number of lookups issued.
        """
        self.set_relevant(segments)
        if not self.alive or not segments:
            return 0

        requests = self.plan_requests(segments)
        if not requests:
            return 0

        for segment, modes in requests:
            self.cache.mark_in_flight(segment.key, modes)

        # markers are cleared even when the refresh is cancelled mid-flight
        try:
            completed = await asyncio.gather(
                *(self._request(segment, modes) for segment, modes in requests)
            )
        finally:
            for segment, modes in requests:
                self.cache.finish(segment.key, modes)

        if not self.alive:
            logger.debug("Fetcher closed; dropping %d travel-time results", len(completed))
            return len(requests)

        applied = 0
        for segment_key, entry in completed:
            if segment_key not in self._relevant:
                continue
            self.cache.merge(segment_key, entry)
            applied += 1

        self._log("TRAVEL_FETCH", {
            "requested": len(requests),
            "applied": applied,
            "unavailable": sum(
                1 for _, entry in completed for result in entry.values() if result is None
            ),
        })
        return len(requests)

    async def _request(self, segment: CommuteSegment, modes: list[str]) -> tuple[str, ModeResults]:
        try:
            response = await self._lookup(segment.origin, segment.destination, list(modes))
        except Exception as exc:  # lookup failures resolve to "unavailable"
            logger.warning("Travel-time lookup failed for %s: %s", segment.key, exc)
            return segment.key, {mode: None for mode in modes}

        if not response or not response.get("success"):
            message = ((response or {}).get("error") or {}).get("message", "unknown error")
            logger.info("Travel-time lookup unsuccessful for %s: %s", segment.key, message)
        return segment.key, parse_lookup_response(response, modes)

    def _log(self, event_type: str, payload: dict) -> None:
        if self._event_logger is not None:
            self._event_logger.log(self._stream, event_type, payload)
