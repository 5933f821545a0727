"""
schemas/scheduling.py
---------------------
Dataclass definitions for everything the scheduling engine derives from a
day's activities: intervals, commute segments, travel-time results,
conflicts, free-time gaps, optimized routes, efficiency metrics and layout
instructions.

None of these are persisted; they are recomputed from the activity snapshot.
"""

from __future__ import annotations
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, ClassVar, Optional

from schemas.activity import Coordinates


# ── Time ──────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class TimeInterval:
    """[start, end) in minutes since midnight."""
    start: int
    end: int

    @property
    def duration(self) -> int:
        return self.end - self.start

    def overlaps(self, other: TimeInterval) -> bool:
        """Strict overlap; intervals that only touch do not overlap."""
        return self.start < other.end and other.start < self.end

    def covers(self, other: TimeInterval) -> bool:
        return self.start <= other.start and self.end >= other.end


# ── Commute ───────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class SegmentStop:
    """One end of a commute segment."""
    id: str
    name: str
    start_time: str
    end_time: str
    coordinates: Coordinates
    travel_mode_to_next: Optional[str] = None


@dataclass(frozen=True)
class CommuteSegment:
    """
    The commute leg between two consecutive activities on the same day.

    ``gap_minutes`` = to.start − from.end; negative when the activities
    overlap (reported by the ConflictDetector, never hidden here).
    """
    key: str
    day_index: int
    from_stop: SegmentStop
    to_stop: SegmentStop
    preferred_mode: str
    origin: Coordinates
    destination: Coordinates
    gap_minutes: int

    def to_dict(self) -> dict:
        return asdict(self)


class CommuteState(str, Enum):
    OK       = "ok"
    TIGHT    = "tight"
    CONFLICT = "conflict"
    UNKNOWN  = "unknown"


@dataclass(frozen=True)
class TravelTimeResult:
    """A resolved travel time for one segment and mode."""
    duration_seconds: int
    duration_text: str
    mode: str
    distance_text: Optional[str] = None

    @property
    def duration_minutes(self) -> int:
        """Whole minutes, rounded up."""
        return -(-int(self.duration_seconds) // 60)

    def to_dict(self) -> dict:
        return asdict(self)


# ── Conflicts ─────────────────────────────────────────────────────────────────

class ConflictType(str, Enum):
    OVERLAP             = "overlap"
    INSUFFICIENT_TRAVEL = "insufficient_travel"
    CLOSED_VENUE        = "closed_venue"
    MEAL_TIMING         = "meal_timing"


class Severity(str, Enum):
    WARNING = "warning"
    ERROR   = "error"


class ResolutionAction(str, Enum):
    ADJUST_TIME         = "adjust_time"
    REMOVE_ACTIVITY     = "remove_activity"
    ADD_TRAVEL_BUFFER   = "add_travel_buffer"
    SUGGEST_ALTERNATIVE = "suggest_alternative"


@dataclass(frozen=True)
class ConflictResolution:
    """A candidate fix. Offered to the user, never auto-applied."""
    action: ResolutionAction
    description: str
    new_start_time: Optional[str] = None
    new_end_time: Optional[str] = None

    def to_dict(self) -> dict:
        out: dict[str, Any] = {"action": self.action.value, "description": self.description}
        if self.new_start_time is not None:
            out["new_start_time"] = self.new_start_time
        if self.new_end_time is not None:
            out["new_end_time"] = self.new_end_time
        return out


@dataclass(frozen=True)
class Conflict:
    """
    Base of the conflict sum type. Concrete variants set ``type`` and add
    their own payload fields; renderers dispatch on ``type`` or on the class.
    """
    type: ClassVar[ConflictType]

    severity: Severity
    message: str
    activity_ids: tuple[str, ...]
    suggestions: tuple[ConflictResolution, ...] = ()

    def payload(self) -> dict:
        return {}

    def to_dict(self) -> dict:
        return {
            "type": self.type.value,
            "severity": self.severity.value,
            "message": self.message,
            "activity_ids": list(self.activity_ids),
            "suggestions": [s.to_dict() for s in self.suggestions],
            **self.payload(),
        }


@dataclass(frozen=True)
class OverlapConflict(Conflict):
    type: ClassVar[ConflictType] = ConflictType.OVERLAP
    overlap_minutes: int = 0

    def payload(self) -> dict:
        return {"overlap_minutes": self.overlap_minutes}


@dataclass(frozen=True)
class InsufficientTravelConflict(Conflict):
    type: ClassVar[ConflictType] = ConflictType.INSUFFICIENT_TRAVEL
    required_minutes: int = 0
    available_minutes: int = 0
    mode: Optional[str] = None

    @property
    def shortfall_minutes(self) -> int:
        return self.required_minutes - self.available_minutes

    def payload(self) -> dict:
        return {
            "required_minutes": self.required_minutes,
            "available_minutes": self.available_minutes,
            "shortfall_minutes": self.shortfall_minutes,
            "mode": self.mode,
        }


@dataclass(frozen=True)
class ClosedVenueConflict(Conflict):
    type: ClassVar[ConflictType] = ConflictType.CLOSED_VENUE
    category: str = ""
    opens: str = ""
    closes: str = ""

    def payload(self) -> dict:
        return {"category": self.category, "opens": self.opens, "closes": self.closes}


@dataclass(frozen=True)
class MealTimingConflict(Conflict):
    type: ClassVar[ConflictType] = ConflictType.MEAL_TIMING
    meal: str = ""
    window_start: str = ""
    window_end: str = ""

    def payload(self) -> dict:
        return {"meal": self.meal, "window_start": self.window_start, "window_end": self.window_end}


# ── Free time ─────────────────────────────────────────────────────────────────

class GapCategory(str, Enum):
    SHORT  = "short"
    MEDIUM = "medium"
    LONG   = "long"


class GapPosition(str, Enum):
    START_OF_DAY       = "start_of_day"
    BETWEEN_ACTIVITIES = "between_activities"
    END_OF_DAY         = "end_of_day"
    FULL_DAY           = "full_day"


class Priority(str, Enum):
    LOW    = "low"
    MEDIUM = "medium"
    HIGH   = "high"


@dataclass(frozen=True)
class FreeTimeSuggestion:
    type: str                 # activity | meal | rest | travel_buffer | explore_nearby
    title: str
    description: str
    duration_minutes: int
    icon: str
    priority: Priority

    def to_dict(self) -> dict:
        out = asdict(self)
        out["priority"] = self.priority.value
        return out


@dataclass(frozen=True)
class FreeTimeGap:
    start_time: str
    end_time: str
    duration_minutes: int
    category: GapCategory
    position: GapPosition
    meal_overlap: bool = False
    suggestions: tuple[FreeTimeSuggestion, ...] = ()

    def to_dict(self) -> dict:
        return {
            "start_time": self.start_time,
            "end_time": self.end_time,
            "duration_minutes": self.duration_minutes,
            "category": self.category.value,
            "position": self.position.value,
            "meal_overlap": self.meal_overlap,
            "suggestions": [s.to_dict() for s in self.suggestions],
        }


# ── Route optimisation ────────────────────────────────────────────────────────

class OptimizationStrategy(str, Enum):
    SHORTEST_DISTANCE   = "shortest_distance"
    ACTIVITY_CLUSTERING = "activity_clustering"
    TIME_OPTIMIZED      = "time_optimized"


@dataclass(frozen=True)
class RouteSavings:
    distance_saved: float        # metres
    time_saved_minutes: int
    efficiency_gain_percent: float


@dataclass(frozen=True)
class OptimizedRoute:
    strategy: OptimizationStrategy
    original_order: tuple[str, ...]
    optimized_order: tuple[str, ...]
    original_distance_meters: float
    optimized_distance_meters: float
    original_duration_minutes: int
    optimized_duration_minutes: int
    savings: RouteSavings

    def to_dict(self) -> dict:
        out = asdict(self)
        out["strategy"] = self.strategy.value
        out["original_order"] = list(self.original_order)
        out["optimized_order"] = list(self.optimized_order)
        return out


# ── Efficiency ────────────────────────────────────────────────────────────────

class RecommendationType(str, Enum):
    OPTIMAL     = "optimal"
    OVERPACKED  = "overpacked"
    UNDERPACKED = "underpacked"
    UNBALANCED  = "unbalanced"


@dataclass(frozen=True)
class EfficiencyRecommendation:
    type: RecommendationType
    message: str
    suggestions: tuple[str, ...]
    priority: Priority


@dataclass(frozen=True)
class EfficiencyBreakdown:
    total_waking_minutes: int
    active_minutes: int
    travel_minutes: int
    free_minutes: int
    scheduled_activities: int


@dataclass(frozen=True)
class EfficiencyMetrics:
    score: int                 # 0–100
    active_ratio: float        # 0–1
    free_time_ratio: float
    travel_time_ratio: float
    recommendation: EfficiencyRecommendation
    breakdown: EfficiencyBreakdown

    def to_dict(self) -> dict:
        out = asdict(self)
        out["recommendation"]["type"] = self.recommendation.type.value
        out["recommendation"]["priority"] = self.recommendation.priority.value
        out["recommendation"]["suggestions"] = list(self.recommendation.suggestions)
        return out


# ── Layout ────────────────────────────────────────────────────────────────────

class LayoutKind(str, Enum):
    ACTIVITY = "activity"
    CUSTOM   = "custom"
    COMMUTE  = "commute"


@dataclass(frozen=True)
class LayoutEvent:
    """A block on one day's timeline, in minutes since midnight."""
    id: str
    start: int
    end: int
    kind: LayoutKind = LayoutKind.ACTIVITY


@dataclass(frozen=True)
class ColumnAssignment:
    column: int
    column_count: int


@dataclass(frozen=True)
class GridConfig:
    """Geometry of the calendar grid the renderer draws into."""
    grid_start_minutes: int = 0
    minutes_per_slot: int = 30
    slot_height_px: int = 48
    grid_height_px: int = 48 * 48
    min_block_px: int = 22


@dataclass(frozen=True)
class BlockLayout:
    """Renderer instructions for one block: column plus vertical geometry."""
    id: str
    kind: LayoutKind
    column: int
    column_count: int
    top_px: float
    height_px: float

    @property
    def left_fraction(self) -> float:
        return self.column / self.column_count

    @property
    def width_fraction(self) -> float:
        return 1.0 / self.column_count

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "kind": self.kind.value,
            "column": self.column,
            "column_count": self.column_count,
            "top_px": self.top_px,
            "height_px": self.height_px,
            "left_fraction": self.left_fraction,
            "width_fraction": self.width_fraction,
        }
