"""Data models for slotassign."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal

WarningType = Literal["unassigned", "conflict", "capacity", "feature"]
Severity = Literal["low", "medium", "high"]


@dataclass
class Session:
    """A proposed session waiting for a venue and a time slot."""

    id: str
    title: str
    duration: int  # minutes
    is_locked: bool = False
    venue_id: str | None = None  # pinned venue when locked
    time_slot_id: str | None = None  # pinned slot when locked
    technical_requirements: list[str] = field(default_factory=list)
    total_votes: int = 0
    total_voters: int = 0
    favorites: int = 0
    format: str = "talk"
    status: str = "approved"


@dataclass
class Venue:
    """A room with a seat capacity and a feature set."""

    id: str
    name: str
    capacity: int
    features: list[str] = field(default_factory=list)


@dataclass
class TimeSlot:
    """A bounded period of the event."""

    id: str
    start_time: datetime
    end_time: datetime
    is_available: bool = True  # False for breaks and ceremonies
    label: str | None = None

    @property
    def duration_minutes(self) -> float:
        return (self.end_time - self.start_time).total_seconds() / 60


@dataclass
class VoterOverlap:
    """Share of interested audience two sessions have in common."""

    session_a_id: str
    session_b_id: str
    overlap_percentage: float  # 0-100
    shared_voters: int = 0


@dataclass
class ScheduleInput:
    """Everything the generator needs for one event."""

    sessions: list[Session]
    venues: list[Venue]
    time_slots: list[TimeSlot]
    voter_overlap: list[VoterOverlap] = field(default_factory=list)
    event_id: str | None = None


@dataclass(frozen=True)
class Assignment:
    """A session placed in a venue during a time slot."""

    session_id: str
    venue_id: str
    time_slot_id: str


# (session_a_id, session_b_id) -> overlap percentage, stored in both orders
OverlapMap = dict[tuple[str, str], float]

# time_slot_id -> ids of venues already claimed in that slot
SlotOccupancy = dict[str, set[str]]


@dataclass
class ConflictInfo:
    """Two concurrently scheduled sessions whose audiences overlap too much."""

    session_a_id: str
    session_b_id: str
    overlap_percentage: float
    time_slot_id: str


@dataclass
class DurationFit:
    fits: bool
    slack_minutes: float


@dataclass
class VenueCompatibility:
    compatible: bool
    missing_features: list[str]
    score: float  # 0-1, higher is better
    capacity_ratio: float  # expected attendance / capacity


@dataclass
class PlacementCheck:
    """Outcome of the hard-constraint check for one candidate placement."""

    valid: bool
    reasons: list[str] = field(default_factory=list)

    @property
    def reason(self) -> str | None:
        return self.reasons[0] if self.reasons else None


@dataclass(frozen=True)
class ScoreBreakdown:
    conflict_score: float
    capacity_score: float
    balance_score: float
    feature_score: float
    total: float


@dataclass(frozen=True)
class ScheduleWarning:
    type: WarningType
    severity: Severity
    session_ids: tuple[str, ...]
    message: str


@dataclass(frozen=True)
class ScheduleMetrics:
    total_sessions: int
    assigned_sessions: int
    locked_sessions: int
    conflict_count: int
    avg_capacity_utilization: float
    demand_balance_score: float  # 0-1, higher is more balanced


@dataclass(frozen=True)
class ScheduleResult:
    """Result of one generate() call."""

    success: bool
    assignments: tuple[Assignment, ...]
    quality_score: float
    breakdown: ScoreBreakdown
    metrics: ScheduleMetrics
    warnings: tuple[ScheduleWarning, ...]
    unassigned_sessions: tuple[str, ...]
    execution_time_ms: float


@dataclass
class OptimizationResult:
    """Result of the local search pass."""

    assignments: list[Assignment]
    initial_score: float
    final_score: float
    iterations: int
    improved: bool
