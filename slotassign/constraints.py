"""Constraint checks and lookups used by the scoring and generation passes."""

from collections.abc import Iterable

from slotassign.config import ATTENDANCE_PER_INTERESTED, MIN_EXPECTED_ATTENDANCE, SchedulerConfig
from slotassign.models import (
    Assignment,
    ConflictInfo,
    DurationFit,
    OverlapMap,
    PlacementCheck,
    Session,
    SlotOccupancy,
    TimeSlot,
    Venue,
    VenueCompatibility,
    VoterOverlap,
)


def build_overlap_map(overlaps: Iterable[VoterOverlap]) -> OverlapMap:
    """Index overlap records under both session orderings."""
    overlap_map: OverlapMap = {}
    for overlap in overlaps:
        overlap_map[(overlap.session_a_id, overlap.session_b_id)] = overlap.overlap_percentage
        overlap_map[(overlap.session_b_id, overlap.session_a_id)] = overlap.overlap_percentage
    return overlap_map


def get_overlap(overlap_map: OverlapMap, session_a_id: str, session_b_id: str) -> float:
    """Return the overlap percentage of two sessions, 0 when unknown."""
    if session_a_id == session_b_id:
        return 100.0
    return overlap_map.get((session_a_id, session_b_id), 0.0)


def build_slot_occupancy(assignments: Iterable[Assignment]) -> SlotOccupancy:
    occupancy: SlotOccupancy = {}
    for assignment in assignments:
        occupancy.setdefault(assignment.time_slot_id, set()).add(assignment.venue_id)
    return occupancy


def is_slot_venue_available(time_slot_id: str, venue_id: str, occupancy: SlotOccupancy) -> bool:
    return venue_id not in occupancy.get(time_slot_id, set())


def check_duration_fit(session: Session, time_slot: TimeSlot) -> DurationFit:
    """A session fits only if it is fully contained in the slot."""
    slack = time_slot.duration_minutes - session.duration
    return DurationFit(fits=slack >= 0, slack_minutes=slack)


def estimate_attendance(session: Session) -> float:
    """
    Estimate the headcount a session will draw.

    Everyone who voted for or favorited the session is likely to come, plus
    walk-ins; small sessions still get a minimum audience.
    """
    interested = session.total_voters + session.favorites
    return max(interested * ATTENDANCE_PER_INTERESTED, MIN_EXPECTED_ATTENDANCE)


def check_venue_compatibility(session: Session, venue: Venue) -> VenueCompatibility:
    """
    Compare a session's requirements with what a venue offers.

    Compatibility is advisory: callers may still place a session in an
    incompatible venue, it just scores lower.
    """
    missing = [req for req in session.technical_requirements if req not in venue.features]
    capacity_ratio = estimate_attendance(session) / venue.capacity

    score = 1.0
    score -= 0.3 * len(missing)
    if capacity_ratio > 1.2:
        # Overcrowded
        score -= 0.3 * (capacity_ratio - 1.2)
    elif capacity_ratio < 0.3:
        # Mostly empty room
        score -= 0.1 * (0.3 - capacity_ratio)

    return VenueCompatibility(
        compatible=not missing and capacity_ratio <= 1.5,
        missing_features=missing,
        score=max(0.0, min(1.0, score)),
        capacity_ratio=capacity_ratio,
    )


def capacity_fit(capacity_ratio: float) -> float:
    """Map expected attendance / capacity to a 0-1 fit; 50-100% full is ideal."""
    if 0.5 <= capacity_ratio <= 1.0:
        return 1.0
    if capacity_ratio < 0.5:
        return 0.5 + capacity_ratio
    if capacity_ratio <= 1.5:
        return 1.5 - capacity_ratio * 0.5
    return max(0.0, 0.5 - (capacity_ratio - 1.5) * 0.5)


def feature_match(session: Session, venue: Venue) -> float:
    """Share of the session's required features the venue provides."""
    if not session.technical_requirements:
        return 1.0
    present = sum(1 for req in session.technical_requirements if req in venue.features)
    return present / len(session.technical_requirements)


def find_conflicts_in_slot(
    session_id: str,
    time_slot_id: str,
    assignments: Iterable[Assignment],
    overlap_map: OverlapMap,
    config: SchedulerConfig,
) -> list[ConflictInfo]:
    """Find sessions in a slot that conflict with the given session."""
    conflicts: list[ConflictInfo] = []
    for other in assignments:
        if other.time_slot_id != time_slot_id or other.session_id == session_id:
            continue
        overlap = get_overlap(overlap_map, session_id, other.session_id)
        if overlap >= config.conflict_threshold:
            conflicts.append(ConflictInfo(session_id, other.session_id, overlap, time_slot_id))
    return conflicts


def find_all_conflicts(
    assignments: Iterable[Assignment],
    overlap_map: OverlapMap,
    config: SchedulerConfig,
) -> list[ConflictInfo]:
    """
    Find every pair of concurrently scheduled sessions whose overlap reaches the
    conflict threshold.

    Sessions in the same time slot conflict regardless of venue, since nobody
    can attend two rooms at once. Each pair is reported once.
    """
    by_slot: dict[str, list[Assignment]] = {}
    for assignment in assignments:
        by_slot.setdefault(assignment.time_slot_id, []).append(assignment)

    conflicts: list[ConflictInfo] = []
    seen: set[frozenset[str]] = set()
    for time_slot_id, slot_assignments in by_slot.items():
        for i, a in enumerate(slot_assignments):
            for b in slot_assignments[i + 1 :]:
                pair = frozenset((a.session_id, b.session_id))
                if len(pair) < 2 or pair in seen:
                    continue
                seen.add(pair)
                overlap = get_overlap(overlap_map, a.session_id, b.session_id)
                if overlap >= config.conflict_threshold:
                    conflicts.append(
                        ConflictInfo(a.session_id, b.session_id, overlap, time_slot_id)
                    )
    return conflicts


def validate_assignment(
    session: Session,
    venue: Venue,
    time_slot: TimeSlot,
    occupancy: SlotOccupancy,
) -> PlacementCheck:
    """Check the hard constraints of placing a session in a venue and slot."""
    reasons: list[str] = []

    if not is_slot_venue_available(time_slot.id, venue.id, occupancy):
        reasons.append(f'Venue "{venue.name}" is already booked in this time slot')

    if not time_slot.is_available:
        reasons.append("Time slot is marked as unavailable")

    if not check_duration_fit(session, time_slot).fits:
        reasons.append(
            f"Session duration ({session.duration}min) exceeds time slot "
            f"({time_slot.duration_minutes:g}min)"
        )

    return PlacementCheck(valid=not reasons, reasons=reasons)
