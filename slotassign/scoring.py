"""Schedule quality scoring, placement scoring and session priority."""

from collections.abc import Sequence

import numpy as np
from scipy.stats import variation

from slotassign.config import SchedulerConfig
from slotassign.constraints import (
    capacity_fit,
    check_duration_fit,
    estimate_attendance,
    feature_match,
    find_all_conflicts,
    get_overlap,
    is_slot_venue_available,
)
from slotassign.models import (
    Assignment,
    OverlapMap,
    ScheduleInput,
    ScoreBreakdown,
    Session,
    SlotOccupancy,
    TimeSlot,
    Venue,
)

# Concurrent sessions below the conflict threshold but above this overlap
# still cost a little in placement scoring
MODERATE_OVERLAP = 30


def calculate_quality_score(
    assignments: Sequence[Assignment],
    schedule_input: ScheduleInput,
    overlap_map: OverlapMap,
    config: SchedulerConfig,
) -> tuple[float, ScoreBreakdown]:
    """
    Score a complete schedule on a 0-100 scale.

    The score is the weighted mean of four 0-1 sub-scores (conflict avoidance,
    capacity fit, demand balance and feature match), so a schedule that is
    perfect on all four scores 100. An empty schedule scores 0.

    Returns (score, breakdown).
    """
    if not assignments:
        return 0.0, ScoreBreakdown(0.0, 0.0, 0.0, 0.0, 0.0)

    sessions = {s.id: s for s in schedule_input.sessions}
    venues = {v.id: v for v in schedule_input.venues}

    conflict_score = _conflict_score(assignments, overlap_map, config)
    capacity_score = _capacity_score(assignments, sessions, venues)
    balance_score = slot_balance(slot_counts(assignments, schedule_input.time_slots))
    feature_score = _feature_score(assignments, sessions, venues)

    w = config.weights
    weighted = (
        w.conflict_penalty * conflict_score
        + w.capacity_match * capacity_score
        + w.demand_balance * balance_score
        + w.feature_bonus * feature_score
    )
    total = round(100 * weighted / w.total, 1)

    return total, ScoreBreakdown(
        conflict_score=round(conflict_score, 2),
        capacity_score=round(capacity_score, 2),
        balance_score=round(balance_score, 2),
        feature_score=round(feature_score, 2),
        total=total,
    )


def _conflict_score(
    assignments: Sequence[Assignment],
    overlap_map: OverlapMap,
    config: SchedulerConfig,
) -> float:
    if len(assignments) <= 1:
        return 1.0

    conflicts = find_all_conflicts(assignments, overlap_map, config)
    if not conflicts:
        return 1.0

    max_pairs = len(assignments) * (len(assignments) - 1) / 2
    severity = sum(c.overlap_percentage / 100 for c in conflicts)
    # Doubled so a handful of conflicts in a large schedule still registers
    return max(0.0, 1 - 2 * severity / max_pairs)


def _capacity_score(
    assignments: Sequence[Assignment],
    sessions: dict[str, Session],
    venues: dict[str, Venue],
) -> float:
    fits = [
        capacity_fit(estimate_attendance(sessions[a.session_id]) / venues[a.venue_id].capacity)
        for a in assignments
        if a.session_id in sessions and a.venue_id in venues
    ]
    return float(np.mean(fits)) if fits else 1.0


def _feature_score(
    assignments: Sequence[Assignment],
    sessions: dict[str, Session],
    venues: dict[str, Venue],
) -> float:
    matches = [
        feature_match(sessions[a.session_id], venues[a.venue_id])
        for a in assignments
        if a.session_id in sessions
        and a.venue_id in venues
        and sessions[a.session_id].technical_requirements
    ]
    return float(np.mean(matches)) if matches else 1.0


def slot_counts(assignments: Sequence[Assignment], time_slots: Sequence[TimeSlot]) -> list[int]:
    """Sessions per slot, over available slots plus any slot actually in use."""
    counts: dict[str, int] = {slot.id: 0 for slot in time_slots if slot.is_available}
    for assignment in assignments:
        counts[assignment.time_slot_id] = counts.get(assignment.time_slot_id, 0) + 1
    return list(counts.values())


def slot_balance(counts: Sequence[int]) -> float:
    """1 - coefficient of variation of per-slot counts, clamped to [0, 1]."""
    if len(counts) <= 1 or np.mean(counts) == 0:
        return 1.0
    return max(0.0, 1 - float(variation(counts)))


def score_assignment(
    session: Session,
    venue: Venue,
    time_slot: TimeSlot,
    existing_assignments: Sequence[Assignment],
    overlap_map: OverlapMap,
    occupancy: SlotOccupancy,
    config: SchedulerConfig,
) -> float:
    """
    Score placing one session in one (venue, slot) cell, higher is better.

    Uses the same weights and the same capacity and feature curves as
    calculate_quality_score. Conflicts are measured only against sessions
    already in that slot. Cells that break a hard constraint score -inf.
    """
    if not is_slot_venue_available(time_slot.id, venue.id, occupancy):
        return float("-inf")
    if not time_slot.is_available:
        return float("-inf")
    duration_fit = check_duration_fit(session, time_slot)
    if not duration_fit.fits:
        return float("-inf")

    in_slot = [
        a for a in existing_assignments
        if a.time_slot_id == time_slot.id and a.session_id != session.id
    ]

    conflict_fit = 1.0
    for other in in_slot:
        overlap = get_overlap(overlap_map, session.id, other.session_id)
        if overlap >= config.conflict_threshold:
            conflict_fit -= overlap / 100
        elif overlap > MODERATE_OVERLAP:
            conflict_fit -= 0.2 * overlap / 100
    conflict_fit = max(0.0, conflict_fit)

    ratio = estimate_attendance(session) / venue.capacity
    load_fit = 1 / (1 + len(in_slot))

    w = config.weights
    score = 100 * (
        w.conflict_penalty * conflict_fit
        + w.capacity_match * capacity_fit(ratio)
        + w.demand_balance * load_fit
        + w.feature_bonus * feature_match(session, venue)
    ) / w.total

    # Tie-break towards slots the session fills exactly
    if duration_fit.slack_minutes == 0:
        score += 0.5
    elif duration_fit.slack_minutes <= 15:
        score += 0.2

    return score


def calculate_priority(
    session: Session,
    all_sessions: Sequence[Session],
    overlap_map: OverlapMap,
    config: SchedulerConfig,
) -> float:
    """
    Rank how hard a session is to place well; higher goes first.

    Large expected audiences, many conflicting sessions, technical
    requirements and long durations all narrow the set of good cells.
    """
    priority = estimate_attendance(session)

    conflicting = sum(
        1
        for other in all_sessions
        if other.id != session.id
        and get_overlap(overlap_map, session.id, other.id) >= config.conflict_threshold
    )
    priority += conflicting * 10
    priority += len(session.technical_requirements) * 5

    if session.duration >= 90:
        priority += 15
    elif session.duration >= 60:
        priority += 10

    return priority
