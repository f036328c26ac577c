"""Local search (hill climbing) over a complete schedule."""

import logging

from slotassign.config import SchedulerConfig
from slotassign.constraints import build_slot_occupancy, validate_assignment
from slotassign.models import (
    Assignment,
    OptimizationResult,
    OverlapMap,
    ScheduleInput,
    Session,
    TimeSlot,
    Venue,
)
from slotassign.scoring import calculate_quality_score

logger = logging.getLogger(__name__)


def optimize_schedule(
    initial_assignments: list[Assignment],
    schedule_input: ScheduleInput,
    overlap_map: OverlapMap,
    config: SchedulerConfig,
) -> OptimizationResult:
    """
    Improve a schedule by swapping and moving unlocked sessions.

    First-improvement hill climbing: each iteration tries every swap, then
    every move, and accepts the first candidate that strictly raises the
    quality score. Stops at a local optimum, after config.max_iterations, or
    once the score reaches config.target_quality_score. Iteration follows
    list order so repeated runs give identical results.
    """
    current = list(initial_assignments)
    initial_score, _ = calculate_quality_score(current, schedule_input, overlap_map, config)
    current_score = initial_score

    sessions = {s.id: s for s in schedule_input.sessions}
    venues = {v.id: v for v in schedule_input.venues}
    slots = {t.id: t for t in schedule_input.time_slots}

    iterations = 0
    improved = True
    total_improved = False

    while improved and iterations < config.max_iterations:
        improved = False

        if current_score >= config.target_quality_score:
            logger.debug("Target score %.1f reached", config.target_quality_score)
            break

        iterations += 1

        candidate = _try_swaps(
            current, current_score, schedule_input, overlap_map, config, sessions, venues, slots
        )
        if candidate is None:
            candidate = _try_moves(
                current, current_score, schedule_input, overlap_map, config, sessions, venues
            )

        if candidate is not None:
            current, current_score = candidate
            improved = True
            total_improved = True

    logger.debug(
        "Local search finished after %d iterations: %.1f -> %.1f",
        iterations,
        initial_score,
        current_score,
    )

    return OptimizationResult(
        assignments=current,
        initial_score=initial_score,
        final_score=current_score,
        iterations=iterations,
        improved=total_improved,
    )


def _try_swaps(
    assignments: list[Assignment],
    current_score: float,
    schedule_input: ScheduleInput,
    overlap_map: OverlapMap,
    config: SchedulerConfig,
    sessions: dict[str, Session],
    venues: dict[str, Venue],
    slots: dict[str, TimeSlot],
) -> tuple[list[Assignment], float] | None:
    """Return the first swap of two unlocked sessions that raises the score."""
    for i, first in enumerate(assignments):
        session_a = sessions.get(first.session_id)
        if session_a is None or session_a.is_locked:
            continue

        for j in range(i + 1, len(assignments)):
            second = assignments[j]
            session_b = sessions.get(second.session_id)
            if session_b is None or session_b.is_locked:
                continue
            if (first.venue_id, first.time_slot_id) == (second.venue_id, second.time_slot_id):
                continue

            new_a = Assignment(session_a.id, second.venue_id, second.time_slot_id)
            new_b = Assignment(session_b.id, first.venue_id, first.time_slot_id)

            venue_a, slot_a = venues.get(new_a.venue_id), slots.get(new_a.time_slot_id)
            venue_b, slot_b = venues.get(new_b.venue_id), slots.get(new_b.time_slot_id)
            if venue_a is None or slot_a is None or venue_b is None or slot_b is None:
                continue

            others = [a for k, a in enumerate(assignments) if k != i and k != j]
            occupancy = build_slot_occupancy(others)
            if not validate_assignment(session_a, venue_a, slot_a, occupancy).valid:
                continue
            occupancy.setdefault(slot_a.id, set()).add(venue_a.id)
            if not validate_assignment(session_b, venue_b, slot_b, occupancy).valid:
                continue

            swapped = list(assignments)
            swapped[i] = new_a
            swapped[j] = new_b
            score, _ = calculate_quality_score(swapped, schedule_input, overlap_map, config)
            if score > current_score:
                logger.debug("Swapped %s and %s (%.1f -> %.1f)", session_a.id, session_b.id, current_score, score)
                return swapped, score

    return None


def _try_moves(
    assignments: list[Assignment],
    current_score: float,
    schedule_input: ScheduleInput,
    overlap_map: OverlapMap,
    config: SchedulerConfig,
    sessions: dict[str, Session],
    venues: dict[str, Venue],
) -> tuple[list[Assignment], float] | None:
    """Return the first relocation of an unlocked session that raises the score."""
    for i, current in enumerate(assignments):
        session = sessions.get(current.session_id)
        if session is None or session.is_locked:
            continue

        occupancy = build_slot_occupancy(a for k, a in enumerate(assignments) if k != i)

        for slot in schedule_input.time_slots:
            if not slot.is_available:
                continue
            for venue in schedule_input.venues:
                if (venue.id, slot.id) == (current.venue_id, current.time_slot_id):
                    continue
                if not validate_assignment(session, venue, slot, occupancy).valid:
                    continue

                moved = list(assignments)
                moved[i] = Assignment(session.id, venue.id, slot.id)
                score, _ = calculate_quality_score(moved, schedule_input, overlap_map, config)
                if score > current_score:
                    logger.debug(
                        "Moved %s to %s/%s (%.1f -> %.1f)",
                        session.id,
                        venue.id,
                        slot.id,
                        current_score,
                        score,
                    )
                    return moved, score

    return None
