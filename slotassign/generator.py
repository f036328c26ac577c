"""End-to-end schedule generation: validate, place, optimize, report."""

import logging
import time
from collections.abc import Mapping
from typing import Any

import numpy as np

from slotassign.config import (
    ACCEPTABLE_PLACEMENT_SCORE,
    HIGH_SEVERITY_OVERLAP,
    SchedulerConfig,
    merge_config,
)
from slotassign.constraints import (
    build_overlap_map,
    build_slot_occupancy,
    check_duration_fit,
    check_venue_compatibility,
    estimate_attendance,
    find_all_conflicts,
    is_slot_venue_available,
)
from slotassign.models import (
    Assignment,
    ScheduleInput,
    ScheduleMetrics,
    ScheduleResult,
    ScheduleWarning,
    ScoreBreakdown,
    Session,
    SlotOccupancy,
    Venue,
)
from slotassign.optimizer import optimize_schedule
from slotassign.scoring import (
    calculate_priority,
    calculate_quality_score,
    score_assignment,
    slot_balance,
    slot_counts,
)

logger = logging.getLogger(__name__)


class ScheduleGenerator:
    """
    Assign sessions to (venue, time slot) cells for one event.

    Each generate() call is independent: it works on its own assignment and
    occupancy state and never mutates the input snapshot. Scheduling problems
    are reported as warnings on the result rather than raised.
    """

    def __init__(
        self,
        schedule_input: ScheduleInput,
        config: SchedulerConfig | Mapping[str, Any] | None = None,
    ):
        self.input = schedule_input
        self.config = merge_config(config)
        self.overlap_map = build_overlap_map(schedule_input.voter_overlap)
        self._sessions = {s.id: s for s in schedule_input.sessions}
        self._venues = {v.id: v for v in schedule_input.venues}
        self._slots = {t.id: t for t in schedule_input.time_slots}
        self._reset()

    def _reset(self) -> None:
        self.assignments: list[Assignment] = []
        self.occupancy: SlotOccupancy = {}
        self.warnings: list[ScheduleWarning] = []
        # session_id -> (venue_id, warning) recorded when the greedy pass committed it
        self._feature_warnings: dict[str, tuple[str, ScheduleWarning]] = {}

    def generate(self) -> ScheduleResult:
        """Run every phase and return the schedule."""
        self._reset()
        start = time.perf_counter()

        error = self._validate_input()
        if error is not None:
            logger.warning("Schedule generation aborted: %s", error)
            return self._build_error_result(error, start)

        self._assign_locked_sessions()
        logger.info("Placed %d locked sessions", len(self.assignments))

        remaining = self._sort_by_priority(self._unassigned_sessions())
        for session in remaining:
            self._assign_greedily(session)
        logger.info("Greedy pass placed %d of %d sessions", len(self.assignments), len(self.input.sessions))

        optimization = optimize_schedule(self.assignments, self.input, self.overlap_map, self.config)
        self.assignments = optimization.assignments
        self.occupancy = build_slot_occupancy(self.assignments)
        logger.info(
            "Local search: %.1f -> %.1f in %d iterations",
            optimization.initial_score,
            optimization.final_score,
            optimization.iterations,
        )

        return self._build_result(start)

    # Phase 1

    def _validate_input(self) -> str | None:
        if not self.input.sessions:
            return "No sessions to schedule"
        if not self.input.venues:
            return "No venues configured"
        if not self.input.time_slots:
            return "No time slots configured"

        available_slots = sum(1 for t in self.input.time_slots if t.is_available)
        total_cells = len(self.input.venues) * available_slots
        to_place = sum(1 for s in self.input.sessions if not self._has_valid_pin(s))
        if to_place > total_cells:
            self.warnings.append(
                ScheduleWarning(
                    type="capacity",
                    severity="high",
                    session_ids=(),
                    message=(
                        f"More sessions ({to_place}) than available slots ({total_cells}). "
                        "Some sessions may not be assigned."
                    ),
                )
            )
        return None

    def _has_valid_pin(self, session: Session) -> bool:
        return (
            _is_pinned(session)
            and session.venue_id in self._venues
            and session.time_slot_id in self._slots
        )

    # Phase 2

    def _assign_locked_sessions(self) -> None:
        """Place pinned sessions exactly where the host put them."""
        claimed_by: dict[tuple[str, str], str] = {}

        for session in self.input.sessions:
            if not _is_pinned(session):
                continue

            venue = self._venues.get(session.venue_id)
            slot = self._slots.get(session.time_slot_id)
            if venue is None or slot is None:
                self.warnings.append(
                    ScheduleWarning(
                        type="unassigned",
                        severity="high",
                        session_ids=(session.id,),
                        message=f'Locked session "{session.title}" references invalid venue or time slot',
                    )
                )
                continue

            cell = (venue.id, slot.id)
            if not is_slot_venue_available(slot.id, venue.id, self.occupancy):
                other_id = claimed_by[cell]
                self.warnings.append(
                    ScheduleWarning(
                        type="conflict",
                        severity="high",
                        session_ids=(other_id, session.id),
                        message=(
                            f'Locked session "{session.title}" conflicts with locked session '
                            f'"{self._sessions[other_id].title}" in the same venue and time slot'
                        ),
                    )
                )
            claimed_by.setdefault(cell, session.id)
            self._assign(session.id, venue.id, slot.id)

    # Phase 3

    def _unassigned_sessions(self) -> list[Session]:
        # Includes locked sessions whose pin could not be honoured; they stay
        # locked, so the optimizer leaves wherever they land alone
        assigned = {a.session_id for a in self.assignments}
        return [s for s in self.input.sessions if s.id not in assigned]

    def _sort_by_priority(self, sessions: list[Session]) -> list[Session]:
        priorities = {
            s.id: calculate_priority(s, self.input.sessions, self.overlap_map, self.config)
            for s in sessions
        }
        # sorted() is stable, so equal priorities keep input order
        return sorted(sessions, key=lambda s: -priorities[s.id])

    def _assign_greedily(self, session: Session) -> None:
        best: tuple[Venue, str] | None = None
        best_score = float("-inf")

        for slot in self.input.time_slots:
            if not slot.is_available or not check_duration_fit(session, slot).fits:
                continue
            for venue in self.input.venues:
                if not is_slot_venue_available(slot.id, venue.id, self.occupancy):
                    continue
                score = score_assignment(
                    session,
                    venue,
                    slot,
                    self.assignments,
                    self.overlap_map,
                    self.occupancy,
                    self.config,
                )
                if score > best_score:
                    best_score = score
                    best = (venue, slot.id)

        if best is None:
            logger.debug("No valid cell for session %s", session.id)
            self.warnings.append(
                ScheduleWarning(
                    type="unassigned",
                    severity="high",
                    session_ids=(session.id,),
                    message=f'Could not find a valid slot for session "{session.title}"',
                )
            )
            return

        venue, slot_id = best
        self._assign(session.id, venue.id, slot_id)
        logger.debug("Placed %s in %s/%s (score %.1f)", session.id, venue.id, slot_id, best_score)

        warning = _feature_warning(session, venue, best_score)
        if warning is not None:
            self._feature_warnings[session.id] = (venue.id, warning)

    def _assign(self, session_id: str, venue_id: str, time_slot_id: str) -> None:
        self.assignments.append(Assignment(session_id, venue_id, time_slot_id))
        self.occupancy.setdefault(time_slot_id, set()).add(venue_id)

    # Phase 5

    def _reconcile_feature_warnings(self) -> list[ScheduleWarning]:
        """Re-check feature warnings against where sessions ended up."""
        warnings: list[ScheduleWarning] = []
        for assignment in self.assignments:
            session = self._sessions[assignment.session_id]
            venue = self._venues[assignment.venue_id]
            if not check_venue_compatibility(session, venue).missing_features:
                continue

            recorded_venue_id, recorded = self._feature_warnings.get(session.id, (None, None))
            if recorded is not None and recorded_venue_id == venue.id:
                warnings.append(recorded)
                continue

            if session.is_locked:
                score = float("inf")  # host choice, reported at low severity
            else:
                others = [a for a in self.assignments if a.session_id != session.id]
                score = score_assignment(
                    session,
                    venue,
                    self._slots[assignment.time_slot_id],
                    others,
                    self.overlap_map,
                    build_slot_occupancy(others),
                    self.config,
                )
            warnings.append(_feature_warning(session, venue, score))
        return warnings

    def _build_result(self, start: float) -> ScheduleResult:
        score, breakdown = calculate_quality_score(
            self.assignments, self.input, self.overlap_map, self.config
        )

        warnings = self.warnings + self._reconcile_feature_warnings()

        conflicts = find_all_conflicts(self.assignments, self.overlap_map, self.config)
        for conflict in conflicts:
            title_a = self._sessions[conflict.session_a_id].title
            title_b = self._sessions[conflict.session_b_id].title
            warnings.append(
                ScheduleWarning(
                    type="conflict",
                    severity="high" if conflict.overlap_percentage >= HIGH_SEVERITY_OVERLAP else "medium",
                    session_ids=(conflict.session_a_id, conflict.session_b_id),
                    message=(
                        f'Sessions "{title_a}" and "{title_b}" have '
                        f"{conflict.overlap_percentage:g}% voter overlap but are scheduled concurrently"
                    ),
                )
            )

        assigned = {a.session_id for a in self.assignments}
        unassigned = tuple(s.id for s in self.input.sessions if s.id not in assigned)

        return ScheduleResult(
            success=not unassigned,
            assignments=tuple(self.assignments),
            quality_score=score,
            breakdown=breakdown,
            metrics=self._calculate_metrics(len(conflicts)),
            warnings=tuple(warnings),
            unassigned_sessions=unassigned,
            execution_time_ms=_elapsed_ms(start),
        )

    def _build_error_result(self, error: str, start: float) -> ScheduleResult:
        return ScheduleResult(
            success=False,
            assignments=(),
            quality_score=0.0,
            breakdown=ScoreBreakdown(0.0, 0.0, 0.0, 0.0, 0.0),
            metrics=ScheduleMetrics(
                total_sessions=len(self.input.sessions),
                assigned_sessions=0,
                locked_sessions=0,
                conflict_count=0,
                avg_capacity_utilization=0.0,
                demand_balance_score=0.0,
            ),
            warnings=(
                ScheduleWarning(type="unassigned", severity="high", session_ids=(), message=error),
            ),
            unassigned_sessions=tuple(s.id for s in self.input.sessions),
            execution_time_ms=_elapsed_ms(start),
        )

    def _calculate_metrics(self, conflict_count: int) -> ScheduleMetrics:
        utilization = [
            min(
                estimate_attendance(self._sessions[a.session_id]) / self._venues[a.venue_id].capacity,
                1.0,
            )
            for a in self.assignments
        ]
        avg_utilization = float(np.mean(utilization)) if utilization else 0.0
        balance = slot_balance(slot_counts(self.assignments, self.input.time_slots))

        return ScheduleMetrics(
            total_sessions=len(self.input.sessions),
            assigned_sessions=len(self.assignments),
            locked_sessions=sum(1 for s in self.input.sessions if s.is_locked),
            conflict_count=conflict_count,
            avg_capacity_utilization=round(avg_utilization, 2),
            demand_balance_score=round(balance, 2),
        )


def _is_pinned(session: Session) -> bool:
    return session.is_locked and bool(session.venue_id) and bool(session.time_slot_id)


def _feature_warning(session: Session, venue: Venue, score: float) -> ScheduleWarning | None:
    missing = check_venue_compatibility(session, venue).missing_features
    if not missing:
        return None
    return ScheduleWarning(
        type="feature",
        severity="medium" if score < ACCEPTABLE_PLACEMENT_SCORE else "low",
        session_ids=(session.id,),
        message=(
            f'Session "{session.title}" assigned to venue "{venue.name}" '
            f'missing features: {", ".join(missing)}'
        ),
    )


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 2)


def generate_schedule(
    schedule_input: ScheduleInput,
    config: SchedulerConfig | Mapping[str, Any] | None = None,
) -> ScheduleResult:
    """Convenience wrapper: build a generator and run it once."""
    return ScheduleGenerator(schedule_input, config).generate()
