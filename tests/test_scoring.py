import math
from datetime import datetime, timedelta

import pytest

from slotassign.config import DEFAULT_CONFIG, SchedulerConfig, ScoringWeights
from slotassign.constraints import build_overlap_map
from slotassign.models import Assignment, ScheduleInput, Session, TimeSlot, Venue, VoterOverlap
from slotassign.scoring import (
    calculate_priority,
    calculate_quality_score,
    score_assignment,
    slot_balance,
    slot_counts,
)

START = datetime(2025, 6, 1, 9, 0)


def make_session(session_id, duration=60, **kwargs):
    return Session(id=session_id, title=session_id.upper(), duration=duration, **kwargs)


def make_slot(slot_id, offset_hours=0, minutes=60, is_available=True):
    start = START + timedelta(hours=offset_hours)
    return TimeSlot(slot_id, start, start + timedelta(minutes=minutes), is_available=is_available)


def make_input(sessions, venues=None, slots=None, overlaps=None):
    return ScheduleInput(
        sessions=sessions,
        venues=venues or [Venue("v1", "V1", 20), Venue("v2", "V2", 20)],
        time_slots=slots or [make_slot("t1"), make_slot("t2", offset_hours=1)],
        voter_overlap=overlaps or [],
    )


class TestQualityScore:
    def test_empty_schedule_scores_zero(self):
        schedule_input = make_input([make_session("a")])
        score, breakdown = calculate_quality_score([], schedule_input, {}, DEFAULT_CONFIG)
        assert score == 0.0
        assert breakdown.total == 0.0
        assert breakdown.conflict_score == 0.0

    def test_perfect_schedule_scores_100(self):
        # 10 expected attendees in 20-seat rooms, one session per slot
        schedule_input = make_input([make_session("a"), make_session("b")])
        assignments = [Assignment("a", "v1", "t1"), Assignment("b", "v1", "t2")]
        score, breakdown = calculate_quality_score(assignments, schedule_input, {}, DEFAULT_CONFIG)
        assert score == 100.0
        assert breakdown.total == 100.0
        assert breakdown.conflict_score == 1.0
        assert breakdown.capacity_score == 1.0
        assert breakdown.balance_score == 1.0
        assert breakdown.feature_score == 1.0

    def test_concurrent_conflict_lowers_score(self):
        overlaps = [VoterOverlap("a", "b", 100.0)]
        schedule_input = make_input(
            [make_session("a"), make_session("b")], slots=[make_slot("t1")], overlaps=overlaps
        )
        overlap_map = build_overlap_map(overlaps)
        assignments = [Assignment("a", "v1", "t1"), Assignment("b", "v2", "t1")]
        score, breakdown = calculate_quality_score(assignments, schedule_input, overlap_map, DEFAULT_CONFIG)
        assert breakdown.conflict_score == 0.0
        assert score == 60.0

    def test_unbalanced_slots_lower_score(self):
        schedule_input = make_input([make_session("a"), make_session("b")])
        assignments = [Assignment("a", "v1", "t1"), Assignment("b", "v2", "t1")]
        score, breakdown = calculate_quality_score(assignments, schedule_input, {}, DEFAULT_CONFIG)
        assert breakdown.balance_score == 0.0
        assert score == 80.0

    def test_missing_features_lower_score(self):
        schedule_input = make_input(
            [make_session("a", technical_requirements=["projector", "mic"])],
            venues=[Venue("v1", "V1", 20, features=["mic"])],
            slots=[make_slot("t1")],
        )
        score, breakdown = calculate_quality_score(
            [Assignment("a", "v1", "t1")], schedule_input, {}, DEFAULT_CONFIG
        )
        assert breakdown.feature_score == 0.5
        assert score == 95.0

    def test_weights_change_the_blend(self):
        schedule_input = make_input([make_session("a"), make_session("b")])
        assignments = [Assignment("a", "v1", "t1"), Assignment("b", "v2", "t1")]
        config = SchedulerConfig(weights=ScoringWeights(demand_balance=0))
        score, _ = calculate_quality_score(assignments, schedule_input, {}, config)
        assert score == 100.0

    def test_rescoring_is_pure(self):
        overlaps = [VoterOverlap("a", "b", 70.0)]
        schedule_input = make_input([make_session("a"), make_session("b"), make_session("c")], overlaps=overlaps)
        overlap_map = build_overlap_map(overlaps)
        assignments = [
            Assignment("a", "v1", "t1"),
            Assignment("b", "v2", "t1"),
            Assignment("c", "v1", "t2"),
        ]
        first = calculate_quality_score(assignments, schedule_input, overlap_map, DEFAULT_CONFIG)
        second = calculate_quality_score(assignments, schedule_input, overlap_map, DEFAULT_CONFIG)
        assert first == second


class TestSlotBalance:
    def test_counts_include_empty_available_slots(self):
        slots = [make_slot("t1"), make_slot("t2", 1), make_slot("break", 2, is_available=False)]
        assert slot_counts([Assignment("a", "v1", "t1")], slots) == [1, 0]

    @pytest.mark.parametrize(
        "counts,expected",
        [([], 1.0), ([3], 1.0), ([0, 0], 1.0), ([2, 2, 2], 1.0), ([2, 0], 0.0)],
    )
    def test_balance(self, counts, expected):
        assert slot_balance(counts) == pytest.approx(expected)

    def test_partial_imbalance(self):
        # mean 1.5, population std 0.5
        assert slot_balance([1, 2]) == pytest.approx(1 - 1 / 3)


class TestScoreAssignment:
    def setup_method(self):
        self.venue = Venue("v1", "V1", 20)
        self.slot = make_slot("t1")

    def test_hard_constraints_score_negative_infinity(self):
        session = make_session("a")
        assert score_assignment(session, self.venue, self.slot, [], {}, {"t1": {"v1"}}, DEFAULT_CONFIG) == -math.inf
        closed = make_slot("t1", is_available=False)
        assert score_assignment(session, self.venue, closed, [], {}, {}, DEFAULT_CONFIG) == -math.inf
        long_session = make_session("b", duration=90)
        assert score_assignment(long_session, self.venue, self.slot, [], {}, {}, DEFAULT_CONFIG) == -math.inf

    def test_ideal_cell_with_exact_fit(self):
        score = score_assignment(make_session("a"), self.venue, self.slot, [], {}, {}, DEFAULT_CONFIG)
        assert score == pytest.approx(100.5)

    def test_slack_bonus(self):
        short = score_assignment(make_session("a", duration=50), self.venue, self.slot, [], {}, {}, DEFAULT_CONFIG)
        shorter = score_assignment(make_session("a", duration=30), self.venue, self.slot, [], {}, {}, DEFAULT_CONFIG)
        assert short == pytest.approx(100.2)
        assert shorter == pytest.approx(100.0)

    def test_conflicting_session_in_slot_lowers_score(self):
        overlap_map = build_overlap_map([VoterOverlap("a", "b", 85.0)])
        existing = [Assignment("b", "v2", "t1")]
        occupancy = {"t1": {"v2"}}
        with_conflict = score_assignment(
            make_session("a"), self.venue, self.slot, existing, overlap_map, occupancy, DEFAULT_CONFIG
        )
        without_conflict = score_assignment(
            make_session("a"), self.venue, self.slot, existing, {}, occupancy, DEFAULT_CONFIG
        )
        assert with_conflict < without_conflict
        assert without_conflict - with_conflict == pytest.approx(40 * 0.85)

    def test_moderate_overlap_costs_a_little(self):
        overlap_map = build_overlap_map([VoterOverlap("a", "b", 50.0)])
        existing = [Assignment("b", "v2", "t1")]
        occupancy = {"t1": {"v2"}}
        moderate = score_assignment(
            make_session("a"), self.venue, self.slot, existing, overlap_map, occupancy, DEFAULT_CONFIG
        )
        none = score_assignment(make_session("a"), self.venue, self.slot, existing, {}, occupancy, DEFAULT_CONFIG)
        assert none - moderate == pytest.approx(40 * 0.2 * 0.5)

    def test_prefers_venue_sized_to_audience(self):
        session = make_session("a", total_voters=60)  # 90 expected
        big = score_assignment(session, Venue("big", "Big", 100), self.slot, [], {}, {}, DEFAULT_CONFIG)
        small = score_assignment(session, Venue("small", "Small", 20), self.slot, [], {}, {}, DEFAULT_CONFIG)
        assert big > small


class TestPriority:
    def test_priority_components(self):
        sessions = [
            make_session("a", duration=90, total_voters=20, technical_requirements=["projector", "mic"]),
            make_session("b"),
            make_session("c"),
        ]
        overlap_map = build_overlap_map([VoterOverlap("a", "b", 70.0), VoterOverlap("a", "c", 40.0)])
        # 30 attendance + 10 conflict + 10 requirements + 15 duration
        assert calculate_priority(sessions[0], sessions, overlap_map, DEFAULT_CONFIG) == pytest.approx(65)

    def test_duration_bonus(self):
        sessions = [make_session("a", duration=60), make_session("b", duration=30)]
        assert calculate_priority(sessions[0], sessions, {}, DEFAULT_CONFIG) == pytest.approx(20)
        assert calculate_priority(sessions[1], sessions, {}, DEFAULT_CONFIG) == pytest.approx(10)
