from datetime import datetime, timedelta

from slotassign.config import SchedulerConfig
from slotassign.constraints import build_overlap_map
from slotassign.models import Assignment, ScheduleInput, Session, TimeSlot, Venue, VoterOverlap
from slotassign.optimizer import optimize_schedule
from slotassign.scoring import calculate_quality_score

START = datetime(2025, 6, 1, 9, 0)


def make_input(locked_a=False):
    sessions = [
        Session(
            "a",
            "A",
            60,
            is_locked=locked_a,
            venue_id="v1" if locked_a else None,
            time_slot_id="t1" if locked_a else None,
        ),
        Session("b", "B", 60),
    ]
    venues = [Venue("v1", "V1", 20), Venue("v2", "V2", 20)]
    slots = [
        TimeSlot("t1", START, START + timedelta(hours=1)),
        TimeSlot("t2", START + timedelta(hours=1), START + timedelta(hours=2)),
    ]
    return ScheduleInput(sessions, venues, slots, voter_overlap=[VoterOverlap("a", "b", 90.0)])


def clashing_assignments():
    return [Assignment("a", "v1", "t1"), Assignment("b", "v2", "t1")]


def run(schedule_input, assignments, **config_kwargs):
    config = SchedulerConfig(target_quality_score=100, **config_kwargs)
    overlap_map = build_overlap_map(schedule_input.voter_overlap)
    return optimize_schedule(assignments, schedule_input, overlap_map, config)


class TestOptimizeSchedule:
    def test_separates_conflicting_sessions(self):
        result = run(make_input(), clashing_assignments())

        assert result.improved
        assert result.iterations >= 1
        assert result.final_score > result.initial_score
        slots = {a.session_id: a.time_slot_id for a in result.assignments}
        assert slots["a"] != slots["b"]

    def test_final_score_matches_returned_assignments(self):
        schedule_input = make_input()
        result = run(schedule_input, clashing_assignments())
        score, _ = calculate_quality_score(
            result.assignments,
            schedule_input,
            build_overlap_map(schedule_input.voter_overlap),
            SchedulerConfig(target_quality_score=100),
        )
        assert score == result.final_score

    def test_locked_session_never_moves(self):
        result = run(make_input(locked_a=True), clashing_assignments())

        assert Assignment("a", "v1", "t1") in result.assignments
        b = next(a for a in result.assignments if a.session_id == "b")
        assert b.time_slot_id == "t2"

    def test_never_decreases_score(self):
        schedule_input = make_input()
        good = [Assignment("a", "v1", "t1"), Assignment("b", "v1", "t2")]
        result = run(schedule_input, good)

        assert result.final_score >= result.initial_score
        assert not result.improved
        assert result.assignments == good

    def test_zero_iterations_returns_input(self):
        result = run(make_input(), clashing_assignments(), max_iterations=0)

        assert result.iterations == 0
        assert result.assignments == clashing_assignments()
        assert result.final_score == result.initial_score

    def test_stops_when_target_reached(self):
        schedule_input = make_input()
        config = SchedulerConfig(target_quality_score=40)
        result = optimize_schedule(
            clashing_assignments(),
            schedule_input,
            build_overlap_map(schedule_input.voter_overlap),
            config,
        )

        # Capacity and features alone already reach 40
        assert result.initial_score == 40.0
        assert result.iterations == 0
        assert not result.improved

    def test_deterministic(self):
        first = run(make_input(), clashing_assignments())
        second = run(make_input(), clashing_assignments())
        assert first == second

    def test_does_not_mutate_input_list(self):
        assignments = clashing_assignments()
        run(make_input(), assignments)
        assert assignments == clashing_assignments()
