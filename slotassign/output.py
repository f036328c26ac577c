"""Output formatting for slotassign."""

from collections import defaultdict
from dataclasses import asdict
from typing import Any

from slotassign.models import ScheduleInput, ScheduleResult

SEVERITY_ORDER = {"high": 0, "medium": 1, "low": 2}


def format_results(result: ScheduleResult, schedule_input: ScheduleInput) -> str:
    """Format a schedule result for display."""
    lines: list[str] = []

    sessions = {s.id: s for s in schedule_input.sessions}
    venues = {v.id: v for v in schedule_input.venues}

    if not result.assignments:
        lines.append("No assignments could be made.")
    else:
        metrics = result.metrics
        lines.append("=== Schedule ===")
        lines.append(f"Quality score: {result.quality_score:.1f}/100")
        lines.append(
            f"Assigned: {metrics.assigned_sessions}/{metrics.total_sessions} "
            f"(locked: {metrics.locked_sessions})"
        )
        lines.append(f"Conflicts: {metrics.conflict_count}")
        lines.append(f"Avg capacity utilization: {metrics.avg_capacity_utilization:.0%}")
        lines.append(f"Demand balance: {metrics.demand_balance_score:.2f}")
        lines.append("")

        by_slot: dict[str, list[tuple[str, str, bool]]] = defaultdict(list)
        for assignment in result.assignments:
            session = sessions.get(assignment.session_id)
            venue = venues.get(assignment.venue_id)
            by_slot[assignment.time_slot_id].append(
                (
                    venue.name if venue else assignment.venue_id,
                    session.title if session else assignment.session_id,
                    bool(session and session.is_locked),
                )
            )

        for slot in sorted(schedule_input.time_slots, key=lambda t: t.start_time):
            if slot.id not in by_slot:
                continue
            label = f" {slot.label}" if slot.label else ""
            lines.append(
                f"--- {slot.start_time:%a %H:%M}-{slot.end_time:%H:%M}{label} ---"
            )
            for venue_name, title, locked in sorted(by_slot[slot.id]):
                lock_suffix = " [locked]" if locked else ""
                lines.append(f"  {venue_name}: {title}{lock_suffix}")
            lines.append("")

    if result.warnings:
        lines.append("=== Warnings ===")
        for warning in sorted(result.warnings, key=lambda w: SEVERITY_ORDER[w.severity]):
            lines.append(f"[{warning.severity.upper()}] {warning.type}: {warning.message}")
        lines.append("")

    if result.unassigned_sessions:
        lines.append("=== Unassigned Sessions ===")
        for session_id in result.unassigned_sessions:
            session = sessions.get(session_id)
            lines.append(f"  - {session.title if session else session_id}")
    else:
        lines.append("All sessions assigned.")

    return "\n".join(lines)


def format_assignments_csv(result: ScheduleResult, schedule_input: ScheduleInput) -> str:
    """Format assignments as CSV for import into the event store."""
    lines: list[str] = ["session_id,venue_id,time_slot_id,start_time,end_time"]

    slots = {t.id: t for t in schedule_input.time_slots}
    slot_order = {t.id: i for i, t in enumerate(sorted(schedule_input.time_slots, key=lambda t: t.start_time))}

    # Sort by slot start, then venue, then session
    sorted_assignments = sorted(
        result.assignments,
        key=lambda a: (slot_order.get(a.time_slot_id, len(slot_order)), a.venue_id, a.session_id),
    )

    for assignment in sorted_assignments:
        slot = slots.get(assignment.time_slot_id)
        start = slot.start_time.isoformat() if slot else ""
        end = slot.end_time.isoformat() if slot else ""
        lines.append(
            f"{assignment.session_id},{assignment.venue_id},{assignment.time_slot_id},{start},{end}"
        )

    return "\n".join(lines)


def result_to_dict(result: ScheduleResult) -> dict[str, Any]:
    """Convert a result into plain builtins, ready for yaml or json dumping."""
    data = asdict(result)
    data["assignments"] = [dict(a) for a in data["assignments"]]
    data["warnings"] = [
        {**w, "session_ids": list(w["session_ids"])} for w in data["warnings"]
    ]
    data["unassigned_sessions"] = list(data["unassigned_sessions"])
    return data
