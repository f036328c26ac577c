"""YAML and CSV parsing for slotassign."""

import csv
from collections import Counter
from collections.abc import Mapping
from datetime import datetime
from pathlib import Path
from typing import Any

import yaml

from slotassign.models import ScheduleInput, Session, TimeSlot, Venue, VoterOverlap

OVERLAP_CSV_COLUMNS = ["session_a_id", "session_b_id", "overlap_percentage", "shared_voters"]


def parse_snapshot_yaml(yaml_path: Path) -> tuple[ScheduleInput, dict[str, Any]]:
    """
    Parse an event snapshot file (YAML, or JSON since it is a YAML subset).

    Returns a tuple of (ScheduleInput, config overrides). The overrides are the
    document's optional "config" mapping, left unmerged.
    """
    with yaml_path.open(encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, Mapping):
        raise ValueError("Snapshot must be a mapping with sessions, venues and time_slots")

    schedule_input = parse_snapshot(data)
    config = data.get("config") or {}
    if not isinstance(config, Mapping):
        raise ValueError("config must be a mapping")
    return schedule_input, dict(config)


def parse_snapshot(data: Mapping[str, Any]) -> ScheduleInput:
    """Build a ScheduleInput from an already-loaded snapshot mapping."""
    sessions = [_parse_session(entry) for entry in data.get("sessions") or []]
    venues = [_parse_venue(entry) for entry in data.get("venues") or []]
    time_slots = [_parse_time_slot(entry) for entry in data.get("time_slots") or []]
    overlaps = [_parse_overlap(entry) for entry in data.get("voter_overlap") or []]

    _check_unique("session", [s.id for s in sessions])
    _check_unique("venue", [v.id for v in venues])
    _check_unique("time slot", [t.id for t in time_slots])
    _check_timezones(time_slots)

    event_id = data.get("event_id")
    return ScheduleInput(
        sessions=sessions,
        venues=venues,
        time_slots=time_slots,
        voter_overlap=overlaps,
        event_id=str(event_id) if event_id is not None else None,
    )


def _require_id(entry: Mapping[str, Any], kind: str) -> str:
    raw = entry.get("id")
    if raw is None or str(raw).strip() == "":
        raise ValueError(f"Every {kind} needs an id: {dict(entry)}")
    return str(raw).strip()


def _check_unique(kind: str, ids: list[str]) -> None:
    duplicates = sorted(i for i, count in Counter(ids).items() if count > 1)
    if duplicates:
        raise ValueError(f"Duplicate {kind} ids: {', '.join(duplicates)}")


def _optional_str(value: Any) -> str | None:
    if value is None or str(value).strip() == "":
        return None
    return str(value).strip()


def _parse_minutes(value: Any, session_id: str) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"Session {session_id}: duration must be a number of minutes, got {value!r}")
    if isinstance(value, float) and not value.is_integer():
        raise ValueError(f"Session {session_id}: duration must be a whole number of minutes, got {value!r}")
    return int(value)


def _parse_session(entry: Mapping[str, Any]) -> Session:
    session_id = _require_id(entry, "session")
    duration = _parse_minutes(entry.get("duration", 60), session_id)
    if duration <= 0:
        raise ValueError(f"Session {session_id}: duration must be positive")

    is_locked = entry.get("is_locked", False)
    if not isinstance(is_locked, bool):
        raise ValueError(f"Session {session_id}: is_locked must be true or false, got {is_locked!r}")

    return Session(
        id=session_id,
        title=str(entry.get("title", session_id)),
        duration=duration,
        is_locked=is_locked,
        venue_id=_optional_str(entry.get("venue_id")),
        time_slot_id=_optional_str(entry.get("time_slot_id")),
        technical_requirements=[str(r) for r in entry.get("technical_requirements") or []],
        total_votes=int(entry.get("total_votes") or 0),
        total_voters=int(entry.get("total_voters") or 0),
        favorites=int(entry.get("favorites") or 0),
        format=str(entry.get("format", "talk")),
        status=str(entry.get("status", "approved")),
    )


def _parse_venue(entry: Mapping[str, Any]) -> Venue:
    venue_id = _require_id(entry, "venue")
    capacity = int(entry.get("capacity", 0))
    if capacity <= 0:
        raise ValueError(f"Venue {venue_id}: capacity must be positive")

    return Venue(
        id=venue_id,
        name=str(entry.get("name", venue_id)),
        capacity=capacity,
        features=[str(f) for f in entry.get("features") or []],
    )


def _parse_timestamp(value: Any, field_name: str, slot_id: str) -> datetime:
    # PyYAML already turns unquoted ISO timestamps into datetimes
    if isinstance(value, datetime):
        return value
    if value is None:
        raise ValueError(f"Time slot {slot_id}: {field_name} is required")
    try:
        return datetime.fromisoformat(str(value))
    except ValueError as exc:
        raise ValueError(f"Time slot {slot_id}: invalid {field_name} {value!r}") from exc


def _is_aware(value: datetime) -> bool:
    return value.tzinfo is not None and value.utcoffset() is not None


def _check_timezones(time_slots: list[TimeSlot]) -> None:
    # Naive and aware timestamps cannot be compared with each other
    aware = {_is_aware(t.start_time) for t in time_slots}
    if len(aware) > 1:
        raise ValueError("Time slots mix timestamps with and without a timezone")


def _parse_time_slot(entry: Mapping[str, Any]) -> TimeSlot:
    slot_id = _require_id(entry, "time slot")
    start = _parse_timestamp(entry.get("start_time"), "start_time", slot_id)
    end = _parse_timestamp(entry.get("end_time"), "end_time", slot_id)
    if _is_aware(start) != _is_aware(end):
        raise ValueError(f"Time slot {slot_id}: start_time and end_time must both have a timezone or neither")
    if end <= start:
        raise ValueError(f"Time slot {slot_id}: end_time must be after start_time")

    return TimeSlot(
        id=slot_id,
        start_time=start,
        end_time=end,
        is_available=entry.get("is_available", True) is not False,
        label=_optional_str(entry.get("label")),
    )


def _parse_overlap(entry: Mapping[str, Any]) -> VoterOverlap:
    session_a = _optional_str(entry.get("session_a_id"))
    session_b = _optional_str(entry.get("session_b_id"))
    if session_a is None or session_b is None:
        raise ValueError(f"Voter overlap needs session_a_id and session_b_id: {dict(entry)}")

    percentage = float(entry.get("overlap_percentage") or 0)
    if not 0 <= percentage <= 100:
        raise ValueError(
            f"Voter overlap {session_a}/{session_b}: overlap_percentage must be between 0 and 100"
        )

    return VoterOverlap(
        session_a_id=session_a,
        session_b_id=session_b,
        overlap_percentage=percentage,
        shared_voters=int(entry.get("shared_voters") or 0),
    )


def parse_overlap_csv(csv_path: Path) -> list[VoterOverlap]:
    """
    Parse a voter overlap export.

    Expects the columns session_a_id, session_b_id and overlap_percentage;
    shared_voters is optional. Blank rows are skipped.
    """
    overlaps: list[VoterOverlap] = []

    with csv_path.open(newline="", encoding="utf-8") as f:
        reader = csv.DictReader(f)
        fieldnames = reader.fieldnames or []
        missing = [col for col in OVERLAP_CSV_COLUMNS[:3] if col not in fieldnames]
        if missing:
            raise ValueError(f"Overlap CSV is missing columns: {', '.join(missing)}")

        for row in reader:
            if not any((value or "").strip() for value in row.values() if isinstance(value, str)):
                continue
            overlaps.append(_parse_overlap(row))

    return overlaps


def parse_config_yaml(yaml_path: Path) -> dict[str, Any]:
    """Parse a scheduler config file into a partial config mapping."""
    with yaml_path.open(encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, Mapping):
        raise ValueError("Config file must contain a mapping")
    # Allow both a bare mapping and one nested under "config"
    if "config" in data and isinstance(data["config"], Mapping):
        data = data["config"]
    return dict(data)


def create_snapshot_template(output_path: Path) -> None:
    """Create a starter snapshot file to fill in."""
    template = {
        "event_id": "my-event",
        "sessions": [
            {
                "id": "s1",
                "title": "Opening Keynote",
                "duration": 60,
                "total_votes": 40,
                "total_voters": 30,
                "favorites": 5,
                "technical_requirements": ["projector"],
                "format": "talk",
                "is_locked": True,
                "venue_id": "main-hall",
                "time_slot_id": "morning-1",
            },
            {
                "id": "s2",
                "title": "Hands-on Workshop",
                "duration": 90,
                "total_votes": 12,
                "total_voters": 10,
                "technical_requirements": ["whiteboard"],
                "format": "workshop",
            },
        ],
        "venues": [
            {"id": "main-hall", "name": "Main Hall", "capacity": 200, "features": ["projector"]},
            {"id": "room-a", "name": "Room A", "capacity": 40, "features": ["whiteboard"]},
        ],
        "time_slots": [
            {"id": "morning-1", "start_time": "2025-06-01T09:00:00", "end_time": "2025-06-01T10:00:00"},
            {"id": "morning-2", "start_time": "2025-06-01T10:30:00", "end_time": "2025-06-01T12:00:00"},
            {
                "id": "lunch",
                "start_time": "2025-06-01T12:00:00",
                "end_time": "2025-06-01T13:00:00",
                "is_available": False,
                "label": "Lunch",
            },
        ],
        "voter_overlap": [
            {"session_a_id": "s1", "session_b_id": "s2", "overlap_percentage": 35, "shared_voters": 4},
        ],
        "config": {
            "conflict_threshold": 60,
            "max_iterations": 1000,
            "target_quality_score": 70,
        },
    }

    header = """\
# Event snapshot for slotassign
#
# sessions:       proposed sessions; set is_locked with venue_id and
#                 time_slot_id to pin a session where the host wants it
# venues:         rooms with capacity and features
# time_slots:     ISO timestamps; is_available: false for breaks
# voter_overlap:  pairwise audience overlap (0-100), absent pairs mean 0
# config:         optional overrides of the scheduler defaults
#                 (conflict_threshold, max_iterations, target_quality_score,
#                 weights: conflict_penalty, capacity_match, demand_balance,
#                 feature_bonus)

"""

    with output_path.open("w", encoding="utf-8") as f:
        f.write(header)
        yaml.dump(template, f, default_flow_style=False, sort_keys=False)
