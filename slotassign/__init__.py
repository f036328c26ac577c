"""Conference schedule generation: place sessions into venues and time slots."""

from slotassign.config import DEFAULT_CONFIG, SchedulerConfig, ScoringWeights, merge_config
from slotassign.generator import ScheduleGenerator, generate_schedule
from slotassign.models import (
    Assignment,
    ScheduleInput,
    ScheduleResult,
    ScheduleWarning,
    Session,
    TimeSlot,
    Venue,
    VoterOverlap,
)

__all__ = [
    "DEFAULT_CONFIG",
    "Assignment",
    "ScheduleGenerator",
    "ScheduleInput",
    "ScheduleResult",
    "ScheduleWarning",
    "SchedulerConfig",
    "ScoringWeights",
    "Session",
    "TimeSlot",
    "Venue",
    "VoterOverlap",
    "generate_schedule",
    "merge_config",
]
