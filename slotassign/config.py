"""Scheduler configuration and tuning constants."""

from collections.abc import Mapping
from dataclasses import dataclass, field, fields, replace
from typing import Any

# Expected headcount per interested attendee (voter or favorite), with a floor
ATTENDANCE_PER_INTERESTED = 1.5
MIN_EXPECTED_ATTENDANCE = 10

# Greedy placements scoring below this on the 0-100 scale are flagged
ACCEPTABLE_PLACEMENT_SCORE = 50

# Conflicts at or above this overlap are reported as high severity
HIGH_SEVERITY_OVERLAP = 80


@dataclass(frozen=True)
class ScoringWeights:
    """Relative weights of the quality sub-scores."""

    conflict_penalty: float = 40
    capacity_match: float = 30
    demand_balance: float = 20
    feature_bonus: float = 10

    @property
    def total(self) -> float:
        return self.conflict_penalty + self.capacity_match + self.demand_balance + self.feature_bonus


@dataclass(frozen=True)
class SchedulerConfig:
    conflict_threshold: float = 60  # overlap % from which sessions must not run together
    max_iterations: int = 1000
    target_quality_score: float = 70
    weights: ScoringWeights = field(default_factory=ScoringWeights)


DEFAULT_CONFIG = SchedulerConfig()


def validate_config(config: SchedulerConfig) -> None:
    if not 0 <= config.conflict_threshold <= 100:
        raise ValueError("conflict_threshold must be between 0 and 100")
    if config.max_iterations < 0:
        raise ValueError("max_iterations must be >= 0")
    if not 0 <= config.target_quality_score <= 100:
        raise ValueError("target_quality_score must be between 0 and 100")
    for f in fields(config.weights):
        if getattr(config.weights, f.name) < 0:
            raise ValueError(f"weights.{f.name} must be >= 0")
    if config.weights.total <= 0:
        raise ValueError("at least one scoring weight must be positive")


def merge_config(
    overrides: SchedulerConfig | Mapping[str, Any] | None = None,
    base: SchedulerConfig = DEFAULT_CONFIG,
) -> SchedulerConfig:
    """
    Merge a partial configuration over a base config.

    Accepts a complete SchedulerConfig, a (possibly nested) mapping, or None.
    Mapping keys whose value is None are ignored so callers can forward
    optional request fields unchanged.
    """
    if overrides is None:
        config = base
    elif isinstance(overrides, SchedulerConfig):
        config = overrides
    else:
        config = _apply_mapping(base, overrides)

    validate_config(config)
    return config


def _apply_mapping(base: SchedulerConfig, overrides: Mapping[str, Any]) -> SchedulerConfig:
    known = {f.name for f in fields(SchedulerConfig)}
    unknown = sorted(set(overrides) - known)
    if unknown:
        raise ValueError(f"Unknown config keys: {', '.join(unknown)}")

    changes: dict[str, Any] = {
        key: value for key, value in overrides.items() if value is not None and key != "weights"
    }

    weight_overrides = overrides.get("weights")
    if isinstance(weight_overrides, ScoringWeights):
        changes["weights"] = weight_overrides
    elif weight_overrides:
        weight_names = {f.name for f in fields(ScoringWeights)}
        unknown = sorted(set(weight_overrides) - weight_names)
        if unknown:
            raise ValueError(f"Unknown weight keys: {', '.join(unknown)}")
        changes["weights"] = replace(
            base.weights,
            **{k: float(v) for k, v in weight_overrides.items() if v is not None},
        )

    return replace(base, **changes)
