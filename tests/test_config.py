import pytest

from slotassign.config import DEFAULT_CONFIG, SchedulerConfig, ScoringWeights, merge_config, validate_config


def test_defaults():
    assert DEFAULT_CONFIG.conflict_threshold == 60
    assert DEFAULT_CONFIG.max_iterations == 1000
    assert DEFAULT_CONFIG.target_quality_score == 70
    assert DEFAULT_CONFIG.weights == ScoringWeights(40, 30, 20, 10)
    assert DEFAULT_CONFIG.weights.total == 100


def test_merge_none_returns_base():
    assert merge_config(None) == DEFAULT_CONFIG


def test_merge_partial_mapping():
    config = merge_config({"conflict_threshold": 50, "weights": {"feature_bonus": 25}})
    assert config.conflict_threshold == 50
    assert config.max_iterations == 1000
    assert config.weights.feature_bonus == 25
    assert config.weights.conflict_penalty == 40


def test_merge_ignores_none_values():
    config = merge_config({"conflict_threshold": None, "max_iterations": 5})
    assert config.conflict_threshold == 60
    assert config.max_iterations == 5


def test_merge_over_custom_base():
    base = merge_config({"target_quality_score": 90})
    config = merge_config({"max_iterations": 10}, base=base)
    assert config.target_quality_score == 90
    assert config.max_iterations == 10


def test_merge_accepts_complete_config():
    config = SchedulerConfig(conflict_threshold=75)
    assert merge_config(config) is config


def test_merge_accepts_weights_object():
    weights = ScoringWeights(1, 1, 1, 1)
    assert merge_config({"weights": weights}).weights == weights


def test_merge_does_not_touch_defaults():
    merge_config({"conflict_threshold": 10})
    assert DEFAULT_CONFIG.conflict_threshold == 60


@pytest.mark.parametrize(
    "overrides,match",
    [
        ({"conflict_threshold": 101}, "conflict_threshold"),
        ({"conflict_threshold": -1}, "conflict_threshold"),
        ({"max_iterations": -1}, "max_iterations"),
        ({"target_quality_score": 150}, "target_quality_score"),
        ({"weights": {"capacity_match": -5}}, "capacity_match"),
        ({"weights": {"conflict_penalty": 0, "capacity_match": 0, "demand_balance": 0, "feature_bonus": 0}}, "positive"),
        ({"threshold": 50}, "Unknown config keys"),
        ({"weights": {"speed": 1}}, "Unknown weight keys"),
    ],
)
def test_invalid_overrides_raise(overrides, match):
    with pytest.raises(ValueError, match=match):
        merge_config(overrides)


def test_validate_config_accepts_defaults():
    validate_config(DEFAULT_CONFIG)
