"""Tests for configuration models."""

import json
import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from resilient_qa.models.config import (
    MAX_TOTAL_EXECUTION_MS,
    AIConfig,
    ExecutorConfig,
    FrameworkConfig,
    HealingConfig,
    VisualConfig,
)


class TestExecutorConfig:
    """Tests for ExecutorConfig."""

    def test_defaults(self):
        cfg = ExecutorConfig()
        assert cfg.max_retries == 3
        assert cfg.initial_retry_delay_ms == 500
        assert cfg.max_retry_delay_ms == 10000
        assert cfg.use_exponential_backoff is True
        assert cfg.timeout_per_tool_ms == 30000
        assert cfg.max_history_size == 100
        assert cfg.enable_detailed_logging is True

    def test_defaults_are_valid(self):
        assert ExecutorConfig().validate_ranges() == []

    def test_max_attempts(self):
        assert ExecutorConfig(max_retries=0).max_attempts == 1
        assert ExecutorConfig(max_retries=5).max_attempts == 6

    def test_action_timeout_defaults_to_third_of_attempt(self):
        assert ExecutorConfig().action_timeout_ms is None
        assert ExecutorConfig().effective_action_timeout_ms == 10000
        assert ExecutorConfig(timeout_per_tool_ms=600).effective_action_timeout_ms == 200
        assert ExecutorConfig(timeout_per_tool_ms=2).effective_action_timeout_ms == 1

    def test_explicit_action_timeout_used(self):
        cfg = ExecutorConfig(timeout_per_tool_ms=5000, action_timeout_ms=4000)
        assert cfg.effective_action_timeout_ms == 4000
        assert cfg.validate_ranges() == []

    def test_action_timeout_must_stay_below_attempt_timeout(self):
        with pytest.raises(ValueError, match="action_timeout_ms must be"):
            ExecutorConfig(timeout_per_tool_ms=5000, action_timeout_ms=5000).check()

    def test_total_max_execution_time(self):
        cfg = ExecutorConfig()
        assert cfg.total_max_execution_time_ms == 4 * 30000 + 3 * 10000

    @pytest.mark.parametrize(
        "field,value",
        [
            ("max_retries", 11),
            ("max_retries", -1),
            ("initial_retry_delay_ms", 5001),
            ("max_retry_delay_ms", 60001),
            ("timeout_per_tool_ms", 0),
            ("max_history_size", 0),
            ("max_history_size", 1001),
            ("action_timeout_ms", 0),
            ("action_timeout_ms", 30000),
        ],
    )
    def test_out_of_range_values_reported(self, field, value):
        cfg = ExecutorConfig(**{field: value})
        problems = cfg.validate_ranges()
        assert any(field in p for p in problems)

    def test_max_delay_below_initial_rejected(self):
        cfg = ExecutorConfig(initial_retry_delay_ms=2000, max_retry_delay_ms=1000)
        assert any("must be >=" in p for p in cfg.validate_ranges())

    def test_worst_case_budget_enforced(self):
        cfg = ExecutorConfig(max_retries=10, timeout_per_tool_ms=300000)
        assert cfg.total_max_execution_time_ms > MAX_TOTAL_EXECUTION_MS
        with pytest.raises(ValueError, match="worst-case execution time"):
            cfg.check()

    def test_check_returns_self_when_valid(self):
        cfg = ExecutorConfig(max_retries=1)
        assert cfg.check() is cfg


class TestHealingConfig:
    """Tests for HealingConfig."""

    def test_defaults(self):
        cfg = HealingConfig()
        assert cfg.min_confidence_threshold == 0.75
        assert cfg.text_similarity_threshold == 0.7
        assert cfg.aria_default_confidence == 0.8
        assert cfg.attribute_match_threshold == 0.6
        assert cfg.position_score_threshold == 0.7
        assert cfg.scoring == "mean"

    def test_threshold_outside_unit_interval_rejected(self):
        with pytest.raises(ValidationError):
            HealingConfig(min_confidence_threshold=1.5)

    def test_unknown_scoring_rejected(self):
        with pytest.raises(ValidationError):
            HealingConfig(scoring="median")


class TestVisualConfig:
    def test_defaults(self):
        cfg = VisualConfig()
        assert cfg.color_distance_threshold == 0.02
        assert cfg.ssim_epsilon == 0.001
        assert cfg.min_region_area == 100
        assert cfg.generate_diff_image is True


class TestAIConfig:
    def test_env_api_key_resolved(self):
        with patch.dict(os.environ, {"MY_KEY": "secret"}):
            assert AIConfig(api_key="env:MY_KEY").api_key == "secret"

    def test_missing_env_api_key_raises(self):
        with patch.dict(os.environ, {}, clear=True):
            with pytest.raises(ValidationError, match="MY_KEY"):
                AIConfig(api_key="env:MY_KEY")

    def test_literal_api_key_kept(self):
        assert AIConfig(api_key="sk-test").api_key == "sk-test"


class TestFrameworkConfig:
    """Tests for FrameworkConfig load/save."""

    def test_invalid_executor_rejected(self):
        with pytest.raises(ValueError, match="Invalid executor configuration"):
            FrameworkConfig(executor=ExecutorConfig(max_retries=20))

    def test_load_missing_file_returns_defaults(self, tmp_path):
        cfg = FrameworkConfig.load(tmp_path / "absent.json")
        assert cfg.executor.max_retries == 3

    def test_save_and_load(self, tmp_path):
        path = tmp_path / "nested" / "config.json"
        cfg = FrameworkConfig(
            executor=ExecutorConfig(max_retries=1, timeout_per_tool_ms=5000),
            healing=HealingConfig(scoring="weighted"),
            healing_history_path="history.jsonl",
        )
        cfg.save(path)

        with open(path) as f:
            raw = json.load(f)
        assert raw["executor"]["max_retries"] == 1

        loaded = FrameworkConfig.load(path)
        assert loaded.executor.timeout_per_tool_ms == 5000
        assert loaded.healing.scoring == "weighted"
        assert loaded.healing_history_path == "history.jsonl"
