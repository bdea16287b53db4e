"""Configuration models for the resilient execution core."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator

# Worst-case wall clock a single execute() call may spend, retries included.
MAX_TOTAL_EXECUTION_MS = 600_000


def check_unit_interval(v: float) -> float:
    if not 0.0 <= v <= 1.0:
        raise ValueError(f"value must be within [0, 1] (got {v})")
    return v


class ExecutorConfig(BaseModel):
    """Retry, timeout and history settings for the tool execution engine.

    ``action_timeout_ms`` bounds a single browser action and must stay below
    ``timeout_per_tool_ms``, so a failed click and its healed retry both fit
    inside one attempt. Unset, it is a third of the attempt timeout.
    """

    max_retries: int = 3
    initial_retry_delay_ms: int = 500
    max_retry_delay_ms: int = 10000
    use_exponential_backoff: bool = True
    timeout_per_tool_ms: int = 30000
    action_timeout_ms: Optional[int] = None
    max_history_size: int = 100
    enable_detailed_logging: bool = True

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    @property
    def effective_action_timeout_ms(self) -> int:
        if self.action_timeout_ms is not None:
            return self.action_timeout_ms
        return max(1, self.timeout_per_tool_ms // 3)

    @property
    def total_max_execution_time_ms(self) -> int:
        return (
            self.max_attempts * self.timeout_per_tool_ms
            + self.max_retries * self.max_retry_delay_ms
        )

    def validate_ranges(self) -> list[str]:
        """Return a list of human-readable problems; empty when the config is usable."""
        problems: list[str] = []
        if not 0 <= self.max_retries <= 10:
            problems.append(f"max_retries must be between 0 and 10 (got {self.max_retries})")
        if not 0 <= self.initial_retry_delay_ms <= 5000:
            problems.append(
                f"initial_retry_delay_ms must be between 0 and 5000 (got {self.initial_retry_delay_ms})"
            )
        if not 0 <= self.max_retry_delay_ms <= 60000:
            problems.append(
                f"max_retry_delay_ms must be between 0 and 60000 (got {self.max_retry_delay_ms})"
            )
        if self.max_retry_delay_ms < self.initial_retry_delay_ms:
            problems.append(
                f"max_retry_delay_ms ({self.max_retry_delay_ms}) must be >= "
                f"initial_retry_delay_ms ({self.initial_retry_delay_ms})"
            )
        if not 1 <= self.timeout_per_tool_ms <= 300000:
            problems.append(
                f"timeout_per_tool_ms must be between 1 and 300000 (got {self.timeout_per_tool_ms})"
            )
        if self.action_timeout_ms is not None and not 1 <= self.action_timeout_ms < self.timeout_per_tool_ms:
            problems.append(
                f"action_timeout_ms must be >= 1 and < timeout_per_tool_ms "
                f"({self.timeout_per_tool_ms}) (got {self.action_timeout_ms})"
            )
        if not 1 <= self.max_history_size <= 1000:
            problems.append(
                f"max_history_size must be between 1 and 1000 (got {self.max_history_size})"
            )
        if self.total_max_execution_time_ms > MAX_TOTAL_EXECUTION_MS:
            problems.append(
                f"worst-case execution time {self.total_max_execution_time_ms}ms exceeds "
                f"{MAX_TOTAL_EXECUTION_MS}ms; reduce retries, timeout or max delay"
            )
        return problems

    def check(self) -> "ExecutorConfig":
        problems = self.validate_ranges()
        if problems:
            raise ValueError("Invalid executor configuration: " + "; ".join(problems))
        return self


class HealingConfig(BaseModel):
    min_confidence_threshold: float = 0.75
    text_similarity_threshold: float = 0.7
    aria_default_confidence: float = 0.8
    attribute_match_threshold: float = 0.6
    visual_distance_span_px: float = 1000.0
    position_distance_span_px: float = 500.0
    position_score_threshold: float = 0.7
    max_candidates: int = 10
    enable_llm: bool = True
    scoring: Literal["mean", "weighted"] = "mean"

    @field_validator(
        "min_confidence_threshold",
        "text_similarity_threshold",
        "aria_default_confidence",
        "attribute_match_threshold",
        "position_score_threshold",
    )
    @classmethod
    def check_unit_interval(cls, v: float) -> float:
        return check_unit_interval(v)


class VisualConfig(BaseModel):
    color_distance_threshold: float = 0.02
    ssim_epsilon: float = 0.001
    minor_rendering_ssim: float = 0.95
    minor_rendering_max_diff: float = 0.05
    content_change_min_diff: float = 0.10
    min_region_area: int = 100
    generate_diff_image: bool = True
    baseline_dir: str = "./baselines"


class AIConfig(BaseModel):
    model: str = "claude-opus-4-6"
    max_tokens: int = 4000
    max_recovery_calls: int = 3
    api_key: Optional[str] = None

    @field_validator("api_key", mode="before")
    @classmethod
    def resolve_env_api_key(cls, v: Optional[str]) -> Optional[str]:
        if isinstance(v, str) and v.startswith("env:"):
            env_var = v[4:]
            resolved = os.environ.get(env_var)
            if resolved is None:
                raise ValueError(f"Environment variable '{env_var}' not set")
            return resolved
        return v


class ViewportConfig(BaseModel):
    width: int = 1280
    height: int = 720
    name: str = "desktop"


class BrowserConfig(BaseModel):
    headless: bool = True
    viewport: ViewportConfig = Field(default_factory=ViewportConfig)
    user_agent: Optional[str] = None


class FrameworkConfig(BaseModel):
    executor: ExecutorConfig = Field(default_factory=ExecutorConfig)
    healing: HealingConfig = Field(default_factory=HealingConfig)
    visual: VisualConfig = Field(default_factory=VisualConfig)
    ai: AIConfig = Field(default_factory=AIConfig)
    browser: BrowserConfig = Field(default_factory=BrowserConfig)

    # Healing history persistence (JSON lines); empty keeps history in memory
    healing_history_path: str = ""

    def model_post_init(self, __context) -> None:
        self.executor.check()

    @classmethod
    def load(cls, path: str | Path) -> "FrameworkConfig":
        """Load config from a JSON file, falling back to defaults when it is missing."""
        path = Path(path)
        if not path.exists():
            return cls()
        with open(path) as f:
            data = json.load(f)
        return cls(**data)

    def save(self, path: str | Path) -> None:
        """Save config to a JSON file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(self.model_dump(), f, indent=2)
