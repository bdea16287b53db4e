"""Selector healing models."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from resilient_qa.models.config import check_unit_interval
from resilient_qa.models.page_state import ElementInfo, PageState


class HealingStrategy(str, Enum):
    TEXT_CONTENT = "text_content"
    ARIA_LABEL = "aria_label"
    FUZZY_ATTRIBUTES = "fuzzy_attributes"
    VISUAL_SIMILARITY = "visual_similarity"
    POSITION = "position"
    LLM_GENERATED = "llm_generated"


DEFAULT_STRATEGY_ORDER: tuple[HealingStrategy, ...] = (
    HealingStrategy.TEXT_CONTENT,
    HealingStrategy.ARIA_LABEL,
    HealingStrategy.FUZZY_ATTRIBUTES,
    HealingStrategy.VISUAL_SIMILARITY,
    HealingStrategy.POSITION,
    HealingStrategy.LLM_GENERATED,
)


class HealingContext(BaseModel):
    """Everything one healing attempt knows about the failed selector."""

    failed_selector: str
    page_state: PageState
    expected_text: Optional[str] = None
    expected_screenshot: Optional[bytes] = None
    expected_position: Optional[tuple[float, float]] = None
    expected_attributes: dict[str, str] = Field(default_factory=dict)
    strategies: list[HealingStrategy] = Field(
        default_factory=lambda: list(DEFAULT_STRATEGY_ORDER)
    )
    min_confidence_threshold: float = 0.75

    @field_validator("min_confidence_threshold")
    @classmethod
    def check_threshold(cls, v: float) -> float:
        return check_unit_interval(v)


class SelectorCandidate(BaseModel):
    selector: str
    strategy: HealingStrategy
    base_confidence: float
    text_similarity: Optional[float] = None
    aria_label_match: Optional[float] = None
    attribute_match: Optional[float] = None
    visual_similarity: Optional[float] = None
    position_score: Optional[float] = None
    reasoning: str = ""
    element: Optional[ElementInfo] = None
    context: dict[str, Any] = Field(default_factory=dict)
    final_confidence: float = 0.0

    def sub_scores(self) -> dict[str, float]:
        """Per-strategy sub-scores that are actually present."""
        scores = {
            "text_similarity": self.text_similarity,
            "aria_label_match": self.aria_label_match,
            "attribute_match": self.attribute_match,
            "visual_similarity": self.visual_similarity,
            "position_score": self.position_score,
        }
        return {name: value for name, value in scores.items() if value is not None}

    def scored(self, scorer: Callable[["SelectorCandidate"], float]) -> "SelectorCandidate":
        return self.model_copy(update={"final_confidence": scorer(self)})


class HealedSelector(BaseModel):
    model_config = ConfigDict(frozen=True)

    original_selector: str
    new_selector: str
    strategy: HealingStrategy
    confidence_score: float
    healed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    page_url: str = ""
    reasoning: str = ""
    context: dict[str, Any] = Field(default_factory=dict)


class HealingHistoryEntry(BaseModel):
    """One healing attempt, successful or not."""

    original_selector: str
    healed_selector: Optional[str] = None
    strategy: Optional[HealingStrategy] = None
    confidence_score: float = 0.0
    success: bool = False
    page_url: str = ""
    recorded_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    context: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_healed(cls, healed: HealedSelector, success: bool = True) -> "HealingHistoryEntry":
        return cls(
            original_selector=healed.original_selector,
            healed_selector=healed.new_selector,
            strategy=healed.strategy,
            confidence_score=healed.confidence_score,
            success=success,
            page_url=healed.page_url,
            context=dict(healed.context),
        )


class StrategyStats(BaseModel):
    attempts: int = 0
    successes: int = 0

    @property
    def success_rate(self) -> float:
        return self.successes / self.attempts if self.attempts else 0.0


class HealingStatistics(BaseModel):
    total_attempts: int = 0
    successful_healings: int = 0
    success_rate: float = 0.0
    average_confidence: float = 0.0
    by_strategy: dict[HealingStrategy, StrategyStats] = Field(default_factory=dict)
    most_successful_strategy: Optional[HealingStrategy] = None
