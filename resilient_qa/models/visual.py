"""Visual checkpoint and comparison models."""

from __future__ import annotations

from enum import Enum
from typing import Optional

import numpy as np
from pydantic import BaseModel, ConfigDict, Field


class CheckpointType(str, Enum):
    FULL_PAGE = "full_page"
    ELEMENT = "element"
    REGION = "region"
    VIEWPORT = "viewport"

    @classmethod
    def parse(cls, value: str) -> "CheckpointType":
        """Accept 'full_page', 'FullPage', 'full-page' and similar spellings."""
        normalized = value.strip().lower().replace("-", "").replace("_", "")
        for member in cls:
            if member.value.replace("_", "") == normalized:
                return member
        valid = ", ".join(m.value for m in cls)
        raise ValueError(f"Invalid checkpoint_type '{value}'. Valid values are: {valid}")


class DifferenceType(str, Enum):
    NO_DIFFERENCE = "no_difference"
    MINOR_RENDERING = "minor_rendering"
    CONTENT_CHANGE = "content_change"
    LAYOUT_SHIFT = "layout_shift"
    COLOR_CHANGE = "color_change"
    SIZE_CHANGE = "size_change"


class ScreenshotRegion(BaseModel):
    x: int = 0
    y: int = 0
    width: int
    height: int


class VisualCheckpoint(BaseModel):
    name: str
    type: CheckpointType = CheckpointType.FULL_PAGE
    selector: Optional[str] = None
    region: Optional[ScreenshotRegion] = None
    tolerance: float = 0.01
    ignore_selectors: list[str] = Field(default_factory=list)


class DifferenceRegion(BaseModel):
    x: int
    y: int
    width: int
    height: int
    difference_score: float

    @property
    def area(self) -> int:
        return self.width * self.height


class ComparisonMetrics(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    passed: bool
    difference_percentage: float
    ssim_score: Optional[float] = None
    pixels_different: int = 0
    total_pixels: int = 0
    # Boolean mask of shape (height, width)
    difference_map: Optional[np.ndarray] = None
    regions: list[DifferenceRegion] = Field(default_factory=list)
    difference_type: Optional[DifferenceType] = None
    diff_image: Optional[bytes] = None
    error_message: Optional[str] = None

    @classmethod
    def failure(cls, message: str) -> "ComparisonMetrics":
        return cls(passed=False, difference_percentage=1.0, error_message=message)


class BaselineEntry(BaseModel):
    checkpoint_name: str
    environment: str = "dev"
    browser: str = "chromium"
    viewport: str = "1920x1080"
    image_path: str  # relative to the baselines directory
    captured_at: str  # ISO timestamp
    image_hash: str  # SHA-256 hex digest
    perceptual_hash: str = ""


class BaselineRegistry(BaseModel):
    last_updated: str = ""
    baselines: dict[str, BaselineEntry] = Field(default_factory=dict)
    # key format: "{checkpoint}__{environment}__{browser}__{viewport}"


class VisualCheckResult(BaseModel):
    """Comparison metrics plus where the images involved were written."""

    checkpoint_name: str
    metrics: ComparisonMetrics
    tolerance: float
    baseline_path: str = ""
    actual_path: str = ""
    diff_path: str = ""
    baseline_created: bool = False

    @property
    def passed(self) -> bool:
        return self.metrics.passed
