"""Visual comparison service — checkpoint comparison against stored baselines."""

from __future__ import annotations

import logging
from typing import Optional

from resilient_qa.models.visual import ComparisonMetrics, DifferenceType, VisualCheckResult, VisualCheckpoint
from resilient_qa.visual.baseline_store import BaselineStore
from resilient_qa.visual.comparator import VisualComparator

logger = logging.getLogger(__name__)


class VisualComparisonService:
    """Looks up a checkpoint's baseline, compares, and stores the run images.

    The first time a checkpoint is seen the screenshot becomes its baseline
    and the check passes.
    """

    def __init__(self, store: BaselineStore, comparator: Optional[VisualComparator] = None):
        self.store = store
        self.comparator = comparator or VisualComparator()

    def compare(
        self,
        checkpoint: VisualCheckpoint,
        screenshot: bytes,
        environment: str = "dev",
        browser: str = "chromium",
        viewport: str = "1920x1080",
    ) -> VisualCheckResult:
        baseline = self.store.get_baseline(checkpoint.name, environment, browser, viewport)

        if baseline is None:
            logger.info("No baseline for checkpoint '%s'; creating first-time baseline", checkpoint.name)
            entry = self.store.store_baseline(checkpoint.name, screenshot, environment, browser, viewport)
            actual_path = self.store.save_run_image(checkpoint.name, "actual", screenshot)
            return VisualCheckResult(
                checkpoint_name=checkpoint.name,
                metrics=ComparisonMetrics(
                    passed=True,
                    difference_percentage=0.0,
                    ssim_score=1.0,
                    difference_type=DifferenceType.NO_DIFFERENCE,
                ),
                tolerance=checkpoint.tolerance,
                baseline_path=entry.image_path,
                actual_path=actual_path,
                diff_path=actual_path,
                baseline_created=True,
            )

        baseline_bytes = self.store.resolve(baseline.image_path).read_bytes()
        metrics = self.comparator.compare(baseline_bytes, screenshot, checkpoint)

        actual_path = self.store.save_run_image(checkpoint.name, "actual", screenshot)
        diff_path = ""
        if metrics.diff_image is not None:
            diff_path = self.store.save_run_image(checkpoint.name, "diff", metrics.diff_image)

        return VisualCheckResult(
            checkpoint_name=checkpoint.name,
            metrics=metrics,
            tolerance=checkpoint.tolerance,
            baseline_path=baseline.image_path,
            actual_path=actual_path,
            diff_path=diff_path,
        )
