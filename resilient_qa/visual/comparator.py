"""Visual comparator — pixel diff, SSIM, region extraction and diff rendering."""

from __future__ import annotations

import io
import logging
from typing import Optional

import numpy as np
from PIL import Image

from resilient_qa.models.config import VisualConfig
from resilient_qa.models.visual import (
    CheckpointType,
    ComparisonMetrics,
    DifferenceType,
    ScreenshotRegion,
    VisualCheckpoint,
)
from resilient_qa.visual.regions import extract_difference_regions

logger = logging.getLogger(__name__)

LUMA_WEIGHTS = np.array([0.299, 0.587, 0.114])
SSIM_K1 = 0.01
SSIM_K2 = 0.03
DYNAMIC_RANGE = 255.0


def decode_rgba(image_bytes: bytes) -> np.ndarray:
    """Decode an encoded image into a (height, width, 4) float array."""
    with Image.open(io.BytesIO(image_bytes)) as img:
        return np.asarray(img.convert("RGBA"), dtype=np.float64)


def luminance(pixels: np.ndarray) -> np.ndarray:
    return pixels[..., :3] @ LUMA_WEIGHTS


def compute_ssim(baseline: np.ndarray, actual: np.ndarray) -> float:
    """Single-window SSIM over the luminance of two equally sized RGBA arrays."""
    x = luminance(baseline)
    y = luminance(actual)

    mu_x = x.mean()
    mu_y = y.mean()
    var_x = ((x - mu_x) ** 2).mean()
    var_y = ((y - mu_y) ** 2).mean()
    cov_xy = ((x - mu_x) * (y - mu_y)).mean()

    c1 = (SSIM_K1 * DYNAMIC_RANGE) ** 2
    c2 = (SSIM_K2 * DYNAMIC_RANGE) ** 2

    numerator = (2 * mu_x * mu_y + c1) * (2 * cov_xy + c2)
    denominator = (mu_x ** 2 + mu_y ** 2 + c1) * (var_x + var_y + c2)
    return float(min(1.0, max(0.0, numerator / denominator)))


def render_diff_image(actual: np.ndarray, diff_map: np.ndarray) -> bytes:
    """PNG of the actual image in grayscale with differing pixels painted red."""
    gray = np.clip(np.rint(luminance(actual)), 0, 255).astype(np.uint8)
    out = np.empty(diff_map.shape + (4,), dtype=np.uint8)
    out[..., 0] = gray
    out[..., 1] = gray
    out[..., 2] = gray
    out[..., 3] = 255
    out[diff_map] = (255, 0, 0, 255)

    buf = io.BytesIO()
    Image.fromarray(out).save(buf, format="PNG")
    return buf.getvalue()


class VisualComparator:
    """Compares a baseline screenshot against an actual one.

    ``compare`` never raises: decode or processing failures come back as a
    failed ComparisonMetrics carrying the error message.
    """

    def __init__(self, config: Optional[VisualConfig] = None):
        self.config = config or VisualConfig()

    def compare(self, baseline: bytes, actual: bytes, checkpoint: VisualCheckpoint) -> ComparisonMetrics:
        try:
            baseline_px = decode_rgba(baseline)
            actual_px = decode_rgba(actual)

            if baseline_px.shape != actual_px.shape:
                bh, bw = baseline_px.shape[:2]
                ah, aw = actual_px.shape[:2]
                logger.warning(
                    "Checkpoint '%s': dimension mismatch %dx%d vs %dx%d",
                    checkpoint.name, bw, bh, aw, ah,
                )
                return ComparisonMetrics.failure(
                    f"Image dimensions do not match. Baseline: {bw}x{bh}, Actual: {aw}x{ah}"
                )

            if checkpoint.type == CheckpointType.REGION and checkpoint.region is not None:
                baseline_px = self._crop(baseline_px, checkpoint.region)
                actual_px = self._crop(actual_px, checkpoint.region)

            metrics = self._compare_pixels(baseline_px, actual_px, checkpoint.tolerance)
            logger.info(
                "Checkpoint '%s': difference %.2f%%, SSIM %.4f, passed=%s",
                checkpoint.name,
                metrics.difference_percentage * 100,
                metrics.ssim_score if metrics.ssim_score is not None else 0.0,
                metrics.passed,
            )
            return metrics

        except Exception as e:
            logger.error("Visual comparison failed for checkpoint '%s': %s", checkpoint.name, e)
            return ComparisonMetrics.failure(f"Comparison failed: {e}")

    def _crop(self, pixels: np.ndarray, region: ScreenshotRegion) -> np.ndarray:
        height, width = pixels.shape[:2]
        x0 = max(0, region.x)
        y0 = max(0, region.y)
        x1 = min(width, region.x + region.width)
        y1 = min(height, region.y + region.height)
        if x1 <= x0 or y1 <= y0:
            raise ValueError(
                f"Region ({region.x},{region.y},{region.width}x{region.height}) "
                f"lies outside the {width}x{height} image"
            )
        return pixels[y0:y1, x0:x1]

    def _compare_pixels(self, baseline: np.ndarray, actual: np.ndarray, tolerance: float) -> ComparisonMetrics:
        cfg = self.config
        height, width = baseline.shape[:2]
        total_pixels = width * height

        distance = np.sqrt(((baseline - actual) ** 2).mean(axis=2)) / DYNAMIC_RANGE
        diff_map = distance > cfg.color_distance_threshold
        pixels_different = int(diff_map.sum())
        difference_percentage = pixels_different / total_pixels

        difference_type: Optional[DifferenceType] = None
        if difference_percentage > cfg.ssim_epsilon:
            ssim = compute_ssim(baseline, actual)
            if ssim > cfg.minor_rendering_ssim and difference_percentage < cfg.minor_rendering_max_diff:
                difference_type = DifferenceType.MINOR_RENDERING
                logger.debug(
                    "Minor rendering differences: SSIM %.4f, diff %.2f%%",
                    ssim, difference_percentage * 100,
                )
            elif difference_percentage > cfg.content_change_min_diff:
                difference_type = DifferenceType.CONTENT_CHANGE
        else:
            ssim = 1.0
            difference_type = DifferenceType.NO_DIFFERENCE

        regions = extract_difference_regions(diff_map, cfg.min_region_area)
        diff_image = render_diff_image(actual, diff_map) if cfg.generate_diff_image else None

        return ComparisonMetrics(
            passed=difference_percentage <= tolerance,
            difference_percentage=difference_percentage,
            ssim_score=ssim,
            pixels_different=pixels_different,
            total_pixels=total_pixels,
            difference_map=diff_map,
            regions=regions,
            difference_type=difference_type,
            diff_image=diff_image,
        )
