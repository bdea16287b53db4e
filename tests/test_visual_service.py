"""Tests for VisualComparisonService."""

from unittest.mock import Mock

import pytest

from resilient_qa.models.visual import ComparisonMetrics, DifferenceType, VisualCheckpoint
from resilient_qa.visual.baseline_store import BaselineStore
from resilient_qa.visual.service import VisualComparisonService


@pytest.fixture
def store(tmp_path) -> BaselineStore:
    return BaselineStore(tmp_path)


@pytest.fixture
def service(store) -> VisualComparisonService:
    return VisualComparisonService(store)


@pytest.fixture
def checkpoint() -> VisualCheckpoint:
    return VisualCheckpoint(name="checkout", tolerance=0.005)


class TestVisualComparisonService:
    """Tests for baseline lookup and comparison."""

    def test_first_run_creates_baseline(self, service, store, checkpoint, white_image):
        result = service.compare(checkpoint, white_image)

        assert result.baseline_created is True
        assert result.passed is True
        assert result.metrics.difference_type == DifferenceType.NO_DIFFERENCE
        assert result.tolerance == 0.005
        assert store.get_baseline("checkout") is not None
        assert (store.root / result.actual_path).exists()

    def test_identical_second_run(self, service, checkpoint, white_image):
        service.compare(checkpoint, white_image)
        result = service.compare(checkpoint, white_image)

        assert result.baseline_created is False
        assert result.passed is True
        assert result.metrics.ssim_score == 1.0
        assert result.diff_path

    def test_regression_detected(self, service, store, checkpoint, white_image, patched_image):
        service.compare(checkpoint, white_image)
        result = service.compare(checkpoint, patched_image)

        assert result.passed is False
        assert result.metrics.pixels_different == 100
        assert (store.root / result.diff_path).exists()
        # The baseline is not replaced by a failing run
        assert store.resolve(store.get_baseline("checkout").image_path).read_bytes() == white_image

    def test_baselines_keyed_by_environment(self, service, checkpoint, white_image, patched_image):
        service.compare(checkpoint, white_image, environment="dev")
        result = service.compare(checkpoint, patched_image, environment="prod")
        assert result.baseline_created is True

    def test_dimension_mismatch_reported(self, service, checkpoint, white_image, make_png):
        service.compare(checkpoint, white_image)
        result = service.compare(checkpoint, make_png(200, 100))

        assert result.passed is False
        assert result.metrics.error_message == "Image dimensions do not match. Baseline: 100x100, Actual: 200x100"
        assert result.diff_path == ""

    def test_uses_injected_comparator(self, store, checkpoint, white_image):
        comparator = Mock()
        comparator.compare.return_value = ComparisonMetrics(passed=True, difference_percentage=0.0)
        service = VisualComparisonService(store, comparator)

        service.compare(checkpoint, white_image)
        service.compare(checkpoint, white_image)

        comparator.compare.assert_called_once_with(white_image, white_image, checkpoint)
