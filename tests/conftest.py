"""Pytest configuration and shared fixtures."""

import io
from typing import Callable, Optional
from unittest.mock import AsyncMock, Mock

import pytest
from PIL import Image

from resilient_qa.models.config import ExecutorConfig, HealingConfig, VisualConfig
from resilient_qa.models.page_state import BoundingBox, ElementInfo, PageState
from resilient_qa.telemetry import Observability


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def fast_executor_config() -> ExecutorConfig:
    """Executor config that retries without sleeping."""
    return ExecutorConfig(
        max_retries=3,
        initial_retry_delay_ms=0,
        max_retry_delay_ms=0,
        timeout_per_tool_ms=2000,
        max_history_size=100,
    )


@pytest.fixture
def healing_config() -> HealingConfig:
    return HealingConfig(enable_llm=True)


@pytest.fixture
def visual_config() -> VisualConfig:
    return VisualConfig()


@pytest.fixture
def observability() -> Observability:
    """A private telemetry context so tests don't share instruments."""
    return Observability()


# ============================================================================
# Image Fixtures
# ============================================================================


def _png(
    width: int,
    height: int,
    color: tuple = (255, 255, 255),
    patch: Optional[tuple[int, int, int, int]] = None,
    patch_color: tuple = (0, 0, 0),
) -> bytes:
    img = Image.new("RGB", (width, height), color)
    if patch is not None:
        x, y, w, h = patch
        img.paste(patch_color, (x, y, x + w, y + h))
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def make_png() -> Callable[..., bytes]:
    """Factory: make_png(width, height, color=(r,g,b), patch=(x,y,w,h), patch_color=(r,g,b))."""
    return _png


@pytest.fixture
def white_image() -> bytes:
    return _png(100, 100)


@pytest.fixture
def patched_image() -> bytes:
    """100x100 white image with a 10x10 black square at (50, 50)."""
    return _png(100, 100, patch=(50, 50, 10, 10))


# ============================================================================
# Page State Fixtures
# ============================================================================


@pytest.fixture
def submit_button() -> ElementInfo:
    return ElementInfo(
        tag_name="button",
        selector="#submit-btn",
        text="Submit Order",
        attributes={"id": "submit-btn", "type": "submit", "class": "btn btn-primary"},
        bounding_box=BoundingBox(x=100, y=200, width=120, height=40),
    )


@pytest.fixture
def cancel_button() -> ElementInfo:
    return ElementInfo(
        tag_name="button",
        selector="[aria-label=\"Cancel order\"]",
        text="",
        attributes={"aria-label": "Cancel order", "class": "btn"},
        bounding_box=BoundingBox(x=400, y=200, width=120, height=40),
    )


@pytest.fixture
def email_input() -> ElementInfo:
    return ElementInfo(
        tag_name="input",
        selector="input[name=\"email\"]",
        attributes={"name": "email", "type": "email", "placeholder": "you@example.com"},
        bounding_box=BoundingBox(x=100, y=100, width=300, height=30),
    )


@pytest.fixture
def page_state(submit_button, cancel_button, email_input) -> PageState:
    """A checkout page with three interactive elements."""
    return PageState(
        url="https://shop.example.com/checkout",
        title="Checkout",
        interactive_elements=[email_input, submit_button, cancel_button],
    )


# ============================================================================
# Driver Fixtures
# ============================================================================


@pytest.fixture
def mock_interceptor() -> AsyncMock:
    interceptor = AsyncMock()
    interceptor.is_network_logging_enabled = False
    interceptor.get_network_logs.return_value = []
    return interceptor


@pytest.fixture
def mock_driver(page_state, white_image) -> AsyncMock:
    """A BrowserDriver double whose async methods all succeed by default."""
    driver = AsyncMock()
    driver.get_text.return_value = "Submit Order"
    driver.get_page_html.return_value = "<html><body></body></html>"
    driver.get_page_state.return_value = page_state
    driver.take_screenshot.return_value = white_image
    driver.take_full_page_screenshot.return_value = white_image
    driver.take_viewport_screenshot.return_value = white_image
    driver.take_element_screenshot.return_value = white_image
    driver.take_region_screenshot.return_value = white_image
    driver.get_network_interceptor = Mock(return_value=None)
    return driver


@pytest.fixture
def mock_page() -> AsyncMock:
    """A Playwright Page double."""
    page = AsyncMock()
    page.url = "https://shop.example.com/checkout"
    page.title.return_value = "Checkout"
    page.screenshot.return_value = b"png-bytes"
    page.content.return_value = "<html></html>"
    page.on = Mock()
    page.remove_listener = Mock()
    locator = Mock()
    locator.first.screenshot = AsyncMock(return_value=b"element-png")
    page.locator = Mock(return_value=locator)
    return page
