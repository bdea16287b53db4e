"""Browser driver capability surface consumed by the execution engine."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional, Protocol, runtime_checkable

from pydantic import BaseModel, Field

from resilient_qa.driver.presets import DeviceProfile
from resilient_qa.models.page_state import PageState
from resilient_qa.models.visual import ScreenshotRegion


class MockResponse(BaseModel):
    status: int = 200
    body: Optional[str] = None
    content_type: str = "application/json"
    headers: dict[str, str] = Field(default_factory=dict)
    delay_ms: int = 0


class NetworkLogEntry(BaseModel):
    url: str
    method: str = "GET"
    status_code: Optional[int] = None
    resource_type: Optional[str] = None
    duration_ms: Optional[float] = None
    was_blocked: bool = False
    was_mocked: bool = False
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


@runtime_checkable
class NetworkInterceptor(Protocol):
    @property
    def is_network_logging_enabled(self) -> bool: ...

    async def mock_response(self, url_pattern: str, response: MockResponse) -> None: ...

    async def block_request(self, url_pattern: str) -> None: ...

    async def intercept_request(self, url_pattern: str) -> None: ...

    async def set_network_logging(self, enabled: bool) -> None: ...

    async def get_network_logs(self) -> list[NetworkLogEntry]: ...

    async def clear_interceptions(self) -> None: ...

    async def clear_network_logs(self) -> None: ...


@runtime_checkable
class BrowserDriver(Protocol):
    """Everything the tool handlers ask of a browser.

    Implementations raise ``DriverError`` (or ``TimeoutError``) for browser
    failures so the engine can classify them.
    """

    async def navigate(self, url: str, wait_until: str = "load") -> None: ...

    async def click(self, selector: str) -> None: ...

    async def type_text(self, selector: str, text: str) -> None: ...

    async def get_text(self, selector: str) -> str: ...

    async def take_screenshot(self) -> bytes: ...

    async def take_full_page_screenshot(self) -> bytes: ...

    async def take_viewport_screenshot(self) -> bytes: ...

    async def take_element_screenshot(self, selector: str) -> bytes: ...

    async def take_region_screenshot(self, region: ScreenshotRegion) -> bytes: ...

    async def wait_for_element(self, selector: str, timeout_ms: int) -> None: ...

    async def get_page_state(self) -> PageState: ...

    async def get_page_html(self) -> str: ...

    async def set_device_emulation(self, device: DeviceProfile) -> None: ...

    async def set_geolocation(self, latitude: float, longitude: float, accuracy: Optional[float] = None) -> None: ...

    async def set_timezone(self, timezone_id: str) -> None: ...

    async def set_locale(self, locale: str) -> None: ...

    async def grant_permissions(self, permissions: list[str]) -> None: ...

    async def clear_permissions(self) -> None: ...

    def get_network_interceptor(self) -> Optional[NetworkInterceptor]: ...
