"""Playwright adapter for the BrowserDriver protocol."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from playwright.async_api import BrowserContext, Error as PlaywrightError, Page, Request, Response, Route
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright

from resilient_qa.driver.base import MockResponse, NetworkLogEntry
from resilient_qa.driver.presets import DeviceProfile
from resilient_qa.executor.errors import DriverError
from resilient_qa.models.config import BrowserConfig
from resilient_qa.models.page_state import BoundingBox, ElementInfo, PageState
from resilient_qa.models.visual import ScreenshotRegion

logger = logging.getLogger(__name__)

_EXTRACT_ELEMENTS_JS = """() => {
    const interactiveTags = new Set([
        'a', 'button', 'input', 'select', 'textarea', 'details', 'summary', 'label'
    ]);
    const interactiveRoles = new Set([
        'button', 'link', 'textbox', 'checkbox', 'radio', 'combobox',
        'listbox', 'menuitem', 'tab', 'switch', 'slider'
    ]);

    function getSelector(el) {
        if (el.dataset && el.dataset.testid) return `[data-testid="${el.dataset.testid}"]`;
        if (el.id) return `#${CSS.escape(el.id)}`;
        if (el.name && ['input', 'select', 'textarea'].includes(el.tagName.toLowerCase())) {
            return `${el.tagName.toLowerCase()}[name="${el.name}"]`;
        }
        if (el.getAttribute('aria-label')) {
            return `[aria-label="${el.getAttribute('aria-label')}"]`;
        }
        let sel = el.tagName.toLowerCase();
        if (el.className && typeof el.className === 'string') {
            const cls = el.className.trim().split(/\\s+/).slice(0, 2).join('.');
            if (cls) sel += '.' + cls;
        }
        return sel;
    }

    const results = [];
    for (const el of document.querySelectorAll('*')) {
        const tag = el.tagName.toLowerCase();
        const role = el.getAttribute('role') || '';
        const isInteractive = interactiveTags.has(tag) ||
            interactiveRoles.has(role) ||
            el.onclick || el.getAttribute('onclick') ||
            el.getAttribute('tabindex') === '0';
        if (!isInteractive) continue;

        const rect = el.getBoundingClientRect();
        const style = window.getComputedStyle(el);
        const visible = rect.width > 0 && rect.height > 0 &&
            style.visibility !== 'hidden' && style.display !== 'none';

        const attrs = {};
        for (const attr of el.attributes) {
            if (attr.name === 'style') continue;
            attrs[attr.name] = attr.value;
        }

        results.push({
            tag_name: tag,
            selector: getSelector(el),
            text: (el.innerText || el.textContent || '').trim().substring(0, 200),
            attributes: attrs,
            bounding_box: {x: rect.x, y: rect.y, width: rect.width, height: rect.height},
            is_visible: visible,
            is_interactable: visible && !el.disabled && style.pointerEvents !== 'none',
        });
    }
    return results;
}"""


@asynccontextmanager
async def _driver_errors(action: str, selector: Optional[str] = None) -> AsyncIterator[None]:
    """Re-raise Playwright failures as DriverError with a classifiable message."""
    try:
        yield
    except PlaywrightTimeoutError as e:
        if selector:
            raise DriverError(f"Timeout waiting for selector '{selector}' during {action}: {e}", selector) from e
        raise DriverError(f"Timeout during {action}: {e}") from e
    except PlaywrightError as e:
        raise DriverError(f"{action} failed: {e}", selector) from e


class PlaywrightNetworkInterceptor:
    """Request mocking, blocking and logging on top of ``page.route``."""

    def __init__(self, page: Page):
        self.page = page
        self._patterns: list[str] = []
        self._logs: list[NetworkLogEntry] = []
        self._logging = False

    @property
    def is_network_logging_enabled(self) -> bool:
        return self._logging

    def _log(
        self,
        request: Request,
        status: Optional[int] = None,
        blocked: bool = False,
        mocked: bool = False,
        duration_ms: Optional[float] = None,
    ) -> None:
        if not self._logging:
            return
        self._logs.append(
            NetworkLogEntry(
                url=request.url,
                method=request.method,
                status_code=status,
                resource_type=request.resource_type,
                duration_ms=duration_ms,
                was_blocked=blocked,
                was_mocked=mocked,
            )
        )

    def _on_response(self, response: Response) -> None:
        request = response.request
        duration = (request.timing or {}).get("responseEnd")
        if duration is not None and duration < 0:
            duration = None
        self._log(request, status=response.status, duration_ms=duration)

    async def _route(self, url_pattern: str, handler) -> None:
        async with _driver_errors("route"):
            await self.page.route(url_pattern, handler)
        self._patterns.append(url_pattern)

    async def mock_response(self, url_pattern: str, response: MockResponse) -> None:
        async def fulfill(route: Route) -> None:
            if response.delay_ms:
                await asyncio.sleep(response.delay_ms / 1000)
            await route.fulfill(
                status=response.status,
                body=response.body or "",
                content_type=response.content_type,
                headers=response.headers or None,
            )
            self._log(route.request, status=response.status, mocked=True)

        await self._route(url_pattern, fulfill)
        logger.info("Mocking %s with status %d", url_pattern, response.status)

    async def block_request(self, url_pattern: str) -> None:
        async def abort(route: Route) -> None:
            await route.abort()
            self._log(route.request, blocked=True)

        await self._route(url_pattern, abort)
        logger.info("Blocking requests matching %s", url_pattern)

    async def intercept_request(self, url_pattern: str) -> None:
        async def passthrough(route: Route) -> None:
            await route.continue_()

        await self._route(url_pattern, passthrough)

    async def set_network_logging(self, enabled: bool) -> None:
        if enabled and not self._logging:
            self.page.on("response", self._on_response)
        elif not enabled and self._logging:
            self.page.remove_listener("response", self._on_response)
        self._logging = enabled

    async def get_network_logs(self) -> list[NetworkLogEntry]:
        return list(self._logs)

    async def clear_interceptions(self) -> None:
        async with _driver_errors("unroute"):
            for pattern in self._patterns:
                await self.page.unroute(pattern)
        self._patterns.clear()

    async def clear_network_logs(self) -> None:
        self._logs.clear()


class PlaywrightBrowserDriver:
    """BrowserDriver backed by one Playwright page and its context."""

    def __init__(self, page: Page, context: Optional[BrowserContext] = None, timeout_ms: int = 30000):
        self.page = page
        self.context = context or page.context
        self.timeout_ms = timeout_ms
        self._interceptor: Optional[PlaywrightNetworkInterceptor] = None

    async def navigate(self, url: str, wait_until: str = "load") -> None:
        logger.debug("Navigating to %s (wait_until=%s)", url, wait_until)
        async with _driver_errors("navigate"):
            await self.page.goto(url, wait_until=wait_until, timeout=self.timeout_ms)

    async def click(self, selector: str) -> None:
        async with _driver_errors("click", selector):
            await self.page.click(selector, timeout=self.timeout_ms)

    async def type_text(self, selector: str, text: str) -> None:
        async with _driver_errors("type", selector):
            await self.page.fill(selector, text, timeout=self.timeout_ms)

    async def get_text(self, selector: str) -> str:
        async with _driver_errors("get_text", selector):
            return await self.page.inner_text(selector, timeout=self.timeout_ms)

    async def take_screenshot(self) -> bytes:
        return await self.take_viewport_screenshot()

    async def take_full_page_screenshot(self) -> bytes:
        async with _driver_errors("screenshot"):
            return await self.page.screenshot(full_page=True, type="png")

    async def take_viewport_screenshot(self) -> bytes:
        async with _driver_errors("screenshot"):
            return await self.page.screenshot(full_page=False, type="png")

    async def take_element_screenshot(self, selector: str) -> bytes:
        async with _driver_errors("element screenshot", selector):
            return await self.page.locator(selector).first.screenshot(type="png", timeout=self.timeout_ms)

    async def take_region_screenshot(self, region: ScreenshotRegion) -> bytes:
        clip = {"x": region.x, "y": region.y, "width": region.width, "height": region.height}
        async with _driver_errors("region screenshot"):
            return await self.page.screenshot(clip=clip, type="png")

    async def wait_for_element(self, selector: str, timeout_ms: int) -> None:
        async with _driver_errors("wait_for_element", selector):
            await self.page.wait_for_selector(selector, state="visible", timeout=timeout_ms)

    async def get_page_state(self) -> PageState:
        async with _driver_errors("get_page_state"):
            raw_elements = await self.page.evaluate(_EXTRACT_ELEMENTS_JS)
            title = await self.page.title()

        elements = []
        for raw in raw_elements:
            box = raw.get("bounding_box")
            elements.append(
                ElementInfo(
                    tag_name=raw.get("tag_name", ""),
                    selector=raw.get("selector", ""),
                    text=raw.get("text", ""),
                    attributes={k: str(v) for k, v in (raw.get("attributes") or {}).items()},
                    bounding_box=BoundingBox(**box) if box else None,
                    is_visible=raw.get("is_visible", True),
                    is_interactable=raw.get("is_interactable", True),
                )
            )
        logger.debug("Extracted %d interactive elements from %s", len(elements), self.page.url)
        return PageState(url=self.page.url, title=title, interactive_elements=elements)

    async def get_page_html(self) -> str:
        async with _driver_errors("get_page_html"):
            return await self.page.content()

    async def set_device_emulation(self, device: DeviceProfile) -> None:
        # Scale factor, touch and mobile mode are fixed at context creation
        async with _driver_errors("set_device_emulation"):
            await self.page.set_viewport_size(
                {"width": device.viewport.width, "height": device.viewport.height}
            )
            await self.page.set_extra_http_headers({"User-Agent": device.user_agent})
        logger.info("Emulating %s (%dx%d)", device.name, device.viewport.width, device.viewport.height)

    async def set_geolocation(self, latitude: float, longitude: float, accuracy: Optional[float] = None) -> None:
        geolocation = {"latitude": latitude, "longitude": longitude}
        if accuracy is not None:
            geolocation["accuracy"] = accuracy
        async with _driver_errors("set_geolocation"):
            await self.context.set_geolocation(geolocation)

    async def _cdp(self, method: str, params: dict) -> None:
        session = await self.context.new_cdp_session(self.page)
        try:
            await session.send(method, params)
        finally:
            await session.detach()

    async def set_timezone(self, timezone_id: str) -> None:
        async with _driver_errors("set_timezone"):
            await self._cdp("Emulation.setTimezoneOverride", {"timezoneId": timezone_id})

    async def set_locale(self, locale: str) -> None:
        async with _driver_errors("set_locale"):
            await self._cdp("Emulation.setLocaleOverride", {"locale": locale})

    async def grant_permissions(self, permissions: list[str]) -> None:
        async with _driver_errors("grant_permissions"):
            await self.context.grant_permissions(permissions)

    async def clear_permissions(self) -> None:
        async with _driver_errors("clear_permissions"):
            await self.context.clear_permissions()

    def get_network_interceptor(self) -> PlaywrightNetworkInterceptor:
        if self._interceptor is None:
            self._interceptor = PlaywrightNetworkInterceptor(self.page)
        return self._interceptor


@asynccontextmanager
async def launch_driver(config: Optional[BrowserConfig] = None, timeout_ms: int = 30000) -> AsyncIterator[PlaywrightBrowserDriver]:
    """Launch Chromium and yield a driver for a fresh page; everything is closed on exit."""
    config = config or BrowserConfig()
    async with async_playwright() as p:
        browser = await p.chromium.launch(headless=config.headless)
        try:
            context = await browser.new_context(
                viewport={"width": config.viewport.width, "height": config.viewport.height},
                user_agent=config.user_agent,
            )
            page = await context.new_page()
            yield PlaywrightBrowserDriver(page, context, timeout_ms=timeout_ms)
        finally:
            await browser.close()
