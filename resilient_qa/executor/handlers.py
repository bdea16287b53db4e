"""Tool handlers — translate ToolCalls into browser-driver calls."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Callable

from pydantic import ValidationError

from resilient_qa.driver.base import BrowserDriver, MockResponse, NetworkInterceptor
from resilient_qa.driver.presets import DEVICE_PRESETS, DeviceProfile, get_device, get_geolocation_preset
from resilient_qa.executor.errors import (
    DriverError,
    TerminalExecutionError,
    ToolNotImplementedError,
    ToolValidationError,
    extract_expected_text,
    is_selector_error,
)
from resilient_qa.executor.tool_registry import ToolKind, ToolRegistry
from resilient_qa.models.config import ExecutorConfig, ViewportConfig
from resilient_qa.models.tool_call import ToolCall
from resilient_qa.models.visual import CheckpointType, ScreenshotRegion, VisualCheckpoint

if TYPE_CHECKING:
    from resilient_qa.executor.executor import ExecutorCapabilities

logger = logging.getLogger(__name__)

_CUSTOM_USER_AGENT = (
    "Mozilla/5.0 (Linux; Android 13) AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/112.0.0.0 Mobile Safari/537.36"
)
_NO_INTERCEPTOR = "Network interceptor not available"


@dataclass
class HandlerContext:
    driver: BrowserDriver
    config: ExecutorConfig
    capabilities: "ExecutorCapabilities"
    registry: ToolRegistry


Handler = Callable[[HandlerContext, ToolCall], Awaitable[Any]]

HANDLERS: dict[ToolKind, Handler] = {}


def _handles(*kinds: ToolKind) -> Callable[[Handler], Handler]:
    def register(fn: Handler) -> Handler:
        for kind in kinds:
            HANDLERS[kind] = fn
        return fn
    return register


# ============================================================================
# Browser tools
# ============================================================================


@_handles(ToolKind.NAVIGATE)
async def navigate(ctx: HandlerContext, call: ToolCall) -> None:
    await ctx.driver.navigate(call.require("url"), wait_until=call.get("wait_until", "load"))


@_handles(ToolKind.CLICK)
async def click(ctx: HandlerContext, call: ToolCall) -> Any:
    selector = call.require("selector")
    try:
        await ctx.driver.click(selector)
        return None
    except DriverError as e:
        healer = ctx.capabilities.healer
        if healer is None or not is_selector_error(e):
            raise
        logger.info("Attempting automatic selector healing for failed selector: %s", selector)

        healed = await _try_heal(ctx, selector)
        if healed is None:
            logger.warning("Selector healing failed for: %s", selector)
            raise

        logger.info(
            "Healed selector found with %s strategy (confidence: %.2f). Retrying click...",
            healed.strategy.value, healed.confidence_score,
        )
        await ctx.driver.click(healed.new_selector)
        return {
            "healed": True,
            "original_selector": selector,
            "healed_selector": healed.new_selector,
            "strategy": healed.strategy.value,
            "confidence": healed.confidence_score,
        }


async def _try_heal(ctx: HandlerContext, selector: str):
    healer = ctx.capabilities.healer
    expected_text = extract_expected_text(selector)
    try:
        page_state = await ctx.driver.get_page_state()
        screenshot = await ctx.driver.take_screenshot()
        return await healer.heal(selector, page_state, expected_text, screenshot or None)
    except asyncio.CancelledError:
        raise
    except Exception as e:
        logger.warning("Selector healing attempt failed for selector %s: %s", selector, e)
        return None


@_handles(ToolKind.TYPE)
async def type_text(ctx: HandlerContext, call: ToolCall) -> None:
    await ctx.driver.type_text(call.require("selector"), str(call.require("text")))


@_handles(ToolKind.CLEAR_INPUT)
async def clear_input(ctx: HandlerContext, call: ToolCall) -> None:
    await ctx.driver.type_text(call.require("selector"), "")


@_handles(ToolKind.GET_TEXT, ToolKind.EXTRACT_TEXT)
async def get_text(ctx: HandlerContext, call: ToolCall) -> str:
    return await ctx.driver.get_text(call.require("selector"))


@_handles(ToolKind.TAKE_SCREENSHOT)
async def take_screenshot(ctx: HandlerContext, call: ToolCall) -> bytes:
    if call.get("full_page", False):
        return await ctx.driver.take_full_page_screenshot()
    return await ctx.driver.take_screenshot()


@_handles(ToolKind.WAIT_FOR_ELEMENT)
async def wait_for_element(ctx: HandlerContext, call: ToolCall) -> None:
    timeout_ms = int(call.get("timeout_ms", ctx.config.effective_action_timeout_ms))
    await ctx.driver.wait_for_element(call.require("selector"), timeout_ms)


@_handles(ToolKind.GET_PAGE_STATE)
async def get_page_state(ctx: HandlerContext, call: ToolCall):
    return await ctx.driver.get_page_state()


@_handles(ToolKind.GET_PAGE_HTML)
async def get_page_html(ctx: HandlerContext, call: ToolCall) -> str:
    return await ctx.driver.get_page_html()


# ============================================================================
# Visual regression
# ============================================================================


def _parse_checkpoint(call: ToolCall) -> VisualCheckpoint:
    checkpoint_type = CheckpointType.parse(str(call.require("checkpoint_type")))
    selector = call.get("selector")

    region = None
    if checkpoint_type == CheckpointType.REGION:
        raw_region = call.get("region")
        if raw_region is None:
            raise ToolValidationError("Parameter 'region' is required for checkpoint_type 'region'")
        try:
            region = ScreenshotRegion.model_validate(raw_region)
        except ValidationError as e:
            raise ToolValidationError(f"Invalid 'region' parameter: {e}") from e

    if checkpoint_type == CheckpointType.ELEMENT and not (selector or "").strip():
        raise ToolValidationError("Parameter 'selector' is required for checkpoint_type 'element'")

    ignore = call.get("ignore_selectors", [])
    if isinstance(ignore, str):
        ignore = [ignore]

    return VisualCheckpoint(
        name=str(call.require("checkpoint_name")),
        type=checkpoint_type,
        selector=selector,
        region=region,
        tolerance=float(call.get("tolerance", 0.01)),
        ignore_selectors=[s for s in ignore if isinstance(s, str) and s.strip()],
    )


async def _capture(driver: BrowserDriver, checkpoint: VisualCheckpoint) -> bytes:
    match checkpoint.type:
        case CheckpointType.FULL_PAGE:
            return await driver.take_full_page_screenshot()
        case CheckpointType.ELEMENT:
            return await driver.take_element_screenshot(checkpoint.selector)
        case CheckpointType.REGION:
            return await driver.take_region_screenshot(checkpoint.region)
        case CheckpointType.VIEWPORT:
            return await driver.take_viewport_screenshot()


@_handles(ToolKind.VISUAL_CHECK)
async def visual_check(ctx: HandlerContext, call: ToolCall) -> dict[str, Any]:
    service = ctx.capabilities.visual_service
    if service is None:
        raise TerminalExecutionError(
            "Visual regression testing is not configured. Pass a visual_service in ExecutorCapabilities."
        )

    checkpoint = _parse_checkpoint(call)
    if ctx.config.enable_detailed_logging:
        logger.info(
            "Executing visual check '%s' (type: %s, tolerance: %.2f%%)",
            checkpoint.name, checkpoint.type.value, checkpoint.tolerance * 100,
        )

    screenshot = await _capture(ctx.driver, checkpoint)
    if ctx.config.enable_detailed_logging:
        logger.debug("Captured screenshot for visual check '%s' (%d bytes)", checkpoint.name, len(screenshot))

    # Decoding and diffing are CPU-bound
    result = await asyncio.to_thread(
        service.compare,
        checkpoint,
        screenshot,
        environment=call.get("environment", "dev"),
        browser=call.get("browser", "chromium"),
        viewport=call.get("viewport", "1920x1080"),
    )
    metrics = result.metrics
    if ctx.config.enable_detailed_logging:
        logger.info(
            "Visual check '%s' completed: %s (difference: %.2f%%, tolerance: %.2f%%)",
            checkpoint.name, "PASSED" if result.passed else "FAILED",
            metrics.difference_percentage * 100, checkpoint.tolerance * 100,
        )

    data: dict[str, Any] = {
        "checkpoint_name": checkpoint.name,
        "passed": result.passed,
        "difference_percentage": metrics.difference_percentage,
        "tolerance": checkpoint.tolerance,
        "pixels_different": metrics.pixels_different,
        "total_pixels": metrics.total_pixels,
        "baseline_path": result.baseline_path,
        "actual_path": result.actual_path,
        "diff_path": result.diff_path,
    }
    if metrics.ssim_score is not None:
        data["ssim_score"] = metrics.ssim_score
    if metrics.difference_type is not None:
        data["difference_type"] = metrics.difference_type.value
    if metrics.error_message:
        data["error_message"] = metrics.error_message
    return data


# ============================================================================
# Device emulation
# ============================================================================


@_handles(ToolKind.SET_DEVICE_EMULATION)
async def set_device_emulation(ctx: HandlerContext, call: ToolCall) -> dict[str, Any]:
    device_name = call.get("device_name")
    if device_name:
        device = get_device(device_name)
        if device is None:
            available = ", ".join(d.name for d in DEVICE_PRESETS.values())
            raise ToolValidationError(f"Unknown device '{device_name}'. Available devices: {available}")
    else:
        width, height = call.get("viewport_width"), call.get("viewport_height")
        if width is None or height is None:
            raise ToolValidationError(
                "Either 'device_name' or both 'viewport_width' and 'viewport_height' must be specified"
            )
        try:
            scale = float(call.get("device_scale_factor", 1.0))
        except (TypeError, ValueError):
            scale = 1.0
        device = DeviceProfile(
            name="Custom Device",
            user_agent=call.get("user_agent", _CUSTOM_USER_AGENT),
            viewport=ViewportConfig(width=int(width), height=int(height), name="custom"),
            device_scale_factor=scale,
            has_touch=bool(call.get("has_touch", True)),
            is_mobile=bool(call.get("is_mobile", True)),
        )

    await ctx.driver.set_device_emulation(device)
    return {
        "device_name": device.name,
        "viewport": f"{device.viewport.width}x{device.viewport.height}",
        "device_scale_factor": device.device_scale_factor,
        "platform": device.platform or "unknown",
    }


@_handles(ToolKind.SET_GEOLOCATION)
async def set_geolocation(ctx: HandlerContext, call: ToolCall) -> dict[str, Any]:
    preset = call.get("preset")
    if preset:
        coords = get_geolocation_preset(preset)
        if coords is None:
            raise ToolValidationError(
                f"Unknown preset location '{preset}'. "
                "Available presets: SanFrancisco, NewYork, London, Tokyo, Sydney, Paris"
            )
        latitude, longitude, accuracy = coords.latitude, coords.longitude, coords.accuracy
    else:
        raw_lat, raw_lon = call.get("latitude"), call.get("longitude")
        if raw_lat in (None, "") or raw_lon in (None, ""):
            raise ToolValidationError("Either 'preset' or both 'latitude' and 'longitude' must be specified")
        latitude = _parse_float(raw_lat, "latitude")
        longitude = _parse_float(raw_lon, "longitude")
        raw_accuracy = call.get("accuracy")
        accuracy = _parse_float(raw_accuracy, "accuracy") if raw_accuracy not in (None, "") else None

    await ctx.driver.set_geolocation(latitude, longitude, accuracy)
    return {"latitude": latitude, "longitude": longitude, "accuracy": accuracy or 0}


def _parse_float(value: Any, name: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ToolValidationError(f"Invalid {name} value: '{value}'") from None


@_handles(ToolKind.SET_TIMEZONE)
async def set_timezone(ctx: HandlerContext, call: ToolCall) -> dict[str, Any]:
    timezone_id = call.require("timezone_id")
    await ctx.driver.set_timezone(timezone_id)
    return {
        "timezone_id": timezone_id,
        "warning": "Timezone changes after context creation have limited support in Playwright",
    }


@_handles(ToolKind.SET_LOCALE)
async def set_locale(ctx: HandlerContext, call: ToolCall) -> dict[str, Any]:
    locale = call.require("locale")
    await ctx.driver.set_locale(locale)
    return {"locale": locale}


@_handles(ToolKind.GRANT_PERMISSIONS)
async def grant_permissions(ctx: HandlerContext, call: ToolCall) -> dict[str, Any]:
    raw = call.require("permissions")
    if not isinstance(raw, (list, tuple)):
        raise ToolValidationError("Parameter 'permissions' must be an array of strings")
    permissions = [p for p in raw if isinstance(p, str) and p.strip()]
    if not permissions:
        raise ToolValidationError("At least one permission must be specified")

    await ctx.driver.grant_permissions(permissions)
    return {"granted_permissions": permissions, "count": len(permissions)}


@_handles(ToolKind.CLEAR_PERMISSIONS)
async def clear_permissions(ctx: HandlerContext, call: ToolCall) -> dict[str, Any]:
    await ctx.driver.clear_permissions()
    return {"message": "All permissions cleared successfully"}


# ============================================================================
# Network interception
# ============================================================================


def _parse_headers(raw: Any) -> dict[str, str]:
    if isinstance(raw, dict):
        return {str(k): str(v) for k, v in raw.items()}
    headers = {}
    for item in raw or []:
        if isinstance(item, str) and ":" in item:
            name, value = item.split(":", 1)
            headers[name.strip()] = value.strip()
    return headers


@_handles(ToolKind.MOCK_RESPONSE)
async def mock_response(ctx: HandlerContext, call: ToolCall) -> dict[str, Any]:
    interceptor = ctx.driver.get_network_interceptor()
    if interceptor is None:
        return {"error": _NO_INTERCEPTOR}

    url_pattern = call.require("url_pattern")
    status = int(call.get("status", 200))
    delay_ms = int(call.get("delay_ms", 0))
    response = MockResponse(
        status=status,
        body=call.get("body"),
        content_type=call.get("content_type", "application/json"),
        headers=_parse_headers(call.get("headers")),
        delay_ms=max(delay_ms, 0),
    )
    await interceptor.mock_response(url_pattern, response)
    return {
        "pattern": url_pattern,
        "status": status,
        "delay_ms": delay_ms,
        "message": f"Mock response configured for pattern: {url_pattern}",
    }


@_handles(ToolKind.BLOCK_REQUEST)
async def block_request(ctx: HandlerContext, call: ToolCall) -> dict[str, Any]:
    interceptor = ctx.driver.get_network_interceptor()
    if interceptor is None:
        return {"error": _NO_INTERCEPTOR}

    url_pattern = call.require("url_pattern")
    await interceptor.block_request(url_pattern)
    return {"pattern": url_pattern, "message": f"Requests matching '{url_pattern}' will be blocked"}


async def _apply_interception(interceptor: NetworkInterceptor, url_pattern: str, action: str) -> None:
    match action.lower():
        case "abort" | "block":
            await interceptor.block_request(url_pattern)
        case "fulfill" | "mock":
            await interceptor.mock_response(url_pattern, MockResponse(status=200, body="{}"))
        case _:
            await interceptor.intercept_request(url_pattern)


@_handles(ToolKind.INTERCEPT_REQUEST)
async def intercept_request(ctx: HandlerContext, call: ToolCall) -> dict[str, Any]:
    interceptor = ctx.driver.get_network_interceptor()
    if interceptor is None:
        return {"error": _NO_INTERCEPTOR}

    url_pattern = call.require("url_pattern")
    action = str(call.get("action", "continue"))
    await _apply_interception(interceptor, url_pattern, action)
    return {
        "pattern": url_pattern,
        "action": action,
        "message": f"Request interception configured for pattern: {url_pattern} (action: {action})",
    }


@_handles(ToolKind.GET_NETWORK_LOGS)
async def get_network_logs(ctx: HandlerContext, call: ToolCall) -> dict[str, Any]:
    interceptor = ctx.driver.get_network_interceptor()
    if interceptor is None:
        return {"error": _NO_INTERCEPTOR, "logs": []}

    if call.get("enable_logging", True) and not interceptor.is_network_logging_enabled:
        await interceptor.set_network_logging(True)

    logs = await interceptor.get_network_logs()
    return {
        "count": len(logs),
        "logs": [
            {
                "url": log.url,
                "method": log.method,
                "status_code": log.status_code or 0,
                "resource_type": log.resource_type or "unknown",
                "duration_ms": log.duration_ms or 0,
                "was_blocked": log.was_blocked,
                "was_mocked": log.was_mocked,
                "timestamp": log.timestamp.isoformat(),
            }
            for log in logs
        ],
    }


@_handles(ToolKind.CLEAR_INTERCEPTIONS)
async def clear_interceptions(ctx: HandlerContext, call: ToolCall) -> dict[str, Any]:
    interceptor = ctx.driver.get_network_interceptor()
    if interceptor is None:
        return {"message": _NO_INTERCEPTOR}

    clear_logs = bool(call.get("clear_logs", False))
    await interceptor.clear_interceptions()
    if clear_logs:
        await interceptor.clear_network_logs()
    return {"message": "All network interceptions cleared", "logs_cleared": clear_logs}


# ============================================================================
# Declared, not yet executable
# ============================================================================


@_handles(
    ToolKind.EXTRACT_TABLE,
    ToolKind.WAIT_FOR_URL_CHANGE,
    ToolKind.SELECT_OPTION,
    ToolKind.SUBMIT_FORM,
    ToolKind.VERIFY_ELEMENT_EXISTS,
)
async def not_implemented(ctx: HandlerContext, call: ToolCall) -> None:
    raise ToolNotImplementedError(f"Tool '{call.tool_name}' is not yet implemented")
