"""Tool registry — tool kinds and their parameter schemas."""

from __future__ import annotations

from enum import Enum
from typing import Any, Iterable, Mapping, Optional

from pydantic import BaseModel, Field


class ToolKind(str, Enum):
    NAVIGATE = "navigate"
    CLICK = "click"
    TYPE = "type"
    CLEAR_INPUT = "clear_input"
    GET_TEXT = "get_text"
    EXTRACT_TEXT = "extract_text"
    TAKE_SCREENSHOT = "take_screenshot"
    WAIT_FOR_ELEMENT = "wait_for_element"
    GET_PAGE_STATE = "get_page_state"
    GET_PAGE_HTML = "get_page_html"
    VISUAL_CHECK = "visual_check"

    SET_DEVICE_EMULATION = "set_device_emulation"
    SET_GEOLOCATION = "set_geolocation"
    SET_TIMEZONE = "set_timezone"
    SET_LOCALE = "set_locale"
    GRANT_PERMISSIONS = "grant_permissions"
    CLEAR_PERMISSIONS = "clear_permissions"

    MOCK_RESPONSE = "mock_response"
    BLOCK_REQUEST = "block_request"
    INTERCEPT_REQUEST = "intercept_request"
    GET_NETWORK_LOGS = "get_network_logs"
    CLEAR_INTERCEPTIONS = "clear_interceptions"

    # Declared for planners but not executable yet
    EXTRACT_TABLE = "extract_table"
    WAIT_FOR_URL_CHANGE = "wait_for_url_change"
    SELECT_OPTION = "select_option"
    SUBMIT_FORM = "submit_form"
    VERIFY_ELEMENT_EXISTS = "verify_element_exists"


class ParameterDef(BaseModel):
    type: str
    required: bool = False
    description: str = ""
    default: Any = None


class ToolDefinition(BaseModel):
    name: str
    description: str
    parameters: dict[str, ParameterDef] = Field(default_factory=dict)

    @property
    def kind(self) -> ToolKind:
        return ToolKind(self.name)

    @property
    def required_parameters(self) -> list[str]:
        return [name for name, p in self.parameters.items() if p.required]


def missing_required_parameters(definition: ToolDefinition, parameters: Mapping[str, Any]) -> list[str]:
    """Names of required parameters that are absent or None, in schema order."""
    return [name for name in definition.required_parameters if parameters.get(name) is None]


class ToolRegistry:
    """Case-insensitive lookup of tool definitions."""

    def __init__(self, definitions: Iterable[ToolDefinition]):
        self._tools: dict[str, ToolDefinition] = {d.name.lower(): d for d in definitions}

    def get(self, name: str) -> Optional[ToolDefinition]:
        return self._tools.get(name.lower())

    def exists(self, name: str) -> bool:
        return name.lower() in self._tools

    def names(self) -> list[str]:
        return [d.name for d in self._tools.values()]

    def definitions(self) -> list[ToolDefinition]:
        return list(self._tools.values())

    def as_llm_tools(self) -> list[dict[str, Any]]:
        """Definitions in the JSON-schema shape used for LLM tool calling."""
        tools = []
        for d in self._tools.values():
            tools.append(
                {
                    "name": d.name,
                    "description": d.description,
                    "input_schema": {
                        "type": "object",
                        "properties": {
                            name: {"type": p.type, "description": p.description, "default": p.default}
                            for name, p in d.parameters.items()
                        },
                        "required": d.required_parameters,
                    },
                }
            )
        return tools


def _p(type_: str, required: bool, description: str, default: Any = None) -> ParameterDef:
    return ParameterDef(type=type_, required=required, description=description, default=default)


_SELECTOR = "CSS selector identifying the element"

_DEFINITIONS = [
    ToolDefinition(
        name="navigate",
        description="Navigate the browser to a URL.",
        parameters={
            "url": _p("string", True, "The URL to navigate to (including protocol)"),
            "wait_until": _p("string", False, "'load', 'domcontentloaded' or 'networkidle'", "load"),
        },
    ),
    ToolDefinition(
        name="click",
        description="Click an element identified by a CSS selector.",
        parameters={"selector": _p("string", True, _SELECTOR)},
    ),
    ToolDefinition(
        name="type",
        description="Type text into an input, textarea or contenteditable element.",
        parameters={
            "selector": _p("string", True, _SELECTOR),
            "text": _p("string", True, "The text to type"),
        },
    ),
    ToolDefinition(
        name="clear_input",
        description="Clear all text from an input field or textarea.",
        parameters={"selector": _p("string", True, _SELECTOR)},
    ),
    ToolDefinition(
        name="get_text",
        description="Read the visible text of an element.",
        parameters={"selector": _p("string", True, _SELECTOR)},
    ),
    ToolDefinition(
        name="extract_text",
        description="Extract visible text content from an element.",
        parameters={"selector": _p("string", True, _SELECTOR)},
    ),
    ToolDefinition(
        name="take_screenshot",
        description="Capture a PNG screenshot of the current page.",
        parameters={"full_page": _p("boolean", False, "Capture the full scrollable page", False)},
    ),
    ToolDefinition(
        name="wait_for_element",
        description="Wait for an element to appear and become visible.",
        parameters={
            "selector": _p("string", True, _SELECTOR),
            "timeout_ms": _p("int", False, "Maximum time to wait in milliseconds"),
        },
    ),
    ToolDefinition(
        name="get_page_state",
        description="Get the URL, title and interactive elements of the current page.",
    ),
    ToolDefinition(
        name="get_page_html",
        description="Get the full HTML of the current page.",
    ),
    ToolDefinition(
        name="visual_check",
        description="Compare a screenshot against the stored baseline for a named checkpoint.",
        parameters={
            "checkpoint_name": _p("string", True, "Unique checkpoint name"),
            "checkpoint_type": _p("string", True, "'full_page', 'viewport', 'element' or 'region'"),
            "tolerance": _p("number", False, "Allowed fraction of differing pixels", 0.01),
            "selector": _p("string", False, "Element selector (element checkpoints)"),
            "region": _p("object", False, "{x, y, width, height} (region checkpoints)"),
            "ignore_selectors": _p("array", False, "Selectors to ignore during comparison"),
            "environment": _p("string", False, "Baseline environment", "dev"),
            "browser": _p("string", False, "Baseline browser", "chromium"),
            "viewport": _p("string", False, "Baseline viewport", "1920x1080"),
        },
    ),
    ToolDefinition(
        name="set_device_emulation",
        description="Emulate a device preset or a custom viewport.",
        parameters={
            "device_name": _p("string", False, "Preset name, e.g. 'iPhone 14 Pro'"),
            "viewport_width": _p("int", False, "Custom viewport width"),
            "viewport_height": _p("int", False, "Custom viewport height"),
            "user_agent": _p("string", False, "Custom user agent"),
            "device_scale_factor": _p("number", False, "Device pixel ratio", 1.0),
            "has_touch": _p("boolean", False, "Touch support", True),
            "is_mobile": _p("boolean", False, "Mobile mode", True),
        },
    ),
    ToolDefinition(
        name="set_geolocation",
        description="Set the browser geolocation from a preset or coordinates.",
        parameters={
            "preset": _p("string", False, "sanfrancisco, newyork, london, tokyo, sydney or paris"),
            "latitude": _p("number", False, "Latitude in degrees"),
            "longitude": _p("number", False, "Longitude in degrees"),
            "accuracy": _p("number", False, "Accuracy in meters"),
        },
    ),
    ToolDefinition(
        name="set_timezone",
        description="Set the browser timezone.",
        parameters={"timezone_id": _p("string", True, "IANA timezone, e.g. 'Europe/London'")},
    ),
    ToolDefinition(
        name="set_locale",
        description="Set the browser locale.",
        parameters={"locale": _p("string", True, "BCP 47 locale, e.g. 'fr-FR'")},
    ),
    ToolDefinition(
        name="grant_permissions",
        description="Grant browser permissions such as geolocation or notifications.",
        parameters={"permissions": _p("array", True, "Permission names")},
    ),
    ToolDefinition(
        name="clear_permissions",
        description="Revoke all granted permissions.",
    ),
    ToolDefinition(
        name="mock_response",
        description="Serve a canned response for requests matching a URL pattern.",
        parameters={
            "url_pattern": _p("string", True, "Glob pattern of URLs to mock"),
            "status": _p("int", False, "HTTP status", 200),
            "body": _p("string", False, "Response body"),
            "content_type": _p("string", False, "Content type", "application/json"),
            "headers": _p("array", False, "Headers as 'Name: value' strings"),
            "delay_ms": _p("int", False, "Artificial latency", 0),
        },
    ),
    ToolDefinition(
        name="block_request",
        description="Abort requests matching a URL pattern.",
        parameters={"url_pattern": _p("string", True, "Glob pattern of URLs to block")},
    ),
    ToolDefinition(
        name="intercept_request",
        description="Intercept requests matching a URL pattern.",
        parameters={
            "url_pattern": _p("string", True, "Glob pattern of URLs to intercept"),
            "action": _p("string", False, "'continue', 'block' or 'mock'", "continue"),
        },
    ),
    ToolDefinition(
        name="get_network_logs",
        description="Return captured network requests.",
        parameters={"enable_logging": _p("boolean", False, "Enable logging if it is off", True)},
    ),
    ToolDefinition(
        name="clear_interceptions",
        description="Remove all request interceptions.",
        parameters={"clear_logs": _p("boolean", False, "Also clear captured logs", False)},
    ),
    ToolDefinition(
        name="extract_table",
        description="Extract structured data from an HTML table.",
        parameters={"selector": _p("string", True, _SELECTOR)},
    ),
    ToolDefinition(
        name="wait_for_url_change",
        description="Wait for the page URL to change.",
        parameters={
            "expected_url": _p("string", False, "Exact URL to wait for"),
            "timeout_ms": _p("int", False, "Maximum wait in milliseconds", 30000),
        },
    ),
    ToolDefinition(
        name="select_option",
        description="Select an option from a dropdown.",
        parameters={
            "selector": _p("string", True, _SELECTOR),
            "value": _p("string", False, "Option value"),
        },
    ),
    ToolDefinition(
        name="submit_form",
        description="Submit a form.",
        parameters={"selector": _p("string", True, _SELECTOR)},
    ),
    ToolDefinition(
        name="verify_element_exists",
        description="Check whether an element exists on the page.",
        parameters={"selector": _p("string", True, _SELECTOR)},
    ),
]

DEFAULT_REGISTRY = ToolRegistry(_DEFINITIONS)
