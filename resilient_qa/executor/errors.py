"""Error taxonomy and transient/terminal classification for tool execution."""

from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass
from typing import Optional, Union


class ToolExecutionError(Exception):
    """Base class for errors raised inside the execution engine."""


class ToolValidationError(ToolExecutionError):
    """Unknown tool or missing/invalid parameter. Never retried."""


class TransientExecutionError(ToolExecutionError):
    """An error expected to clear up on retry."""


class TerminalExecutionError(ToolExecutionError):
    """An error that will recur on retry; aborts the attempt loop."""


class ToolNotImplementedError(NotImplementedError):
    pass


class DriverError(Exception):
    """Raised by browser-driver adapters; classified by its message."""

    def __init__(self, message: str, selector: Optional[str] = None):
        super().__init__(message)
        self.selector = selector


TRANSIENT_MESSAGE_PATTERNS = (
    "timeout",
    "not attached",
    "not visible",
    "not interactable",
    "stale",
    "element not found",
)

SELECTOR_ERROR_PATTERNS = (
    "css selector",
    "xpath",
    "no such element",
    "unable to locate element",
    "element not found",
    "element is not attached to the page document",
    "timeout waiting for selector",
    "timeout waiting for element",
    "waiting for selector",
    "waiting for element",
)


@dataclass(frozen=True)
class Transient:
    reason: str


@dataclass(frozen=True)
class Terminal:
    cause: BaseException


@dataclass(frozen=True)
class Cancelled:
    pass


ErrorClassification = Union[Transient, Terminal, Cancelled]


def _describe(exc: BaseException) -> str:
    message = str(exc)
    return f"{type(exc).__name__}: {message}" if message else type(exc).__name__


def classify_error(exc: BaseException) -> ErrorClassification:
    """Decide whether an attempt error is worth retrying.

    Driver errors that fall through the type checks are matched against
    TRANSIENT_MESSAGE_PATTERNS; anything unrecognised is terminal.
    """
    if isinstance(exc, asyncio.CancelledError):
        return Cancelled()
    if isinstance(exc, (TimeoutError, asyncio.TimeoutError)):
        return Transient(f"Timeout: {exc}" if str(exc) else "Timeout")
    if isinstance(exc, TransientExecutionError):
        return Transient(_describe(exc))
    if isinstance(
        exc,
        (ToolValidationError, TerminalExecutionError, ValueError, TypeError, KeyError, NotImplementedError),
    ):
        return Terminal(exc)

    message = str(exc).lower()
    if any(pattern in message for pattern in TRANSIENT_MESSAGE_PATTERNS):
        return Transient(_describe(exc))
    return Terminal(exc)


def is_selector_error(exc: BaseException) -> bool:
    """True when an error message indicates the selector no longer resolves."""
    message = str(exc).lower()
    return any(pattern in message for pattern in SELECTOR_ERROR_PATTERNS)


_EXPECTED_TEXT_PATTERNS = (
    re.compile(r""":contains\(['"]([^'"]+)['"]\)"""),
    re.compile(r""":has-text\(['"]([^'"]+)['"]\)"""),
    re.compile(r"""\[text=['"]([^'"]+)['"]\]"""),
)


def extract_expected_text(selector: str) -> Optional[str]:
    """Pull the text a text-based selector was looking for, if any."""
    for pattern in _EXPECTED_TEXT_PATTERNS:
        match = pattern.search(selector)
        if match:
            return match.group(1)
    return None
