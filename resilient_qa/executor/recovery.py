"""Error-recovery advisor — consulted between attempts after a transient failure."""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Optional, Protocol

from resilient_qa.ai.client import AIClient
from resilient_qa.ai.prompts.recovery import RECOVERY_SYSTEM_PROMPT, build_recovery_prompt
from resilient_qa.executor.errors import is_selector_error
from resilient_qa.models.tool_call import ToolCall

logger = logging.getLogger(__name__)

MAX_RECOVERY_WAIT_MS = 10_000


class ErrorType(str, Enum):
    NAVIGATION_TIMEOUT = "navigation_timeout"
    SELECTOR_NOT_FOUND = "selector_not_found"
    ELEMENT_NOT_INTERACTABLE = "element_not_interactable"
    NETWORK_ERROR = "network_error"
    JAVASCRIPT_ERROR = "javascript_error"
    UNKNOWN = "unknown"


def classify_error_type(exc: BaseException) -> ErrorType:
    message = str(exc).lower()
    if isinstance(exc, (TimeoutError, asyncio.TimeoutError)) or ("navigation" in message and "timeout" in message):
        return ErrorType.NAVIGATION_TIMEOUT
    if is_selector_error(exc):
        return ErrorType.SELECTOR_NOT_FOUND
    if "not interactable" in message or "not visible" in message or "intercepts pointer" in message:
        return ErrorType.ELEMENT_NOT_INTERACTABLE
    if "net::" in message or "network" in message or "connection" in message:
        return ErrorType.NETWORK_ERROR
    if "javascript" in message or "evaluation failed" in message:
        return ErrorType.JAVASCRIPT_ERROR
    return ErrorType.UNKNOWN


class RecoveryResult:
    def __init__(self, success: bool, actions: Optional[list[str]] = None, reasoning: str = ""):
        self.success = success
        self.actions = actions or []
        self.reasoning = reasoning

    def __repr__(self) -> str:
        return f"RecoveryResult(success={self.success}, actions={self.actions})"


class RecoveryAdvisor(Protocol):
    async def recover(self, error: BaseException, call: ToolCall, attempt: int) -> RecoveryResult: ...


class AIRecoveryAdvisor:
    """Asks Claude whether a failed tool call should be retried now, after a wait, or abandoned.

    A success result lets the engine skip its own backoff before the next
    attempt. The advisor has a call budget; once it is spent every request
    is answered with an unsuccessful result.
    """

    def __init__(self, ai_client: AIClient, max_calls: int = 3):
        self.ai_client = ai_client
        self.max_calls = max_calls
        self._call_count = 0

    def reset(self) -> None:
        self._call_count = 0

    @property
    def budget_remaining(self) -> int:
        return max(0, self.max_calls - self._call_count)

    async def recover(self, error: BaseException, call: ToolCall, attempt: int) -> RecoveryResult:
        if self._call_count >= self.max_calls:
            logger.warning("Recovery budget exhausted")
            return RecoveryResult(False, reasoning="Recovery budget exhausted")

        self._call_count += 1
        error_type = classify_error_type(error)
        logger.info(
            "AI recovery call %d/%d for %s (%s)",
            self._call_count, self.max_calls, call.tool_name, error_type.value,
        )

        user_message = build_recovery_prompt(
            tool_name=call.tool_name,
            parameters=call.parameters,
            error_type=error_type.value,
            error_message=str(error),
            attempt=attempt,
        )
        try:
            data = await asyncio.to_thread(
                self.ai_client.complete_json,
                system_prompt=RECOVERY_SYSTEM_PROMPT,
                user_message=user_message,
                max_tokens=500,
            )
        except Exception as e:
            logger.error("Recovery AI call failed: %s", e)
            return RecoveryResult(False, reasoning=f"Recovery AI call failed: {e}")

        decision = str(data.get("decision", "abort")).lower()
        reasoning = str(data.get("reasoning", ""))
        logger.debug("Recovery decision: %s (%s)", decision, reasoning)

        match decision:
            case "retry":
                return RecoveryResult(True, ["retry"], reasoning)
            case "wait":
                try:
                    wait_ms = int(data.get("wait_ms") or 0)
                except (TypeError, ValueError):
                    wait_ms = 0
                wait_ms = max(0, min(wait_ms, MAX_RECOVERY_WAIT_MS))
                if wait_ms:
                    await asyncio.sleep(wait_ms / 1000)
                return RecoveryResult(True, [f"wait:{wait_ms}ms", "retry"], reasoning)
            case _:
                return RecoveryResult(False, ["abort"], reasoning)
