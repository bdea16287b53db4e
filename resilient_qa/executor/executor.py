"""Tool executor — runs ToolCalls with validation, retries, fallbacks and telemetry."""

from __future__ import annotations

import asyncio
import logging
import random
import time
from dataclasses import dataclass
from typing import Any, Optional, Sequence

from resilient_qa.driver.base import BrowserDriver
from resilient_qa.executor.errors import (
    Cancelled,
    Terminal,
    ToolNotImplementedError,
    ToolValidationError,
    Transient,
    classify_error,
)
from resilient_qa.executor.handlers import HANDLERS, Handler, HandlerContext
from resilient_qa.executor.history import ExecutionHistory
from resilient_qa.executor.recovery import RecoveryAdvisor
from resilient_qa.executor.retry import calculate_backoff_delay
from resilient_qa.executor.tool_registry import DEFAULT_REGISTRY, ToolKind, ToolRegistry, missing_required_parameters
from resilient_qa.healing.healer import SelectorHealer
from resilient_qa.models.config import ExecutorConfig
from resilient_qa.models.tool_call import ToolCall, ToolExecutionResult
from resilient_qa.telemetry import Observability, get_observability
from resilient_qa.visual.service import VisualComparisonService

logger = logging.getLogger(__name__)


@dataclass
class ExecutorCapabilities:
    """Optional collaborators; a missing one disables the feature that needs it."""

    healer: Optional[SelectorHealer] = None
    visual_service: Optional[VisualComparisonService] = None
    recovery_advisor: Optional[RecoveryAdvisor] = None


class ToolExecutor:
    """Executes browser tool calls against a driver.

    Each call gets up to ``max_retries + 1`` attempts. Transient failures are
    retried after a backoff delay (or straight away when the recovery
    advisor reports it fixed something); terminal failures end the call
    immediately. Cancellation of the calling task is never converted into a
    result.
    """

    def __init__(
        self,
        driver: BrowserDriver,
        config: Optional[ExecutorConfig] = None,
        capabilities: Optional[ExecutorCapabilities] = None,
        registry: ToolRegistry = DEFAULT_REGISTRY,
        observability: Optional[Observability] = None,
        rng: Optional[random.Random] = None,
    ):
        self.config = (config or ExecutorConfig()).check()
        self.capabilities = capabilities or ExecutorCapabilities()
        self.registry = registry
        self.observability = observability or get_observability()
        self._rng = rng or random.Random()
        self._history = ExecutionHistory(self.config.max_history_size)
        self._ctx = HandlerContext(
            driver=driver,
            config=self.config,
            capabilities=self.capabilities,
            registry=registry,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def execute(self, call: ToolCall) -> ToolExecutionResult:
        obs = self.observability
        tags = {"tool.name": call.tool_name, "tool.correlation_id": call.correlation_id}

        with obs.tracer.start_span("ExecuteTool", **tags) as span:
            obs.active_executions.add(1)
            try:
                result = await self._execute(call)
            finally:
                obs.active_executions.add(-1)

            span.set_tag("tool.attempt_count", result.attempt_count)
            span.set_tag("tool.retried", result.attempt_count > 1)
            if not result.success:
                span.status = "error"
                span.set_tag("error.type", result.metadata.get("error_type", "unknown"))

        status = "success" if result.success else "failure"
        obs.executions_total.add(1, tool=call.tool_name, status=status)
        obs.execution_duration_ms.record(result.execution_duration_ms, tool=call.tool_name, status=status)
        self._history.record(call.correlation_id, result)
        return result

    async def execute_sequence(self, calls: Sequence[ToolCall]) -> list[ToolExecutionResult]:
        """Run calls in order, stopping after the first failure (which is included)."""
        if not calls:
            raise ValueError("Tool call sequence must contain at least one call")

        results: list[ToolExecutionResult] = []
        with self.observability.tracer.start_span("ExecuteToolSequence", **{"sequence.length": len(calls)}) as span:
            for index, call in enumerate(calls):
                result = await self.execute(call)
                results.append(result)
                if not result.success:
                    logger.warning(
                        "Sequence stopped at call %d/%d (%s): %s",
                        index + 1, len(calls), call.tool_name, result.error_message,
                    )
                    span.status = "error"
                    span.set_tag("sequence.failed_index", index)
                    break
            span.set_tag("sequence.completed", len(results))

        self._detail(
            "Sequence finished: %d/%d calls executed, %d succeeded",
            len(results), len(calls), sum(1 for r in results if r.success),
        )
        return results

    async def execute_with_fallback(
        self,
        primary: ToolCall,
        fallbacks: Optional[Sequence[ToolCall]] = None,
    ) -> ToolExecutionResult:
        fallbacks = list(fallbacks or [])
        tags = {"tool.name": primary.tool_name, "fallback.count": len(fallbacks)}

        with self.observability.tracer.start_span("ExecuteToolWithFallback", **tags) as span:
            primary_result = await self.execute(primary)
            if primary_result.success or not fallbacks:
                return primary_result

            logger.info(
                "Primary tool '%s' failed; trying %d fallback(s)", primary.tool_name, len(fallbacks),
            )
            for index, fallback in enumerate(fallbacks):
                result = await self.execute(fallback)
                if result.success:
                    logger.info("Fallback %d ('%s') succeeded", index, fallback.tool_name)
                    span.set_tag("fallback.used_index", index)
                    return result.with_metadata(
                        fallback_used=True,
                        fallback_index=index,
                        primary_tool=primary.tool_name,
                        primary_error=primary_result.error_message,
                    )
                self._detail("Fallback %d ('%s') failed: %s", index, fallback.tool_name, result.error_message)

            logger.warning("Primary tool '%s' and all %d fallbacks failed", primary.tool_name, len(fallbacks))
            span.status = "error"
            return primary_result.with_metadata(
                fallback_attempted=True,
                fallback_count=len(fallbacks),
                all_fallbacks_failed=True,
            )

    def validate_tool_call(self, call: ToolCall) -> bool:
        return self._validation_error(call) is None

    def get_execution_history(self, correlation_id: str) -> list[ToolExecutionResult]:
        return self._history.get(correlation_id)

    # ------------------------------------------------------------------
    # Attempt loop
    # ------------------------------------------------------------------

    async def _execute(self, call: ToolCall) -> ToolExecutionResult:
        started = time.perf_counter()
        base_metadata: dict[str, Any] = {"correlation_id": call.correlation_id, "reasoning": call.reasoning}

        problem = self._validation_error(call)
        if problem is not None:
            logger.warning("Tool call validation failed: %s", problem)
            return ToolExecutionResult.failed(
                call.tool_name,
                ToolValidationError(problem),
                _elapsed_ms(started),
                attempt_count=1,
                metadata={
                    **base_metadata,
                    "validation_error": True,
                    "error_type": ToolValidationError.__name__,
                    "error_message": problem,
                },
            )

        handler = self._handler_for(call.tool_name)
        max_attempts = self.config.max_attempts
        timeout_s = self.config.timeout_per_tool_ms / 1000
        retry_reasons: list[str] = []
        retry_delays: list[int] = []
        last_error: Optional[BaseException] = None
        terminal = False
        attempt = 0

        while attempt < max_attempts:
            attempt += 1
            self._detail(
                "Executing tool '%s' (attempt %d/%d, correlation_id=%s)",
                call.tool_name, attempt, max_attempts, call.correlation_id,
            )
            try:
                value = await asyncio.wait_for(handler(self._ctx, call), timeout=timeout_s)
            except (TimeoutError, asyncio.TimeoutError) as e:
                last_error = e if str(e) else TimeoutError(
                    f"Tool '{call.tool_name}' timed out after {self.config.timeout_per_tool_ms}ms"
                )
            except Exception as e:
                last_error = e
            else:
                metadata = {**base_metadata, "attempt_count": attempt}
                if retry_reasons:
                    metadata["retry_reasons"] = list(retry_reasons)
                    metadata["retry_delays"] = list(retry_delays)
                self._detail("Tool '%s' succeeded on attempt %d", call.tool_name, attempt)
                return ToolExecutionResult.succeeded(
                    call.tool_name, value, _elapsed_ms(started), attempt_count=attempt, metadata=metadata,
                )

            match classify_error(last_error):
                case Cancelled():
                    raise last_error
                case Terminal(cause=cause):
                    logger.error(
                        "Tool '%s' failed with terminal error on attempt %d: %s",
                        call.tool_name, attempt, cause,
                    )
                    terminal = True
                    break
                case Transient(reason=reason):
                    retry_reasons.append(reason)
                    if attempt >= max_attempts:
                        break
                    logger.warning(
                        "Tool '%s' attempt %d/%d failed (%s); retrying",
                        call.tool_name, attempt, max_attempts, reason,
                    )
                    retry_delays.append(await self._wait_before_retry(call, last_error, attempt))

        if not terminal:
            logger.error("Tool '%s' failed after %d attempts: %s", call.tool_name, attempt, last_error)

        return ToolExecutionResult.failed(
            call.tool_name,
            last_error,
            _elapsed_ms(started),
            attempt_count=attempt,
            metadata={
                **base_metadata,
                "attempt_count": attempt,
                "error_type": type(last_error).__name__,
                "error_message": str(last_error),
                "retry_reasons": list(retry_reasons),
                "retry_delays": list(retry_delays),
                "terminal": terminal,
            },
        )

    async def _wait_before_retry(self, call: ToolCall, error: BaseException, attempt: int) -> int:
        """Consult the recovery advisor, then back off unless it recovered. Returns the delay used."""
        advisor = self.capabilities.recovery_advisor
        if advisor is not None:
            try:
                recovery = await advisor.recover(error, call, attempt)
            except Exception as e:
                logger.warning("Recovery advisor raised for tool '%s': %s", call.tool_name, e)
            else:
                if recovery.success:
                    self._detail(
                        "Recovery succeeded for tool '%s' (%s); retrying without backoff",
                        call.tool_name, ", ".join(recovery.actions) or recovery.reasoning,
                    )
                    return 0

        delay_ms = calculate_backoff_delay(attempt, self.config, self._rng)
        self._detail("Waiting %dms before retrying tool '%s'", delay_ms, call.tool_name)
        await asyncio.sleep(delay_ms / 1000)
        return delay_ms

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _validation_error(self, call: ToolCall) -> Optional[str]:
        definition = self.registry.get(call.tool_name)
        if definition is None:
            available = ", ".join(self.registry.names())
            return f"Tool '{call.tool_name}' not found in registry. Available tools: {available}"

        missing = missing_required_parameters(definition, call.parameters)
        if missing:
            return f"Missing required parameters for tool '{call.tool_name}': {', '.join(missing)}"
        return None

    def _handler_for(self, tool_name: str) -> Handler:
        try:
            return HANDLERS[ToolKind(tool_name.lower())]
        except (ValueError, KeyError):
            return _unsupported

    def _detail(self, msg: str, *args: Any) -> None:
        if self.config.enable_detailed_logging:
            logger.info(msg, *args)


async def _unsupported(ctx: HandlerContext, call: ToolCall) -> None:
    raise ToolNotImplementedError(f"No handler registered for tool '{call.tool_name}'")


def _elapsed_ms(started: float) -> float:
    return (time.perf_counter() - started) * 1000
