"""Tests for the AI recovery advisor."""

import asyncio
from unittest.mock import Mock, patch

import pytest

from resilient_qa.ai.prompts.recovery import RECOVERY_SYSTEM_PROMPT, build_recovery_prompt
from resilient_qa.executor.errors import DriverError
from resilient_qa.executor.recovery import (
    MAX_RECOVERY_WAIT_MS,
    AIRecoveryAdvisor,
    ErrorType,
    RecoveryResult,
    classify_error_type,
)
from resilient_qa.models.tool_call import ToolCall


@pytest.fixture
def ai_client():
    client = Mock()
    client.complete_json.return_value = {"decision": "retry", "reasoning": "Element was still rendering"}
    return client


@pytest.fixture
def call() -> ToolCall:
    return ToolCall(tool_name="click", parameters={"selector": "#submit-btn"})


class TestClassifyErrorType:
    @pytest.mark.parametrize(
        "error,expected",
        [
            (TimeoutError("took too long"), ErrorType.NAVIGATION_TIMEOUT),
            (DriverError("Navigation timeout of 30000ms exceeded"), ErrorType.NAVIGATION_TIMEOUT),
            (DriverError("Timeout waiting for selector '#gone'"), ErrorType.SELECTOR_NOT_FOUND),
            (DriverError("Element is not visible"), ErrorType.ELEMENT_NOT_INTERACTABLE),
            (DriverError("<div> intercepts pointer events"), ErrorType.ELEMENT_NOT_INTERACTABLE),
            (DriverError("net::ERR_CONNECTION_REFUSED"), ErrorType.NETWORK_ERROR),
            (DriverError("Evaluation failed: ReferenceError"), ErrorType.JAVASCRIPT_ERROR),
            (RuntimeError("something odd"), ErrorType.UNKNOWN),
        ],
    )
    def test_classification(self, error, expected):
        assert classify_error_type(error) == expected


class TestRecoveryResult:
    def test_defaults(self):
        result = RecoveryResult(False)
        assert result.actions == []
        assert result.reasoning == ""
        assert "success=False" in repr(result)


@pytest.mark.asyncio
class TestAIRecoveryAdvisor:
    """Tests for AIRecoveryAdvisor."""

    async def test_retry_decision(self, ai_client, call):
        advisor = AIRecoveryAdvisor(ai_client)
        result = await advisor.recover(DriverError("element is not visible"), call, 1)

        assert result.success is True
        assert result.actions == ["retry"]
        assert result.reasoning == "Element was still rendering"
        ai_client.complete_json.assert_called_once_with(
            system_prompt=RECOVERY_SYSTEM_PROMPT,
            user_message=build_recovery_prompt(
                tool_name="click",
                parameters={"selector": "#submit-btn"},
                error_type="element_not_interactable",
                error_message="element is not visible",
                attempt=1,
            ),
            max_tokens=500,
        )

    async def test_wait_decision_sleeps(self, ai_client, call):
        ai_client.complete_json.return_value = {"decision": "wait", "wait_ms": 1500}
        with patch("resilient_qa.executor.recovery.asyncio.sleep") as mock_sleep:
            mock_sleep.return_value = None
            result = await AIRecoveryAdvisor(ai_client).recover(TimeoutError(), call, 2)

        assert result.success is True
        assert result.actions == ["wait:1500ms", "retry"]
        mock_sleep.assert_awaited_once_with(1.5)

    async def test_wait_clamped(self, ai_client, call):
        ai_client.complete_json.return_value = {"decision": "WAIT", "wait_ms": 999999}
        with patch("resilient_qa.executor.recovery.asyncio.sleep") as mock_sleep:
            result = await AIRecoveryAdvisor(ai_client).recover(TimeoutError(), call, 1)

        assert result.actions[0] == f"wait:{MAX_RECOVERY_WAIT_MS}ms"
        mock_sleep.assert_awaited_once_with(MAX_RECOVERY_WAIT_MS / 1000)

    async def test_wait_with_bad_duration(self, ai_client, call):
        ai_client.complete_json.return_value = {"decision": "wait", "wait_ms": "soon"}
        result = await AIRecoveryAdvisor(ai_client).recover(TimeoutError(), call, 1)
        assert result.actions == ["wait:0ms", "retry"]

    async def test_abort_decision(self, ai_client, call):
        ai_client.complete_json.return_value = {"decision": "abort", "reasoning": "Page is gone"}
        result = await AIRecoveryAdvisor(ai_client).recover(RuntimeError("crash"), call, 1)
        assert result.success is False
        assert result.actions == ["abort"]

    async def test_unknown_decision_aborts(self, ai_client, call):
        ai_client.complete_json.return_value = {"decision": "reload"}
        result = await AIRecoveryAdvisor(ai_client).recover(RuntimeError("crash"), call, 1)
        assert result.success is False

    async def test_ai_failure(self, ai_client, call):
        ai_client.complete_json.side_effect = RuntimeError("API down")
        result = await AIRecoveryAdvisor(ai_client).recover(TimeoutError(), call, 1)
        assert result.success is False
        assert result.reasoning == "Recovery AI call failed: API down"

    async def test_budget(self, ai_client, call):
        """Calls past the budget are refused without contacting the AI."""
        advisor = AIRecoveryAdvisor(ai_client, max_calls=2)
        for _ in range(3):
            result = await advisor.recover(TimeoutError(), call, 1)

        assert result.success is False
        assert result.reasoning == "Recovery budget exhausted"
        assert ai_client.complete_json.call_count == 2
        assert advisor.budget_remaining == 0

        advisor.reset()
        assert advisor.budget_remaining == 2

    async def test_cancellation_not_swallowed(self, ai_client, call):
        ai_client.complete_json.return_value = {"decision": "wait", "wait_ms": 5000}
        advisor = AIRecoveryAdvisor(ai_client)

        task = asyncio.ensure_future(advisor.recover(TimeoutError(), call, 1))
        await asyncio.sleep(0.05)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task


class TestRecoveryPrompt:
    def test_contents(self):
        prompt = build_recovery_prompt("navigate", {"url": "https://example.com"}, "network_error", "net::ERR", 2)
        assert "Tool: navigate" in prompt
        assert "url='https://example.com'" in prompt
        assert "Attempt: 2" in prompt
        assert "Error type: network_error" in prompt

    def test_no_parameters(self):
        assert "Parameters: none" in build_recovery_prompt("get_page_state", {}, "unknown", "boom", 1)
