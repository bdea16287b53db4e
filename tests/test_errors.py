"""Tests for error classification."""

import asyncio

import pytest

from resilient_qa.executor.errors import (
    Cancelled,
    DriverError,
    Terminal,
    TerminalExecutionError,
    ToolNotImplementedError,
    ToolValidationError,
    Transient,
    TransientExecutionError,
    classify_error,
    extract_expected_text,
    is_selector_error,
)


class TestClassifyError:
    """Tests for classify_error."""

    def test_timeout_is_transient(self):
        result = classify_error(TimeoutError("took too long"))
        assert isinstance(result, Transient)
        assert "took too long" in result.reason

    def test_asyncio_timeout_is_transient(self):
        assert isinstance(classify_error(asyncio.TimeoutError()), Transient)

    def test_cancelled(self):
        assert isinstance(classify_error(asyncio.CancelledError()), Cancelled)

    @pytest.mark.parametrize(
        "exc",
        [
            ValueError("bad"),
            TypeError("bad"),
            KeyError("bad"),
            NotImplementedError("later"),
            ToolNotImplementedError("later"),
            ToolValidationError("missing"),
            TerminalExecutionError("fatal"),
        ],
    )
    def test_terminal_types(self, exc):
        result = classify_error(exc)
        assert isinstance(result, Terminal)
        assert result.cause is exc

    def test_transient_execution_error(self):
        assert isinstance(classify_error(TransientExecutionError("flaky")), Transient)

    @pytest.mark.parametrize(
        "message",
        [
            "Timeout 30000ms exceeded",
            "Element is not attached to the DOM",
            "element is not visible",
            "Element not interactable",
            "stale element reference",
            "Element not found: #gone",
        ],
    )
    def test_driver_error_messages_transient(self, message):
        assert isinstance(classify_error(DriverError(message)), Transient)

    def test_unrecognised_error_terminal(self):
        assert isinstance(classify_error(RuntimeError("disk on fire")), Terminal)
        assert isinstance(classify_error(DriverError("net::ERR_NAME_NOT_RESOLVED")), Terminal)

    def test_value_error_with_transient_words_still_terminal(self):
        assert isinstance(classify_error(ValueError("timeout must be positive")), Terminal)


class TestIsSelectorError:
    @pytest.mark.parametrize(
        "message",
        [
            "Invalid CSS selector",
            "No such element",
            "Unable to locate element",
            "Timeout waiting for selector '#submit'",
            "waiting for element to be visible",
        ],
    )
    def test_selector_messages(self, message):
        assert is_selector_error(DriverError(message))

    def test_other_messages(self):
        assert not is_selector_error(DriverError("net::ERR_CONNECTION_RESET"))
        assert not is_selector_error(RuntimeError(""))


class TestExtractExpectedText:
    @pytest.mark.parametrize(
        "selector,expected",
        [
            ("button:contains('Submit')", "Submit"),
            ('a:has-text("Sign in")', "Sign in"),
            ("[text='Continue']", "Continue"),
        ],
    )
    def test_text_selectors(self, selector, expected):
        assert extract_expected_text(selector) == expected

    def test_plain_selector(self):
        assert extract_expected_text("#submit-btn") is None
