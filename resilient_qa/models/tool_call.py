"""Tool call and execution result models."""

from __future__ import annotations

import uuid
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from resilient_qa.executor.errors import ToolValidationError

_MISSING = object()


class ToolCall(BaseModel):
    """A request to perform one browser-automation primitive."""

    model_config = ConfigDict(frozen=True)

    tool_name: str
    parameters: dict[str, Any] = Field(default_factory=dict)
    reasoning: str = ""
    correlation_id: str = Field(default_factory=lambda: uuid.uuid4().hex)

    def get(self, name: str, default: Any = None) -> Any:
        value = self.parameters.get(name)
        return default if value is None else value

    def require(self, name: str) -> Any:
        value = self.parameters.get(name, _MISSING)
        if value is _MISSING or value is None:
            raise ToolValidationError(
                f"Required parameter '{name}' is missing for tool '{self.tool_name}'"
            )
        return value

    def with_parameters(self, **overrides: Any) -> "ToolCall":
        return self.model_copy(update={"parameters": {**self.parameters, **overrides}})


class ToolExecutionResult(BaseModel):
    """Outcome of executing a ToolCall, including retry bookkeeping.

    Instances are frozen; use ``with_metadata`` to derive an enriched copy.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    success: bool
    tool_name: str
    result: Any = None
    error: Optional[BaseException] = None
    execution_duration_ms: float = 0.0
    attempt_count: int = 1
    metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("attempt_count")
    @classmethod
    def check_attempt_count(cls, v: int) -> int:
        if v < 1:
            raise ValueError("attempt_count must be at least 1")
        return v

    @classmethod
    def succeeded(
        cls,
        tool_name: str,
        result: Any,
        execution_duration_ms: float,
        attempt_count: int = 1,
        metadata: Optional[dict[str, Any]] = None,
    ) -> "ToolExecutionResult":
        return cls(
            success=True,
            tool_name=tool_name,
            result=result,
            execution_duration_ms=execution_duration_ms,
            attempt_count=attempt_count,
            metadata=dict(metadata or {}),
        )

    @classmethod
    def failed(
        cls,
        tool_name: str,
        error: BaseException,
        execution_duration_ms: float,
        attempt_count: int = 1,
        metadata: Optional[dict[str, Any]] = None,
    ) -> "ToolExecutionResult":
        return cls(
            success=False,
            tool_name=tool_name,
            error=error,
            execution_duration_ms=execution_duration_ms,
            attempt_count=attempt_count,
            metadata=dict(metadata or {}),
        )

    @property
    def error_message(self) -> str:
        return str(self.error) if self.error is not None else ""

    def with_metadata(self, **extra: Any) -> "ToolExecutionResult":
        """Return a copy whose metadata is merged with ``extra``."""
        return self.model_copy(update={"metadata": {**self.metadata, **extra}})
