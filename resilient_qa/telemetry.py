"""In-process telemetry — counters, histograms, gauges and trace spans.

One ``Observability`` instance lives for the whole process; the engine
receives it by reference. Instruments are thread-safe and label-aware.
Finished spans are kept in a bounded buffer and logged at debug level.
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from collections import deque
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Any, Iterator, Optional

logger = logging.getLogger(__name__)

LabelKey = tuple[tuple[str, str], ...]


def _label_key(labels: dict[str, Any]) -> LabelKey:
    return tuple(sorted((k, str(v)) for k, v in labels.items()))


class Counter:
    def __init__(self, name: str, description: str = ""):
        self.name = name
        self.description = description
        self._values: dict[LabelKey, float] = {}
        self._lock = threading.Lock()

    def add(self, amount: float = 1, **labels: Any) -> None:
        if amount < 0:
            raise ValueError("counter increments must be non-negative")
        key = _label_key(labels)
        with self._lock:
            self._values[key] = self._values.get(key, 0) + amount

    def value(self, **labels: Any) -> float:
        with self._lock:
            return self._values.get(_label_key(labels), 0)

    def snapshot(self) -> dict[LabelKey, float]:
        with self._lock:
            return dict(self._values)


class Histogram:
    """Records raw observations per label set; summaries are computed on read."""

    def __init__(self, name: str, unit: str = "", description: str = "", max_samples: int = 10_000):
        self.name = name
        self.unit = unit
        self.description = description
        self._samples: dict[LabelKey, deque[float]] = {}
        self._max_samples = max_samples
        self._lock = threading.Lock()

    def record(self, value: float, **labels: Any) -> None:
        key = _label_key(labels)
        with self._lock:
            samples = self._samples.get(key)
            if samples is None:
                samples = self._samples[key] = deque(maxlen=self._max_samples)
            samples.append(value)

    def samples(self, **labels: Any) -> list[float]:
        with self._lock:
            return list(self._samples.get(_label_key(labels), ()))

    def summary(self, **labels: Any) -> dict[str, float]:
        values = self.samples(**labels)
        if not values:
            return {"count": 0, "sum": 0.0, "min": 0.0, "max": 0.0, "mean": 0.0}
        return {
            "count": len(values),
            "sum": sum(values),
            "min": min(values),
            "max": max(values),
            "mean": sum(values) / len(values),
        }


class Gauge:
    """An up/down value such as the number of in-flight executions."""

    def __init__(self, name: str, description: str = ""):
        self.name = name
        self.description = description
        self._value = 0.0
        self._lock = threading.Lock()

    def add(self, amount: float) -> None:
        with self._lock:
            self._value += amount

    @property
    def value(self) -> float:
        with self._lock:
            return self._value


@dataclass
class Span:
    name: str
    trace_id: str
    span_id: str
    parent_id: Optional[str] = None
    tags: dict[str, Any] = field(default_factory=dict)
    status: str = "ok"
    error: Optional[str] = None
    start_time: float = field(default_factory=time.time)
    duration_ms: float = 0.0

    def set_tag(self, key: str, value: Any) -> None:
        self.tags[key] = value

    def set_error(self, exc: BaseException) -> None:
        self.status = "error"
        self.error = f"{type(exc).__name__}: {exc}"
        self.tags.setdefault("error.type", type(exc).__name__)


class Tracer:
    def __init__(self, max_finished: int = 1000):
        self._finished: deque[Span] = deque(maxlen=max_finished)
        self._lock = threading.Lock()
        self._current: ContextVar[Optional[Span]] = ContextVar("current_span", default=None)

    @contextmanager
    def start_span(self, name: str, **tags: Any) -> Iterator[Span]:
        """Open a span nested under the span active in the current context."""
        parent = self._current.get()
        span = Span(
            name=name,
            trace_id=parent.trace_id if parent else uuid.uuid4().hex,
            span_id=uuid.uuid4().hex[:16],
            parent_id=parent.span_id if parent else None,
            tags=dict(tags),
        )
        token = self._current.set(span)
        started = time.perf_counter()
        try:
            yield span
        except BaseException as e:
            if span.status == "ok":
                span.set_error(e)
            raise
        finally:
            span.duration_ms = (time.perf_counter() - started) * 1000
            self._current.reset(token)
            with self._lock:
                self._finished.append(span)
            logger.debug("span %s %.1fms status=%s tags=%s", span.name, span.duration_ms, span.status, span.tags)

    def finished_spans(self, name: Optional[str] = None) -> list[Span]:
        with self._lock:
            spans = list(self._finished)
        return [s for s in spans if name is None or s.name == name]


class Observability:
    """The instruments the execution engine reports into."""

    def __init__(self) -> None:
        self.tracer = Tracer()
        self.executions_total = Counter(
            "tool_executions_total", "Tool executions by tool and final status"
        )
        self.execution_duration_ms = Histogram(
            "tool_execution_duration_ms", unit="ms", description="Wall-clock duration of tool executions"
        )
        self.active_executions = Gauge(
            "active_tool_executions", "Tool executions currently in flight"
        )


_default: Optional[Observability] = None
_default_lock = threading.Lock()


def get_observability() -> Observability:
    """Return the process-wide Observability, creating it on first use."""
    global _default
    with _default_lock:
        if _default is None:
            _default = Observability()
        return _default
