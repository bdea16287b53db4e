"""Healing history stores and on-demand statistics."""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Iterable, Protocol

from resilient_qa.models.healing import (
    HealingHistoryEntry,
    HealingStatistics,
    HealingStrategy,
    StrategyStats,
)

logger = logging.getLogger(__name__)


class HealingHistoryStore(Protocol):
    def save(self, entry: HealingHistoryEntry) -> None: ...

    def entries(self) -> list[HealingHistoryEntry]: ...


class InMemoryHealingHistoryStore:
    def __init__(self) -> None:
        self._entries: list[HealingHistoryEntry] = []
        self._lock = threading.Lock()

    def save(self, entry: HealingHistoryEntry) -> None:
        with self._lock:
            self._entries.append(entry)

    def entries(self) -> list[HealingHistoryEntry]:
        with self._lock:
            return list(self._entries)


class JsonHealingHistoryStore:
    """Appends one JSON document per line; reads the whole file on demand."""

    def __init__(self, path: Path | str):
        self.path = Path(path)
        self._lock = threading.Lock()

    def save(self, entry: HealingHistoryEntry) -> None:
        with self._lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(entry.model_dump_json() + "\n")

    def entries(self) -> list[HealingHistoryEntry]:
        if not self.path.exists():
            return []
        loaded: list[HealingHistoryEntry] = []
        with self._lock, open(self.path, encoding="utf-8") as f:
            for line_no, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    loaded.append(HealingHistoryEntry.model_validate(json.loads(line)))
                except (json.JSONDecodeError, ValueError) as e:
                    logger.warning("Skipping unreadable healing history line %d in %s: %s", line_no, self.path, e)
        return loaded


def compute_healing_statistics(entries: Iterable[HealingHistoryEntry]) -> HealingStatistics:
    """Aggregate success rates overall and per strategy."""
    by_strategy: dict[HealingStrategy, StrategyStats] = {}
    total = 0
    successes = 0
    confidence_sum = 0.0

    for entry in entries:
        total += 1
        if entry.success:
            successes += 1
            confidence_sum += entry.confidence_score
        if entry.strategy is None:
            continue
        stats = by_strategy.setdefault(entry.strategy, StrategyStats())
        stats.attempts += 1
        if entry.success:
            stats.successes += 1

    most_successful = None
    if by_strategy:
        # Ties go to the strategy with more successes, then to priority order
        order = list(HealingStrategy)
        most_successful = max(
            by_strategy,
            key=lambda s: (by_strategy[s].success_rate, by_strategy[s].successes, -order.index(s)),
        )

    return HealingStatistics(
        total_attempts=total,
        successful_healings=successes,
        success_rate=successes / total if total else 0.0,
        average_confidence=confidence_sum / successes if successes else 0.0,
        by_strategy=by_strategy,
        most_successful_strategy=most_successful,
    )
