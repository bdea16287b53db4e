"""String and geometry similarity helpers used by the healing strategies."""

from __future__ import annotations

import math
from typing import Mapping, Optional

from resilient_qa.models.page_state import BoundingBox


def levenshtein(a: str, b: str) -> int:
    """Edit distance between two strings (insert/delete/substitute cost 1)."""
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)
    if len(a) < len(b):
        a, b = b, a

    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            cost = 0 if ca == cb else 1
            current.append(min(previous[j] + 1, current[j - 1] + 1, previous[j - 1] + cost))
        previous = current
    return previous[-1]


def text_similarity(a: str, b: str) -> float:
    """Case-insensitive normalized similarity: 1 - distance / longest length."""
    a = a.strip().lower()
    b = b.strip().lower()
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return 1.0 - levenshtein(a, b) / longest


def attribute_match_score(expected: Mapping[str, str], actual: Mapping[str, str]) -> float:
    """Exact (case-insensitive) matches count 1, other present values 0.5 x similarity."""
    if not expected:
        return 0.0
    score = 0.0
    for key, expected_value in expected.items():
        actual_value = actual.get(key)
        if actual_value is None:
            continue
        if expected_value.lower() == actual_value.lower():
            score += 1.0
        else:
            score += 0.5 * text_similarity(expected_value, actual_value)
    return score / len(expected)


def euclidean_distance(x1: float, y1: float, x2: float, y2: float) -> float:
    return math.hypot(x2 - x1, y2 - y1)


def distance_score(
    box: Optional[BoundingBox],
    expected_position: tuple[float, float],
    span_px: float,
) -> Optional[float]:
    """1 at the expected origin, falling linearly to 0 at ``span_px`` away."""
    if box is None:
        return None
    distance = euclidean_distance(box.x, box.y, expected_position[0], expected_position[1])
    return max(0.0, 1.0 - distance / span_px)
