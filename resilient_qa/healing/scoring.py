"""Confidence scoring — fuses a candidate's sub-scores into a final confidence.

Scorers must be deterministic and monotonic: raising the base confidence or
any present sub-score never lowers the result.
"""

from __future__ import annotations

from typing import Callable, Mapping, Optional

from resilient_qa.models.healing import SelectorCandidate

ConfidenceScorer = Callable[[SelectorCandidate], float]


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


def mean_scorer(candidate: SelectorCandidate) -> float:
    """Average of the base confidence and every sub-score that is present."""
    values = [candidate.base_confidence, *candidate.sub_scores().values()]
    return _clamp(sum(values) / len(values))


DEFAULT_WEIGHTS: dict[str, float] = {
    "text_similarity": 0.30,
    "aria_label_match": 0.25,
    "attribute_match": 0.20,
    "visual_similarity": 0.15,
    "position_score": 0.10,
}


class WeightedScorer:
    """Weighted sub-score average blended with the base confidence.

    Weights are renormalised over the sub-scores a candidate actually has.
    """

    def __init__(self, weights: Optional[Mapping[str, float]] = None, base_weight: float = 0.5):
        self.weights = dict(weights or DEFAULT_WEIGHTS)
        if any(w < 0 for w in self.weights.values()):
            raise ValueError("weights must be non-negative")
        if not 0.0 <= base_weight <= 1.0:
            raise ValueError("base_weight must be within [0, 1]")
        self.base_weight = base_weight

    def __call__(self, candidate: SelectorCandidate) -> float:
        present = candidate.sub_scores()
        total_weight = sum(self.weights.get(name, 0.0) for name in present)
        if total_weight <= 0:
            return _clamp(candidate.base_confidence)
        weighted = sum(value * self.weights.get(name, 0.0) for name, value in present.items()) / total_weight
        return _clamp(self.base_weight * candidate.base_confidence + (1 - self.base_weight) * weighted)


def get_scorer(name: str) -> ConfidenceScorer:
    if name == "mean":
        return mean_scorer
    if name == "weighted":
        return WeightedScorer()
    raise ValueError(f"Unknown confidence scorer '{name}'. Available: mean, weighted")
