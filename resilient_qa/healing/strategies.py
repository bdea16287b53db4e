"""Deterministic healing strategies — each turns a HealingContext into candidates."""

from __future__ import annotations

import logging
from typing import Callable, Optional

from resilient_qa.healing.similarity import attribute_match_score, distance_score, text_similarity
from resilient_qa.models.config import HealingConfig
from resilient_qa.models.healing import HealingContext, HealingStrategy, SelectorCandidate
from resilient_qa.models.page_state import ElementInfo
from resilient_qa.visual.phash import hash_similarity, perceptual_hash, region_hash

logger = logging.getLogger(__name__)

StrategyFn = Callable[[HealingContext, HealingConfig], list[SelectorCandidate]]


def _with_selector(context: HealingContext) -> list[ElementInfo]:
    return [el for el in context.page_state.interactive_elements if el.selector]


def text_content_candidates(context: HealingContext, config: HealingConfig) -> list[SelectorCandidate]:
    if not context.expected_text or not context.expected_text.strip():
        return []

    candidates = []
    for element in _with_selector(context):
        if not element.text.strip():
            continue
        similarity = text_similarity(context.expected_text, element.text)
        if similarity < config.text_similarity_threshold:
            continue
        candidates.append(
            SelectorCandidate(
                selector=element.selector,
                strategy=HealingStrategy.TEXT_CONTENT,
                base_confidence=similarity,
                text_similarity=similarity,
                element=element,
                reasoning=f"Text match: '{element.text}' (similarity: {similarity:.2f})",
            )
        )
    return candidates


def aria_label_candidates(context: HealingContext, config: HealingConfig) -> list[SelectorCandidate]:
    has_expected = bool(context.expected_text and context.expected_text.strip())
    candidates = []
    for element in _with_selector(context):
        aria_label = (element.attribute("aria-label") or "").strip()
        if not aria_label:
            continue
        score = (
            text_similarity(context.expected_text, aria_label)
            if has_expected
            else config.aria_default_confidence
        )
        candidates.append(
            SelectorCandidate(
                selector=element.selector,
                strategy=HealingStrategy.ARIA_LABEL,
                base_confidence=score,
                aria_label_match=score,
                element=element,
                reasoning=f"ARIA label match: '{aria_label}'",
            )
        )
    return candidates


def fuzzy_attribute_candidates(context: HealingContext, config: HealingConfig) -> list[SelectorCandidate]:
    if not context.expected_attributes:
        return []

    candidates = []
    for element in _with_selector(context):
        score = attribute_match_score(context.expected_attributes, element.attributes)
        if score < config.attribute_match_threshold:
            continue
        candidates.append(
            SelectorCandidate(
                selector=element.selector,
                strategy=HealingStrategy.FUZZY_ATTRIBUTES,
                base_confidence=score,
                attribute_match=score,
                element=element,
                reasoning=f"Attribute match score: {score:.2f}",
            )
        )
    return candidates


def visual_similarity_candidates(context: HealingContext, config: HealingConfig) -> list[SelectorCandidate]:
    """Position-proximity proxy for visual similarity over a wide span.

    The score is driven by distance from the expected position only. When
    the current page screenshot is available, the perceptual-hash
    similarity between the expected screenshot and the element's patch is
    attached to the candidate context for inspection.
    """
    if context.expected_screenshot is None or context.expected_position is None:
        return []

    expected_hash = _safe_hash(context.expected_screenshot)
    page_screenshot = context.page_state.screenshot

    candidates = []
    for element in _with_selector(context):
        score = distance_score(element.bounding_box, context.expected_position, config.visual_distance_span_px)
        if score is None or score < config.position_score_threshold:
            continue

        extra = {}
        if expected_hash and page_screenshot is not None:
            patch_similarity = _patch_similarity(page_screenshot, element, expected_hash)
            if patch_similarity is not None:
                extra["patch_hash_similarity"] = patch_similarity

        distance_px = (1.0 - score) * config.visual_distance_span_px
        candidates.append(
            SelectorCandidate(
                selector=element.selector,
                strategy=HealingStrategy.VISUAL_SIMILARITY,
                base_confidence=score,
                visual_similarity=score,
                element=element,
                context=extra,
                reasoning=f"Position-based visual match (distance: {distance_px:.0f}px)",
            )
        )
    return candidates


def position_candidates(context: HealingContext, config: HealingConfig) -> list[SelectorCandidate]:
    if context.expected_position is None:
        return []

    candidates = []
    for element in _with_selector(context):
        score = distance_score(element.bounding_box, context.expected_position, config.position_distance_span_px)
        if score is None or score < config.position_score_threshold:
            continue
        distance_px = (1.0 - score) * config.position_distance_span_px
        candidates.append(
            SelectorCandidate(
                selector=element.selector,
                strategy=HealingStrategy.POSITION,
                base_confidence=score,
                position_score=score,
                element=element,
                reasoning=f"Position proximity (distance: {distance_px:.0f}px)",
            )
        )
    return candidates


def _safe_hash(image: bytes) -> bytes:
    try:
        return perceptual_hash(image)
    except (OSError, ValueError) as e:
        logger.debug("Could not hash expected screenshot: %s", e)
        return b""


def _patch_similarity(screenshot: bytes, element: ElementInfo, expected_hash: bytes) -> Optional[float]:
    box = element.bounding_box
    if box is None or box.width <= 0 or box.height <= 0:
        return None
    try:
        patch = region_hash(screenshot, box.x, box.y, box.width, box.height)
    except (OSError, ValueError) as e:
        logger.debug("Could not hash patch for %s: %s", element.selector, e)
        return None
    return hash_similarity(expected_hash, patch) if patch else None


DETERMINISTIC_STRATEGIES: dict[HealingStrategy, StrategyFn] = {
    HealingStrategy.TEXT_CONTENT: text_content_candidates,
    HealingStrategy.ARIA_LABEL: aria_label_candidates,
    HealingStrategy.FUZZY_ATTRIBUTES: fuzzy_attribute_candidates,
    HealingStrategy.VISUAL_SIMILARITY: visual_similarity_candidates,
    HealingStrategy.POSITION: position_candidates,
}
