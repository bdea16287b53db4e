"""Selector healer — finds a replacement for a selector that stopped resolving."""

from __future__ import annotations

import logging
from typing import Optional

from resilient_qa.healing.history_store import HealingHistoryStore, compute_healing_statistics
from resilient_qa.healing.llm_generator import SelectorCandidateGenerator
from resilient_qa.healing.scoring import ConfidenceScorer, get_scorer
from resilient_qa.healing.strategies import DETERMINISTIC_STRATEGIES
from resilient_qa.models.config import HealingConfig
from resilient_qa.models.healing import (
    HealedSelector,
    HealingContext,
    HealingHistoryEntry,
    HealingStatistics,
    HealingStrategy,
    SelectorCandidate,
)
from resilient_qa.models.page_state import PageState

logger = logging.getLogger(__name__)


class SelectorHealer:
    """Runs healing strategies in priority order; the first qualifying strategy wins.

    A strategy qualifies when its best candidate's final confidence reaches
    the context's minimum threshold. Later strategies are not consulted.
    """

    def __init__(
        self,
        config: Optional[HealingConfig] = None,
        candidate_generator: Optional[SelectorCandidateGenerator] = None,
        history_store: Optional[HealingHistoryStore] = None,
        scorer: Optional[ConfidenceScorer] = None,
    ):
        self.config = config or HealingConfig()
        self.candidate_generator = candidate_generator
        self.history_store = history_store
        self.scorer = scorer or get_scorer(self.config.scoring)

    async def heal(
        self,
        failed_selector: str,
        page_state: PageState,
        expected_text: Optional[str] = None,
        expected_screenshot: Optional[bytes] = None,
        *,
        expected_position: Optional[tuple[float, float]] = None,
        expected_attributes: Optional[dict[str, str]] = None,
        min_confidence: Optional[float] = None,
    ) -> Optional[HealedSelector]:
        context = HealingContext(
            failed_selector=failed_selector,
            page_state=page_state,
            expected_text=expected_text,
            expected_screenshot=expected_screenshot,
            expected_position=expected_position,
            expected_attributes=expected_attributes or {},
            min_confidence_threshold=(
                self.config.min_confidence_threshold if min_confidence is None else min_confidence
            ),
        )
        return await self.heal_with_context(context)

    async def heal_with_context(self, context: HealingContext) -> Optional[HealedSelector]:
        logger.info(
            "Starting selector healing for '%s' on %s",
            context.failed_selector, context.page_state.url or "(unknown page)",
        )

        for strategy in context.strategies:
            candidates = await self._candidates_for(strategy, context)
            if not candidates:
                logger.debug("Strategy %s produced no candidates", strategy.value)
                continue

            best = max(candidates, key=lambda c: c.final_confidence)
            if best.final_confidence < context.min_confidence_threshold:
                logger.debug(
                    "Strategy %s best candidate '%s' scored %.3f (< %.3f)",
                    strategy.value, best.selector, best.final_confidence, context.min_confidence_threshold,
                )
                continue

            healed = HealedSelector(
                original_selector=context.failed_selector,
                new_selector=best.selector,
                strategy=strategy,
                confidence_score=best.final_confidence,
                page_url=context.page_state.url,
                reasoning=best.reasoning or f"Healed using {strategy.value} strategy",
                context=dict(best.context),
            )
            logger.info(
                "Healed '%s' -> '%s' via %s (confidence %.3f)",
                healed.original_selector, healed.new_selector, strategy.value, healed.confidence_score,
            )
            self._record(HealingHistoryEntry.from_healed(healed, success=True))
            return healed

        logger.warning("Failed to heal selector: %s", context.failed_selector)
        self._record(
            HealingHistoryEntry(
                original_selector=context.failed_selector,
                success=False,
                page_url=context.page_state.url,
            )
        )
        return None

    async def find_selector_candidates(self, context: HealingContext) -> list[SelectorCandidate]:
        """Candidates from every strategy, best per selector, ranked by final confidence."""
        best_by_selector: dict[str, SelectorCandidate] = {}
        for strategy in context.strategies:
            for candidate in await self._candidates_for(strategy, context):
                current = best_by_selector.get(candidate.selector)
                if current is None or candidate.final_confidence > current.final_confidence:
                    best_by_selector[candidate.selector] = candidate

        ranked = sorted(best_by_selector.values(), key=lambda c: c.final_confidence, reverse=True)
        return ranked[: self.config.max_candidates]

    async def verify_healed_selector(self, selector: str, page_state: PageState) -> bool:
        """A healed selector is usable when exactly one visible element carries it."""
        matches = [el for el in page_state.elements_matching(selector) if el.is_visible]
        return len(matches) == 1

    def get_healing_statistics(self) -> HealingStatistics:
        if self.history_store is None:
            return HealingStatistics()
        return compute_healing_statistics(self.history_store.entries())

    async def _candidates_for(
        self,
        strategy: HealingStrategy,
        context: HealingContext,
    ) -> list[SelectorCandidate]:
        if strategy == HealingStrategy.LLM_GENERATED:
            raw = await self._llm_candidates(context)
        else:
            raw = DETERMINISTIC_STRATEGIES[strategy](context, self.config)
        return [candidate.scored(self.scorer) for candidate in raw]

    async def _llm_candidates(self, context: HealingContext) -> list[SelectorCandidate]:
        if self.candidate_generator is None or not self.config.enable_llm:
            logger.debug("LLM strategy skipped: no candidate generator configured")
            return []
        try:
            candidates = await self.candidate_generator.generate_candidates(
                context.page_state,
                context.failed_selector,
                context.expected_text,
                screenshot=context.page_state.screenshot or context.expected_screenshot,
            )
        except Exception as e:
            logger.error("LLM selector generation failed: %s", e)
            return []
        logger.info("LLM generated %d selector candidates", len(candidates))
        return candidates

    def _record(self, entry: HealingHistoryEntry) -> None:
        if self.history_store is None:
            return
        try:
            self.history_store.save(entry)
        except OSError as e:
            logger.warning("Failed to save healing history entry: %s", e)
