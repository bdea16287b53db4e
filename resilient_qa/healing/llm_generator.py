"""LLM-backed selector candidate generation."""

from __future__ import annotations

import asyncio
import base64
import logging
from typing import Optional, Protocol

from resilient_qa.ai.client import AIClient
from resilient_qa.ai.prompts.healing import SELECTOR_HEALING_SYSTEM_PROMPT, build_selector_healing_prompt
from resilient_qa.models.healing import HealingStrategy, SelectorCandidate
from resilient_qa.models.page_state import PageState

logger = logging.getLogger(__name__)


class SelectorCandidateGenerator(Protocol):
    async def generate_candidates(
        self,
        page_state: PageState,
        failed_selector: str,
        expected_text: Optional[str],
        screenshot: Optional[bytes] = None,
    ) -> list[SelectorCandidate]: ...


class AISelectorGenerator:
    """Asks Claude for replacement selectors given a page snapshot.

    When a PNG screenshot of the page is available it is attached to the
    request so the model can match the element visually as well.
    """

    def __init__(self, ai_client: AIClient, max_tokens: int = 1500):
        self.ai_client = ai_client
        self.max_tokens = max_tokens

    async def generate_candidates(
        self,
        page_state: PageState,
        failed_selector: str,
        expected_text: Optional[str],
        screenshot: Optional[bytes] = None,
    ) -> list[SelectorCandidate]:
        user_message = build_selector_healing_prompt(page_state, failed_selector, expected_text)
        # The anthropic client is synchronous; keep the event loop free
        if screenshot:
            data = await asyncio.to_thread(
                self.ai_client.complete_json_with_image,
                system_prompt=SELECTOR_HEALING_SYSTEM_PROMPT,
                user_message=user_message,
                image_base64=base64.b64encode(screenshot).decode("ascii"),
                max_tokens=self.max_tokens,
            )
        else:
            data = await asyncio.to_thread(
                self.ai_client.complete_json,
                system_prompt=SELECTOR_HEALING_SYSTEM_PROMPT,
                user_message=user_message,
                max_tokens=self.max_tokens,
            )

        candidates = []
        for raw in data.get("candidates", []):
            if not isinstance(raw, dict):
                continue
            selector = str(raw.get("selector") or "").strip()
            if not selector:
                continue
            try:
                confidence = float(raw.get("confidence", 0.0))
            except (TypeError, ValueError):
                confidence = 0.0
            confidence = max(0.0, min(1.0, confidence))
            candidates.append(
                SelectorCandidate(
                    selector=selector,
                    strategy=HealingStrategy.LLM_GENERATED,
                    base_confidence=confidence,
                    reasoning=str(raw.get("reasoning") or "LLM-generated selector"),
                )
            )
        logger.debug("LLM proposed %d selector candidates for '%s'", len(candidates), failed_selector)
        return candidates
