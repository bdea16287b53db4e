"""System prompt for LLM-generated selector candidates."""

from __future__ import annotations

from typing import Optional

from resilient_qa.models.page_state import PageState

SELECTOR_HEALING_SYSTEM_PROMPT = """You are an expert at writing robust CSS and Playwright selectors. A selector used by an automated browser test no longer matches any element. Propose replacement selectors for the element the test most likely meant.

CRITICAL: Return ONLY valid JSON. No markdown fences, no comments, no text before or after the JSON object.

Return exactly this JSON structure:

{"candidates": [{"selector": "css-or-playwright-selector", "confidence": 0.0, "reasoning": "brief explanation"}]}

Rules:
- Return at most 5 candidates, best first.
- confidence is a number between 0 and 1 describing how sure you are the selector targets the intended element.
- Prefer selectors from the element list when one fits; prefer data-testid, id, name and aria-label over positional or class-based selectors.
- Never invent attributes that do not appear in the element list.
- When a screenshot of the page is attached, use it to find the element that looks like the one the test meant."""


def build_selector_healing_prompt(
    page_state: PageState,
    failed_selector: str,
    expected_text: Optional[str],
    max_elements: int = 60,
) -> str:
    """Build the user message describing the page and the broken selector."""
    lines = []
    for el in page_state.interactive_elements[:max_elements]:
        attrs = ", ".join(f"{k}={v!r}" for k, v in list(el.attributes.items())[:6])
        text = el.text[:60].replace("\n", " ")
        lines.append(f"- <{el.tag_name}> selector={el.selector!r} text={text!r} {attrs}")
    elements_text = "\n".join(lines) if lines else "(no interactive elements captured)"

    return (
        f"Page URL: {page_state.url}\n"
        f"Page title: {page_state.title}\n\n"
        f"Failed selector: {failed_selector}\n"
        f"Expected text: {expected_text or 'unknown'}\n\n"
        f"Interactive elements ({len(page_state.interactive_elements)} total):\n{elements_text}\n\n"
        f"Return your candidates as a single JSON object."
    )
