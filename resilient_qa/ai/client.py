"""Claude API client wrapper used by the LLM selector generator and recovery advisor."""

from __future__ import annotations

import json
import logging
import os
import re
import time
from pathlib import Path
from typing import Any, Optional

import anthropic

logger = logging.getLogger(__name__)

_FENCE_PATTERN = re.compile(r"^```(?:json|javascript|)?\s*\n(.*?)\n```\s*$", re.DOTALL | re.MULTILINE)


class AIClient:
    """Wrapper around the Anthropic Claude API."""

    def __init__(
        self,
        model: str = "claude-opus-4-6",
        max_tokens: int = 4000,
        api_key: Optional[str] = None,
        debug_dir: Optional[Path] = None,
    ):
        api_key = api_key or os.environ.get("ANTHROPIC_API_KEY")
        if not api_key:
            raise EnvironmentError(
                "ANTHROPIC_API_KEY environment variable is not set. "
                "Set it or disable the LLM healing strategy and recovery advisor."
            )
        self.client = anthropic.Anthropic(api_key=api_key, timeout=120.0)
        self.model = model
        self.max_tokens = max_tokens
        self.debug_dir = debug_dir
        self._call_count = 0

    @property
    def call_count(self) -> int:
        return self._call_count

    def complete(
        self,
        system_prompt: str,
        user_message: str,
        max_tokens: Optional[int] = None,
        temperature: float = 0.2,
    ) -> str:
        """Send a text-only request and return the response text."""
        return self._send(
            system_prompt,
            [{"role": "user", "content": user_message}],
            max_tokens=max_tokens,
            temperature=temperature,
            log_message=user_message,
        )

    def complete_with_image(
        self,
        system_prompt: str,
        user_message: str,
        image_base64: str,
        media_type: str = "image/png",
        max_tokens: Optional[int] = None,
    ) -> str:
        """Send a request with one attached screenshot."""
        content = [
            {
                "type": "image",
                "source": {"type": "base64", "media_type": media_type, "data": image_base64},
            },
            {"type": "text", "text": user_message},
        ]
        return self._send(
            system_prompt,
            [{"role": "user", "content": content}],
            max_tokens=max_tokens,
            temperature=0.2,
            log_message=f"[IMAGE ATTACHED]\n{user_message}",
        )

    def complete_json(
        self,
        system_prompt: str,
        user_message: str,
        max_tokens: Optional[int] = None,
        temperature: float = 0.2,
    ) -> dict[str, Any]:
        """Send a request and parse the response as a JSON object."""
        text = self.complete(system_prompt, user_message, max_tokens, temperature)
        return self._parse_json_response(text)

    def complete_json_with_image(
        self,
        system_prompt: str,
        user_message: str,
        image_base64: str,
        media_type: str = "image/png",
        max_tokens: Optional[int] = None,
    ) -> dict[str, Any]:
        """Send a request with one attached screenshot and parse the response as JSON."""
        text = self.complete_with_image(system_prompt, user_message, image_base64, media_type, max_tokens)
        return self._parse_json_response(text)

    def _send(
        self,
        system_prompt: str,
        messages: list[dict],
        max_tokens: Optional[int],
        temperature: float,
        log_message: str,
    ) -> str:
        self._call_count += 1
        tokens = max_tokens or self.max_tokens
        logger.info("Calling AI (call #%d, model=%s, max_tokens=%d)...", self._call_count, self.model, tokens)

        try:
            started = time.time()
            response = self.client.messages.create(
                model=self.model,
                max_tokens=tokens,
                temperature=temperature,
                system=system_prompt,
                messages=messages,
            )
            text = response.content[0].text
            logger.info("AI response received in %.1fs (%d chars)", time.time() - started, len(text))
            if response.stop_reason == "max_tokens":
                logger.warning("AI response was truncated at max_tokens=%d", tokens)
            self._save_exchange_log(system_prompt, log_message, text, None)
            return text
        except anthropic.APIError as e:
            logger.error("Claude API error: %s", e)
            self._save_exchange_log(system_prompt, log_message, "", str(e))
            raise

    @staticmethod
    def _parse_json_response(text: str) -> dict[str, Any]:
        """Parse an AI response as JSON, tolerating code fences and trailing commas."""
        text = text.strip()
        match = _FENCE_PATTERN.search(text)
        if match:
            text = match.group(1).strip()
        elif text.startswith("```"):
            text = text.strip("`").strip()

        try:
            return json.loads(text, strict=False)
        except json.JSONDecodeError:
            pass

        cleaned = re.sub(r"^\s*//[^\n]*", "", text, flags=re.MULTILINE)
        cleaned = re.sub(r",\s*([}\]])", r"\1", cleaned)
        first, last = cleaned.find("{"), cleaned.rfind("}")
        if first != -1 and last > first:
            cleaned = cleaned[first:last + 1]

        try:
            return json.loads(cleaned, strict=False)
        except json.JSONDecodeError as e:
            logger.error("Failed to parse AI response as JSON: %s (first 200 chars: %r)", e, text[:200])
            raise ValueError(f"AI returned invalid JSON: {e}") from e

    def _save_exchange_log(
        self,
        system_prompt: str,
        user_message: str,
        response_text: str,
        error: Optional[str],
    ) -> None:
        """Write the full exchange to the debug directory, when one is configured."""
        if self.debug_dir is None:
            return
        try:
            self.debug_dir.mkdir(parents=True, exist_ok=True)
            log_file = self.debug_dir / f"ai_call_{time.strftime('%Y%m%d_%H%M%S')}_{self._call_count:03d}.log"
            with open(log_file, "w", encoding="utf-8") as f:
                f.write(f"=== AI CALL #{self._call_count} ===\n\n")
                f.write(f"=== SYSTEM PROMPT ===\n{system_prompt}\n\n")
                f.write(f"=== USER MESSAGE ===\n{user_message}\n\n")
                f.write(f"=== RESPONSE ===\n{response_text or '(empty)'}\n")
                if error:
                    f.write(f"\n=== ERROR ===\n{error}\n")
            logger.debug("AI exchange logged to %s", log_file)
        except OSError as log_err:
            logger.debug("Failed to save AI exchange log: %s", log_err)
