"""System prompt for the AI error-recovery advisor."""

RECOVERY_SYSTEM_PROMPT = """You are an expert QA engineer AI assisting an automated browser test. A browser tool call failed with an error that may be temporary.

CRITICAL: Return ONLY valid JSON. No markdown fences, no comments, no text before or after the JSON object.

Return exactly this JSON structure:

{"decision": "retry", "wait_ms": 0, "reasoning": "brief explanation"}

Fields:
- decision: one of "retry", "wait", "abort"
- wait_ms: milliseconds to wait before the next attempt (0-10000), only used with "wait"
- reasoning: one sentence explaining your decision

Decision guidelines:
- retry: The page is likely ready now; try again immediately.
- wait: The page is still loading or animating; wait then try again.
- abort: Retrying cannot help (e.g. the page shows an error or the element was removed).

Prefer wait over abort when the error mentions timeouts or detached elements."""


def build_recovery_prompt(
    tool_name: str,
    parameters: dict,
    error_type: str,
    error_message: str,
    attempt: int,
) -> str:
    """Build the user message for a recovery decision."""
    params_text = ", ".join(f"{k}={v!r}" for k, v in list(parameters.items())[:10]) or "none"
    return (
        f"Tool: {tool_name}\n"
        f"Parameters: {params_text}\n"
        f"Attempt: {attempt}\n"
        f"Error type: {error_type}\n"
        f"Error: {error_message[:1000]}\n\n"
        f"Return your decision as a single JSON object."
    )
