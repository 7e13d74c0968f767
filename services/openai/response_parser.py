"""Helpers to parse chat-completion outputs."""

from typing import Any, Dict, Optional


def extract_text(response: Any) -> str:
    """Return the text content of the first choice, or an empty string."""
    choices = getattr(response, "choices", None) or []
    if not choices:
        return ""
    message = getattr(choices[0], "message", None)
    content = getattr(message, "content", None) if message is not None else None
    if isinstance(content, list):
        # Some providers return content parts instead of a flat string.
        return "".join(
            part.get("text", "") if isinstance(part, dict) else str(getattr(part, "text", "") or "")
            for part in content
        )
    return content or ""


def extract_usage(response: Any) -> Dict[str, Optional[int]]:
    """Return token usage information from the response, if present."""
    usage = getattr(response, "usage", None)
    return {
        "input_tokens": getattr(usage, "prompt_tokens", None) if usage else None,
        "output_tokens": getattr(usage, "completion_tokens", None) if usage else None,
    }
