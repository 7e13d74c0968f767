"""Best-effort recovery of JSON payloads from loosely formatted model output."""

import json
import logging
import re
from typing import Any

LOGGER = logging.getLogger(__name__)

_FENCE_OPEN = re.compile(r"^\s*```(?:json|JSON)?\s*")
_FENCE_CLOSE = re.compile(r"\s*```\s*$")
# A raw quote straight after digits that reads as a unit mark, e.g. `12" long`.
_INCH_MARK = re.compile(r'(\d+)"(?=\s*[A-Za-z0-9(\-])')
_FOOT_MARK = re.compile(r"(\d+)'(?=\s*[A-Za-z0-9(\-])")
_TRAILING_COMMA = re.compile(r",\s*([}\]])")
_STRING_ESCAPES = {"\n": "\\n", "\r": "\\r", "\t": "\\t"}


class ParseError(ValueError):
    """Raised when no JSON value can be recovered from model output."""

    def __init__(self, source: str, detail: str) -> None:
        super().__init__(f"Failed to parse {source} AI response: {detail}")
        self.source = source
        self.detail = detail


def strip_code_fences(text: str) -> str:
    """Remove a surrounding markdown code fence, if any."""
    return _FENCE_CLOSE.sub("", _FENCE_OPEN.sub("", text))


def extract_json_island(text: str) -> str:
    """Return the span from the earliest `{`/`[` to the last `}`/`]`."""
    starts = [pos for pos in (text.find("{"), text.find("[")) if pos != -1]
    if not starts:
        return text
    start = min(starts)
    end = max(text.rfind("}"), text.rfind("]"))
    if end > start:
        return text[start : end + 1]
    return text


def _escape_control_chars_in_strings(text: str) -> str:
    """Escape literal newlines and tabs that sit inside JSON string values."""
    out = []
    in_string = False
    escaped = False
    for char in text:
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            elif char in _STRING_ESCAPES:
                out.append(_STRING_ESCAPES[char])
                continue
        elif char == '"':
            in_string = True
        out.append(char)
    return "".join(out)


def apply_repairs(text: str) -> str:
    """Apply the textual repair heuristics used when a direct parse fails."""
    repaired = _INCH_MARK.sub(r"\1 inches", text)
    repaired = _FOOT_MARK.sub(r"\1 feet", repaired)
    repaired = _TRAILING_COMMA.sub(r"\1", repaired)
    return _escape_control_chars_in_strings(repaired)


def repair(text: str, source: str) -> Any:
    """Parse model output into a JSON value, repairing common defects.

    Args:
        text: Raw completion text, possibly fenced or wrapped in prose.
        source: Label for the calling context, included in the error message.

    Returns:
        The decoded JSON value (usually a dict or list).

    Raises:
        ParseError: If the text cannot be decoded even after repair.
    """
    if text is None or not str(text).strip():
        raise ParseError(source, "empty response")

    candidate = extract_json_island(strip_code_fences(str(text)))

    try:
        return json.loads(candidate)
    except json.JSONDecodeError:
        LOGGER.debug("Direct parse of %s response failed; applying repairs", source)

    repaired = apply_repairs(candidate)
    try:
        return json.loads(repaired)
    except json.JSONDecodeError as exc:
        LOGGER.warning("Unable to repair %s response: %s", source, exc)
        raise ParseError(source, str(exc)) from exc
