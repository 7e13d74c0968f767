"""Newline-delimited JSON codec for the identification stream."""

import json
import logging
from typing import Any, Dict, Iterable, List, Optional, Union

from models.stream_chunk import StreamChunk

LOGGER = logging.getLogger(__name__)

NDJSON_MEDIA_TYPE = "application/x-ndjson"


def encode_chunk(chunk: Union[StreamChunk, Dict[str, Any]]) -> bytes:
    """Serialize one chunk as a single UTF-8 JSON line terminated by a newline."""
    payload = chunk.to_dict() if isinstance(chunk, StreamChunk) else chunk
    return (json.dumps(payload, ensure_ascii=False, separators=(",", ":")) + "\n").encode("utf-8")


def parse_ndjson_line(line: str) -> Optional[Dict[str, Any]]:
    """Decode one stream line, tolerating prose around the JSON object.

    Returns None for blank lines and for lines with no recoverable object.
    """
    text = line.strip()
    if not text:
        return None

    try:
        value = json.loads(text)
    except json.JSONDecodeError:
        value = None
        start, end = text.find("{"), text.rfind("}")
        if start != -1 and end > start:
            try:
                value = json.loads(text[start : end + 1])
            except json.JSONDecodeError:
                value = None
        if value is None:
            LOGGER.warning("Dropping unparseable stream line: %.200s", text)
            return None

    if not isinstance(value, dict):
        LOGGER.warning("Dropping non-object stream line: %.200s", text)
        return None
    return value


class NDJSONDecoder:
    """Incremental decoder that buffers partial lines across byte segments.

    Bytes are buffered until a newline arrives, so a multi-byte UTF-8
    character split between segments is decoded whole.
    """

    def __init__(self) -> None:
        self._buffer = b""

    def feed(self, segment: Union[bytes, str]) -> List[Dict[str, Any]]:
        """Append a segment and return the objects from every completed line."""
        if isinstance(segment, str):
            segment = segment.encode("utf-8")
        self._buffer += segment
        *lines, self._buffer = self._buffer.split(b"\n")
        return self._decode(lines)

    def flush(self) -> List[Dict[str, Any]]:
        """Decode whatever remains in the buffer as a final line."""
        remainder, self._buffer = self._buffer, b""
        return self._decode([remainder])

    @staticmethod
    def _decode(lines: Iterable[bytes]) -> List[Dict[str, Any]]:
        decoded = (parse_ndjson_line(line.decode("utf-8", errors="replace")) for line in lines)
        return [value for value in decoded if value is not None]
