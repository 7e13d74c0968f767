"""Tagged union of messages pushed over the identification stream."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

PROGRESS = "progress"
CANDIDATES = "candidates"
MEDIA = "media"
METADATA = "metadata"
HEARTBEAT = "heartbeat"
DONE = "done"
ERROR = "error"

TERMINAL_TYPES = (DONE, ERROR)


@dataclass(frozen=True)
class StreamChunk:
    """One line of the identification stream.

    Only the fields relevant to `type` are set; `to_dict` omits the rest so the
    wire form stays `{"type": ..., <payload fields>}`.
    """

    type: str
    message: Optional[str] = None
    data: Any = None
    index: Optional[int] = None
    raw_content: Optional[str] = None
    duration: Optional[int] = None

    @classmethod
    def progress(cls, message: str) -> "StreamChunk":
        return cls(type=PROGRESS, message=message)

    @classmethod
    def candidates(cls, candidates: List[Dict[str, Any]], raw_content: Optional[str] = None) -> "StreamChunk":
        return cls(type=CANDIDATES, data=candidates, raw_content=raw_content)

    @classmethod
    def media(cls, index: int, media: Dict[str, Any]) -> "StreamChunk":
        return cls(type=MEDIA, index=index, data=media)

    @classmethod
    def metadata(cls, index: int, metadata: Dict[str, Any]) -> "StreamChunk":
        return cls(type=METADATA, index=index, data=metadata)

    @classmethod
    def heartbeat(cls) -> "StreamChunk":
        return cls(type=HEARTBEAT)

    @classmethod
    def done(cls, duration_ms: int) -> "StreamChunk":
        return cls(type=DONE, duration=duration_ms)

    @classmethod
    def error(cls, message: str) -> "StreamChunk":
        return cls(type=ERROR, message=message)

    @property
    def is_terminal(self) -> bool:
        return self.type in TERMINAL_TYPES

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"type": self.type}
        for key in ("message", "index", "data", "raw_content", "duration"):
            value = getattr(self, key)
            if value is not None:
                payload[key] = value
        return payload
