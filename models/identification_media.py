from __future__ import annotations

from dataclasses import dataclass

IMAGE = "image"
AUDIO = "audio"


@dataclass(frozen=True)
class IdentificationMedia:
    """Decoded media payload submitted for identification.

    Attributes:
        kind: Either "image" or "audio".
        data: Raw (not base64) media bytes.
        mime_type: MIME type derived from the bytes, e.g. "image/jpeg" or "audio/wav".
    """

    kind: str
    data: bytes
    mime_type: str

    @property
    def is_audio(self) -> bool:
        return self.kind == AUDIO

    @property
    def audio_format(self) -> str:
        """Format name accepted by chat-completions audio input ("wav" or "mp3")."""
        return "mp3" if self.mime_type in ("audio/mpeg", "audio/mp3") else "wav"
