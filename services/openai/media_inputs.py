"""Utilities to build multimodal chat-completion messages."""

import base64
from typing import Any, Dict, List

from models.identification_media import IdentificationMedia


def to_data_url(data: bytes, mime_type: str) -> str:
    """Convert raw bytes into a base64 data URL."""
    encoded = base64.b64encode(data).decode("utf-8")
    return f"data:{mime_type};base64,{encoded}"


def build_media_part(media: IdentificationMedia) -> Dict[str, Any]:
    """Return the content part carrying the image or audio clip."""
    if media.is_audio:
        return {
            "type": "input_audio",
            "input_audio": {
                "data": base64.b64encode(media.data).decode("utf-8"),
                "format": media.audio_format,
            },
        }
    return {"type": "image_url", "image_url": {"url": to_data_url(media.data, media.mime_type)}}


def build_identify_messages(
    system_prompt: str, user_prompt: str, media: IdentificationMedia
) -> List[Dict[str, Any]]:
    """Build the message list for an identification request."""
    return [
        {"role": "system", "content": system_prompt},
        {
            "role": "user",
            "content": [
                {"type": "text", "text": user_prompt},
                build_media_part(media),
            ],
        },
    ]


def build_text_messages(system_prompt: str, user_prompt: str) -> List[Dict[str, Any]]:
    """Build a plain text message list."""
    return [
        {"role": "system", "content": system_prompt},
        {"role": "user", "content": user_prompt},
    ]
