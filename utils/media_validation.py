"""Validation helpers for submitted image and audio payloads."""

import base64
import binascii
import io
import re
import struct

from fastapi import HTTPException
from PIL import Image, UnidentifiedImageError

from models.identification_media import AUDIO, IMAGE, IdentificationMedia

ALLOWED_IMAGE_FORMATS = {"JPEG", "PNG", "WEBP", "GIF", "BMP", "MPO"}
WAV_HEADER_SIZE = 44
DEFAULT_SAMPLE_RATE = 44100

_DATA_URL_PREFIX = re.compile(r"^data:[^;,]+(;[^,]*)?,")


def decode_base64_payload(value: str, field_name: str) -> bytes:
    """Decode a base64 string, accepting an optional data-URL prefix."""
    if not value or not value.strip():
        raise HTTPException(status_code=400, detail=f"{field_name} must not be empty.")
    cleaned = _DATA_URL_PREFIX.sub("", value.strip(), count=1)
    cleaned = "".join(cleaned.split())
    # Some clients drop the trailing padding.
    cleaned += "=" * (-len(cleaned) % 4)
    try:
        data = base64.b64decode(cleaned, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise HTTPException(status_code=400, detail=f"{field_name} is not valid base64.") from exc
    if not data:
        raise HTTPException(status_code=400, detail=f"{field_name} decoded to an empty payload.")
    return data


def detect_image_mime(data: bytes) -> str:
    """Return the MIME type of an image, rejecting unreadable or unsupported data."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            image_format = img.format
            img.verify()
    except (UnidentifiedImageError, OSError, SyntaxError) as exc:
        raise HTTPException(status_code=400, detail="Uploaded image could not be read.") from exc

    if image_format not in ALLOWED_IMAGE_FORMATS:
        raise HTTPException(status_code=415, detail=f"Unsupported image format: {image_format}")
    if image_format == "MPO":
        return "image/jpeg"
    return Image.MIME.get(image_format, "image/jpeg")


def is_wav_header_present(data: bytes) -> bool:
    """True when `data` starts with a RIFF/WAVE header."""
    return len(data) >= 12 and data[:4] == b"RIFF" and data[8:12] == b"WAVE"


def is_mp3(data: bytes) -> bool:
    """True for an ID3-tagged file or a bare MPEG audio frame sync."""
    if data[:3] == b"ID3":
        return True
    return len(data) >= 2 and data[0] == 0xFF and (data[1] & 0xE0) == 0xE0


def add_wav_header(
    pcm: bytes, sample_rate: int = DEFAULT_SAMPLE_RATE, channels: int = 1, bits_per_sample: int = 16
) -> bytes:
    """Prefix raw PCM samples with a 44-byte WAV header."""
    byte_rate = sample_rate * channels * bits_per_sample // 8
    block_align = channels * bits_per_sample // 8
    header = struct.pack(
        "<4sI4s4sIHHIIHH4sI",
        b"RIFF",
        36 + len(pcm),
        b"WAVE",
        b"fmt ",
        16,
        1,
        channels,
        sample_rate,
        byte_rate,
        block_align,
        bits_per_sample,
        b"data",
        len(pcm),
    )
    return header + pcm


def prepare_audio(data: bytes) -> IdentificationMedia:
    """Return audio ready for the model: WAV or MP3, wrapping raw PCM as WAV."""
    if is_wav_header_present(data):
        return IdentificationMedia(AUDIO, data, "audio/wav")
    if is_mp3(data):
        return IdentificationMedia(AUDIO, data, "audio/mpeg")
    if len(data) % 2:
        raise HTTPException(status_code=415, detail="Unsupported audio format; send WAV, MP3 or 16-bit PCM.")
    return IdentificationMedia(AUDIO, add_wav_header(data), "audio/wav")


def prepare_image(data: bytes) -> IdentificationMedia:
    """Return a validated image payload with its detected MIME type."""
    return IdentificationMedia(IMAGE, data, detect_image_mime(data))
