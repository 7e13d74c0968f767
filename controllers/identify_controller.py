import logging
from typing import AsyncIterator, Optional

from fastapi import HTTPException, Request

from models.identification_media import IdentificationMedia
from models.stream_chunk import CANDIDATES, StreamChunk
from services.image_store import read_uploaded_image
from services.stream.orchestrator import IdentificationOrchestrator
from services.stream.protocol import encode_chunk
from utils.media_validation import decode_base64_payload, prepare_audio, prepare_image

LOGGER = logging.getLogger(__name__)

IDENTIFICATION_FAILED_MESSAGE = "Identification failed. Please try again."


def require_bearer_token(authorization: Optional[str]) -> str:
    """Return the bearer token from an Authorization header or raise 401.

    Token validity is checked by the upstream auth gateway; this service only
    requires that a credential was presented.
    """
    if not authorization:
        raise HTTPException(status_code=401, detail="Missing authorization header.")
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise HTTPException(status_code=401, detail="Authorization header must use the Bearer scheme.")
    return token.strip()


def get_orchestrator(request: Request) -> IdentificationOrchestrator:
    """Return the identification orchestrator, failing when no provider is configured."""
    config = getattr(request.app.state, "config", None)
    if config is not None and not config.has_completion_provider:
        raise HTTPException(status_code=500, detail="No completion provider API key is configured.")
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise HTTPException(status_code=500, detail="Identification pipeline not initialized.")
    return orchestrator


async def build_identification_media(
    request: Request,
    image: Optional[str],
    image_path: Optional[str],
    audio: Optional[str],
) -> IdentificationMedia:
    """Validate that exactly one media field is set and decode it.

    Args:
        request: FastAPI Request (used to access the configured upload directory).
        image: Base64 image, optionally as a data URL.
        image_path: Path of an image uploaded beforehand, relative to UPLOAD_DIR.
        audio: Base64 audio clip (WAV, MP3 or raw 16-bit PCM).

    Returns:
        The decoded media ready for the completion provider.

    Raises:
        HTTPException(400) for missing, conflicting or malformed media,
        HTTPException(404) for an unknown imagePath,
        HTTPException(415) for unsupported formats,
        HTTPException(500) when imagePath is used without an upload directory.
    """
    supplied = [name for name, value in (("image", image), ("imagePath", image_path), ("audio", audio)) if value]
    if not supplied:
        raise HTTPException(status_code=400, detail="No image or audio provided.")
    if len(supplied) > 1:
        raise HTTPException(
            status_code=400, detail=f"Provide exactly one of image, imagePath or audio (got {', '.join(supplied)})."
        )

    if audio:
        return prepare_audio(decode_base64_payload(audio, "audio"))
    if image:
        return prepare_image(decode_base64_payload(image, "image"))

    config = getattr(request.app.state, "config", None)
    upload_dir = getattr(config, "upload_dir", None)
    if not upload_dir:
        raise HTTPException(status_code=500, detail="UPLOAD_DIR is not configured.")
    try:
        data = await read_uploaded_image(upload_dir, image_path)
    except FileNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return prepare_image(data)


async def stream_identification(
    orchestrator: IdentificationOrchestrator, media: IdentificationMedia
) -> AsyncIterator[bytes]:
    """Encode the orchestrator's chunks as NDJSON lines.

    An unexpected failure before candidates were sent ends the stream with an
    error chunk; after that the partial result stands and the failure is logged.
    """
    sent_candidates = False
    try:
        async for chunk in orchestrator.run(media):
            if chunk.type == CANDIDATES:
                sent_candidates = True
            yield encode_chunk(chunk)
    except Exception:  # pylint: disable=broad-exception-caught
        if sent_candidates:
            LOGGER.exception("Identification stream failed after candidates were sent")
            return
        LOGGER.exception("Identification stream failed before candidates")
        yield encode_chunk(StreamChunk.error(IDENTIFICATION_FAILED_MESSAGE))
