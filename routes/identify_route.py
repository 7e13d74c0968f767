"""FastAPI route for streaming bird identification."""

from typing import Optional

from fastapi import APIRouter, Header, HTTPException, Request
from fastapi.responses import StreamingResponse
from pydantic import BaseModel

from controllers.identify_controller import (
    build_identification_media,
    get_orchestrator,
    require_bearer_token,
    stream_identification,
)
from services.stream.protocol import NDJSON_MEDIA_TYPE

router = APIRouter(tags=["identify"])

STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


class IdentifyRequest(BaseModel):
    image: Optional[str] = None
    imagePath: Optional[str] = None
    audio: Optional[str] = None


@router.post("/identify-bird", summary="Identify a bird from an image or audio clip")
async def identify_bird(
    request: Request,
    payload: IdentifyRequest,
    authorization: Optional[str] = Header(None),
):
    """Validate the request, then stream identification results as NDJSON.

    Validation and configuration problems are reported as a JSON error before
    the stream starts; after that, failures travel inside the stream.
    """
    try:
        require_bearer_token(authorization)
        orchestrator = get_orchestrator(request)
        media = await build_identification_media(request, payload.image, payload.imagePath, payload.audio)
    except HTTPException:
        raise
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except Exception as exc:  # pylint: disable=broad-exception-caught
        raise HTTPException(status_code=500, detail="Failed to prepare identification request.") from exc

    return StreamingResponse(
        stream_identification(orchestrator, media),
        media_type=NDJSON_MEDIA_TYPE,
        headers=STREAM_HEADERS,
    )
