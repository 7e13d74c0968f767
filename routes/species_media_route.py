from typing import Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from controllers.species_media_controller import fetch_species_media

router = APIRouter(tags=["species-media"])


class SpeciesMediaRequest(BaseModel):
    scientific_name: str
    common_name: Optional[str] = None


@router.post("/fetch-bird-media")
async def post_fetch_bird_media(request: Request, payload: SpeciesMediaRequest):
    """Return hero image, map tiles, photos and sounds for one species."""
    try:
        result = await fetch_species_media(request, payload.scientific_name, payload.common_name)
    except HTTPException:
        raise
    except Exception as exc:
        raise HTTPException(status_code=500, detail=str(exc))
    return result
