from typing import Any, Dict, Optional

from fastapi import HTTPException, Request

from models.species_models import EnrichedMedia
from services.enrichment.species_cache import SOUNDS_CACHE_MAX_AGE
from services.lookups.gbif import build_tile_url


def build_media_response(media: EnrichedMedia) -> Dict[str, Any]:
    """Shape a media bundle as the species detail payload.

    The hero image prefers the Commons image, then the first observation
    photo; `map` is null when GBIF has no matching taxon.
    """
    image: Optional[Dict[str, Any]] = None
    if media.wikipedia_image:
        image = {"url": media.wikipedia_image, "attribution": None}
    elif media.inat_photos:
        first = media.inat_photos[0]
        image = {"url": first.url, "attribution": first.attribution}

    map_info: Optional[Dict[str, Any]] = None
    if media.gbif_taxon_key is not None:
        map_info = {"taxonKey": media.gbif_taxon_key, "tileUrl": build_tile_url(media.gbif_taxon_key)}

    payload = media.to_dict()
    return {
        "image": image,
        "map": map_info,
        "inat_photos": payload["inat_photos"],
        "sounds": payload["sounds"],
    }


async def fetch_species_media(request: Request, scientific_name: str, common_name: Optional[str] = None) -> Dict[str, Any]:
    """Return photos, sounds and map data for a species, cache first.

    Args:
        request: FastAPI Request (used to access shared clients/state).
        scientific_name: Species to look up.
        common_name: Optional common name stored alongside the cache row.

    Raises:
        HTTPException(400) if the name is blank, HTTPException(500) if the
        enrichment services are not initialized.
    """
    name = (scientific_name or "").strip()
    if not name:
        raise HTTPException(status_code=400, detail="scientific_name is required")

    aggregator = getattr(request.app.state, "media_aggregator", None)
    if aggregator is None:
        raise HTTPException(status_code=500, detail="Media enrichment not initialized.")

    species_cache = getattr(request.app.state, "species_cache", None)
    if species_cache is None:
        media = await aggregator.enrich(name)
    else:
        media = await species_cache.get_media(
            name, aggregator.enrich, max_age=SOUNDS_CACHE_MAX_AGE, common_name=common_name
        )
    return build_media_response(media)
