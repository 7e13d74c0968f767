"""Cache-first access to species media and field-guide metadata."""

import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from dal.species_cache_dal import SpeciesCacheDAL
from models.species_cache_entry import SpeciesCacheEntry
from models.species_models import EnrichedMedia

LOGGER = logging.getLogger(__name__)

DAY_SECONDS = 24 * 60 * 60
# Combined media + metadata entries used by the identification stream.
MEDIA_CACHE_MAX_AGE = 14 * DAY_SECONDS
# Media-only lookups (photos, sounds, map) served by /fetch-bird-media.
SOUNDS_CACHE_MAX_AGE = 7 * DAY_SECONDS

MediaFetcher = Callable[[str], Awaitable[EnrichedMedia]]
MetadataFetcher = Callable[[str], Awaitable[Optional[Dict[str, Any]]]]


class SpeciesCache:
    """Apply the staleness rules on top of SpeciesCacheDAL.

    Cache read/write errors are logged and treated as a miss so enrichment
    still runs without a working store.
    """

    def __init__(self, dal: SpeciesCacheDAL) -> None:
        self.dal = dal

    async def get(self, scientific_name: str) -> Optional[SpeciesCacheEntry]:
        try:
            return await self.dal.get(scientific_name)
        except Exception as exc:  # pylint: disable=broad-exception-caught
            LOGGER.warning("Species cache read failed for %s: %s", scientific_name, exc)
            return None

    async def put(
        self,
        scientific_name: str,
        media: Optional[EnrichedMedia] = None,
        metadata: Optional[Dict[str, Any]] = None,
        common_name: Optional[str] = None,
    ) -> None:
        if media is None and metadata is None:
            return
        try:
            await self.dal.put(scientific_name, media, metadata, common_name=common_name)
        except Exception as exc:  # pylint: disable=broad-exception-caught
            LOGGER.warning("Species cache write failed for %s: %s", scientific_name, exc)

    async def get_media(
        self,
        scientific_name: str,
        fetch_media: MediaFetcher,
        *,
        max_age: float = MEDIA_CACHE_MAX_AGE,
        common_name: Optional[str] = None,
    ) -> EnrichedMedia:
        """Return fresh cached media or refresh it through `fetch_media`.

        A stale entry's media is returned when the refresh comes back empty,
        and fields a partial refresh left empty are filled from it.
        """
        entry = await self.get(scientific_name)
        if entry is not None and not entry.is_media_stale(max_age) and not entry.media.is_empty():
            return entry.media

        media = await fetch_media(scientific_name)
        if entry is not None and not entry.media.is_empty():
            if media.is_empty():
                LOGGER.info("Refresh for %s returned nothing; serving stale media", scientific_name)
                return entry.media
            media = media.merged_over(entry.media)

        await self.put(scientific_name, media=media, common_name=common_name)
        return media

    async def get_metadata(
        self,
        scientific_name: str,
        fetch_metadata: MetadataFetcher,
        *,
        max_age: float = MEDIA_CACHE_MAX_AGE,
        common_name: Optional[str] = None,
    ) -> Optional[Dict[str, Any]]:
        """Return fresh cached metadata or regenerate it through `fetch_metadata`."""
        entry = await self.get(scientific_name)
        if entry is not None and not entry.is_metadata_stale(max_age) and entry.has_metadata:
            return entry.identification_data

        metadata = await fetch_metadata(scientific_name)
        if not metadata:
            if entry is not None and entry.has_metadata:
                LOGGER.info("Metadata refresh for %s failed; serving stale metadata", scientific_name)
                return entry.identification_data
            return None

        await self.put(scientific_name, metadata=metadata, common_name=common_name)
        return metadata
