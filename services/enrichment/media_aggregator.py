"""Concurrent media lookup for one species across all external sources."""

import asyncio
import logging
from typing import Any, Awaitable, Optional

from models.species_models import EnrichedMedia
from services.lookups.gbif import GbifClient
from services.lookups.inaturalist import INaturalistClient
from services.lookups.wikimedia import WikimediaClient
from services.lookups.xeno_canto import XenoCantoClient

LOGGER = logging.getLogger(__name__)

MIN_PHOTOS_BEFORE_FALLBACK = 3


async def _none() -> None:
    return None


class MediaAggregator:
    """Gather photos, recordings and a map key for a scientific name.

    The taxon is resolved once, then every independent lookup runs
    concurrently. Each branch is isolated: a failure empties that field only.
    """

    def __init__(
        self,
        inaturalist: INaturalistClient,
        xeno_canto: XenoCantoClient,
        wikimedia: WikimediaClient,
        gbif: GbifClient,
    ) -> None:
        self.inaturalist = inaturalist
        self.xeno_canto = xeno_canto
        self.wikimedia = wikimedia
        self.gbif = gbif

    async def enrich(self, scientific_name: str) -> EnrichedMedia:
        """Return the media bundle for `scientific_name`."""
        taxon = await self._guard(self.inaturalist.resolve_taxon(scientific_name), "taxon", scientific_name)

        if taxon is not None:
            photos_call = self.inaturalist.fetch_species_photos(taxon.id)
            if taxon.is_species_level:
                male_call = self.inaturalist.fetch_gendered_photo(taxon.id, "male")
                female_call = self.inaturalist.fetch_gendered_photo(taxon.id, "female")
                juvenile_call = self.inaturalist.fetch_juvenile_photo(taxon.id)
            else:
                male_call, female_call, juvenile_call = _none(), _none(), _none()
        else:
            LOGGER.info("No iNaturalist taxon for %s; skipping photo lookups", scientific_name)
            photos_call, male_call, female_call, juvenile_call = _none(), _none(), _none(), _none()

        photos, male, female, juvenile, sounds, gbif_key = await asyncio.gather(
            self._guard(photos_call, "photos", scientific_name),
            self._guard(male_call, "male photo", scientific_name),
            self._guard(female_call, "female photo", scientific_name),
            self._guard(juvenile_call, "juvenile photo", scientific_name),
            self._guard(self.xeno_canto.fetch_sounds(scientific_name), "sounds", scientific_name),
            self._guard(self.gbif.match_taxon_key(scientific_name), "GBIF key", scientific_name),
        )
        photos = photos or []

        wikipedia_image: Optional[str] = None
        if len(photos) < MIN_PHOTOS_BEFORE_FALLBACK:
            wikipedia_image = await self._guard(
                self.wikimedia.fetch_image(scientific_name), "Wikimedia image", scientific_name
            )

        return EnrichedMedia(
            inat_photos=photos,
            male_image_url=male,
            female_image_url=female,
            juvenile_image_url=juvenile,
            sounds=sounds or [],
            wikipedia_image=wikipedia_image,
            gbif_taxon_key=gbif_key,
        )

    @staticmethod
    async def _guard(call: Awaitable[Any], field_name: str, scientific_name: str) -> Any:
        """Await `call`, logging and returning None if it raises."""
        try:
            return await call
        except Exception as exc:  # pylint: disable=broad-exception-caught
            LOGGER.warning("Lookup of %s for %s failed: %s", field_name, scientific_name, exc)
            return None
