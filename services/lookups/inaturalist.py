"""iNaturalist adapter: taxon resolution and species photos."""

import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

from models.species_models import Photo
from services.lookups.http_json import get_json

INAT_API_URL = "https://api.inaturalist.org/v1"
MAX_SPECIES_PHOTOS = 6
SPECIES_RANKS = ("species", "subspecies")

# Observation annotation terms (iNaturalist controlled vocabulary).
TERM_LIFE_STAGE = 1
VALUE_JUVENILE = 8
TERM_SEX = 9
VALUE_MALE = 11
VALUE_FEMALE = 10
TERM_ALIVE_OR_DEAD = 17
VALUE_DEAD = 19

BAD_WORDS = ("dead", "specimen", "museum", "plucked", "carcass", "roadkill", "skull", "bones", "research")
_EXCLUDED_TAGS = "dead,specimen,museum,plucked,research,roadkill,carcass"
_OBSERVATION_FIELDS = "photos.url,photos.license_code,photos.attribution,annotations,tags,description"
_SIZE_SUFFIX = re.compile(r"/(square|small|medium|thumb)\.")


@dataclass(frozen=True)
class TaxonInfo:
    """Resolved iNaturalist taxon."""

    id: int
    name: str
    rank: Optional[str] = None

    @property
    def is_species_level(self) -> bool:
        return (self.rank or "").lower() in SPECIES_RANKS


def to_large_url(url: str) -> str:
    """Rewrite an iNaturalist thumbnail URL to its large variant."""
    return _SIZE_SUFFIX.sub("/large.", url)


def is_appropriate_observation(observation: Dict[str, Any]) -> bool:
    """Reject observations of dead birds, specimens and museum material."""
    for annotation in observation.get("annotations") or []:
        if (
            annotation.get("controlled_attribute_id", annotation.get("term_id")) == TERM_ALIVE_OR_DEAD
            and annotation.get("controlled_value_id", annotation.get("term_value_id")) == VALUE_DEAD
        ):
            return False

    for tag in observation.get("tags") or []:
        tag_text = str(tag.get("tag", "") if isinstance(tag, dict) else tag).lower()
        if any(word in tag_text for word in BAD_WORDS):
            return False

    description = str(observation.get("description") or "").lower()
    return not any(word in description for word in BAD_WORDS)


class INaturalistClient:
    """Thin client over the iNaturalist v1 API."""

    def __init__(self, http_client: httpx.AsyncClient, base_url: str = INAT_API_URL) -> None:
        self.http = http_client
        self.base_url = base_url.rstrip("/")

    async def resolve_taxon(self, scientific_name: str) -> Optional[TaxonInfo]:
        """Resolve a scientific name to a taxon.

        An exact (case-insensitive) name match wins; otherwise the first result
        is accepted only when one name contains the other.
        """
        data = await get_json(
            self.http,
            f"{self.base_url}/taxa",
            params={"q": scientific_name, "rank": "species,subspecies", "per_page": 10},
            label="iNaturalist taxa search",
        )
        results = (data or {}).get("results") or []
        if not results:
            return None

        wanted = scientific_name.strip().lower()
        match = next((r for r in results if str(r.get("name", "")).lower() == wanted), None)
        if match is None:
            first_name = str(results[0].get("name", "")).lower()
            if first_name and (wanted in first_name or first_name in wanted):
                match = results[0]
        if match is None or match.get("id") is None:
            return None
        return TaxonInfo(id=match["id"], name=match.get("name", scientific_name), rank=match.get("rank"))

    async def fetch_species_photos(self, taxon_id: int) -> List[Photo]:
        """Return up to six large photos curated for the taxon."""
        data = await get_json(self.http, f"{self.base_url}/taxa/{taxon_id}", label="iNaturalist taxon")
        results = (data or {}).get("results") or []
        if not results:
            return []

        taxon = results[0]
        raw_photos = [entry.get("photo") or {} for entry in taxon.get("taxon_photos") or []]
        if not raw_photos and taxon.get("default_photo"):
            raw_photos = [taxon["default_photo"]]

        photos: List[Photo] = []
        for photo in raw_photos:
            url = photo.get("url") or photo.get("medium_url") or photo.get("small_url")
            if not url:
                continue
            photos.append(
                Photo(
                    url=to_large_url(url),
                    attribution=photo.get("attribution") or "Unknown",
                    license=photo.get("license_code") or "CC-BY-NC",
                    id=photo.get("id"),
                    provider="inaturalist",
                )
            )
            if len(photos) >= MAX_SPECIES_PHOTOS:
                break
        return photos

    async def fetch_gendered_photo(self, taxon_id: int, sex: str) -> Optional[str]:
        """Return a large photo URL of a male or female bird, if one is annotated."""
        value = VALUE_MALE if sex == "male" else VALUE_FEMALE
        return await self._fetch_annotated_photo(taxon_id, TERM_SEX, value, f"iNaturalist {sex} photo")

    async def fetch_juvenile_photo(self, taxon_id: int) -> Optional[str]:
        """Return a large photo URL of a juvenile bird, if one is annotated."""
        return await self._fetch_annotated_photo(
            taxon_id, TERM_LIFE_STAGE, VALUE_JUVENILE, "iNaturalist juvenile photo"
        )

    async def _fetch_annotated_photo(self, taxon_id: int, term_id: int, value_id: int, label: str) -> Optional[str]:
        data = await get_json(
            self.http,
            f"{self.base_url}/observations",
            params={
                "taxon_id": taxon_id,
                "term_id": term_id,
                "term_value_id": value_id,
                "quality_grade": "research",
                "per_page": 5,
                "order_by": "votes",
                "not_tag": _EXCLUDED_TAGS,
                "fields": _OBSERVATION_FIELDS,
            },
            label=label,
        )
        for observation in (data or {}).get("results") or []:
            if not is_appropriate_observation(observation):
                continue
            photos = observation.get("photos") or []
            if photos and photos[0].get("url"):
                return to_large_url(photos[0]["url"])
        return None
