"""GBIF adapter: taxon keys for occurrence density maps."""

import logging
from typing import Optional

import httpx

from services.lookups.http_json import get_json

LOGGER = logging.getLogger(__name__)

GBIF_API_URL = "https://api.gbif.org/v1"
MAP_TILE_TEMPLATE = (
    "https://api.gbif.org/v2/map/occurrence/density/{{z}}/{{x}}/{{y}}@1x.png"
    "?taxonKey={taxon_key}&style=purpleYellow.poly"
)


def build_tile_url(taxon_key: int) -> str:
    """Return the XYZ tile URL template for a taxon's occurrence density map."""
    return MAP_TILE_TEMPLATE.format(taxon_key=taxon_key)


class GbifClient:
    """Resolve scientific names against the GBIF backbone taxonomy."""

    def __init__(self, http_client: httpx.AsyncClient, base_url: str = GBIF_API_URL) -> None:
        self.http = http_client
        self.base_url = base_url.rstrip("/")

    async def match_taxon_key(self, scientific_name: str) -> Optional[int]:
        """Return the GBIF usage key for `scientific_name`, or None when unmatched."""
        data = await get_json(
            self.http,
            f"{self.base_url}/species/match",
            params={"name": scientific_name},
            label="GBIF species match",
        )
        key = (data or {}).get("usageKey")
        if key is None:
            LOGGER.debug("No GBIF match for %s", scientific_name)
            return None
        try:
            return int(key)
        except (TypeError, ValueError):
            return None
