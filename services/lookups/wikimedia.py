"""Wikimedia Commons adapter used as a fallback image source."""

from typing import Optional

import httpx

from services.lookups.http_json import get_json

COMMONS_API_URL = "https://commons.wikimedia.org/w/api.php"
FILE_NAMESPACE = 6
THUMB_WIDTH = 1024


class WikimediaClient:
    """Search Commons for a representative species image."""

    def __init__(self, http_client: httpx.AsyncClient, base_url: str = COMMONS_API_URL) -> None:
        self.http = http_client
        self.base_url = base_url

    async def fetch_image(self, scientific_name: str) -> Optional[str]:
        """Return the first raster image URL matching "<name> bird", or None."""
        data = await get_json(
            self.http,
            self.base_url,
            params={
                "action": "query",
                "format": "json",
                "generator": "search",
                "gsrsearch": f"{scientific_name} bird",
                "gsrnamespace": FILE_NAMESPACE,
                "gsrlimit": 3,
                "prop": "imageinfo",
                "iiprop": "url|mime",
                "iiurlwidth": THUMB_WIDTH,
            },
            label="Wikimedia search",
        )
        pages = ((data or {}).get("query") or {}).get("pages") or {}
        ordered = sorted(pages.values(), key=lambda page: page.get("index", 0))
        for page in ordered:
            for info in page.get("imageinfo") or []:
                mime = str(info.get("mime") or "")
                if mime.startswith("image/") and "svg" not in mime:
                    url = info.get("thumburl") or info.get("url")
                    if url:
                        return url
        return None
