"""Xeno-canto adapter: bird song and call recordings."""

import logging
import re
from typing import Any, Dict, List, Optional

import httpx

from models.species_models import BirdSound
from services.lookups.http_json import get_json

LOGGER = logging.getLogger(__name__)

XENO_CANTO_API_URL = "https://xeno-canto.org/api/3/recordings"
MAX_PER_TYPE = 2

_UPLOAD_DIR = re.compile(r"sounds/uploaded/([^/]+)/")
_DOWNLOAD_ID = re.compile(r"xeno-canto\.org/(\d+)/download")


def _osci_url(recording: Optional[Dict[str, Any]]) -> str:
    osci = (recording or {}).get("osci") or {}
    return osci.get("large") or osci.get("medium") or osci.get("small") or ""


def fix_xeno_canto_url(url: Optional[str], recording: Optional[Dict[str, Any]] = None) -> str:
    """Normalise a Xeno-canto URL into a directly playable https link.

    Protocol-relative URLs gain an https scheme. A `/<id>/download` redirect is
    rewritten to the uploaded file path when the recording's sonogram URL
    reveals the uploader directory.
    """
    if not url:
        return ""
    fixed = f"https:{url}" if url.startswith("//") else url

    osci = _osci_url(recording)
    if "xeno-canto.org" in fixed and fixed.endswith("/download") and osci:
        dir_match = _UPLOAD_DIR.search(osci)
        id_match = _DOWNLOAD_ID.search(fixed)
        if dir_match and id_match:
            file_name = (recording or {}).get("file-name") or f"XC{id_match.group(1)}.mp3"
            return f"https://xeno-canto.org/sounds/uploaded/{dir_match.group(1)}/{file_name}"
    return fixed


def is_song(recording: Dict[str, Any]) -> bool:
    return "song" in str(recording.get("type") or "").lower()


def is_call(recording: Dict[str, Any]) -> bool:
    """A call is any recording typed "call" that is not also a song."""
    return "call" in str(recording.get("type") or "").lower() and not is_song(recording)


def to_bird_sound(recording: Dict[str, Any], sound_type: str) -> BirdSound:
    """Map one archive recording onto a BirdSound."""
    genus = recording.get("gen") or ""
    species = recording.get("sp") or ""
    return BirdSound(
        id=str(recording.get("id", "")),
        scientific_name=f"{genus} {species}".strip(),
        common_name=recording.get("en"),
        url=fix_xeno_canto_url(recording.get("file"), recording),
        waveform=fix_xeno_canto_url(_osci_url(recording)) or None,
        type=sound_type,
        quality=recording.get("q"),
        recorder=recording.get("rec"),
        license=recording.get("lic"),
        duration=recording.get("length"),
        location=recording.get("loc"),
        country=recording.get("cnt"),
    )


def select_sounds(recordings: List[Dict[str, Any]]) -> List[BirdSound]:
    """Keep up to two songs followed by up to two calls."""
    songs = [to_bird_sound(r, "song") for r in recordings if is_song(r)][:MAX_PER_TYPE]
    calls = [to_bird_sound(r, "call") for r in recordings if is_call(r)][:MAX_PER_TYPE]
    return songs + calls


class XenoCantoClient:
    """Client for the Xeno-canto v3 recordings API."""

    def __init__(self, http_client: httpx.AsyncClient, api_key: Optional[str], base_url: str = XENO_CANTO_API_URL) -> None:
        self.http = http_client
        self.api_key = api_key
        self.base_url = base_url

    async def fetch_sounds(self, scientific_name: str) -> List[BirdSound]:
        """Return quality-A songs and calls for the species."""
        if not self.api_key:
            LOGGER.debug("XENO_CANTO_API_KEY not set, skipping sounds for %s", scientific_name)
            return []

        data = await get_json(
            self.http,
            self.base_url,
            params={"query": f'sp:"{scientific_name}" q:A', "key": self.api_key},
            label="Xeno-canto recordings",
        )
        recordings = [r for r in (data or {}).get("recordings") or [] if isinstance(r, dict)]
        return select_sounds(recordings)
