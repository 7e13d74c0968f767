"""Field-guide metadata generation for identified species."""

import logging
from typing import Any, Dict, List, Optional

from services.openai.candidate_schema import pick_metadata
from services.openai.json_repair import ParseError, repair
from services.openai.provider_chain import ProviderChain, ProviderChainError

LOGGER = logging.getLogger(__name__)

_TEXT_FIELDS = ("habitat", "behavior", "description", "diet", "conservation_status")
_LIST_FIELDS = ("habitat_tags", "also_known_as", "diet_tags")
_OBJECT_FIELDS = {
    "nesting_info": ("description", "location", "type"),
    "identification_tips": ("male", "female", "juvenile"),
    "key_facts": ("size", "wingspan", "wing_shape", "tail_shape", "colors"),
    "taxonomy": ("family", "family_scientific", "genus", "genus_description", "order", "order_description"),
}


def _clean_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    if not text or text.lower() in ("unknown", "n/a", "none"):
        return None
    return text


def _clean_list(value: Any) -> List[str]:
    if isinstance(value, str):
        value = value.split(",")
    if not isinstance(value, list):
        return []
    return [text for text in (_clean_text(item) for item in value) if text]


def validate_bird_metadata(data: Any) -> Dict[str, Any]:
    """Normalise a field-guide object into the shape the client expects.

    Text fields holding placeholders such as "Unknown" become None, list fields
    default to empty lists and nested objects always carry their known keys.
    Unrecognised keys are kept as-is.
    """
    if not isinstance(data, dict):
        return {}
    result: Dict[str, Any] = dict(data)
    for key in _TEXT_FIELDS:
        result[key] = _clean_text(data.get(key))
    for key in _LIST_FIELDS:
        result[key] = _clean_list(data.get(key))
    for key, subkeys in _OBJECT_FIELDS.items():
        raw = data.get(key) if isinstance(data.get(key), dict) else {}
        cleaned = {sub: _clean_text(raw.get(sub)) for sub in subkeys}
        if key == "key_facts":
            cleaned["colors"] = _clean_list(raw.get("colors"))
        result[key] = cleaned
    return result


class MetadataGenerator:
    """Generate field-guide metadata through the provider chain."""

    def __init__(self, chain: ProviderChain) -> None:
        self.chain = chain

    async def generate(self, scientific_name: str) -> Optional[Dict[str, Any]]:
        """Return validated metadata for `scientific_name`, or None on failure.

        Provider and parse failures are logged and reported as None so a single
        species never fails the surrounding request.
        """
        try:
            provider_name, text = await self.chain.enrich(scientific_name)
        except ProviderChainError as exc:
            LOGGER.warning("Metadata generation failed for %s: %s", scientific_name, exc)
            return None

        try:
            payload = repair(text, f"{provider_name} metadata")
        except ParseError as exc:
            LOGGER.warning("Discarding metadata for %s: %s", scientific_name, exc)
            return None

        metadata = pick_metadata(payload)
        if metadata is None:
            LOGGER.warning("No species object in %s metadata for %s", provider_name, scientific_name)
            return None
        return validate_bird_metadata(metadata)
