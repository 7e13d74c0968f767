"""Extraction of species candidates from decoded identification output."""

import logging
from typing import Any, Dict, List, Optional, Sequence

from models.species_models import Candidate, Taxonomy

LOGGER = logging.getLogger(__name__)

MAX_CANDIDATES = 3
# Field names the model has been seen to use for the candidate list, in priority order.
CANDIDATE_KEYS = (
    "candidates",
    "birds",
    "results",
    "species",
    "predictions",
    "identifications",
    "matches",
)


def find_candidate_list(payload: Any, keys: Sequence[str] = CANDIDATE_KEYS) -> List[Any]:
    """Return the first non-empty list found under one of `keys`.

    A bare list is returned as-is and a single object carrying a `name` is
    treated as a one-element list. Anything else yields an empty list.
    """
    if isinstance(payload, list):
        return payload
    if not isinstance(payload, dict):
        return []
    for key in keys:
        value = payload.get(key)
        if isinstance(value, list) and value:
            return value
    if payload.get("name") or payload.get("scientific_name"):
        return [payload]
    return []


def normalize_confidence(value: Any) -> float:
    """Coerce a model-reported confidence into [0, 1]."""
    try:
        confidence = float(value)
    except (TypeError, ValueError):
        return 0.0
    if confidence != confidence:  # NaN
        return 0.0
    if 1.0 < confidence <= 100.0:
        confidence /= 100.0
    return max(0.0, min(1.0, confidence))


def normalize_candidate(raw: Any) -> Optional[Candidate]:
    """Convert one raw entry into a Candidate, or None when it is unusable."""
    if not isinstance(raw, dict):
        return None
    name = str(raw.get("name") or raw.get("common_name") or "").strip()
    scientific_name = str(raw.get("scientific_name") or raw.get("scientificName") or "").strip()
    if not name and not scientific_name:
        return None
    known = {"name", "common_name", "scientific_name", "scientificName", "confidence", "taxonomy"}
    return Candidate(
        name=name or scientific_name,
        scientific_name=scientific_name or name,
        confidence=normalize_confidence(raw.get("confidence")),
        taxonomy=Taxonomy.from_dict(raw.get("taxonomy")),
        extra={key: value for key, value in raw.items() if key not in known},
    )


def extract_candidates(payload: Any, limit: int = MAX_CANDIDATES) -> List[Candidate]:
    """Return up to `limit` candidates in the model's own order."""
    candidates: List[Candidate] = []
    for raw in find_candidate_list(payload):
        candidate = normalize_candidate(raw)
        if candidate is None:
            LOGGER.debug("Skipping unusable candidate entry: %r", raw)
            continue
        candidates.append(candidate)
        if len(candidates) >= limit:
            break
    return candidates


def pick_metadata(payload: Any) -> Optional[Dict[str, Any]]:
    """Pick the single species object from a field-guide response."""
    if isinstance(payload, list):
        return payload[0] if payload and isinstance(payload[0], dict) else None
    if not isinstance(payload, dict):
        return None
    for key in ("birds", "candidates"):
        value = payload.get(key)
        if isinstance(value, list) and value and isinstance(value[0], dict):
            return value[0]
    if payload.get("name") or payload.get("scientific_name"):
        return payload
    return None
