from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from models.species_models import EnrichedMedia


@dataclass
class SpeciesCacheEntry:
    """Represents a row in the species_cache table.

    Attributes:
        scientific_name: Primary key; the species' scientific name.
        common_name: Common name recorded with the last refresh.
        media: Photos, recordings and map key from the last media refresh.
        identification_data: Field-guide metadata, or None when never generated.
        media_updated_at: Unix timestamp of the last media write, if any.
        metadata_updated_at: Unix timestamp of the last metadata write, if any.
        updated_at: Unix timestamp (seconds) of the last upsert.
    """

    scientific_name: str
    common_name: Optional[str] = None
    media: EnrichedMedia = field(default_factory=EnrichedMedia)
    identification_data: Optional[Dict[str, Any]] = None
    media_updated_at: Optional[int] = None
    metadata_updated_at: Optional[int] = None
    updated_at: int = 0

    def age(self, now: Optional[float] = None) -> float:
        """Seconds since the entry was last written."""
        return _age(self.updated_at, now)

    def is_stale(self, max_age: float, now: Optional[float] = None) -> bool:
        """True when the entry is older than `max_age` seconds."""
        return self.age(now) > max_age

    def is_media_stale(self, max_age: float, now: Optional[float] = None) -> bool:
        """True when the media was last written more than `max_age` seconds ago."""
        written = self.media_updated_at if self.media_updated_at is not None else self.updated_at
        return _age(written, now) > max_age

    def is_metadata_stale(self, max_age: float, now: Optional[float] = None) -> bool:
        """True when the metadata was last written more than `max_age` seconds ago."""
        written = self.metadata_updated_at if self.metadata_updated_at is not None else self.updated_at
        return _age(written, now) > max_age

    @property
    def has_metadata(self) -> bool:
        return bool(self.identification_data)


def _age(timestamp: int, now: Optional[float]) -> float:
    current = time.time() if now is None else now
    return current - timestamp
