"""Dataclasses describing identified species and their enrichment bundles."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class Taxonomy:
    """Taxonomic placement reported by the identification model."""

    family: Optional[str] = None
    family_scientific: Optional[str] = None
    genus: Optional[str] = None
    genus_description: Optional[str] = None
    order: Optional[str] = None
    order_description: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Any) -> "Taxonomy":
        if not isinstance(data, dict):
            return cls()
        return cls(**{key: _as_text(data.get(key)) for key in cls.__dataclass_fields__})


@dataclass
class Candidate:
    """One species guess returned by the identification phase.

    Attributes:
        name: Common name of the species.
        scientific_name: Binomial (or trinomial) name used as the enrichment key.
        confidence: Model confidence, always within [0, 1].
        taxonomy: Family/genus/order placement.
        extra: Any additional fields the model returned, kept for the client.
    """

    name: str
    scientific_name: str
    confidence: float = 0.0
    taxonomy: Taxonomy = field(default_factory=Taxonomy)
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data = dict(self.extra)
        data.update(
            {
                "name": self.name,
                "scientific_name": self.scientific_name,
                "confidence": self.confidence,
                "taxonomy": asdict(self.taxonomy),
            }
        )
        return data


@dataclass
class Photo:
    """A species photo from the observation index."""

    url: str
    attribution: str = "Unknown"
    license: str = "CC-BY-NC"
    id: Optional[int] = None
    provider: str = "inaturalist"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Photo":
        return cls(
            url=data.get("url", ""),
            attribution=data.get("attribution") or "Unknown",
            license=data.get("license") or "CC-BY-NC",
            id=data.get("id"),
            provider=data.get("provider") or "inaturalist",
        )


@dataclass
class BirdSound:
    """A recording from the bioacoustic archive."""

    id: str
    scientific_name: str
    common_name: Optional[str]
    url: str
    waveform: Optional[str]
    type: str
    quality: Optional[str] = None
    recorder: Optional[str] = None
    license: Optional[str] = None
    duration: Optional[str] = None
    location: Optional[str] = None
    country: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BirdSound":
        return cls(**{key: data.get(key) for key in cls.__dataclass_fields__})


@dataclass
class EnrichedMedia:
    """Photos, recordings and map data gathered for one species."""

    inat_photos: List[Photo] = field(default_factory=list)
    male_image_url: Optional[str] = None
    female_image_url: Optional[str] = None
    juvenile_image_url: Optional[str] = None
    sounds: List[BirdSound] = field(default_factory=list)
    wikipedia_image: Optional[str] = None
    gbif_taxon_key: Optional[int] = None

    def is_empty(self) -> bool:
        """True when no lookup produced anything usable."""
        return not (
            self.inat_photos
            or self.male_image_url
            or self.female_image_url
            or self.juvenile_image_url
            or self.sounds
            or self.wikipedia_image
            or self.gbif_taxon_key
        )

    def merged_over(self, previous: "EnrichedMedia") -> "EnrichedMedia":
        """Fill fields this refresh left empty from `previous`."""
        return EnrichedMedia(
            inat_photos=self.inat_photos or previous.inat_photos,
            male_image_url=self.male_image_url or previous.male_image_url,
            female_image_url=self.female_image_url or previous.female_image_url,
            juvenile_image_url=self.juvenile_image_url or previous.juvenile_image_url,
            sounds=self.sounds or previous.sounds,
            wikipedia_image=self.wikipedia_image or previous.wikipedia_image,
            gbif_taxon_key=self.gbif_taxon_key or previous.gbif_taxon_key,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "EnrichedMedia":
        data = data or {}
        return cls(
            inat_photos=[Photo.from_dict(p) for p in data.get("inat_photos") or [] if isinstance(p, dict)],
            male_image_url=data.get("male_image_url"),
            female_image_url=data.get("female_image_url"),
            juvenile_image_url=data.get("juvenile_image_url"),
            sounds=[BirdSound.from_dict(s) for s in data.get("sounds") or [] if isinstance(s, dict)],
            wikipedia_image=data.get("wikipedia_image"),
            gbif_taxon_key=data.get("gbif_taxon_key"),
        )


def _as_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None
