"""Async Data Access Layer for the species_cache table.

Provides SpeciesCacheDAL with lookups and merging upserts keyed on the
scientific name, compatible with `utils.database_init.AsyncDatabaseInitializer`.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import asdict
from typing import Any, Dict, List, Optional, Sequence

from models.species_cache_entry import SpeciesCacheEntry
from models.species_models import EnrichedMedia
from utils.database_init import AsyncDatabaseInitializer

LOGGER = logging.getLogger(__name__)


class SpeciesCacheDAL:
    """Data access layer for species_cache rows.

    Writes are upserts: a column passed as None keeps its stored value, so
    callers can refresh media and metadata independently. Empty photo and
    sound lists are written as None for the same reason. Media and metadata
    carry their own write timestamps. Concurrent writers for the same
    species resolve as last-write-wins.
    """

    _COLUMNS = (
        "scientific_name",
        "common_name",
        "inat_photos",
        "male_image_url",
        "female_image_url",
        "juvenile_image_url",
        "sounds",
        "wikipedia_image",
        "gbif_taxon_key",
        "identification_data",
        "media_updated_at",
        "metadata_updated_at",
        "updated_at",
    )
    _COLUMN_LIST = ", ".join(_COLUMNS)
    _PLACEHOLDERS = ", ".join("?" for _ in _COLUMNS)
    _MERGE_SET = ", ".join(
        f"{col} = COALESCE(excluded.{col}, species_cache.{col})" for col in _COLUMNS[1:-1]
    ) + ", updated_at = excluded.updated_at"

    def __init__(self, db_initializer: AsyncDatabaseInitializer) -> None:
        self._db = db_initializer

    async def get(self, scientific_name: str) -> Optional[SpeciesCacheEntry]:
        """Return the cached entry for `scientific_name`, or None if absent."""
        async with self._db.connection() as conn:
            cur = await conn.execute(
                f"SELECT {self._COLUMN_LIST} FROM species_cache WHERE scientific_name = ?",
                (scientific_name,),
            )
            row = await cur.fetchone()
            return self._row_to_entry(row) if row else None

    async def put(
        self,
        scientific_name: str,
        media: Optional[EnrichedMedia] = None,
        metadata: Optional[Dict[str, Any]] = None,
        *,
        common_name: Optional[str] = None,
        updated_at: Optional[int] = None,
    ) -> None:
        """Insert or merge a row for `scientific_name`.

        Args:
            scientific_name: Primary key of the row.
            media: Media fields to store; None leaves stored media untouched.
            metadata: Field-guide data to store; None leaves stored metadata untouched.
            common_name: Optional common name; None keeps the stored one.
            updated_at: Unix timestamp for the write, defaults to now.
        """
        written_at = updated_at or int(time.time())
        params: List[Any] = [scientific_name, common_name]
        if media is not None:
            params.extend(
                [
                    _dumps_list([asdict(p) for p in media.inat_photos]),
                    media.male_image_url,
                    media.female_image_url,
                    media.juvenile_image_url,
                    _dumps_list([asdict(s) for s in media.sounds]),
                    media.wikipedia_image,
                    media.gbif_taxon_key,
                ]
            )
        else:
            params.extend([None] * 7)
        params.append(json.dumps(metadata) if metadata is not None else None)
        params.append(written_at if media is not None else None)
        params.append(written_at if metadata is not None else None)
        params.append(written_at)

        async with self._db.connection() as conn:
            await conn.execute(
                f"INSERT INTO species_cache ({self._COLUMN_LIST}) VALUES ({self._PLACEHOLDERS}) "
                f"ON CONFLICT(scientific_name) DO UPDATE SET {self._MERGE_SET}",
                tuple(params),
            )
            await conn.commit()

    @staticmethod
    def _row_to_entry(row: Sequence[Any]) -> SpeciesCacheEntry:
        """Convert a DB row tuple into a SpeciesCacheEntry."""
        media = EnrichedMedia.from_dict(
            {
                "inat_photos": _loads(row[2], []),
                "male_image_url": row[3],
                "female_image_url": row[4],
                "juvenile_image_url": row[5],
                "sounds": _loads(row[6], []),
                "wikipedia_image": row[7],
                "gbif_taxon_key": row[8],
            }
        )
        return SpeciesCacheEntry(
            scientific_name=row[0],
            common_name=row[1],
            media=media,
            identification_data=_loads(row[9], None),
            media_updated_at=row[10],
            metadata_updated_at=row[11],
            updated_at=row[12] or 0,
        )


def _loads(raw: Optional[str], default: Any) -> Any:
    if raw is None:
        return default
    try:
        return json.loads(raw)
    except (TypeError, ValueError):
        LOGGER.warning("Ignoring malformed JSON in species_cache column")
        return default


def _dumps_list(items: List[Dict[str, Any]]) -> Optional[str]:
    return json.dumps(items) if items else None
