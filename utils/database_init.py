import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

import aiosqlite

_ADDED_COLUMNS = ("gbif_taxon_key", "media_updated_at", "metadata_updated_at")


class AsyncDatabaseInitializer:
    """
    Manage the async SQLite database that backs the species cache.

    - The database file is located at: <database_dir>/species.db
    - `database_dir` is required. A RuntimeError is raised if it is missing
      or invalid (not a directory and cannot be created).
    - The first call to `ensure_database()` creates the `species_cache` table
      when it does not exist yet. Existing rows are kept across restarts.
    - Subsequent calls to `ensure_database()` on the same instance are no-ops,
      so it is safe for `connection()` to call it.
    """

    def __init__(self, database_dir: Path | str | None) -> None:
        if database_dir is None or not str(database_dir).strip():
            raise RuntimeError(
                "DATABASE_DIR environment variable must be set to a writable "
                "directory path where the SQLite database file will be stored."
            )

        db_dir = Path(database_dir).expanduser()

        # If the path exists but is not a directory, that's a configuration error.
        if db_dir.exists() and not db_dir.is_dir():
            raise RuntimeError(
                f"DATABASE_DIR={str(database_dir)!r} points to a file, not a directory "
                f"({db_dir}). Please set DATABASE_DIR to a directory path."
            )

        try:
            db_dir.mkdir(parents=True, exist_ok=True)
        except Exception as exc:
            raise RuntimeError(
                f"Failed to create or access database directory at {db_dir}"
            ) from exc

        self.db_dir = db_dir
        self.db_path = self.db_dir / "species.db"
        self._initialized = False

    async def ensure_database(self) -> None:
        """
        Ensure the species cache schema exists at `self.db_path`.

        Subsequent calls on the same instance are no-ops.
        """
        if self._initialized:
            return

        max_attempts = 3
        for attempt in range(1, max_attempts + 1):
            try:
                async with aiosqlite.connect(self.db_path) as db:
                    await db.execute(
                        """
                        CREATE TABLE IF NOT EXISTS species_cache (
                            scientific_name TEXT PRIMARY KEY,
                            common_name TEXT,
                            inat_photos TEXT,
                            male_image_url TEXT,
                            female_image_url TEXT,
                            juvenile_image_url TEXT,
                            sounds TEXT,
                            wikipedia_image TEXT,
                            gbif_taxon_key INTEGER,
                            identification_data TEXT,
                            media_updated_at INTEGER,
                            metadata_updated_at INTEGER,
                            updated_at INTEGER NOT NULL
                        )
                        """
                    )

                    # Older databases may predate the GBIF and per-part timestamp columns.
                    cur = await db.execute("PRAGMA table_info(species_cache)")
                    cols = await cur.fetchall()
                    col_names = {col[1] for col in cols}
                    for column in _ADDED_COLUMNS:
                        if column not in col_names:
                            await db.execute(f"ALTER TABLE species_cache ADD COLUMN {column} INTEGER")

                    await db.commit()
                break
            except FileNotFoundError:
                # On some platforms a transient missing file error may occur; retry a few times.
                if attempt >= max_attempts:
                    raise
                await asyncio.sleep(0.1 * attempt)

        self._initialized = True

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[aiosqlite.Connection]:
        """
        Async context manager yielding an `aiosqlite.Connection`.

        The schema is created on first use via `ensure_database()`.
        """
        await self.ensure_database()
        conn = await aiosqlite.connect(self.db_path)
        try:
            yield conn
        finally:
            await conn.close()
