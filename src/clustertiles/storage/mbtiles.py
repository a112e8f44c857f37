"""
MBTiles Writer

Thin sink over a single SQLite connection holding the two MBTiles tables.
All statements run on the event loop thread and are serialized through an
asyncio lock, so concurrent tile workers can submit rows without external
coordination.
"""

import asyncio
import sqlite3
from pathlib import Path
from typing import Any, Optional, Union

import structlog

from ..utils.exceptions import StorageError


METADATA_TABLE_DDL = 'CREATE TABLE metadata (name text, value text)'
TILES_TABLE_DDL = (
    'CREATE TABLE tiles (zoom_level integer, tile_column integer, '
    'tile_row integer, tile_data blob)'
)

INSERT_METADATA_SQL = 'INSERT INTO metadata (name, value) VALUES (?, ?)'
INSERT_TILE_SQL = (
    'INSERT INTO tiles (zoom_level, tile_column, tile_row, tile_data) '
    'VALUES (?, ?, ?, ?)'
)

# SQLite side files that belong to a container
SIDE_FILE_SUFFIXES = ('-journal', '-wal', '-shm')


class MBTilesWriter:
    """Write-only MBTiles container."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self.conn: Optional[sqlite3.Connection] = None
        self.rows_written = 0
        self._lock = asyncio.Lock()
        self.logger = structlog.get_logger(sink_type="MBTilesWriter", path=str(self.path))

    def remove_existing(self) -> bool:
        """Delete a previous container at the target path; returns True if one existed."""
        existed = self.path.exists()
        if existed:
            self.path.unlink()
            self.logger.info("Removed existing MBTiles container")

        for suffix in SIDE_FILE_SUFFIXES:
            side_file = Path(str(self.path) + suffix)
            if side_file.exists():
                side_file.unlink()

        return existed

    def open(self) -> None:
        """Open the connection, creating parent directories as needed."""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.conn = sqlite3.connect(str(self.path))
        except (OSError, sqlite3.Error) as e:
            raise StorageError(f"Failed to open MBTiles container {self.path}: {e}") from e

    def create_schema(self) -> None:
        """Create the metadata and tiles tables."""
        self._execute(METADATA_TABLE_DDL)
        self._execute(TILES_TABLE_DDL)
        self.logger.debug("MBTiles schema created")

    async def insert_metadata(self, name: str, value: Any) -> None:
        async with self._lock:
            self._execute(INSERT_METADATA_SQL, (name, str(value)))

    async def insert_tile(self, zoom: int, column: int, row: int, data: bytes) -> None:
        async with self._lock:
            self._execute(INSERT_TILE_SQL, (zoom, column, row, sqlite3.Binary(data)))
            self.rows_written += 1

    def close(self) -> None:
        """Commit written rows and close the connection."""
        if self.conn is None:
            return

        try:
            self.conn.commit()
        except sqlite3.Error as e:
            raise StorageError(f"Failed to commit MBTiles container {self.path}: {e}") from e
        finally:
            self.conn.close()
            self.conn = None

        self.logger.debug("MBTiles container closed", tile_rows=self.rows_written)

    def _execute(self, sql: str, params: tuple = ()) -> None:
        if self.conn is None:
            raise StorageError("MBTiles container is not open")

        try:
            self.conn.execute(sql, params)
        except sqlite3.Error as e:
            raise StorageError(f"MBTiles statement failed ({sql.split('(')[0].strip()}): {e}") from e
