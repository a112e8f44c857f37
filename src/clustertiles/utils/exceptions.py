"""
Exception hierarchy for tile pyramid generation.
"""

from typing import Optional


class ClusterTilesError(Exception):
    """Base class for all errors raised by clustertiles."""


class TileProcessingError(ClusterTilesError):
    """A single tile could not be turned into a stored row."""

    def __init__(self, message: str, z: int, x: int, y: int, cause: Optional[BaseException] = None):
        super().__init__(f"Tile z:{z}, x:{x}, y:{y}: {message}")
        self.z = z
        self.x = x
        self.y = y
        self.cause = cause

    @property
    def tile_id(self) -> str:
        return f"{self.z}/{self.x}/{self.y}"


class TileEncodingError(TileProcessingError):
    """Vector tile encoding failed."""


class TileCompressionError(TileProcessingError):
    """Gzip compression of an encoded tile failed."""


class OversizedTileError(TileProcessingError):
    """Compressed tile exceeded the size limit and the run is configured to fail."""


class StorageError(ClusterTilesError):
    """The MBTiles container could not be created or written."""
