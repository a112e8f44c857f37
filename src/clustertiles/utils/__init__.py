"""
Shared configuration, strategy interfaces, errors and logging setup.
"""

from .config import TileSetConfig, MAX_TILE_BYTES
from .exceptions import (
    ClusterTilesError,
    TileProcessingError,
    TileEncodingError,
    TileCompressionError,
    OversizedTileError,
    StorageError,
)
from .logging import configure_logging

__all__ = [
    "TileSetConfig",
    "MAX_TILE_BYTES",
    "ClusterTilesError",
    "TileProcessingError",
    "TileEncodingError",
    "TileCompressionError",
    "OversizedTileError",
    "StorageError",
    "configure_logging",
]
