"""
clustertiles

Builds clustered vector-tile pyramids from GeoJSON point collections and
stores them as MBTiles containers for map-rendering clients.
"""

__version__ = "1.0.0"

from . import data_ingestion
from . import clustering
from . import tile_generation
from . import storage
from . import monitoring
from . import utils

from .tile_generation.pipeline import build_tileset, run
from .utils.config import TileSetConfig

__all__ = [
    "data_ingestion",
    "clustering",
    "tile_generation",
    "storage",
    "monitoring",
    "utils",
    "build_tileset",
    "run",
    "TileSetConfig",
]
