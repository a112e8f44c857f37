"""
Tile Generation Module

Builds the clustered vector-tile pyramid and persists it as MBTiles:

- traversal of every z/x/y tile with per-tile filtering and annotation
- field schema accumulation for the layer descriptor
- encode, gzip and insert through a parameterized worker pool
- container lifecycle and metadata assembly
"""

from .assembler import PyramidAssembler, build_layer_descriptor
from .context import PyramidRunContext, PyramidTile
from .coordinator import TileWorkerPool, TileWriteCoordinator
from .field_schema import FieldSchema
from .pipeline import build_tileset, run
from .pyramid_builder import TilePyramidBuilder
from .tile_encoder import VectorTileEncoder

__all__ = [
    "PyramidAssembler",
    "build_layer_descriptor",
    "PyramidRunContext",
    "PyramidTile",
    "TileWorkerPool",
    "TileWriteCoordinator",
    "FieldSchema",
    "build_tileset",
    "run",
    "TilePyramidBuilder",
    "VectorTileEncoder",
]
