"""
Storage Module

MBTiles container sink used by the pyramid assembler.
"""

from .mbtiles import MBTilesWriter, METADATA_TABLE_DDL, TILES_TABLE_DDL

__all__ = [
    "MBTilesWriter",
    "METADATA_TABLE_DDL",
    "TILES_TABLE_DDL",
]
