"""
Per-run state shared by the pyramid builder and the assembler.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..clustering.cluster_index import ClusterIndex, Tile
from ..data_ingestion.geojson_reader import IngestionReport
from ..monitoring.metrics import MetricsCollector
from ..utils.config import TileSetConfig
from .field_schema import FieldSchema


@dataclass
class PyramidTile:
    """One non-empty tile ready to be encoded and stored."""
    zoom: int
    column: int
    row: int
    tile: Tile

    @property
    def tile_row(self) -> int:
        """Row index as stored in MBTiles (bottom-left origin)."""
        return 2 ** self.zoom - 1 - self.row

    @property
    def tile_id(self) -> str:
        return f"{self.zoom}/{self.column}/{self.row}"


@dataclass
class PyramidRunContext:
    """
    State owned by a single pipeline run.

    Created by the orchestrating call and handed by reference to the
    traversal and the assembler; nothing here outlives the run.
    """
    config: TileSetConfig
    cluster_index: ClusterIndex
    input_features: List[Dict[str, Any]] = field(default_factory=list)
    field_schema: FieldSchema = field(default_factory=FieldSchema)
    metrics: MetricsCollector = field(default_factory=MetricsCollector)
    ingestion: Optional[IngestionReport] = None
