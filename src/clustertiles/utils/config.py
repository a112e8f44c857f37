"""
Tile Set Configuration

Explicit configuration for a clustered tile pyramid run. Defaults are named
fields on a dataclass; caller options are overlaid once at entry by
``TileSetConfig.from_options`` and the resulting object is treated as
read-only for the rest of the run.
"""

from dataclasses import dataclass, fields, replace
from typing import Any, Dict, Mapping, Optional

from .strategies import (
    GeometryMapper,
    InputGeometryFilter,
    PropertyMapper,
    PropertyReducer,
    TagFilter,
)


# Compressed tiles above this size are reported as oversized
MAX_TILE_BYTES = 500000

# Highest zoom level accepted for clustering
MAX_SUPPORTED_ZOOM = 24

# camelCase option names accepted alongside the dataclass field names
OPTION_ALIASES = {
    'minZoom': 'min_zoom',
    'maxZoom': 'max_zoom',
    'nodeSize': 'node_size',
    'minPoints': 'min_points',
    'storeClusterExpansionZoom': 'store_cluster_expansion_zoom',
    'tileSpecVersion': 'tile_spec_version',
    'inputGeometryFilter': 'input_geometry_filter',
    'geometryMapper': 'geometry_mapper',
    'filter': 'tag_filter',
    'includeUnclustered': 'include_unclustered',
    'readByLine': 'read_by_line',
    'gzipSynchronously': 'gzip_synchronously',
    'logPerformance': 'log_performance',
    'maxTileBytes': 'max_tile_bytes',
    'failOnOversizedTile': 'fail_on_oversized_tile',
}


@dataclass(frozen=True)
class TileSetConfig:
    """Configuration for one clustered MBTiles build."""
    input: Optional[str] = None
    output: Optional[str] = None

    # Cluster index
    min_zoom: int = 0
    max_zoom: int = 8
    radius: float = 40
    extent: int = 512
    node_size: int = 64
    min_points: int = 2
    map: Optional[PropertyMapper] = None
    reduce: Optional[PropertyReducer] = None
    store_cluster_expansion_zoom: bool = False
    include_unclustered: bool = False

    # Container metadata
    name: Optional[str] = None
    bounds: str = "-180.0,-85,180,85"
    center: str = "0,0,0"
    tile_spec_version: int = 2
    layer: str = "geojsonLayer"
    attribution: Optional[str] = None
    description: Optional[str] = None

    # Strategies
    input_geometry_filter: Optional[InputGeometryFilter] = None
    geometry_mapper: Optional[GeometryMapper] = None
    tag_filter: Optional[TagFilter] = None

    # Ingestion and execution
    read_by_line: bool = False
    gzip_synchronously: bool = False
    concurrency: Optional[int] = None
    max_tile_bytes: int = MAX_TILE_BYTES
    fail_on_oversized_tile: bool = False
    log_performance: bool = False

    def __post_init__(self):
        self.validate()

    @classmethod
    def from_options(cls, options: Optional[Mapping[str, Any]] = None) -> "TileSetConfig":
        """
        Build a configuration by overlaying ``options`` onto the defaults.

        Args:
            options: Option mapping keyed by field name or camelCase alias

        Returns:
            Validated configuration

        Raises:
            ValueError: If an option is unknown or a value is out of range
        """
        known = {f.name for f in fields(cls)}
        overrides: Dict[str, Any] = {}

        for key, value in (options or {}).items():
            field_name = OPTION_ALIASES.get(key, key)
            if field_name not in known:
                raise ValueError(f"Unknown tile set option: {key}")
            overrides[field_name] = value

        return cls(**overrides)

    def with_overrides(self, **overrides: Any) -> "TileSetConfig":
        """Return a copy with the given fields replaced."""
        return replace(self, **overrides)

    @property
    def effective_max_zoom(self) -> int:
        """Highest zoom traversed; one level deeper when unclustered points are kept."""
        return self.max_zoom + (1 if self.include_unclustered else 0)

    @property
    def worker_limit(self) -> Optional[int]:
        """Number of tiles allowed in flight; None means unbounded."""
        if self.gzip_synchronously:
            return 1
        return self.concurrency

    @property
    def container_name(self) -> str:
        return self.name or str(self.output or "")

    def validate(self) -> None:
        """Validate value ranges."""
        if self.min_zoom < 0 or self.max_zoom > MAX_SUPPORTED_ZOOM:
            raise ValueError(f"Zoom levels must be between 0 and {MAX_SUPPORTED_ZOOM}")

        if self.min_zoom > self.max_zoom:
            raise ValueError(
                f"min_zoom ({self.min_zoom}) must not exceed max_zoom ({self.max_zoom})"
            )

        if self.radius <= 0 or self.extent <= 0 or self.node_size <= 0:
            raise ValueError("radius, extent and node_size must be positive")

        if self.min_points < 2:
            raise ValueError("min_points must be at least 2")

        if self.concurrency is not None and self.concurrency < 1:
            raise ValueError("concurrency must be None or a positive integer")

        if self.max_tile_bytes <= 0:
            raise ValueError("max_tile_bytes must be positive")

    def require_paths(self) -> None:
        """Ensure both input and output are set for a full run."""
        if not self.input:
            raise ValueError("No input GeoJSON file specified")
        if not self.output:
            raise ValueError("No output MBTiles path specified")
