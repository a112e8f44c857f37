"""
Vector Tile Encoder

Encodes a tile of tile-local features as a single-layer Mapbox Vector Tile.
Geometries are already in tile pixel space (y growing downwards), so they
are passed to the encoder without quantization.
"""

import json
from typing import Any, Dict, List

import mapbox_vector_tile
from shapely.geometry import LineString, MultiLineString, MultiPoint, Point, Polygon

from ..clustering.cluster_index import Tile, TileFeature


# Geometry types as used by tile-local features
POINT = 1
LINESTRING = 2
POLYGON = 3


class VectorTileEncoder:
    """Single-layer MVT encoder."""

    def __init__(self, layer_name: str, extent: int = 4096):
        self.layer_name = layer_name
        self.extent = extent

    def encode(self, tile: Tile) -> bytes:
        """Encode ``tile`` into MVT bytes."""
        layer = {
            'name': self.layer_name,
            'features': [self._prepare_feature(feature) for feature in tile.features]
        }

        return mapbox_vector_tile.encode(
            [layer],
            default_options={'extents': self.extent, 'y_coord_down': True}
        )

    def _prepare_feature(self, feature: TileFeature) -> Dict[str, Any]:
        prepared = {
            'geometry': self._to_geometry(feature),
            'properties': self._prepare_properties(feature.tags)
        }
        if feature.id is not None:
            prepared['id'] = feature.id
        return prepared

    @staticmethod
    def _prepare_properties(tags: Dict[str, Any]) -> Dict[str, Any]:
        """Keep scalar values; serialize nested values as JSON; drop nulls."""
        properties = {}
        for name, value in tags.items():
            if value is None:
                continue
            if isinstance(value, (bool, int, float, str)):
                properties[name] = value
            else:
                properties[name] = json.dumps(value, sort_keys=True)
        return properties

    @staticmethod
    def _to_geometry(feature: TileFeature):
        parts: List[Any] = feature.geometry

        if feature.type == POINT:
            if len(parts) == 1:
                return Point(parts[0])
            return MultiPoint(parts)

        if feature.type == LINESTRING:
            if len(parts) == 1:
                return LineString(parts[0])
            return MultiLineString(parts)

        if feature.type == POLYGON:
            return Polygon(parts[0], parts[1:])

        raise ValueError(f"Unsupported tile geometry type: {feature.type}")
