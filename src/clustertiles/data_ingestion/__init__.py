"""
Data Ingestion Module

Loads the GeoJSON point collection that feeds the cluster index, either as a
whole document or streamed one feature per line, and provides the point
geometry pre-filter applied before clustering.
"""

from .geojson_reader import GeoJSONReader, IngestionReport, LineResult
from .geometry_filter import filter_points, is_point_feature

__all__ = [
    "GeoJSONReader",
    "IngestionReport",
    "LineResult",
    "filter_points",
    "is_point_feature",
]
