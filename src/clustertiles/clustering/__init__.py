"""
Clustering Module

Cluster index queried by the tile pyramid, and the tile feature types it
returns.
"""

from .cluster_index import ClusterIndex, PointClusterIndex, Tile, TileFeature

__all__ = [
    "ClusterIndex",
    "PointClusterIndex",
    "Tile",
    "TileFeature",
]
