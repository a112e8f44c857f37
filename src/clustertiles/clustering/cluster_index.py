"""
Point Cluster Index

Hierarchical greedy point clustering over a web-mercator unit square. Points
are clustered once per zoom level, from ``max_zoom`` down to ``min_zoom``,
each level merging neighbours of the level below that fall within
``radius / (extent * 2**zoom)``. Every level keeps its own STRtree so that
tile and neighbourhood queries stay local.

The index answers the two questions the tile pyramid needs: which
(clustered) features fall into tile z/x/y, and at which zoom a cluster
splits apart. Zoom ``max_zoom + 1`` holds the unclustered input points.
"""

import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Protocol, Tuple

import structlog
from pyproj import Transformer
from shapely import STRtree
from shapely.geometry import Point, box

from ..utils.strategies import PropertyMapper, PropertyReducer


WGS84_EPSG = 4326
WEB_MERCATOR_EPSG = 3857

# Half the web-mercator world width in meters
MERCATOR_HALF_WORLD = 20037508.342789244

# Latitude at which web mercator reaches the edge of the square world
MAX_LATITUDE = 85.0511287798066

# Cluster ids reserve 5 bits for the zoom the cluster was created at
ZOOM_BITS = 5


@dataclass
class TileFeature:
    """A feature in tile-local pixel coordinates."""
    geometry: List[Any]
    tags: Dict[str, Any] = field(default_factory=dict)
    type: int = 1
    id: Optional[int] = None

    @property
    def is_cluster(self) -> bool:
        return bool(self.tags.get('cluster'))


@dataclass
class Tile:
    """Features of one z/x/y tile."""
    features: List[TileFeature] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.features)


class ClusterIndex(Protocol):
    """Queries the tile pyramid relies on."""

    def get_tile(self, z: int, x: int, y: int) -> Optional[Tile]: ...

    def get_cluster_expansion_zoom(self, cluster_id: int) -> int: ...


@dataclass
class _Node:
    x: float
    y: float
    zoom: float = math.inf
    index: int = -1
    id: int = -1
    parent_id: int = -1
    num_points: int = 0
    properties: Optional[Dict[str, Any]] = None


@dataclass
class _ZoomLevel:
    nodes: List[_Node]
    tree: STRtree


class PointClusterIndex:
    """
    Cluster index over GeoJSON point features.

    Call ``load`` once with the input features; the index is read-only
    afterwards.
    """

    def __init__(
        self,
        min_zoom: int = 0,
        max_zoom: int = 16,
        radius: float = 40,
        extent: int = 512,
        node_size: int = 64,
        min_points: int = 2,
        map: Optional[PropertyMapper] = None,
        reduce: Optional[PropertyReducer] = None
    ):
        """
        Initialize the cluster index.

        Args:
            min_zoom: Lowest zoom level clusters are generated for
            max_zoom: Highest zoom level points are clustered on
            radius: Cluster radius in pixels, relative to ``extent``
            extent: Tile extent in pixels
            node_size: STRtree node capacity
            min_points: Minimum number of points forming a cluster
            map: Properties a point contributes to its cluster
            reduce: Merges mapped properties into a cluster's properties
        """
        self.min_zoom = min_zoom
        self.max_zoom = max_zoom
        self.radius = radius
        self.extent = extent
        self.node_size = node_size
        self.min_points = min_points
        self.map = map
        self.reduce = reduce

        self.points: List[Dict[str, Any]] = []
        self._levels: Dict[int, _ZoomLevel] = {}

        self.logger = structlog.get_logger(index_type="PointClusterIndex")

        self._to_mercator = Transformer.from_crs(WGS84_EPSG, WEB_MERCATOR_EPSG, always_xy=True)
        self._to_wgs84 = Transformer.from_crs(WEB_MERCATOR_EPSG, WGS84_EPSG, always_xy=True)

    def load(self, points: List[Dict[str, Any]]) -> "PointClusterIndex":
        """Build every zoom level from ``points``."""
        self.points = points

        indices = []
        lons = []
        lats = []
        for i, point in enumerate(points):
            coordinates = self._point_coordinates(point)
            if coordinates is None:
                continue
            indices.append(i)
            lons.append(coordinates[0])
            lats.append(coordinates[1])

        xs, ys = self._project(lons, lats)
        nodes = [_Node(x=x, y=y, index=i) for i, x, y in zip(indices, xs, ys)]

        self._levels = {self.max_zoom + 1: self._build_level(nodes)}

        for zoom in range(self.max_zoom, self.min_zoom - 1, -1):
            nodes = self._cluster(self._levels[zoom + 1], zoom)
            self._levels[zoom] = self._build_level(nodes)
            self.logger.debug("Clustered zoom level", zoom=zoom, clusters=len(nodes))

        self.logger.info(
            "Cluster index built",
            points=len(indices),
            skipped=len(points) - len(indices),
            min_zoom=self.min_zoom,
            max_zoom=self.max_zoom
        )
        return self

    def get_tile(self, z: int, x: int, y: int) -> Optional[Tile]:
        """Features in tile z/x/y in tile pixel coordinates, or None if empty."""
        level = self._levels.get(self._limit_zoom(z))
        if level is None:
            return None

        z2 = 2 ** z
        p = self.radius / self.extent
        top = (y - p) / z2
        bottom = (y + 1 + p) / z2

        features: List[TileFeature] = []
        self._add_tile_features(
            self._range(level, (x - p) / z2, top, (x + 1 + p) / z2, bottom),
            level, x, y, z2, features
        )

        # Wrap the buffer around the antimeridian
        if x == 0:
            self._add_tile_features(
                self._range(level, 1 - p / z2, top, 1, bottom),
                level, z2, y, z2, features
            )
        if x == z2 - 1:
            self._add_tile_features(
                self._range(level, 0, top, p / z2, bottom),
                level, -1, y, z2, features
            )

        return Tile(features) if features else None

    def get_children(self, cluster_id: int) -> List[Dict[str, Any]]:
        """Direct children of a cluster, as GeoJSON features."""
        origin_id = self._origin_id(cluster_id)
        origin_zoom = self._origin_zoom(cluster_id)
        error = ValueError(f"No cluster with id {cluster_id}")

        level = self._levels.get(origin_zoom)
        if level is None or not 0 <= origin_id < len(level.nodes):
            raise error

        origin = level.nodes[origin_id]
        r = self.radius / (self.extent * 2 ** (origin_zoom - 1))

        children = []
        for i in self._within(level, origin.x, origin.y, r):
            node = level.nodes[i]
            if node.parent_id == cluster_id:
                children.append(
                    self._cluster_feature(node) if node.num_points else self.points[node.index]
                )

        if not children:
            raise error
        return children

    def get_leaves(self, cluster_id: int, limit: int = 10, offset: int = 0) -> List[Dict[str, Any]]:
        """Input points under a cluster, paginated."""
        leaves: List[Dict[str, Any]] = []
        self._append_leaves(leaves, cluster_id, limit, offset, 0)
        return leaves

    def get_cluster_expansion_zoom(self, cluster_id: int) -> int:
        """Zoom level at which ``cluster_id`` splits into more than one child."""
        expansion_zoom = self._origin_zoom(cluster_id) - 1
        while expansion_zoom <= self.max_zoom:
            children = self.get_children(cluster_id)
            expansion_zoom += 1
            if len(children) != 1:
                break
            cluster_id = children[0]['properties']['cluster_id']
        return expansion_zoom

    def _cluster(self, level: _ZoomLevel, zoom: int) -> List[_Node]:
        """Merge the nodes of ``level`` into clusters for ``zoom``."""
        r = self.radius / (self.extent * 2 ** zoom)
        nodes = level.nodes
        clusters: List[_Node] = []

        for i, p in enumerate(nodes):
            if p.zoom <= zoom:
                continue
            p.zoom = zoom

            neighbor_ids = self._within(level, p.x, p.y, r)

            num_points_origin = p.num_points or 1
            num_points = num_points_origin
            for j in neighbor_ids:
                b = nodes[j]
                if b.zoom > zoom:
                    num_points += b.num_points or 1

            if num_points > num_points_origin and num_points >= self.min_points:
                wx = p.x * num_points_origin
                wy = p.y * num_points_origin

                cluster_properties = None
                if self.reduce and num_points_origin > 1:
                    cluster_properties = self._map(p, clone=True)

                cluster_id = (i << ZOOM_BITS) + (zoom + 1) + len(self.points)

                for j in neighbor_ids:
                    b = nodes[j]
                    if b.zoom <= zoom:
                        continue
                    b.zoom = zoom

                    weight = b.num_points or 1
                    wx += b.x * weight
                    wy += b.y * weight
                    b.parent_id = cluster_id

                    if self.reduce:
                        if cluster_properties is None:
                            cluster_properties = self._map(p, clone=True)
                        self.reduce(cluster_properties, self._map(b))

                p.parent_id = cluster_id
                clusters.append(_Node(
                    x=wx / num_points,
                    y=wy / num_points,
                    id=cluster_id,
                    num_points=num_points,
                    properties=cluster_properties
                ))
            else:
                clusters.append(p)

                # Too few neighbours to cluster; carry them over unchanged
                if num_points > 1:
                    for j in neighbor_ids:
                        b = nodes[j]
                        if b.zoom <= zoom:
                            continue
                        b.zoom = zoom
                        clusters.append(b)

        return clusters

    def _map(self, node: _Node, clone: bool = False) -> Dict[str, Any]:
        if node.num_points:
            return dict(node.properties or {}) if clone else (node.properties or {})

        original = self.points[node.index].get('properties') or {}
        result = self.map(original) if self.map else original
        return dict(result) if clone and result is original else result

    def _add_tile_features(
        self,
        ids: Iterable[int],
        level: _ZoomLevel,
        x: float,
        y: float,
        z2: int,
        features: List[TileFeature]
    ) -> None:
        for i in ids:
            node = level.nodes[i]

            if node.num_points:
                tags = self._cluster_tags(node)
                feature_id = node.id
            else:
                point = self.points[node.index]
                tags = dict(point.get('properties') or {})
                point_id = point.get('id')
                feature_id = point_id if _is_feature_id(point_id) else None

            features.append(TileFeature(
                geometry=[[
                    _round(self.extent * (node.x * z2 - x)),
                    _round(self.extent * (node.y * z2 - y))
                ]],
                tags=tags,
                id=feature_id
            ))

    def _append_leaves(
        self,
        result: List[Dict[str, Any]],
        cluster_id: int,
        limit: int,
        offset: int,
        skipped: int
    ) -> int:
        for child in self.get_children(cluster_id):
            props = child.get('properties') or {}

            if props.get('cluster'):
                if skipped + props['point_count'] <= offset:
                    skipped += props['point_count']
                else:
                    skipped = self._append_leaves(result, props['cluster_id'], limit, offset, skipped)
            elif skipped < offset:
                skipped += 1
            else:
                result.append(child)

            if len(result) == limit:
                break

        return skipped

    def _cluster_feature(self, node: _Node) -> Dict[str, Any]:
        lon, lat = self._unproject(node.x, node.y)
        return {
            'type': 'Feature',
            'id': node.id,
            'properties': self._cluster_tags(node),
            'geometry': {'type': 'Point', 'coordinates': [lon, lat]}
        }

    @staticmethod
    def _cluster_tags(node: _Node) -> Dict[str, Any]:
        count = node.num_points
        if count >= 10000:
            abbreviated = f"{_round(count / 1000)}k"
        elif count >= 1000:
            abbreviated = "%gk" % (_round(count / 100) / 10)
        else:
            abbreviated = count

        tags = dict(node.properties or {})
        tags.update({
            'cluster': True,
            'cluster_id': node.id,
            'point_count': count,
            'point_count_abbreviated': abbreviated
        })
        return tags

    def _build_level(self, nodes: List[_Node]) -> _ZoomLevel:
        tree = STRtree([Point(n.x, n.y) for n in nodes], node_capacity=self.node_size)
        return _ZoomLevel(nodes=nodes, tree=tree)

    def _within(self, level: _ZoomLevel, x: float, y: float, r: float) -> List[int]:
        r2 = r * r
        candidates = level.tree.query(box(x - r, y - r, x + r, y + r))
        result = []
        for i in sorted(int(i) for i in candidates):
            node = level.nodes[i]
            if (node.x - x) ** 2 + (node.y - y) ** 2 <= r2:
                result.append(i)
        return result

    @staticmethod
    def _range(level: _ZoomLevel, min_x: float, min_y: float, max_x: float, max_y: float) -> List[int]:
        return sorted(int(i) for i in level.tree.query(box(min_x, min_y, max_x, max_y)))

    def _limit_zoom(self, z: int) -> int:
        return max(self.min_zoom, min(int(math.floor(z)), self.max_zoom + 1))

    def _origin_id(self, cluster_id: int) -> int:
        return (cluster_id - len(self.points)) >> ZOOM_BITS

    def _origin_zoom(self, cluster_id: int) -> int:
        return (cluster_id - len(self.points)) % (1 << ZOOM_BITS)

    def _project(self, lons: List[float], lats: List[float]) -> Tuple[List[float], List[float]]:
        """Project lon/lat to the unit square, y growing southwards."""
        if not lons:
            return [], []

        lats = [max(-MAX_LATITUDE, min(MAX_LATITUDE, lat)) for lat in lats]
        mx, my = self._to_mercator.transform(lons, lats)

        world = 2 * MERCATOR_HALF_WORLD
        xs = [mx_i / world + 0.5 for mx_i in mx]
        ys = [min(1.0, max(0.0, 0.5 - my_i / world)) for my_i in my]
        return xs, ys

    def _unproject(self, x: float, y: float) -> Tuple[float, float]:
        world = 2 * MERCATOR_HALF_WORLD
        return self._to_wgs84.transform((x - 0.5) * world, (0.5 - y) * world)

    @staticmethod
    def _point_coordinates(point: Dict[str, Any]) -> Optional[Tuple[float, float]]:
        geometry = point.get('geometry') if isinstance(point, dict) else None
        if not isinstance(geometry, dict):
            return None

        coordinates = geometry.get('coordinates')
        if not isinstance(coordinates, (list, tuple)) or len(coordinates) < 2:
            return None

        try:
            return float(coordinates[0]), float(coordinates[1])
        except (TypeError, ValueError):
            return None


def _round(value: float) -> int:
    """Round half up, matching tile-coordinate conventions."""
    return int(math.floor(value + 0.5))


def _is_feature_id(value: Any) -> bool:
    """Vector tile feature ids are unsigned integers."""
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0
