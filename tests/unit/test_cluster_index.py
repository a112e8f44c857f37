"""
Unit Tests for the Point Cluster Index

Covers clustering across zoom levels, tile queries, cluster expansion zoom,
children and leaves, and property map/reduce aggregation.
"""

import unittest
from pathlib import Path

import sys
sys.path.append(str(Path(__file__).parent.parent.parent / "src"))

from clustertiles.clustering.cluster_index import PointClusterIndex, Tile


def point_feature(lon, lat, **properties):
    return {
        'type': 'Feature',
        'geometry': {'type': 'Point', 'coordinates': [lon, lat]},
        'properties': properties
    }


class TestPointClusterIndex(unittest.TestCase):
    """Test suite for PointClusterIndex."""

    def setUp(self):
        # Three points a few hundred meters apart in San Francisco
        self.close_points = [
            point_feature(-122.4194, 37.7749, name='a', visits=3),
            point_feature(-122.4184, 37.7759, name='b', visits=5),
            point_feature(-122.4174, 37.7739, name='c', visits=7),
        ]
        # Far away from the San Francisco group
        self.far_point = point_feature(139.6917, 35.6895, name='tokyo', visits=11)

    def test_single_tile_at_zoom_zero(self):
        """Test that nearby points collapse into one cluster at zoom 0."""
        index = PointClusterIndex(min_zoom=0, max_zoom=0).load(self.close_points)

        tile = index.get_tile(0, 0, 0)

        self.assertIsInstance(tile, Tile)
        self.assertEqual(len(tile.features), 1)

        cluster = tile.features[0]
        self.assertTrue(cluster.is_cluster)
        self.assertEqual(cluster.tags['point_count'], 3)
        self.assertEqual(cluster.tags['point_count_abbreviated'], 3)
        self.assertEqual(cluster.id, cluster.tags['cluster_id'])
        self.assertEqual(cluster.type, 1)

        x, y = cluster.geometry[0]
        self.assertTrue(0 <= x < 512)
        self.assertTrue(0 <= y < 512)

    def test_unclustered_level_beyond_max_zoom(self):
        """Test that max_zoom + 1 returns the individual input points."""
        index = PointClusterIndex(min_zoom=0, max_zoom=0).load(self.close_points)

        tile = index.get_tile(1, 0, 0)

        self.assertIsNotNone(tile)
        self.assertEqual(len(tile.features), 3)
        self.assertFalse(any(f.is_cluster for f in tile.features))
        self.assertEqual(sorted(f.tags['name'] for f in tile.features), ['a', 'b', 'c'])

    def test_empty_tile_returns_none(self):
        """Test that tiles without features are reported as absent."""
        index = PointClusterIndex(min_zoom=0, max_zoom=2).load(self.close_points)

        # San Francisco lies in the western, northern quadrant
        self.assertIsNotNone(index.get_tile(1, 0, 0))
        self.assertIsNone(index.get_tile(1, 1, 1))
        self.assertIsNone(index.get_tile(2, 3, 3))

    def test_distant_points_not_clustered(self):
        """Test that points far apart stay separate."""
        index = PointClusterIndex(min_zoom=0, max_zoom=3).load(
            self.close_points + [self.far_point]
        )

        tile = index.get_tile(0, 0, 0)
        counts = sorted(f.tags.get('point_count', 1) for f in tile.features)

        self.assertEqual(counts, [1, 3])

    def test_min_points_prevents_small_clusters(self):
        """Test that groups below min_points are carried over unclustered."""
        index = PointClusterIndex(min_zoom=0, max_zoom=0, min_points=4).load(self.close_points)

        tile = index.get_tile(0, 0, 0)

        self.assertEqual(len(tile.features), 3)
        self.assertFalse(any(f.is_cluster for f in tile.features))

    def test_cluster_expansion_zoom(self):
        """Test the zoom at which a cluster splits."""
        index = PointClusterIndex(min_zoom=0, max_zoom=0).load(self.close_points)
        cluster_id = index.get_tile(0, 0, 0).features[0].tags['cluster_id']

        self.assertEqual(index.get_cluster_expansion_zoom(cluster_id), 1)

    def test_cluster_expansion_zoom_follows_single_children(self):
        """Test that expansion zoom skips levels where the cluster stays whole."""
        index = PointClusterIndex(min_zoom=0, max_zoom=4).load(self.close_points)
        cluster_id = index.get_tile(0, 0, 0).features[0].tags['cluster_id']

        # The points stay together down to max_zoom and only split beyond it
        self.assertEqual(index.get_cluster_expansion_zoom(cluster_id), 5)

    def test_children_and_leaves(self):
        """Test navigation from a cluster down to its input points."""
        index = PointClusterIndex(min_zoom=0, max_zoom=0).load(self.close_points)
        cluster_id = index.get_tile(0, 0, 0).features[0].tags['cluster_id']

        children = index.get_children(cluster_id)
        self.assertEqual(len(children), 3)

        leaves = index.get_leaves(cluster_id, limit=2)
        self.assertEqual(len(leaves), 2)

        all_leaves = index.get_leaves(cluster_id, limit=10)
        self.assertEqual(
            sorted(leaf['properties']['name'] for leaf in all_leaves), ['a', 'b', 'c']
        )

    def test_get_children_unknown_cluster(self):
        """Test that an invalid cluster id raises."""
        index = PointClusterIndex(min_zoom=0, max_zoom=0).load(self.close_points)

        with self.assertRaises(ValueError):
            index.get_children(999999)

    def test_map_reduce_properties(self):
        """Test aggregation of point properties into cluster properties."""
        def map_properties(props):
            return {'visits': props['visits']}

        def reduce_properties(accumulated, props):
            accumulated['visits'] += props['visits']

        index = PointClusterIndex(
            min_zoom=0, max_zoom=0,
            map=map_properties, reduce=reduce_properties
        ).load(self.close_points)

        cluster = index.get_tile(0, 0, 0).features[0]

        self.assertEqual(cluster.tags['visits'], 15)
        # Input properties are left untouched
        self.assertEqual([p['properties']['visits'] for p in self.close_points], [3, 5, 7])

    def test_features_without_geometry_are_skipped(self):
        """Test that unusable input features do not break loading."""
        features = self.close_points + [
            {'type': 'Feature', 'geometry': None, 'properties': {}},
            {'type': 'Feature', 'geometry': {'type': 'Point', 'coordinates': []}},
        ]
        index = PointClusterIndex(min_zoom=0, max_zoom=0).load(features)

        tile = index.get_tile(0, 0, 0)

        self.assertEqual(tile.features[0].tags['point_count'], 3)

    def test_tile_tags_are_copies(self):
        """Test that mutating tile tags never touches input properties."""
        index = PointClusterIndex(min_zoom=0, max_zoom=0).load(self.close_points)

        for feature in index.get_tile(1, 0, 0).features:
            feature.tags['extra'] = True

        self.assertTrue(all('extra' not in p['properties'] for p in self.close_points))

    def test_tile_buffer_wraps_west_edge(self):
        """Test that points just east of the antimeridian show up in the westmost tile."""
        index = PointClusterIndex(min_zoom=0, max_zoom=0).load([
            point_feature(179.99, 10.0, name='east')
        ])

        tile = index.get_tile(1, 0, 0)

        self.assertIsNotNone(tile)
        self.assertEqual(len(tile.features), 1)
        x, y = tile.features[0].geometry[0]
        self.assertEqual(x, 0)
        self.assertEqual(y, 483)

    def test_tile_buffer_wraps_east_edge(self):
        """Test that points just west of the antimeridian show up in the eastmost tile."""
        index = PointClusterIndex(min_zoom=0, max_zoom=0).load([
            point_feature(-179.99, 10.0, name='west')
        ])

        tile = index.get_tile(1, 1, 0)

        self.assertIsNotNone(tile)
        self.assertEqual(len(tile.features), 1)
        x, y = tile.features[0].geometry[0]
        self.assertEqual(x, 512)
        self.assertEqual(y, 483)

    def test_only_unsigned_integer_ids_are_kept(self):
        """Test that boolean, negative and string ids are not used as feature ids."""
        features = []
        for lon, feature_id in ((-100.0, 7), (-50.0, True), (0.0, -5), (50.0, 'abc')):
            feature = point_feature(lon, 0.0, name=str(feature_id))
            feature['id'] = feature_id
            features.append(feature)

        index = PointClusterIndex(min_zoom=0, max_zoom=0).load(features)

        ids = {f.tags['name']: f.id for f in index.get_tile(0, 0, 0).features}
        self.assertEqual(ids, {'7': 7, 'True': None, '-5': None, 'abc': None})

    def test_abbreviated_point_count(self):
        """Test abbreviation of large cluster sizes."""
        from clustertiles.clustering.cluster_index import _Node

        self.assertEqual(PointClusterIndex._cluster_tags(_Node(0, 0, num_points=999))['point_count_abbreviated'], 999)
        self.assertEqual(PointClusterIndex._cluster_tags(_Node(0, 0, num_points=1000))['point_count_abbreviated'], '1k')
        self.assertEqual(PointClusterIndex._cluster_tags(_Node(0, 0, num_points=1550))['point_count_abbreviated'], '1.6k')
        self.assertEqual(PointClusterIndex._cluster_tags(_Node(0, 0, num_points=12345))['point_count_abbreviated'], '12k')


if __name__ == '__main__':
    unittest.main()
