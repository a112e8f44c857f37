"""
Unit Tests for the Command Line Interface
"""

import argparse
import json
import shutil
import sqlite3
import tempfile
import unittest
from pathlib import Path

import sys
sys.path.append(str(Path(__file__).parent.parent.parent / "src"))

from clustertiles.cli import build_parser, config_from_args, load_callable, main
from clustertiles.data_ingestion.geometry_filter import is_point_feature


class TestLoadCallable(unittest.TestCase):
    """Test suite for strategy import paths."""

    def test_resolves_attribute(self):
        self.assertIs(load_callable("json:dumps"), json.dumps)
        self.assertIs(load_callable("os.path:join"), __import__('os').path.join)

    def test_rejects_invalid_paths(self):
        for path in ("json", "json:", ":dumps", "json:missing", "no_such_module_xyz:run", "os:sep"):
            with self.subTest(path=path):
                with self.assertRaises(argparse.ArgumentTypeError):
                    load_callable(path)


class TestConfigFromArgs(unittest.TestCase):
    """Test suite for argument translation."""

    def setUp(self):
        self.parser = build_parser()

    def test_defaults(self):
        config = config_from_args(self.parser.parse_args(["in.geojson", "out.mbtiles"]))

        self.assertEqual(config.input, "in.geojson")
        self.assertEqual(config.output, "out.mbtiles")
        self.assertEqual(config.max_zoom, 8)
        self.assertEqual(config.layer, "geojsonLayer")
        self.assertIsNone(config.worker_limit)

    def test_options(self):
        args = self.parser.parse_args([
            "in.geojson", "out.mbtiles",
            "--min-zoom", "2", "--max-zoom", "6",
            "--radius", "60",
            "--store-cluster-expansion-zoom",
            "--include-unclustered",
            "--layer", "stations",
            "--gzip-synchronously",
            "--filter", "clustertiles.data_ingestion.geometry_filter:is_point_feature",
        ])

        config = config_from_args(args)

        self.assertEqual((config.min_zoom, config.max_zoom), (2, 6))
        self.assertEqual(config.radius, 60)
        self.assertTrue(config.store_cluster_expansion_zoom)
        self.assertEqual(config.effective_max_zoom, 7)
        self.assertEqual(config.layer, "stations")
        self.assertEqual(config.worker_limit, 1)
        self.assertIs(config.tag_filter, is_point_feature)

    def test_points_only(self):
        args = self.parser.parse_args(["in.geojson", "out.mbtiles", "--points-only"])
        self.assertIs(config_from_args(args).input_geometry_filter, is_point_feature)

    def test_points_only_conflicts_with_input_filter(self):
        args = self.parser.parse_args([
            "in.geojson", "out.mbtiles", "--points-only",
            "--input-geometry-filter", "clustertiles.data_ingestion.geometry_filter:is_point_feature",
        ])
        with self.assertRaises(ValueError):
            config_from_args(args)

    def test_invalid_range(self):
        args = self.parser.parse_args(["in.geojson", "out.mbtiles", "--min-zoom", "5", "--max-zoom", "2"])
        with self.assertRaises(ValueError):
            config_from_args(args)


class TestMain(unittest.TestCase):
    """Test suite for the CLI entry point."""

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.temp_path = Path(self.temp_dir)
        self.input_path = self.temp_path / "points.geojson"
        self.input_path.write_text(json.dumps({
            'type': 'FeatureCollection',
            'features': [
                {
                    'type': 'Feature',
                    'geometry': {'type': 'Point', 'coordinates': [2.3522, 48.8566]},
                    'properties': {'name': 'Paris'}
                },
                {
                    'type': 'Feature',
                    'geometry': {'type': 'LineString', 'coordinates': [[0, 0], [1, 1]]},
                    'properties': {'name': 'line'}
                }
            ]
        }))
        self.output_path = self.temp_path / "points.mbtiles"

    def tearDown(self):
        shutil.rmtree(self.temp_dir)

    def test_main_builds_container(self):
        exit_code = main([
            str(self.input_path), str(self.output_path),
            "--max-zoom", "1", "--points-only", "--name", "Cities"
        ])

        self.assertEqual(exit_code, 0)

        conn = sqlite3.connect(str(self.output_path))
        try:
            metadata = dict(conn.execute("SELECT name, value FROM metadata").fetchall())
            tile_count = conn.execute("SELECT COUNT(*) FROM tiles").fetchone()[0]
        finally:
            conn.close()

        self.assertEqual(metadata['name'], 'Cities')
        self.assertEqual(metadata['maxzoom'], '1')
        # A single point yields one tile per zoom level
        self.assertEqual(tile_count, 2)

    def test_main_reports_failure(self):
        exit_code = main([str(self.temp_path / "missing.geojson"), str(self.output_path)])

        self.assertEqual(exit_code, 1)
        self.assertFalse(self.output_path.exists())

    def test_main_rejects_invalid_config(self):
        with self.assertRaises(SystemExit):
            main([str(self.input_path), str(self.output_path), "--min-points", "1"])


if __name__ == '__main__':
    unittest.main()
