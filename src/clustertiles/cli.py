"""
Command line interface for building clustered MBTiles.

Strategy options (filter, map, reduce, geometry mapper, input filter) take
``package.module:attribute`` import paths.
"""

import argparse
import importlib
import sys
from typing import Any, Callable, Dict, List, Optional

import structlog

from .data_ingestion.geometry_filter import is_point_feature
from .monitoring.metrics import MetricsCollector
from .tile_generation.pipeline import run
from .utils.config import TileSetConfig
from .utils.exceptions import ClusterTilesError
from .utils.logging import configure_logging


logger = structlog.get_logger(component="cli")


def load_callable(path: str) -> Callable:
    """Resolve ``module:attribute`` to a callable."""
    module_name, sep, attribute = path.partition(':')
    if not sep or not module_name or not attribute:
        raise argparse.ArgumentTypeError(f"Expected module:attribute, got {path!r}")

    try:
        target = importlib.import_module(module_name)
        for part in attribute.split('.'):
            target = getattr(target, part)
    except (ImportError, AttributeError) as e:
        raise argparse.ArgumentTypeError(f"Cannot import {path!r}: {e}") from e

    if not callable(target):
        raise argparse.ArgumentTypeError(f"{path!r} is not callable")
    return target


def build_parser() -> argparse.ArgumentParser:
    defaults = TileSetConfig()
    parser = argparse.ArgumentParser(
        prog="clustertiles",
        description="Cluster GeoJSON points into a vector-tile MBTiles container"
    )

    parser.add_argument("input", help="Input GeoJSON FeatureCollection")
    parser.add_argument("output", help="Output MBTiles path (replaced if it exists)")

    cluster = parser.add_argument_group("clustering")
    cluster.add_argument("--min-zoom", type=int, default=defaults.min_zoom)
    cluster.add_argument("--max-zoom", type=int, default=defaults.max_zoom)
    cluster.add_argument("--radius", type=float, default=defaults.radius)
    cluster.add_argument("--extent", type=int, default=defaults.extent)
    cluster.add_argument("--node-size", type=int, default=defaults.node_size)
    cluster.add_argument("--min-points", type=int, default=defaults.min_points)
    cluster.add_argument("--map", type=load_callable, help="Point property mapper")
    cluster.add_argument("--reduce", type=load_callable, help="Cluster property reducer")
    cluster.add_argument("--store-cluster-expansion-zoom", action="store_true")
    cluster.add_argument(
        "--include-unclustered", action="store_true",
        help="Add one zoom level of unclustered points beyond --max-zoom"
    )

    tiles = parser.add_argument_group("tiles")
    tiles.add_argument("--layer", default=defaults.layer)
    tiles.add_argument("--filter", dest="tag_filter", type=load_callable, help="Per-tile tag predicate")
    tiles.add_argument("--geometry-mapper", type=load_callable)
    tiles.add_argument("--input-geometry-filter", type=load_callable)
    tiles.add_argument(
        "--points-only", action="store_true",
        help="Drop non-Point input features before clustering"
    )
    tiles.add_argument("--max-tile-bytes", type=int, default=defaults.max_tile_bytes)
    tiles.add_argument("--fail-on-oversized-tile", action="store_true")

    metadata = parser.add_argument_group("metadata")
    metadata.add_argument("--name")
    metadata.add_argument("--bounds", default=defaults.bounds)
    metadata.add_argument("--center", default=defaults.center)
    metadata.add_argument("--tile-spec-version", type=int, default=defaults.tile_spec_version)
    metadata.add_argument("--attribution")
    metadata.add_argument("--description")

    execution = parser.add_argument_group("execution")
    execution.add_argument("--read-by-line", action="store_true")
    execution.add_argument(
        "--gzip-synchronously", action="store_true",
        help="Process one tile at a time in traversal order"
    )
    execution.add_argument(
        "--concurrency", type=int,
        help="Maximum tiles in flight when not synchronous (default: unbounded)"
    )
    execution.add_argument("--log-performance", action="store_true")
    execution.add_argument("--log-level", default="INFO")
    execution.add_argument("--json-logs", action="store_true")
    execution.add_argument("--metrics-gateway", help="Prometheus pushgateway address")

    return parser


def config_from_args(args: argparse.Namespace) -> TileSetConfig:
    """Translate parsed arguments into a run configuration."""
    options: Dict[str, Any] = {
        'input': args.input,
        'output': args.output,
        'min_zoom': args.min_zoom,
        'max_zoom': args.max_zoom,
        'radius': args.radius,
        'extent': args.extent,
        'node_size': args.node_size,
        'min_points': args.min_points,
        'map': args.map,
        'reduce': args.reduce,
        'store_cluster_expansion_zoom': args.store_cluster_expansion_zoom,
        'include_unclustered': args.include_unclustered,
        'layer': args.layer,
        'tag_filter': args.tag_filter,
        'geometry_mapper': args.geometry_mapper,
        'input_geometry_filter': args.input_geometry_filter,
        'max_tile_bytes': args.max_tile_bytes,
        'fail_on_oversized_tile': args.fail_on_oversized_tile,
        'name': args.name,
        'bounds': args.bounds,
        'center': args.center,
        'tile_spec_version': args.tile_spec_version,
        'attribution': args.attribution,
        'description': args.description,
        'read_by_line': args.read_by_line,
        'gzip_synchronously': args.gzip_synchronously,
        'concurrency': args.concurrency,
        'log_performance': args.log_performance,
    }

    if args.points_only:
        if args.input_geometry_filter is not None:
            raise ValueError("--points-only cannot be combined with --input-geometry-filter")
        options['input_geometry_filter'] = is_point_feature

    return TileSetConfig.from_options(options)


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging(args.log_level, json_output=args.json_logs)

    try:
        config = config_from_args(args)
    except ValueError as e:
        parser.error(str(e))

    metrics = MetricsCollector()
    try:
        result = run(config, metrics=metrics)
    except (ClusterTilesError, OSError, ValueError) as e:
        logger.error("Build failed", error=str(e))
        return 1
    finally:
        if args.metrics_gateway:
            metrics.push(args.metrics_gateway)

    logger.info(
        "Build finished",
        output=result['output'],
        tiles_written=result['tiles_written'],
        lines_skipped=result['lines_skipped']
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
