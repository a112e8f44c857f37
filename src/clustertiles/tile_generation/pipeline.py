"""
Clustered Tile Pipeline

End-to-end build of a clustered MBTiles container from a GeoJSON point
collection: ingest, cluster, traverse and assemble. Each call owns its own
run context; nothing is shared between runs.
"""

import asyncio
import time
from typing import Any, Dict, Mapping, Optional, Union

import structlog

from ..clustering.cluster_index import ClusterIndex, PointClusterIndex
from ..data_ingestion.geojson_reader import GeoJSONReader
from ..monitoring.metrics import MetricsCollector
from ..utils.config import TileSetConfig
from .assembler import PyramidAssembler
from .context import PyramidRunContext


logger = structlog.get_logger(component="pipeline")


def build_cluster_index(config: TileSetConfig, features) -> PointClusterIndex:
    """Cluster ``features`` with the index options of ``config``."""
    return PointClusterIndex(
        min_zoom=config.min_zoom,
        max_zoom=config.max_zoom,
        radius=config.radius,
        extent=config.extent,
        node_size=config.node_size,
        min_points=config.min_points,
        map=config.map,
        reduce=config.reduce
    ).load(features)


async def build_tileset(
    config: TileSetConfig,
    cluster_index: Optional[ClusterIndex] = None,
    metrics: Optional[MetricsCollector] = None
) -> Dict[str, Any]:
    """
    Build the MBTiles container described by ``config``.

    Args:
        config: Run configuration; ``input`` and ``output`` are required
        cluster_index: Prebuilt index to use instead of clustering the input
        metrics: Collector to record into; a private one is created otherwise

    Returns:
        Dictionary containing the run summary and statistics

    Raises:
        ClusterTilesError: On the first tile or storage failure
    """
    config.require_paths()
    metrics = metrics or MetricsCollector()
    start_time = time.time()

    logger.info(
        "Starting tileset generation",
        input=config.input,
        output=config.output,
        min_zoom=config.min_zoom,
        max_zoom=config.effective_max_zoom,
        worker_limit=config.worker_limit
    )

    try:
        report = await GeoJSONReader().read(config.input, by_line=config.read_by_line)

        input_filter = config.input_geometry_filter
        if input_filter is not None:
            clustered_input = [feature for feature in report.features if input_filter(feature)]
        else:
            clustered_input = [feature for feature in report.features if feature]

        if cluster_index is None:
            cluster_index = build_cluster_index(config, clustered_input)

        if config.log_performance:
            logger.info("Finished clustering", elapsed=time.time() - start_time)

        context = PyramidRunContext(
            config=config,
            cluster_index=cluster_index,
            input_features=report.features,
            metrics=metrics,
            ingestion=report
        )
        summary = await PyramidAssembler(context).assemble()

    except Exception as e:
        duration = time.time() - start_time
        metrics.increment_counter('pyramid_runs_total', labels={'status': 'failure'})
        metrics.record_histogram('pyramid_build_duration_seconds', duration)
        logger.error("Tileset generation failed", error=str(e), processing_time=duration)
        raise

    duration = time.time() - start_time
    metrics.increment_counter('pyramid_runs_total', labels={'status': 'success'})
    metrics.record_histogram('pyramid_build_duration_seconds', duration)

    result = dict(summary)
    result.update({
        'success': True,
        'processing_time': duration,
        'input_features': len(report.features),
        'clustered_features': len(clustered_input),
        'stats': metrics.get_stats()
    })

    logger.info(
        "Tileset generation completed",
        tiles_written=result['tiles_written'],
        processing_time=duration
    )
    return result


def run(
    options: Union[TileSetConfig, Mapping[str, Any]],
    metrics: Optional[MetricsCollector] = None
) -> Dict[str, Any]:
    """Synchronous entry point accepting a config or an option mapping."""
    config = options if isinstance(options, TileSetConfig) else TileSetConfig.from_options(options)
    return asyncio.run(build_tileset(config, metrics=metrics))
