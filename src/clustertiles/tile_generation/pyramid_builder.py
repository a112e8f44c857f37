"""
Tile Pyramid Builder

Walks every z/x/y tile between the configured minimum and effective maximum
zoom, pulls the clustered features of each tile from the cluster index and
applies the per-tile policy: tag filtering, schema accumulation, cluster
expansion-zoom annotation and geometry augmentation. Empty tiles, before or
after filtering, produce nothing.
"""

import time
from typing import Iterator, Optional

import structlog

from ..clustering.cluster_index import Tile
from .context import PyramidRunContext, PyramidTile


EXPANSION_ZOOM_TAG = 'clusterExpansionZoom'


class TilePyramidBuilder:
    """Produces the ordered stream of tiles to persist."""

    def __init__(self, context: PyramidRunContext):
        self.context = context
        self.config = context.config
        self.index = context.cluster_index
        self.logger = structlog.get_logger(builder_type="TilePyramidBuilder", layer=self.config.layer)

    def iter_tiles(self) -> Iterator[PyramidTile]:
        """
        Yield every non-empty tile, zoom by zoom, columns outer and rows inner.

        Schema accumulation for a tile happens before it is yielded, so once
        the iterator is exhausted the field schema is complete.
        """
        max_zoom = self.config.effective_max_zoom

        for zoom in range(self.config.min_zoom, max_zoom + 1):
            dimension = 2 ** zoom
            start_time = time.time()
            emitted = 0

            self.logger.info(
                f"Generating tiles for zoom level {zoom}",
                zoom=zoom,
                dimension=dimension,
                max_zoom=max_zoom
            )

            for x in range(dimension):
                for y in range(dimension):
                    pyramid_tile = self.build_tile(zoom, x, y)
                    if pyramid_tile is None:
                        continue

                    emitted += 1
                    yield pyramid_tile

            self.logger.info(
                f"Completed zoom level {zoom}",
                zoom=zoom,
                tiles_emitted=emitted,
                processing_time=time.time() - start_time
            )

    def build_tile(self, z: int, x: int, y: int) -> Optional[PyramidTile]:
        """Apply the tile policy to z/x/y; returns None for tiles that are skipped."""
        tile = self.index.get_tile(z, x, y)
        if tile is None or not tile.features:
            self.context.metrics.increment_counter('tiles_skipped_total', labels={'reason': 'empty'})
            return None

        features = tile.features

        tag_filter = self.config.tag_filter
        if tag_filter is not None:
            features = [feature for feature in features if tag_filter(feature.tags)]
            if not features:
                self.context.metrics.increment_counter(
                    'tiles_skipped_total', labels={'reason': 'filtered'}
                )
                return None

        for feature in features:
            self.context.field_schema.observe(feature.tags)

        if self.config.store_cluster_expansion_zoom:
            for feature in features:
                if feature.is_cluster:
                    feature.tags[EXPANSION_ZOOM_TAG] = self.index.get_cluster_expansion_zoom(
                        feature.tags['cluster_id']
                    )

        geometry_mapper = self.config.geometry_mapper
        if geometry_mapper is not None:
            point_features = [feature for feature in features if not feature.is_cluster]
            mapped = geometry_mapper(point_features, self.context.input_features)
            features = features + list(mapped or [])

        return PyramidTile(zoom=z, column=x, row=y, tile=Tile(features))
