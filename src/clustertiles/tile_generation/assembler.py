"""
Pyramid Assembler

Owns the lifecycle of the output MBTiles container: replaces any previous
file, creates the tables, writes the fixed metadata, drives the traversal
into the tile writers and finally publishes the layer descriptor built from
the completed field schema.
"""

import asyncio
import json
from typing import Any, Dict, List, Optional, Tuple

import structlog

from ..storage.mbtiles import MBTilesWriter
from .compression import gzip_compress
from .context import PyramidRunContext
from .coordinator import Compressor, TileWriteCoordinator
from .pyramid_builder import TilePyramidBuilder
from .tile_encoder import VectorTileEncoder


LAYER_DESCRIPTION = 'Point layer imported from GeoJSON.'


def build_layer_descriptor(layer: str, fields: Dict[str, str]) -> Dict[str, Any]:
    """``vector_layers`` document stored under the ``json`` metadata key."""
    return {
        'vector_layers': [
            {
                'id': layer,
                'description': LAYER_DESCRIPTION,
                'fields': fields
            }
        ]
    }


class PyramidAssembler:
    """Writes a complete MBTiles container for one run context."""

    def __init__(
        self,
        context: PyramidRunContext,
        sink: Optional[MBTilesWriter] = None,
        encoder: Optional[VectorTileEncoder] = None,
        compressor: Compressor = gzip_compress
    ):
        self.context = context
        self.config = context.config
        self.sink = sink or MBTilesWriter(self.config.output)
        self.encoder = encoder
        self.compressor = compressor
        self.logger = structlog.get_logger(assembler_type="PyramidAssembler", output=str(self.sink.path))

    def metadata_rows(self) -> List[Tuple[str, Any]]:
        """Fixed metadata rows, in insertion order."""
        config = self.config
        rows = [
            ('name', config.container_name),
            ('format', 'pbf'),
            ('minzoom', config.min_zoom),
            ('maxzoom', config.effective_max_zoom),
            ('bounds', config.bounds),
            ('center', config.center),
            ('type', 'overlay'),
            ('version', config.tile_spec_version),
        ]
        if config.attribution:
            rows.append(('attribution', config.attribution))
        if config.description:
            rows.append(('description', config.description))
        return rows

    async def assemble(self) -> Dict[str, Any]:
        """
        Build the container.

        Returns:
            Summary of the written container

        Raises:
            TileProcessingError: If any tile fails to encode or compress
            StorageError: If the container cannot be created or written
        """
        self.sink.remove_existing()
        self.sink.open()

        try:
            self.sink.create_schema()

            for name, value in self.metadata_rows():
                await self.sink.insert_metadata(name, value)

            coordinator = TileWriteCoordinator(
                self.config,
                self.sink,
                self.context.metrics,
                encoder=self.encoder,
                compressor=self.compressor
            )
            builder = TilePyramidBuilder(self.context)

            try:
                for pyramid_tile in builder.iter_tiles():
                    await coordinator.submit(pyramid_tile)
            except BaseException:
                await coordinator.settle()
                raise

            fields = self.context.field_schema.finalize()
            descriptor = build_layer_descriptor(self.config.layer, fields)
            descriptor_write = self.sink.insert_metadata(
                'json', json.dumps(descriptor, separators=(',', ':'))
            )

            results = await asyncio.gather(
                coordinator.join(), descriptor_write, return_exceptions=True
            )
            for result in results:
                if isinstance(result, BaseException):
                    raise result
        finally:
            self.sink.close()

        ingestion = self.context.ingestion
        lines_skipped = ingestion.lines_skipped if ingestion else 0

        self.logger.info(
            "Finished generating MBTiles",
            tile_rows=self.sink.rows_written,
            fields=len(fields),
            lines_skipped=lines_skipped
        )

        return {
            'output': str(self.sink.path),
            'tiles_written': self.sink.rows_written,
            'min_zoom': self.config.min_zoom,
            'max_zoom': self.config.effective_max_zoom,
            'fields': fields,
            'lines_skipped': lines_skipped
        }
