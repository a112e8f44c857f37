"""
Tile Write Coordination

Schedules the encode, compress and insert work of every emitted tile. A
single worker pool covers all execution modes through its ``limit``:

- ``limit=1``: one tile in flight, rows inserted in traversal order
- ``limit=N``: at most N tiles in flight
- ``limit=None``: every tile launched immediately and joined at the end

The first failure of any unit is kept and re-raised by the next ``submit``
or by ``join``; units already in flight are left to finish.
"""

import asyncio
import time
from typing import Any, Awaitable, Callable, Optional, Set

import structlog

from ..monitoring.metrics import MetricsCollector
from ..storage.mbtiles import MBTilesWriter
from ..utils.config import TileSetConfig
from ..utils.exceptions import (
    OversizedTileError,
    TileCompressionError,
    TileEncodingError,
)
from .compression import gzip_compress
from .context import PyramidTile
from .tile_encoder import VectorTileEncoder


Compressor = Callable[[bytes], bytes]


class TileWorkerPool:
    """Runs coroutine factories as tasks with an optional in-flight limit."""

    def __init__(self, limit: Optional[int] = None, metrics: Optional[MetricsCollector] = None):
        if limit is not None and limit < 1:
            raise ValueError("Worker limit must be None or a positive integer")

        self.limit = limit
        self.metrics = metrics
        self.in_flight = 0
        self.peak_in_flight = 0
        self.completed = 0

        self._semaphore = asyncio.Semaphore(limit) if limit else None
        self._tasks: Set[asyncio.Task] = set()
        self._failure: Optional[BaseException] = None

    @property
    def failure(self) -> Optional[BaseException]:
        return self._failure

    async def submit(self, work: Callable[[], Awaitable[Any]]) -> None:
        """
        Launch ``work()`` as a task, waiting for a free slot when limited.

        Raises:
            Exception: The first failure of a previously submitted unit
        """
        self._raise_failure()

        if self._semaphore is not None:
            await self._semaphore.acquire()
            if self._failure is not None:
                self._semaphore.release()
                self._raise_failure()

        self.in_flight += 1
        self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
        if self.metrics is not None:
            self.metrics.adjust_gauge('tiles_in_flight', 1)

        task = asyncio.create_task(self._run(work))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def join(self) -> None:
        """Wait for every submitted unit, then re-raise the first failure."""
        await self.settle()
        self._raise_failure()

    async def settle(self) -> None:
        """Wait for every submitted unit without raising."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    async def _run(self, work: Callable[[], Awaitable[Any]]) -> None:
        try:
            await work()
            self.completed += 1
        except Exception as e:
            if self._failure is None:
                self._failure = e
        finally:
            self.in_flight -= 1
            if self.metrics is not None:
                self.metrics.adjust_gauge('tiles_in_flight', -1)
            if self._semaphore is not None:
                self._semaphore.release()

    def _raise_failure(self) -> None:
        if self._failure is not None:
            raise self._failure


class TileWriteCoordinator:
    """Encodes, compresses and stores pyramid tiles through a worker pool."""

    def __init__(
        self,
        config: TileSetConfig,
        sink: MBTilesWriter,
        metrics: MetricsCollector,
        encoder: Optional[VectorTileEncoder] = None,
        compressor: Compressor = gzip_compress
    ):
        self.config = config
        self.sink = sink
        self.metrics = metrics
        self.encoder = encoder or VectorTileEncoder(config.layer, extent=config.extent)
        self.compressor = compressor
        self.pool = TileWorkerPool(config.worker_limit, metrics=metrics)
        self.logger = structlog.get_logger(
            coordinator_type="TileWriteCoordinator",
            worker_limit=config.worker_limit
        )

    async def submit(self, pyramid_tile: PyramidTile) -> None:
        if self.config.log_performance:
            self.logger.info("Creating tile", tile_id=pyramid_tile.tile_id)
        await self.pool.submit(lambda: self.write_tile(pyramid_tile))

    async def join(self) -> None:
        await self.pool.join()
        self.logger.info("Finished saving all compressed tiles", tiles=self.pool.completed)

    async def settle(self) -> None:
        await self.pool.settle()

    async def write_tile(self, pyramid_tile: PyramidTile) -> None:
        """Encode, compress, size-check and insert one tile."""
        start_time = time.time()
        z, x, y = pyramid_tile.zoom, pyramid_tile.column, pyramid_tile.row
        loop = asyncio.get_running_loop()

        try:
            encoded = await loop.run_in_executor(None, self.encoder.encode, pyramid_tile.tile)
        except Exception as e:
            raise TileEncodingError(f"encoding failed: {e}", z, x, y, e) from e

        try:
            compressed = await loop.run_in_executor(None, self.compressor, encoded)
        except Exception as e:
            raise TileCompressionError(f"compression failed: {e}", z, x, y, e) from e

        size = len(compressed)
        if size > self.config.max_tile_bytes:
            self.metrics.increment_counter('oversized_tiles_total')
            message = (
                f"compressed size {size} exceeds {self.config.max_tile_bytes} bytes; "
                "try increasing radius or max zoom, or including fewer cluster properties"
            )
            if self.config.fail_on_oversized_tile:
                raise OversizedTileError(message, z, x, y)
            self.logger.warning(
                "Compressed tile exceeds size limit",
                tile_id=pyramid_tile.tile_id,
                compressed_bytes=size,
                limit=self.config.max_tile_bytes
            )

        await self.sink.insert_tile(z, x, pyramid_tile.tile_row, compressed)

        self.metrics.increment_counter('tiles_written_total', labels={'zoom': str(z)})
        self.metrics.record_histogram('tile_compressed_bytes', size)

        log = self.logger.info if self.config.log_performance else self.logger.debug
        log(
            "Tile created",
            tile_id=pyramid_tile.tile_id,
            features=len(pyramid_tile.tile.features),
            compressed_bytes=size,
            processing_time=time.time() - start_time
        )
