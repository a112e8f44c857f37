"""
Metrics Collection

Prometheus metrics for tile pyramid builds. Each collector owns a private
registry so that several runs in one process never collide, and can push
its registry to a Prometheus pushgateway at the end of a batch job.
"""

import threading
from typing import Any, Dict, List, Optional, Union

import structlog
from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, push_to_gateway


# Compressed tile size buckets in bytes
TILE_SIZE_BUCKETS = (
    1024, 4096, 16384, 65536, 131072, 262144, 500000, 1048576, float("inf")
)


class MetricsCollector:
    """
    Metrics collector for tile pyramid builds.

    Wraps Prometheus counters, histograms and gauges behind name-based
    helpers and keeps plain running totals for run statistics.
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry or CollectorRegistry()
        self.logger = structlog.get_logger(collector_type="MetricsCollector")
        self.lock = threading.RLock()

        self.counters: Dict[str, Counter] = {}
        self.histograms: Dict[str, Histogram] = {}
        self.gauges: Dict[str, Gauge] = {}
        self.totals: Dict[str, float] = {}

        self._create_metric(
            'counter', 'tiles_written_total',
            'Number of tiles written to the MBTiles container',
            ['zoom']
        )
        self._create_metric(
            'counter', 'tiles_skipped_total',
            'Number of tile coordinates skipped without a row',
            ['reason']
        )
        self._create_metric(
            'counter', 'oversized_tiles_total',
            'Number of compressed tiles above the size limit'
        )
        self._create_metric(
            'counter', 'pyramid_runs_total',
            'Number of tile pyramid builds',
            ['status']
        )
        self._create_metric(
            'histogram', 'tile_compressed_bytes',
            'Size of compressed tiles in bytes',
            buckets=TILE_SIZE_BUCKETS
        )
        self._create_metric(
            'histogram', 'pyramid_build_duration_seconds',
            'Duration of tile pyramid builds'
        )
        self._create_metric(
            'gauge', 'tiles_in_flight',
            'Tiles currently being encoded, compressed or written'
        )

    def _create_metric(
        self,
        metric_type: str,
        name: str,
        description: str,
        labels: Optional[List[str]] = None,
        **kwargs: Any
    ) -> None:
        """Create a Prometheus metric on the private registry."""
        labels = labels or []

        if metric_type == 'counter':
            self.counters[name] = Counter(name, description, labels, registry=self.registry)
        elif metric_type == 'histogram':
            self.histograms[name] = Histogram(
                name, description, labels, registry=self.registry, **kwargs
            )
        elif metric_type == 'gauge':
            self.gauges[name] = Gauge(name, description, labels, registry=self.registry)
        else:
            raise ValueError(f"Unsupported metric type: {metric_type}")

    def increment_counter(
        self,
        name: str,
        value: Union[int, float] = 1,
        labels: Optional[Dict[str, str]] = None
    ) -> None:
        """
        Increment a counter metric.

        Args:
            name: Metric name
            value: Value to increment by
            labels: Metric labels
        """
        with self.lock:
            counter = self.counters[name]
            if labels:
                counter.labels(**labels).inc(value)
            else:
                counter.inc(value)
            self.totals[name] = self.totals.get(name, 0) + value

    def record_histogram(
        self,
        name: str,
        value: Union[int, float],
        labels: Optional[Dict[str, str]] = None
    ) -> None:
        """Record an observation on a histogram metric."""
        with self.lock:
            histogram = self.histograms[name]
            if labels:
                histogram.labels(**labels).observe(value)
            else:
                histogram.observe(value)

    def set_gauge(self, name: str, value: Union[int, float]) -> None:
        with self.lock:
            self.gauges[name].set(value)

    def adjust_gauge(self, name: str, delta: Union[int, float]) -> None:
        with self.lock:
            self.gauges[name].inc(delta)

    def get_sample(self, name: str, labels: Optional[Dict[str, str]] = None) -> float:
        """Current value of a sample in the registry, 0 when never observed."""
        value = self.registry.get_sample_value(name, labels or {})
        return value if value is not None else 0.0

    def get_stats(self) -> Dict[str, Any]:
        """Running totals of every counter."""
        with self.lock:
            return {
                'tiles_written': int(self.totals.get('tiles_written_total', 0)),
                'tiles_skipped': int(self.totals.get('tiles_skipped_total', 0)),
                'oversized_tiles': int(self.totals.get('oversized_tiles_total', 0)),
                'compressed_bytes': int(self.get_sample('tile_compressed_bytes_sum')),
            }

    def push(self, gateway: str, job_name: str = "clustertiles") -> bool:
        """
        Push the registry to a Prometheus pushgateway.

        Returns:
            True if the push succeeded
        """
        try:
            push_to_gateway(gateway, job=job_name, registry=self.registry)
            self.logger.info("Metrics pushed to gateway", gateway=gateway, job=job_name)
            return True
        except OSError as e:
            self.logger.error("Failed to push metrics", gateway=gateway, error=str(e))
            return False
