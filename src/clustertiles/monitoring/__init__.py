"""
Monitoring Module

Prometheus metrics for tile pyramid builds.
"""

from .metrics import MetricsCollector

__all__ = [
    "MetricsCollector",
]
