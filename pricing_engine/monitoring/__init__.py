"""
Monitoring Module

Provides Prometheus metrics for the API and the jobs worker.
"""

from pricing_engine.monitoring.metrics import Metrics, get_metrics

__all__ = [
    "Metrics",
    "get_metrics",
]
