"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Availability Metrics, a product of Garudex Labs

Metric recording and exposition for Availability Metrics.
"""

from availability_metrics.monitoring.metrics import (
    MetricSink,
    ReasonLabelMode,
)

from availability_metrics.monitoring.http_server import PrometheusMetricsServer

__all__ = [
    "MetricSink",
    "ReasonLabelMode",
    "PrometheusMetricsServer",
]
