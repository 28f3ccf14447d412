"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Availability Metrics, a product of Garudex Labs

Prometheus metrics for probe outcomes.

Every probe execution is written to two metric families:
- <prefix>_check_gauge{check}: 1 when the last check succeeded, 0 otherwise
- <prefix>_check_histogram{check, reason, status}: one observation of 1 per
  execution, used as an outcome counter rather than a latency distribution
"""

from enum import Enum
from typing import Optional

from prometheus_client import (
    Gauge,
    Histogram,
    CollectorRegistry,
    generate_latest,
    CONTENT_TYPE_LATEST,
)

from availability_metrics.core.models import Outcome
from availability_metrics.logging_config import get_logger

logger = get_logger(__name__)


DEFAULT_METRICS_PREFIX = "metrics_server"

GAUGE_LABELS = ("check",)
HISTOGRAM_LABELS = ("check", "reason", "status")


class ReasonLabelMode(str, Enum):
    """How failure reasons become histogram label values."""
    RAW = "raw"
    KIND = "kind"


class MetricSink:
    """
    Records probe outcomes into the availability gauge and outcome histogram.

    The raw reason text is unbounded, so each distinct failure message creates
    a new histogram series. ReasonLabelMode.KIND replaces it with the error
    taxonomy label carried by the Outcome.
    """

    def __init__(
        self,
        prefix: str = DEFAULT_METRICS_PREFIX,
        registry: Optional[CollectorRegistry] = None,
        reason_labels: ReasonLabelMode = ReasonLabelMode.RAW,
    ):
        """
        Initialize metric sink.

        Args:
            prefix: Metric name prefix (lowercased)
            registry: Optional Prometheus CollectorRegistry (creates new if not provided)
            reason_labels: Whether to label failures by raw reason or error kind
        """
        self.prefix = (prefix or DEFAULT_METRICS_PREFIX).lower()
        self.registry = registry or CollectorRegistry()
        self.reason_labels = ReasonLabelMode(reason_labels)

        self.check_gauge = Gauge(
            f"{self.prefix}_check_gauge",
            f"{self.prefix} check_gauge",
            list(GAUGE_LABELS),
            registry=self.registry
        )

        self.check_histogram = Histogram(
            f"{self.prefix}_check_histogram",
            f"{self.prefix} check_histogram",
            list(HISTOGRAM_LABELS),
            registry=self.registry
        )

        logger.info(
            f"MetricSink initialized: prefix={self.prefix}, "
            f"reason_labels={self.reason_labels.value}"
        )

    def record(self, target: str, reason: str, status: str, code: int):
        """
        Record one probe execution.

        Args:
            target: Check name
            reason: Failure reason label value, empty on success
            status: "Succeeded" or "Failed"
            code: 0 on success, 1 on failure
        """
        self.check_gauge.labels(check=target).set(1 - code)
        self.check_histogram.labels(check=target, reason=reason, status=status).observe(1)

    def record_outcome(self, target: str, outcome: Outcome):
        """
        Record an Outcome, applying the configured reason label mode.

        Args:
            target: Check name
            outcome: Result of the probe execution
        """
        reason = outcome.reason
        if self.reason_labels is ReasonLabelMode.KIND and not outcome.ok:
            reason = outcome.kind or "unknown"
        self.record(target, reason, outcome.status, outcome.code)

    # Metrics Export

    def generate_metrics(self) -> bytes:
        """
        Generate Prometheus metrics in text format.

        Returns:
            Metrics in Prometheus text format
        """
        return generate_latest(self.registry)

    def get_content_type(self) -> str:
        """Get the content type for Prometheus metrics."""
        return CONTENT_TYPE_LATEST
