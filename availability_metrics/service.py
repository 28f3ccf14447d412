"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Availability Metrics, a product of Garudex Labs

Service bootstrap for Availability Metrics.

Wires configuration, metric sink, probes, scheduler and the metrics server
together, and translates SIGINT/SIGTERM into the scheduler's stop signal.
"""

import asyncio
import signal
from typing import List, Optional, Tuple

import httpx
from prometheus_client import CollectorRegistry

from availability_metrics.config.settings import AvailabilityConfig
from availability_metrics.core.models import Outcome
from availability_metrics.core.probes import Probe, build_probes
from availability_metrics.core.scheduler import ProbeScheduler
from availability_metrics.logging_config import get_logger
from availability_metrics.monitoring.http_server import PrometheusMetricsServer
from availability_metrics.monitoring.metrics import MetricSink, ReasonLabelMode

logger = get_logger(__name__)


def create_metric_sink(
    config: AvailabilityConfig,
    registry: Optional[CollectorRegistry] = None,
) -> MetricSink:
    """Create the MetricSink described by the service configuration."""
    return MetricSink(
        prefix=config.service.metrics_prefix,
        registry=registry,
        reason_labels=ReasonLabelMode(config.service.reason_labels),
    )


def _registry_http_client(config: AvailabilityConfig) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        timeout=httpx.Timeout(config.service.request_timeout),
        follow_redirects=True,
    )


def install_signal_handlers(stop_event: asyncio.Event) -> List[signal.Signals]:
    """
    Set stop_event on SIGINT or SIGTERM.

    Returns:
        The signals a handler was installed for
    """
    loop = asyncio.get_running_loop()
    installed = []
    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(signum, stop_event.set)
        except (NotImplementedError, RuntimeError):
            # Not available on this platform or outside the main thread
            logger.debug(f"cannot install handler for {signum!r}")
        else:
            installed.append(signum)
    return installed


def remove_signal_handlers(signals: List[signal.Signals]) -> None:
    loop = asyncio.get_running_loop()
    for signum in signals:
        loop.remove_signal_handler(signum)


async def run_service(
    config: AvailabilityConfig,
    stop_event: Optional[asyncio.Event] = None,
    registry: Optional[CollectorRegistry] = None,
    handle_signals: bool = True,
) -> None:
    """
    Serve metrics and run the probe loop until stopped.

    Args:
        config: Loaded configuration
        stop_event: Optional externally owned stop signal
        registry: Optional Prometheus CollectorRegistry for the metric sink
        handle_signals: Install SIGINT/SIGTERM handlers setting stop_event
    """
    stop_event = stop_event or asyncio.Event()
    installed_signals = install_signal_handlers(stop_event) if handle_signals else []

    try:
        await _serve(config, stop_event, registry)
    finally:
        remove_signal_handlers(installed_signals)


async def _serve(
    config: AvailabilityConfig,
    stop_event: asyncio.Event,
    registry: Optional[CollectorRegistry],
) -> None:
    sink = create_metric_sink(config, registry)

    async with _registry_http_client(config) as http_client:
        probes = build_probes(config, sink, http_client)
        scheduler = ProbeScheduler(
            probes,
            sink,
            poll_interval=config.service.poll_interval,
            max_concurrency=config.service.max_concurrency,
        )
        server = PrometheusMetricsServer(
            sink,
            host=config.service.listen_host,
            port=config.service.listen_port,
            health_provider=scheduler.health,
        )
        server.start()

        try:
            await scheduler.run(stop_event)
        finally:
            await scheduler.aclose()
            server.stop()


async def check_once(
    config: AvailabilityConfig,
    registry: Optional[CollectorRegistry] = None,
) -> List[Tuple[Probe, Outcome]]:
    """
    Run every configured probe once.

    Returns:
        (probe, outcome) pairs in execution order
    """
    sink = create_metric_sink(config, registry)

    async with _registry_http_client(config) as http_client:
        probes = build_probes(config, sink, http_client)
        scheduler = ProbeScheduler(
            probes,
            sink,
            poll_interval=config.service.poll_interval,
            max_concurrency=config.service.max_concurrency,
        )
        try:
            outcomes = await scheduler.run_iteration()
        finally:
            await scheduler.aclose()

    return list(zip(probes, outcomes))
