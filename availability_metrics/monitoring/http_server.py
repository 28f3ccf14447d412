"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Availability Metrics, a product of Garudex Labs

HTTP server for the Prometheus metrics endpoint.

Serves the probe metrics at /metrics and a liveness document at /health.
The server runs in a daemon thread next to the scheduler's event loop and
only reads from the metric sink's CollectorRegistry.
"""

import json
from http.server import ThreadingHTTPServer, BaseHTTPRequestHandler
from threading import Thread
from typing import Any, Callable, Dict, Optional
from urllib.parse import urlsplit

from availability_metrics.monitoring.metrics import MetricSink
from availability_metrics.logging_config import get_logger

logger = get_logger(__name__)


HealthProvider = Callable[[], Dict[str, Any]]


class MetricsHandler(BaseHTTPRequestHandler):
    """
    HTTP request handler for the metrics and health endpoints.
    """

    def __init__(
        self,
        *args,
        metric_sink: MetricSink,
        health_provider: Optional[HealthProvider] = None,
        **kwargs
    ):
        self.metric_sink = metric_sink
        self.health_provider = health_provider
        super().__init__(*args, **kwargs)

    def do_GET(self):
        """Handle GET requests."""
        path = urlsplit(self.path).path
        if path == '/metrics':
            self._serve_metrics()
        elif path == '/health':
            self._serve_health()
        else:
            self.send_error(404, "Not Found")

    def _serve_metrics(self):
        try:
            metrics_data = self.metric_sink.generate_metrics()
            self._send(200, self.metric_sink.get_content_type(), metrics_data)
            logger.debug("Served Prometheus metrics")
        except Exception as e:
            logger.error(f"Failed to serve metrics: {e}", exc_info=True)
            self.send_error(500, "Internal Server Error")

    def _serve_health(self):
        try:
            health = {"status": "healthy"}
            if self.health_provider is not None:
                health.update(self.health_provider())
            status_code = 200 if health.get("status") == "healthy" else 503
            body = (json.dumps(health) + "\n").encode("utf-8")
            self._send(status_code, 'application/json', body)
        except Exception as e:
            logger.error(f"Failed to serve health check: {e}", exc_info=True)
            self.send_error(500, "Internal Server Error")

    def _send(self, status_code: int, content_type: str, body: bytes):
        self.send_response(status_code)
        self.send_header('Content-Type', content_type)
        self.send_header('Content-Length', str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format, *args):
        """Override to use our logger instead of stderr."""
        logger.debug(f"HTTP {format % args}")


class PrometheusMetricsServer:
    """
    HTTP server for the Prometheus metrics endpoint.

    Runs in a separate thread so scrapes never block the probe loop.
    """

    def __init__(
        self,
        metric_sink: MetricSink,
        host: str = "0.0.0.0",
        port: int = 8080,
        health_provider: Optional[HealthProvider] = None,
    ):
        """
        Initialize Prometheus metrics server.

        Args:
            metric_sink: MetricSink whose registry is exposed
            host: Host to bind to (default: 0.0.0.0)
            port: Port to bind to (default: 8080, 0 picks a free port)
            health_provider: Optional callable contributing to /health
        """
        self.metric_sink = metric_sink
        self.host = host
        self.port = port
        self.health_provider = health_provider

        self._server: Optional[ThreadingHTTPServer] = None
        self._thread: Optional[Thread] = None
        self._running = False

    def start(self):
        """Bind the listening socket and start serving in a background thread."""
        if self._running:
            logger.warning("Metrics server already running")
            return

        def handler_factory(*args, **kwargs):
            return MetricsHandler(
                *args,
                metric_sink=self.metric_sink,
                health_provider=self.health_provider,
                **kwargs
            )

        self._server = ThreadingHTTPServer((self.host, self.port), handler_factory)
        self._server.daemon_threads = True
        # Reflect the real port when 0 was requested
        self.port = self._server.server_address[1]

        self._thread = Thread(target=self._run_server, name="metrics-server", daemon=True)
        self._thread.start()
        self._running = True

        logger.info(f"server starting at {self.get_url()}")

    def _run_server(self):
        try:
            self._server.serve_forever()
        except Exception as e:
            logger.error(f"Metrics server error: {e}", exc_info=True)
        finally:
            logger.info("Metrics server thread stopped")

    def stop(self, timeout: float = 5.0):
        """Shut the server down and wait for its thread."""
        if not self._running:
            return

        logger.info("shutting down server")

        if self._server:
            self._server.shutdown()
            self._server.server_close()
            self._server = None

        if self._thread:
            self._thread.join(timeout=timeout)
            self._thread = None

        self._running = False
        logger.info("server stopped")

    def is_running(self) -> bool:
        """Check if server is running."""
        return self._running

    def get_url(self) -> str:
        """Get metrics endpoint URL."""
        return f"http://{self.host}:{self.port}/metrics"
