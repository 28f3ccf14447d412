"""
Pytest configuration and shared fixtures for Availability Metrics tests.
"""

import os
import tempfile
from pathlib import Path
from typing import Callable, Generator, List

import httpx
import pytest
from prometheus_client import CollectorRegistry

from availability_metrics.logging_config import setup_logging
from availability_metrics.monitoring.metrics import MetricSink


def create_test_config_content(temp_dir: Path, **overrides) -> str:
    """
    Generate test configuration YAML content.

    Args:
        temp_dir: Temporary directory for the log file.
        **overrides: Replacement text for the "checks" section.

    Returns:
        YAML configuration content as string.
    """
    checks = overrides.get("checks", """
  quay:
    - name: utils
      pullspec: quay.io/konflux-ci/release-service-utils
      tags: [latest, v1]
  http:
    - name: docs
      url: https://example.com/docs
  git:
    - name: catalog
      url: https://github.com/konflux-ci/release-service-catalog.git
      revision: refs/heads/main
      path: README.md
""")

    return f"""
service:
  listen_port: 9100
  poll_interval: 30
  metrics_prefix: test_server

logging:
  level: INFO
  file: {temp_dir}/availability.log

checks:{checks}
"""


@pytest.fixture(autouse=True)
def quiet_logging():
    """Route structlog through stdlib logging at WARNING so tests start from a known state."""
    setup_logging(level="WARNING")


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """
    Create a temporary directory for test files.

    Yields:
        Path to temporary directory that is cleaned up after test.
    """
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def sample_config_path(temp_dir: Path) -> Path:
    """
    Create a sample configuration file for testing.

    Returns:
        Path to sample config file.
    """
    config_path = temp_dir / "config.yaml"
    config_path.write_text(create_test_config_content(temp_dir))
    return config_path


@pytest.fixture
def collector_registry() -> CollectorRegistry:
    """Fresh Prometheus registry so tests never share metric state."""
    return CollectorRegistry()


@pytest.fixture
def metric_sink(collector_registry: CollectorRegistry) -> MetricSink:
    """MetricSink writing into an isolated registry."""
    return MetricSink(prefix="test", registry=collector_registry)


class RecordingTransport:
    """
    httpx mock transport that records requests and replays scripted responses.

    Handlers are consumed in order; each is a callable taking the request and
    returning an httpx.Response.
    """

    def __init__(self, handlers: List[Callable[[httpx.Request], httpx.Response]]):
        self.handlers = list(handlers)
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self.handlers:
            raise AssertionError(f"unexpected request: {request.method} {request.url}")
        return self.handlers.pop(0)(request)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))

    def token_requests(self) -> List[httpx.Request]:
        return [r for r in self.requests if r.method == "GET"]

    def manifest_requests(self) -> List[httpx.Request]:
        return [r for r in self.requests if r.method == "HEAD"]


@pytest.fixture
def recording_transport() -> Callable[..., RecordingTransport]:
    """Factory for RecordingTransport instances."""
    def _make(*handlers):
        return RecordingTransport(list(handlers))
    return _make


FIXTURES_DIR = Path(__file__).parent / "fixtures"


@pytest.fixture
def client_pem() -> dict:
    """Self-signed client certificate and key, as file paths and as PEM text."""
    cert_path = FIXTURES_DIR / "client-cert.pem"
    key_path = FIXTURES_DIR / "client-key.pem"
    return {
        "cert_path": str(cert_path),
        "key_path": str(key_path),
        "cert": cert_path.read_text(),
        "key": key_path.read_text(),
    }


# Hypothesis settings for property-based tests
from hypothesis import settings, Verbosity

settings.register_profile("availability", max_examples=100, verbosity=Verbosity.normal)
settings.register_profile("availability-ci", max_examples=1000, verbosity=Verbosity.verbose)
settings.register_profile("availability-dev", max_examples=10, verbosity=Verbosity.verbose)

settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "availability"))
