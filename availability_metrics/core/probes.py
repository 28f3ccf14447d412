"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Availability Metrics, a product of Garudex Labs

Availability probes.

Each probe checks one configured target, turns the result into an Outcome,
writes it through the metric sink and returns it. Check failures never
escape a probe: every ProbeError becomes a failed Outcome.
"""

import asyncio
import os
import ssl
import tempfile
import time
from typing import TYPE_CHECKING, Awaitable, Callable, List, Optional, Protocol
from urllib.parse import quote, urlsplit, urlunsplit

import git
import httpx

from availability_metrics.core.models import GitTarget, HttpTarget, Outcome, RegistryTarget
from availability_metrics.core.registry import DEFAULT_TIMEOUT_SECONDS, RegistryClient
from availability_metrics.exceptions import (
    EndpointUnavailableError,
    PathNotFoundError,
    ProbeError,
    RepositoryError,
    TransportError,
)
from availability_metrics.logging_config import get_logger, log_probe_outcome

if TYPE_CHECKING:
    from availability_metrics.config.settings import AvailabilityConfig
    from availability_metrics.monitoring.metrics import MetricSink

logger = get_logger(__name__)


class Probe(Protocol):
    """Capability shared by every probe kind."""

    name: str
    kind: str

    async def execute(self) -> Outcome: ...

    async def aclose(self) -> None: ...


async def run_check(
    kind: str,
    name: str,
    sink: "MetricSink",
    check: Callable[[], Awaitable[None]],
) -> Outcome:
    """
    Run a check coroutine and record its Outcome.

    Args:
        kind: Probe kind, used for logging
        name: Check name, used as the metric label
        sink: MetricSink receiving the Outcome
        check: Coroutine function raising ProbeError on failure

    Returns:
        The recorded Outcome
    """
    logger.info(f"running {kind} check: {name}")
    started = time.monotonic()

    try:
        await check()
    except ProbeError as e:
        outcome = Outcome.failed(str(e), kind=e.kind)
    else:
        outcome = Outcome.succeeded()

    sink.record_outcome(name, outcome)
    log_probe_outcome(
        logger,
        check=name,
        probe_kind=kind,
        status=outcome.status,
        reason=outcome.reason,
        error_kind=outcome.kind,
        duration_ms=(time.monotonic() - started) * 1000,
    )
    return outcome


class RegistryProbe:
    """Checks that every configured tag of an image exists in its registry."""

    kind = "registry"

    def __init__(self, target: RegistryTarget, sink: "MetricSink", client: RegistryClient):
        self.target = target
        self.name = target.name
        self.sink = sink
        self.client = client

    async def execute(self) -> Outcome:
        return await run_check(self.kind, self.name, self.sink, self._check)

    async def _check(self) -> None:
        await self.client.check_all_tags(self.target.image, self.target.tags)

    async def aclose(self) -> None:
        await self.client.close()


PEM_MARKER = "-----BEGIN"


def is_inline_pem(value: str) -> bool:
    return PEM_MARKER in value


def load_client_certificate(context: ssl.SSLContext, cert: str, key: str = "") -> None:
    """
    Load a client certificate and key into an SSL context.

    Each value is either inline PEM text or a path to a PEM file. Inline PEM
    is written to a private temporary directory that is removed once the
    context has read it.

    Raises:
        OSError, ssl.SSLError: If the pair cannot be loaded
    """
    if not is_inline_pem(cert) and not is_inline_pem(key):
        context.load_cert_chain(cert, key or None)
        return

    with tempfile.TemporaryDirectory(prefix="availability-tls-") as workdir:
        cert_file = _pem_file(workdir, "cert.pem", cert)
        key_file = _pem_file(workdir, "key.pem", key) if key else None
        context.load_cert_chain(cert_file, key_file)


def _pem_file(workdir: str, filename: str, value: str) -> str:
    if not is_inline_pem(value):
        return value
    path = os.path.join(workdir, filename)
    with open(path, "w") as f:
        f.write(value)
    return path


def build_ssl_context(target: HttpTarget) -> ssl.SSLContext:
    """
    Build the TLS context for an HTTP target.

    A client certificate that cannot be loaded is logged and left out; the
    request is still made without it.
    """
    context = ssl.create_default_context()
    if target.insecure:
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
    if target.cert:
        try:
            load_client_certificate(context, target.cert, target.key)
        except (OSError, ssl.SSLError) as e:
            logger.warning(
                f"{target.name}: failed to load client certificate, continuing without it: {e}"
            )
    return context


class HttpProbe:
    """Checks that an HTTP endpoint answers GET with 200."""

    kind = "http"

    def __init__(
        self,
        target: HttpTarget,
        sink: "MetricSink",
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        self.target = target
        self.name = target.name
        self.sink = sink
        self.timeout = timeout
        self._client = http_client
        self._owns_client = http_client is None

    async def execute(self) -> Outcome:
        return await run_check(self.kind, self.name, self.sink, self._check)

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                verify=build_ssl_context(self.target),
                follow_redirects=self.target.follow_redirects,
                timeout=httpx.Timeout(self.timeout),
            )
        return self._client

    async def _check(self) -> None:
        client = self._get_client()

        auth = None
        if self.target.credentials.configured:
            auth = httpx.BasicAuth(
                self.target.credentials.username,
                self.target.credentials.password,
            )

        try:
            response = await client.get(self.target.url, auth=auth)
        except httpx.HTTPError as e:
            raise TransportError(str(e) or type(e).__name__) from e

        if response.status_code != 200:
            raise EndpointUnavailableError(response.status_code, response.reason_phrase)

    async def aclose(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None


def branch_from_revision(revision: str) -> str:
    """Reduce a full ref name to the name accepted by ``git clone --branch``."""
    for prefix in ("refs/heads/", "refs/tags/"):
        if revision.startswith(prefix):
            return revision[len(prefix):]
    return revision


def authenticated_url(url: str, token: str) -> str:
    """Embed an oauth2 token as basic credentials in an HTTP(S) clone URL."""
    parts = urlsplit(url)
    if not token or parts.scheme not in ("http", "https") or not parts.hostname:
        return url

    netloc = f"oauth2:{quote(token, safe='')}@{parts.hostname}"
    if parts.port:
        netloc = f"{netloc}:{parts.port}"
    return urlunsplit(parts._replace(netloc=netloc))


class GitProbe:
    """
    Checks that a file exists at a revision of a git repository.

    Performs a shallow single-branch clone into a temporary directory. The
    clone is blocking and runs in a worker thread; cancelling the probe stops
    waiting for it but does not interrupt the git process.
    """

    kind = "git"

    def __init__(self, target: GitTarget, sink: "MetricSink"):
        self.target = target
        self.name = target.name
        self.sink = sink

    async def execute(self) -> Outcome:
        return await run_check(self.kind, self.name, self.sink, self._check)

    async def _check(self) -> None:
        await asyncio.to_thread(self.stat_file)

    def stat_file(self) -> None:
        """
        Clone the repository and look up the configured path.

        Raises:
            RepositoryError: If the repository cannot be cloned or has no commits
            PathNotFoundError: If the path is missing from the revision's tree
        """
        clone_options = {"depth": 1, "single_branch": True}
        branch = branch_from_revision(self.target.revision)
        if branch:
            clone_options["branch"] = branch

        with tempfile.TemporaryDirectory(prefix="availability-git-") as workdir:
            try:
                repo = git.Repo.clone_from(
                    authenticated_url(self.target.url, self.target.token),
                    workdir,
                    env={"GIT_TERMINAL_PROMPT": "0"},
                    **clone_options,
                )
            except git.GitCommandError as e:
                raise RepositoryError(self._scrub(str(e))) from e

            try:
                tree = repo.head.commit.tree
            except ValueError as e:
                raise RepositoryError(f"repository has no commits: {e}") from e
            finally:
                repo.close()

            try:
                entry = tree / self.target.path
            except KeyError:
                raise PathNotFoundError(f"file not found: {self.target.path}")

            # Directories and submodules resolve too; only a blob is a file
            if entry.type != "blob":
                raise PathNotFoundError(f"file not found: {self.target.path}")

    def _scrub(self, message: str) -> str:
        token = self.target.token
        if not token:
            return message
        return message.replace(quote(token, safe=""), "***").replace(token, "***")

    async def aclose(self) -> None:
        return None


def build_probes(
    config: "AvailabilityConfig",
    sink: "MetricSink",
    http_client: Optional[httpx.AsyncClient] = None,
) -> List[Probe]:
    """
    Build the configured probes in execution order: git, http, registry.

    Args:
        config: Loaded configuration
        sink: MetricSink shared by all probes
        http_client: Optional client shared by the registry probes

    Returns:
        Ordered list of probes
    """
    timeout = config.service.request_timeout
    probes: List[Probe] = []

    for git_target in config.checks.git:
        probes.append(GitProbe(git_target, sink))

    for http_target in config.checks.http:
        probes.append(HttpProbe(http_target, sink, timeout=timeout))

    for registry_target in config.checks.registry:
        client = RegistryClient(
            credentials=registry_target.credentials,
            http_client=http_client,
            timeout=timeout,
        )
        probes.append(RegistryProbe(registry_target, sink, client))

    logger.info(
        f"built {len(probes)} probes: git={len(config.checks.git)}, "
        f"http={len(config.checks.http)}, registry={len(config.checks.registry)}"
    )
    return probes
