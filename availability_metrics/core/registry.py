"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Availability Metrics, a product of Garudex Labs

Container registry availability client.

Implements the subset of the image distribution API needed to confirm that
tagged manifests exist without pulling them:
- HEAD /v2/<repository>/manifests/<tag>, anonymously first
- on 401, parse the bearer challenge and fetch a pull-scoped token
- retry the HEAD once with the token

Tokens are fetched per tag and never cached.
"""

import json
import re
from dataclasses import dataclass
from typing import Iterable, Optional, Tuple

import httpx

from availability_metrics.core.models import Credentials
from availability_metrics.exceptions import (
    AuthChallengeError,
    CredentialsError,
    ManifestUnavailableError,
    TokenRequestError,
    TransportError,
)
from availability_metrics.logging_config import get_logger

logger = get_logger(__name__)


DEFAULT_REGISTRY = "docker.io"
DEFAULT_TAG = "latest"
DEFAULT_TIMEOUT_SECONDS = 30.0

MANIFEST_MEDIA_TYPES = (
    "application/vnd.docker.distribution.manifest.v2+json",
    "application/vnd.docker.distribution.manifest.list.v2+json",
    "application/vnd.oci.image.manifest.v1+json",
    "application/vnd.oci.image.index.v1+json",
)
MANIFEST_ACCEPT_HEADER = ", ".join(MANIFEST_MEDIA_TYPES)

TOKEN_ERROR_PREFIX = "failed to get auth token"

# e.g. Bearer realm="https://quay.io/v2/auth",service="quay.io",scope="repository:user/repo:pull"
_REALM_RE = re.compile(r'realm="([^"]+)"')
_SERVICE_RE = re.compile(r'service="([^"]+)"')


@dataclass(frozen=True)
class AuthChallenge:
    """Parameters of a WWW-Authenticate bearer challenge."""
    realm: str
    service: str = ""


def parse_image_reference(image: str) -> Tuple[str, str]:
    """
    Split an image reference into registry and repository.

    The first path segment is treated as a registry host only if it contains
    a "." or a ":". Anything else resolves against docker.io with the whole
    reference as repository, so a dotless host such as "registry/app" is
    classified as a docker.io repository.

    Example:
        quay.io/konflux-ci/release-service-utils -> ("quay.io", "konflux-ci/release-service-utils")
        alpine -> ("docker.io", "alpine")
    """
    parts = image.split("/", 1)
    if len(parts) == 2 and ("." in parts[0] or ":" in parts[0]):
        return parts[0], parts[1]
    return DEFAULT_REGISTRY, image


def parse_auth_challenge(header: str) -> AuthChallenge:
    """
    Extract realm and service from a WWW-Authenticate header.

    Raises:
        AuthChallengeError: If the header carries no realm
    """
    realm_match = _REALM_RE.search(header)
    if realm_match is None:
        raise AuthChallengeError(f"failed to parse auth realm from: {header}")

    service_match = _SERVICE_RE.search(header)
    service = service_match.group(1) if service_match else ""
    return AuthChallenge(realm=realm_match.group(1), service=service)


def build_token_url(challenge: AuthChallenge, repository: str) -> str:
    """Build the pull-scoped token request URL for a repository."""
    separator = "&" if "?" in challenge.realm else "?"
    return (
        f"{challenge.realm}{separator}service={challenge.service}"
        f"&scope=repository:{repository}:pull"
    )


def _extract_token(body: bytes) -> str:
    try:
        payload = json.loads(body)
    except ValueError as e:
        raise TokenRequestError(f"{TOKEN_ERROR_PREFIX}: invalid token response: {e}") from e

    if not isinstance(payload, dict):
        raise TokenRequestError(f"{TOKEN_ERROR_PREFIX}: invalid token response")

    token = payload.get("token") or payload.get("access_token") or ""
    if not isinstance(token, str) or not token:
        raise TokenRequestError(f"{TOKEN_ERROR_PREFIX}: token response did not contain a token")
    return token


class RegistryClient:
    """
    Checks manifest availability against a distribution API registry.

    One client serves one registry target; the underlying httpx.AsyncClient
    may be shared and is closed by whoever created it.
    """

    def __init__(
        self,
        credentials: Optional[Credentials] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        """
        Initialize registry client.

        Args:
            credentials: Optional credentials for the token endpoint
            http_client: Optional httpx.AsyncClient (creates one if not provided)
            timeout: Per-request timeout in seconds
        """
        self.credentials = credentials or Credentials()
        self._owns_client = http_client is None
        self.http_client = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            follow_redirects=True,
        )

    async def close(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_client:
            await self.http_client.aclose()

    async def check_all_tags(self, image: str, tags: Iterable[str]) -> None:
        """
        Verify that every tag of an image is available.

        Tags are checked in order and the first failure is raised; the
        remaining tags are not attempted.

        Raises:
            RegistryError: If a tag is unavailable or authorization fails
            TransportError: If the registry cannot be reached
        """
        registry, repository = parse_image_reference(image)
        logger.debug(f"checking manifests for {image} on {registry}")

        for tag in tags:
            await self.check_tag(registry, repository, tag)

    async def check_tag(self, registry: str, repository: str, tag: str) -> None:
        """
        Verify that one tag's manifest exists.

        Performs an anonymous HEAD first; only a 401 triggers the token
        exchange and a single authenticated retry.
        """
        tag = tag or DEFAULT_TAG
        manifest_url = f"https://{registry}/v2/{repository}/manifests/{tag}"

        response = await self._head_manifest(manifest_url)

        if response.status_code == 401:
            www_authenticate = response.headers.get("WWW-Authenticate", "")
            if not www_authenticate:
                raise AuthChallengeError("unauthorized and no WWW-Authenticate header")

            challenge = parse_auth_challenge(www_authenticate)
            token = await self.fetch_token(repository, challenge)
            response = await self._head_manifest(manifest_url, token=token)

        if response.status_code != 200:
            raise ManifestUnavailableError(response.status_code)

        logger.debug(f"manifest {registry}/{repository}:{tag} available")

    async def fetch_token(self, repository: str, challenge: AuthChallenge) -> str:
        """
        Exchange the configured credentials for a pull-scoped bearer token.

        Raises:
            CredentialsError: If the token endpoint answers 401
            TokenRequestError: On any other non-200 status or a malformed body
        """
        token_url = build_token_url(challenge, repository)

        auth = None
        if self.credentials.configured:
            auth = httpx.BasicAuth(self.credentials.username, self.credentials.password)

        try:
            response = await self.http_client.get(token_url, auth=auth)
        except httpx.HTTPError as e:
            raise TransportError(f"{TOKEN_ERROR_PREFIX}: {_describe_transport_error(e)}") from e

        if response.status_code == 401:
            raise CredentialsError(
                f"{TOKEN_ERROR_PREFIX}: authentication failed (status 401) - check credentials"
            )
        if response.status_code != 200:
            raise TokenRequestError(
                f"{TOKEN_ERROR_PREFIX}: token request failed with status: {response.status_code}"
            )

        return _extract_token(response.content)

    async def _head_manifest(self, url: str, token: str = "") -> httpx.Response:
        headers = {"Accept": MANIFEST_ACCEPT_HEADER}
        if token:
            headers["Authorization"] = f"Bearer {token}"

        try:
            return await self.http_client.head(url, headers=headers)
        except httpx.HTTPError as e:
            raise TransportError(_describe_transport_error(e)) from e


def _describe_transport_error(error: httpx.HTTPError) -> str:
    message = str(error)
    return message if message else type(error).__name__
