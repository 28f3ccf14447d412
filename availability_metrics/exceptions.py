"""
Exception hierarchy for Availability Metrics.

All custom exceptions inherit from AvailabilityMetricsError base class.
Probe failures carry a short ``kind`` label used as a closed error taxonomy
when raw failure messages are too noisy for metric labels.
"""


class AvailabilityMetricsError(Exception):
    """Base exception for all Availability Metrics errors."""
    pass


# Probe Errors
class ProbeError(AvailabilityMetricsError):
    """Base exception for a failed availability check."""

    kind = "probe"


class TransportError(ProbeError):
    """Raised on DNS, TLS, connection or timeout failures talking to a target."""

    kind = "transport"


# Registry Errors
class RegistryError(ProbeError):
    """Base exception for container registry check failures."""

    kind = "registry"


class AuthChallengeError(RegistryError):
    """Raised when a 401 challenge is missing or carries no parseable realm."""

    kind = "auth_challenge"


class CredentialsError(RegistryError):
    """Raised when the token endpoint rejects the configured credentials."""

    kind = "credentials"


class TokenRequestError(RegistryError):
    """Raised when the token endpoint fails or returns a malformed body."""

    kind = "token_request"


class ManifestUnavailableError(RegistryError):
    """Raised when the manifest HEAD request ends with a non-200 status."""

    kind = "manifest_unavailable"

    def __init__(self, status: int):
        self.status = status
        super().__init__(f"manifest check failed with status: {status}")


# HTTP Endpoint Errors
class EndpointUnavailableError(ProbeError):
    """Raised when an HTTP endpoint answers with a non-200 status."""

    kind = "endpoint_unavailable"

    def __init__(self, status_code: int, reason_phrase: str = ""):
        self.status_code = status_code
        self.reason_phrase = reason_phrase
        super().__init__(f"{status_code} {reason_phrase}".strip())


# Git Errors
class GitCheckError(ProbeError):
    """Base exception for git repository check failures."""

    kind = "git"


class RepositoryError(GitCheckError):
    """Raised when the repository cannot be cloned or read."""

    kind = "repository"


class PathNotFoundError(GitCheckError):
    """Raised when the expected file is missing from the repository tree."""

    kind = "path_not_found"


# Configuration Errors
class ConfigurationError(AvailabilityMetricsError):
    """Base exception for configuration-related errors."""
    pass


class InvalidConfigurationError(ConfigurationError):
    """Raised when configuration is invalid or malformed."""
    pass
