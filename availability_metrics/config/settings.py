"""
Configuration management for Availability Metrics.

Loads YAML configuration from file with sensible defaults and validation.
Supports environment variable substitution using ${ENV_VAR} syntax, and
per-check secret overrides such as <NAME>_QUAY_PASSWORD.
"""

import os
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

import yaml

from availability_metrics.core.models import (
    DEFAULT_TAGS,
    Credentials,
    GitTarget,
    HttpTarget,
    RegistryTarget,
)
from availability_metrics.exceptions import InvalidConfigurationError
from availability_metrics.logging_config import get_logger

logger = get_logger(__name__)


DEFAULT_CONFIG_PATH = "server-config.yaml"
LOG_LEVEL_ENV_VAR = "AVAILABILITY_METRICS_LOG_LEVEL"

_VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
_VALID_REASON_LABELS = {"raw", "kind"}


def _expand_env_vars(value: Any) -> Any:
    """
    Recursively expand environment variables in configuration values.

    Supports ${ENV_VAR} syntax with optional default values: ${ENV_VAR:default}

    Examples:
        "${REGISTRY_HOST}" -> value of REGISTRY_HOST env var
        "${REGISTRY_HOST:quay.io}" -> value of REGISTRY_HOST or "quay.io" if not set
    """
    if isinstance(value, str):
        pattern = r'\$\{([^}:]+)(?::([^}]*))?\}'

        def replace_env_var(match):
            var_name = match.group(1)
            default_value = match.group(2) if match.group(2) is not None else ""
            return os.environ.get(var_name, default_value)

        return re.sub(pattern, replace_env_var, value)
    elif isinstance(value, dict):
        return {k: _expand_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [_expand_env_vars(item) for item in value]
    else:
        return value


_TEXT_KEYS = {"tags"}
_STR_TAG = "tag:yaml.org,2002:str"
_NULL_TAG = "tag:yaml.org,2002:null"


class ConfigLoader(yaml.SafeLoader):
    """
    SafeLoader that keeps image tags as written.

    Plain YAML would resolve a tag such as 1.10 to the float 1.1 and 012 to
    the integer 10; scalars under a "tags" key are always loaded as strings.
    """

    def construct_mapping(self, node, deep=False):
        for key_node, value_node in node.value:
            if isinstance(key_node, yaml.ScalarNode) and key_node.value in _TEXT_KEYS:
                _load_as_text(value_node)
        return super().construct_mapping(node, deep=deep)


def _load_as_text(node: yaml.Node) -> None:
    if isinstance(node, yaml.ScalarNode):
        if node.tag != _NULL_TAG:
            node.tag = _STR_TAG
    elif isinstance(node, yaml.SequenceNode):
        for item in node.value:
            _load_as_text(item)


def _env_override(env: Mapping[str, str], check_name: str, suffix: str, fallback: str) -> str:
    """Return <CHECK_NAME>_<SUFFIX> from the environment if set and non-empty."""
    value = env.get(f"{check_name.upper()}_{suffix}", "")
    return value if value else fallback


@dataclass
class ServiceConfig:
    """Service-level settings."""

    listen_host: str = "0.0.0.0"
    listen_port: int = 8080
    poll_interval: int = 60  # seconds
    metrics_prefix: str = "metrics_server"
    max_concurrency: int = 1
    reason_labels: str = "raw"  # "raw" or "kind"
    request_timeout: float = 30.0


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "INFO"
    file: str = ""
    format: str = "console"  # "console" or "json"


@dataclass
class ChecksConfig:
    """Configured probe targets, grouped by kind."""

    git: List[GitTarget] = field(default_factory=list)
    http: List[HttpTarget] = field(default_factory=list)
    registry: List[RegistryTarget] = field(default_factory=list)

    def names(self) -> List[str]:
        return [t.name for t in [*self.git, *self.http, *self.registry]]


@dataclass
class AvailabilityConfig:
    """Main Availability Metrics configuration."""

    service: ServiceConfig = field(default_factory=ServiceConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    checks: ChecksConfig = field(default_factory=ChecksConfig)


def get_default_config_path() -> str:
    """Get the default configuration file path."""
    return DEFAULT_CONFIG_PATH


def get_default_config() -> AvailabilityConfig:
    """
    Get default configuration with no checks.

    Returns:
        AvailabilityConfig: Default configuration object
    """
    config = AvailabilityConfig()
    config.logging.level = os.environ.get(LOG_LEVEL_ENV_VAR, config.logging.level).upper()
    return config


def load_config(
    config_path: Optional[str] = None,
    env: Optional[Mapping[str, str]] = None,
) -> AvailabilityConfig:
    """
    Load configuration from YAML file with validation.

    If config file is not found, returns default configuration.
    If config file is malformed or invalid, raises InvalidConfigurationError.

    Args:
        config_path: Path to configuration file. If None, uses default path.
        env: Environment used for per-check overrides (default: os.environ)

    Returns:
        AvailabilityConfig: Loaded and validated configuration

    Raises:
        InvalidConfigurationError: If configuration is invalid or malformed
    """
    if config_path is None:
        config_path = get_default_config_path()
    if env is None:
        env = os.environ

    config_path = os.path.expanduser(config_path)

    if not os.path.exists(config_path):
        logger.info(f"Configuration file not found at {config_path}, using defaults")
        return get_default_config()

    logger.info(f"loading config from: {config_path}")
    try:
        with open(config_path, 'r') as f:
            config_data = yaml.load(f, Loader=ConfigLoader)
    except yaml.YAMLError as e:
        logger.error(f"Failed to parse YAML configuration file '{config_path}': {e}")
        raise InvalidConfigurationError(
            f"Failed to parse YAML configuration file '{config_path}': {e}"
        ) from e
    except OSError as e:
        logger.error(f"Failed to read configuration file '{config_path}': {e}")
        raise InvalidConfigurationError(
            f"Failed to read configuration file '{config_path}': {e}"
        ) from e

    if config_data is None:
        logger.info(f"Configuration file {config_path} is empty, using defaults")
        return get_default_config()

    if not isinstance(config_data, dict):
        raise InvalidConfigurationError(
            f"Invalid configuration in '{config_path}': top level must be a mapping"
        )

    config_data = _expand_env_vars(config_data)

    try:
        config = build_config_from_dict(config_data, env)
        _validate_config(config)
    except InvalidConfigurationError as e:
        logger.error(f"Invalid configuration in '{config_path}': {e}")
        raise InvalidConfigurationError(f"Invalid configuration in '{config_path}': {e}") from e
    except (TypeError, ValueError, AttributeError) as e:
        logger.error(f"Invalid configuration in '{config_path}': {e}")
        raise InvalidConfigurationError(f"Invalid configuration in '{config_path}': {e}") from e

    logger.info(
        f"Successfully loaded configuration from {config_path} "
        f"({len(config.checks.names())} checks)"
    )
    return config


def build_config_from_dict(
    config_data: Dict[str, Any],
    env: Optional[Mapping[str, str]] = None,
) -> AvailabilityConfig:
    """
    Build AvailabilityConfig from a dictionary loaded from YAML.

    Merges user configuration with defaults and applies per-check
    environment overrides.

    Args:
        config_data: Dictionary loaded from YAML file
        env: Environment used for per-check overrides (default: os.environ)

    Returns:
        AvailabilityConfig: Configuration object

    Raises:
        InvalidConfigurationError: If required fields are missing
    """
    if env is None:
        env = os.environ
    default_config = get_default_config()

    service_data = config_data.get('service') or {}
    # "pool_interval" is the historical spelling of the key
    poll_interval = service_data.get('poll_interval', service_data.get('pool_interval'))
    service = ServiceConfig(
        listen_host=service_data.get('listen_host', default_config.service.listen_host),
        listen_port=int(service_data.get('listen_port') or default_config.service.listen_port),
        poll_interval=int(poll_interval or default_config.service.poll_interval),
        metrics_prefix=service_data.get('metrics_prefix') or default_config.service.metrics_prefix,
        max_concurrency=int(service_data.get('max_concurrency', default_config.service.max_concurrency)),
        reason_labels=str(service_data.get('reason_labels', default_config.service.reason_labels)).lower(),
        request_timeout=float(service_data.get('request_timeout', default_config.service.request_timeout)),
    )

    logging_data = config_data.get('logging') or {}
    logging = LoggingConfig(
        level=str(env.get(LOG_LEVEL_ENV_VAR) or logging_data.get('level', default_config.logging.level)).upper(),
        file=os.path.expanduser(logging_data.get('file', default_config.logging.file)),
        format=logging_data.get('format', default_config.logging.format),
    )

    checks_data = config_data.get('checks') or {}
    registry_entries = list(checks_data.get('quay') or []) + list(checks_data.get('registry') or [])
    checks = ChecksConfig(
        git=[_build_git_target(entry, env) for entry in checks_data.get('git') or []],
        http=[_build_http_target(entry, env) for entry in checks_data.get('http') or []],
        registry=[_build_registry_target(entry, env) for entry in registry_entries],
    )

    return AvailabilityConfig(service=service, logging=logging, checks=checks)


def _require(entry: Dict[str, Any], key: str, kind: str) -> str:
    value = entry.get(key)
    if not value:
        name = entry.get('name', '<unnamed>')
        raise InvalidConfigurationError(f"{kind} check '{name}' is missing required field '{key}'")
    return str(value)


def _build_git_target(entry: Dict[str, Any], env: Mapping[str, str]) -> GitTarget:
    name = _require(entry, 'name', 'git')
    return GitTarget(
        name=name,
        url=_require(entry, 'url', 'git'),
        path=_require(entry, 'path', 'git'),
        revision=entry.get('revision') or "",
        token=_env_override(env, name, "GIT_TOKEN", entry.get('token') or ""),
    )


def _build_http_target(entry: Dict[str, Any], env: Mapping[str, str]) -> HttpTarget:
    name = _require(entry, 'name', 'http')
    credentials = Credentials(
        username=_env_override(env, name, "HTTP_USERNAME", entry.get('username') or ""),
        password=_env_override(env, name, "HTTP_PASSWORD", entry.get('password') or ""),
    )
    return HttpTarget(
        name=name,
        url=_require(entry, 'url', 'http'),
        credentials=credentials,
        cert=os.path.expanduser(_env_override(env, name, "HTTP_CERT", entry.get('cert') or "")),
        key=os.path.expanduser(_env_override(env, name, "HTTP_KEY", entry.get('key') or "")),
        insecure=bool(entry.get('insecure', False)),
        follow_redirects=bool(entry.get('follow_redirect', entry.get('follow_redirects', False))),
    )


def _build_registry_target(entry: Dict[str, Any], env: Mapping[str, str]) -> RegistryTarget:
    name = _require(entry, 'name', 'registry')
    tags = entry.get('tags') or list(DEFAULT_TAGS)
    if isinstance(tags, str):
        tags = [tags]
    credentials = Credentials(
        username=_env_override(env, name, "QUAY_USERNAME", entry.get('username') or ""),
        password=_env_override(env, name, "QUAY_PASSWORD", entry.get('password') or ""),
    )
    return RegistryTarget(
        name=name,
        image=_require(entry, 'pullspec', 'registry'),
        tags=tuple("" if tag is None else str(tag) for tag in tags),
        credentials=credentials,
    )


def _validate_config(config: AvailabilityConfig) -> None:
    """
    Validate configuration values.

    Raises:
        InvalidConfigurationError: If configuration is invalid
    """
    if config.service.poll_interval <= 0:
        raise InvalidConfigurationError(
            f"poll_interval must be positive, got {config.service.poll_interval}"
        )

    if not 0 <= config.service.listen_port <= 65535:
        raise InvalidConfigurationError(
            f"listen_port must be between 0 and 65535, got {config.service.listen_port}"
        )

    if config.service.max_concurrency < 1:
        raise InvalidConfigurationError(
            f"max_concurrency must be at least 1, got {config.service.max_concurrency}"
        )

    if config.service.request_timeout <= 0:
        raise InvalidConfigurationError(
            f"request_timeout must be positive, got {config.service.request_timeout}"
        )

    if config.service.reason_labels not in _VALID_REASON_LABELS:
        raise InvalidConfigurationError(
            f"reason_labels must be one of {sorted(_VALID_REASON_LABELS)}, "
            f"got '{config.service.reason_labels}'"
        )

    if config.logging.level not in _VALID_LOG_LEVELS:
        raise InvalidConfigurationError(
            f"Invalid log level '{config.logging.level}'. "
            f"Must be one of {sorted(_VALID_LOG_LEVELS)}"
        )

    if config.logging.format not in ("console", "json"):
        raise InvalidConfigurationError(
            f"logging format must be 'console' or 'json', got '{config.logging.format}'"
        )

    seen = set()
    for name in config.checks.names():
        if name in seen:
            raise InvalidConfigurationError(f"duplicate check name '{name}'")
        seen.add(name)

    for target in config.checks.http:
        if target.key and not target.cert:
            raise InvalidConfigurationError(
                f"http check '{target.name}' sets a client key without a certificate"
            )

    logger.debug("Configuration validation passed")
