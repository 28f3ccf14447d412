"""
Configuration management for Availability Metrics.

Handles loading and validation of configuration files.
"""

from availability_metrics.config.settings import (
    AvailabilityConfig,
    ChecksConfig,
    LoggingConfig,
    ServiceConfig,
    build_config_from_dict,
    get_default_config,
    get_default_config_path,
    load_config,
)

__all__ = [
    "AvailabilityConfig",
    "ChecksConfig",
    "LoggingConfig",
    "ServiceConfig",
    "build_config_from_dict",
    "get_default_config",
    "get_default_config_path",
    "load_config",
]
