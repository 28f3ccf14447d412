"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Availability Metrics, a product of Garudex Labs

Availability Metrics - periodic availability probes exported as Prometheus metrics

Probes git repositories, container image registries and HTTP endpoints on a
fixed schedule and publishes an up/down gauge and an outcome histogram per check.
"""

from availability_metrics._version import __version__

__all__ = ["__version__"]
