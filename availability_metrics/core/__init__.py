"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Availability Metrics, a product of Garudex Labs

Core probe engine: targets, outcomes, the registry client, probes and the scheduler.

Only the data models are re-exported here; import probes, registry and
scheduler from their modules.
"""

from availability_metrics.core.models import (
    Credentials,
    GitTarget,
    HttpTarget,
    Outcome,
    OutcomeStatus,
    RegistryTarget,
    Target,
)

__all__ = [
    "Credentials",
    "GitTarget",
    "HttpTarget",
    "Outcome",
    "OutcomeStatus",
    "RegistryTarget",
    "Target",
]
