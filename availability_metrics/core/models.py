"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Availability Metrics, a product of Garudex Labs

Data models for probe targets and probe outcomes.

Targets are built once from configuration and never mutated. An Outcome is
created fresh for every probe execution and only lives until it has been
written to the metric sink.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Tuple, Union


DEFAULT_TAGS: Tuple[str, ...] = ("latest",)


class OutcomeStatus(str, Enum):
    """Outcome status values, used verbatim as the histogram status label."""
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"


@dataclass(frozen=True)
class Outcome:
    """
    Result of one probe execution.

    Attributes:
        code: 0 on success, 1 on failure
        status: "Succeeded" or "Failed"
        reason: Diagnostic text, empty exactly when the check succeeded
        kind: Error taxonomy label, empty on success
    """
    code: int
    status: str
    reason: str = ""
    kind: str = ""

    def __post_init__(self):
        if self.code not in (0, 1):
            raise ValueError(f"outcome code must be 0 or 1, got {self.code}")
        if (self.code == 0) != (self.reason == ""):
            raise ValueError("outcome reason must be empty exactly when code is 0")

    @classmethod
    def succeeded(cls) -> "Outcome":
        return cls(code=0, status=OutcomeStatus.SUCCEEDED.value)

    @classmethod
    def failed(cls, reason: str, kind: str = "") -> "Outcome":
        # An empty message would break the code/reason invariant.
        return cls(
            code=1,
            status=OutcomeStatus.FAILED.value,
            reason=reason or "unknown error",
            kind=kind,
        )

    @property
    def ok(self) -> bool:
        return self.code == 0


@dataclass(frozen=True)
class Credentials:
    """Optional username/password pair."""
    username: str = ""
    password: str = field(default="", repr=False)

    @property
    def configured(self) -> bool:
        """Basic auth is only applied when both parts are set."""
        return bool(self.username) and bool(self.password)


@dataclass(frozen=True)
class RegistryTarget:
    """A container image whose tags must all be present in its registry."""
    name: str
    image: str
    tags: Tuple[str, ...] = DEFAULT_TAGS
    credentials: Credentials = field(default_factory=Credentials)

    def __post_init__(self):
        if not self.tags:
            object.__setattr__(self, "tags", DEFAULT_TAGS)
        else:
            object.__setattr__(self, "tags", tuple(self.tags))


@dataclass(frozen=True)
class GitTarget:
    """A file expected to exist at a revision of a git repository."""
    name: str
    url: str
    path: str
    revision: str = ""
    token: str = field(default="", repr=False)


@dataclass(frozen=True)
class HttpTarget:
    """An HTTP(S) endpoint expected to answer 200."""
    name: str
    url: str
    credentials: Credentials = field(default_factory=Credentials)
    cert: str = ""
    key: str = ""
    insecure: bool = False
    follow_redirects: bool = False


Target = Union[GitTarget, HttpTarget, RegistryTarget]
