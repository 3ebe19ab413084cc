"""Value types passed between the deployment stages.

``DeploymentOutcome`` is a tagged union of :class:`Installed`,
:class:`AlreadyExists` and :class:`Failed`; each variant carries its
:class:`OutcomeKind` so callers can dispatch without ``isinstance`` chains.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from pathlib import Path
from typing import ClassVar, Dict, Optional, Union

__all__ = [
    "DistributionPackage",
    "ExtractedArtifact",
    "OutcomeKind",
    "Installed",
    "AlreadyExists",
    "Failed",
    "DeploymentOutcome",
    "BODY_EXCERPT_LIMIT",
]

BODY_EXCERPT_LIMIT = 500


@dataclass(frozen=True)
class DistributionPackage:
    """A built ``*-distribution.zip`` and the policy it belongs to."""

    policy_name: str
    archive_path: Path

    @property
    def archive_name(self) -> str:
        return self.archive_path.name


@dataclass(frozen=True)
class ExtractedArtifact:
    """The two documents uploaded for a policy."""

    policy_spec: bytes
    policy_definition: bytes
    spec_path: Optional[Path] = None
    definition_path: Optional[Path] = None

    def is_complete(self) -> bool:
        return bool(self.policy_spec) and bool(self.policy_definition)


class OutcomeKind(str, enum.Enum):
    INSTALLED = "installed"
    ALREADY_EXISTS = "already_exists"
    FAILED = "failed"


@dataclass(frozen=True)
class Installed:
    policy_id: Optional[str] = None
    kind: ClassVar[OutcomeKind] = OutcomeKind.INSTALLED

    def to_dict(self) -> Dict[str, object]:
        return {"outcome": self.kind.value, "policy_id": self.policy_id}


@dataclass(frozen=True)
class AlreadyExists:
    kind: ClassVar[OutcomeKind] = OutcomeKind.ALREADY_EXISTS

    def to_dict(self) -> Dict[str, object]:
        return {"outcome": self.kind.value}


@dataclass(frozen=True)
class Failed:
    """Failed attempt; ``http_status`` is ``None`` when no response was received."""

    http_status: Optional[int]
    body_excerpt: str = ""
    kind: ClassVar[OutcomeKind] = OutcomeKind.FAILED

    @classmethod
    def from_body(cls, http_status: Optional[int], body: str) -> "Failed":
        return cls(http_status=http_status, body_excerpt=body[:BODY_EXCERPT_LIMIT])

    def to_dict(self) -> Dict[str, object]:
        return {
            "outcome": self.kind.value,
            "http_status": self.http_status,
            "body_excerpt": self.body_excerpt,
        }


DeploymentOutcome = Union[Installed, AlreadyExists, Failed]
