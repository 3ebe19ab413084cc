"""Fold per-package outcomes into the run verdict and print the summary.

:class:`RunSummary` is immutable; :meth:`RunSummary.add` returns a new summary
so the fold stays testable without any network calls.  ``total`` always equals
``installed + already_exists + failed``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from .logging_utils import log_header, log_success
from .models import DeploymentOutcome, DistributionPackage, OutcomeKind

__all__ = ["PackageResult", "RunSummary", "summarize", "report_summary"]


@dataclass(frozen=True)
class PackageResult:
    """Outcome recorded for one discovered package."""

    package: DistributionPackage
    outcome: DeploymentOutcome

    def to_dict(self) -> Dict[str, object]:
        payload: Dict[str, object] = {
            "policy": self.package.policy_name,
            "archive": str(self.package.archive_path),
        }
        payload.update(self.outcome.to_dict())
        return payload


@dataclass(frozen=True)
class RunSummary:
    installed: int = 0
    already_exists: int = 0
    failed: int = 0
    results: Tuple[PackageResult, ...] = field(default=())

    @classmethod
    def empty(cls) -> "RunSummary":
        return cls()

    @property
    def total(self) -> int:
        return self.installed + self.already_exists + self.failed

    @property
    def succeeded(self) -> bool:
        """``already_exists`` counts as success; only ``failed`` fails the run."""
        return self.failed == 0

    @property
    def exit_code(self) -> int:
        return 0 if self.succeeded else 1

    def add(self, result: PackageResult) -> "RunSummary":
        kind = result.outcome.kind
        return RunSummary(
            installed=self.installed + (kind is OutcomeKind.INSTALLED),
            already_exists=self.already_exists + (kind is OutcomeKind.ALREADY_EXISTS),
            failed=self.failed + (kind is OutcomeKind.FAILED),
            results=self.results + (result,),
        )

    def failures(self) -> List[PackageResult]:
        return [r for r in self.results if r.outcome.kind is OutcomeKind.FAILED]

    def to_dict(self) -> Dict[str, object]:
        return {
            "total": self.total,
            "installed": self.installed,
            "already_exists": self.already_exists,
            "failed": self.failed,
            "succeeded": self.succeeded,
            "results": [result.to_dict() for result in self.results],
        }


def summarize(results: Iterable[PackageResult]) -> RunSummary:
    summary = RunSummary.empty()
    for result in results:
        summary = summary.add(result)
    return summary


def report_summary(
    summary: RunSummary,
    logger: logging.Logger,
    *,
    publisher_url: Optional[str] = None,
) -> None:
    """Log the installation summary block."""

    logger.info("=" * 44)
    log_header(logger, "Installation Summary:")
    logger.info("Total policies: %d", summary.total)
    if summary.installed:
        log_success(logger, f"Newly installed: {summary.installed}")
    if summary.already_exists:
        log_success(logger, f"Already installed: {summary.already_exists}")
    if summary.failed:
        logger.error("Failed: %d", summary.failed)
        for result in summary.failures():
            logger.error("  - %s", result.package.policy_name)
    else:
        log_success(logger, f"Failed: {summary.failed}")

    if summary.succeeded:
        log_success(logger, "All policies installed successfully!")
        if publisher_url:
            logger.info("You can verify the installation by connecting to:")
            logger.info("  %s", publisher_url)
            logger.info("  Navigate to: Policies → Operation Policies of any AI/LLM API")
