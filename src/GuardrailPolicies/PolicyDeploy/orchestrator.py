"""Drive a full deployment run.

Control flow::

    CredentialProvider -> TokenAcquirer -> PackageLocator
        -> per package (bounded pool): ArtifactExtractor -> PolicyDeployer
        -> summarize -> report_summary

Credential, token and discovery failures are fatal and propagate to the
caller before any upload is attempted.  Extraction and upload failures are
recorded as ``Failed`` outcomes and never stop the remaining packages.
"""

from __future__ import annotations

import logging
from concurrent import futures
from typing import Callable, List, Optional, Sequence, Tuple

import httpx
from rich.console import Console

from .auth import TokenAcquirer
from .cancellation import CancellationToken
from .context import RunContext
from .credentials import CredentialProvider, prompt_password
from .deployer import PolicyDeployer
from .discovery import PackageLocator
from .errors import ExtractionError
from .extraction import ArtifactExtractor, prepare_scratch_dir
from .logging_utils import log_header, log_success, write_log_banner, write_log_footer
from .models import DistributionPackage, Failed
from .scoped_secrets import AccessToken
from .settings import DeploySettings
from .summary import PackageResult, RunSummary, report_summary, summarize

__all__ = ["DeploymentOrchestrator", "create_executor", "run_deployment"]

Executor = futures.Executor


def create_executor(workers: int) -> Tuple[Optional[Executor], bool]:
    """
    Return a thread pool for ``workers`` > 1, otherwise ``(None, False)``.

    Returns:
        Tuple of (executor, needs_shutdown). Caller is responsible for shutting
        down the returned executor when ``needs_shutdown`` is ``True``.
    """
    if workers <= 1:
        return None, False
    return futures.ThreadPoolExecutor(max_workers=workers, thread_name_prefix="policy-deploy"), True


class DeploymentOrchestrator:
    """Run every stage of a deployment against one :class:`RunContext`."""

    def __init__(
        self,
        ctx: RunContext,
        *,
        prompt: Optional[Callable[[], str]] = prompt_password,
    ) -> None:
        self._ctx = ctx
        self._logger = ctx.logger
        self._prompt = prompt

    def run(self) -> RunSummary:
        settings = self._ctx.settings
        log_header(self._logger, "WSO2 APIM Policy Installation Script")
        self._logger.info("APIM Host: %s:%s", settings.host, settings.port)
        self._logger.info("Admin User: %s", settings.admin_user)
        self._logger.info("Project root: %s", settings.project_root)
        self._logger.info("Install log: %s", settings.log_path)
        if not settings.verify_tls:
            self._logger.info("Using insecure TLS connection for %s", settings.host)

        log_header(self._logger, "Authentication Setup")
        credential = CredentialProvider(settings, logger=self._logger, prompt=self._prompt).resolve()

        log_header(self._logger, "Starting policy installation...")
        token = TokenAcquirer(self._ctx).acquire(credential)
        try:
            packages = PackageLocator(settings.policies_dir, logger=self._logger).locate()
            prepare_scratch_dir(self._ctx.extract_dir)
            self._logger.info("Extracting and installing %d policies...", len(packages))
            summary = summarize(self.deploy_all(packages, token))
        finally:
            self._ctx.release(token.value.reveal())
            token.discard()

        report_summary(summary, self._logger, publisher_url=f"{settings.base_url}/publisher")
        self._logger.info("Installation log available at: %s", settings.log_path)
        return summary

    def deploy_all(
        self, packages: Sequence[DistributionPackage], token: AccessToken
    ) -> List[PackageResult]:
        """Process every package; results keep discovery order."""

        extractor = ArtifactExtractor(self._ctx.extract_dir, logger=self._logger)
        deployer = PolicyDeployer(self._ctx, token)
        executor, needs_shutdown = create_executor(self._ctx.settings.workers)
        if executor is None:
            return [self.process_package(package, extractor, deployer) for package in packages]
        try:
            pending = [
                executor.submit(self.process_package, package, extractor, deployer)
                for package in packages
            ]
            return [future.result() for future in pending]
        finally:
            if needs_shutdown:
                executor.shutdown(wait=True)

    def process_package(
        self,
        package: DistributionPackage,
        extractor: ArtifactExtractor,
        deployer: PolicyDeployer,
    ) -> PackageResult:
        """Extract and deploy one package, converting per-package errors to ``Failed``."""

        cancellation = self._ctx.cancellation
        if cancellation.is_cancelled():
            self._logger.warning("Skipping %s: run cancelled", package.policy_name)
            return PackageResult(package, Failed(None, f"cancelled: {cancellation.reason}"))

        log_header(self._logger, f"Processing: {package.policy_name}")
        try:
            artifact = extractor.extract(package)
        except ExtractionError as exc:
            self._logger.error("  ✗ Failed to extract policy files: %s", exc)
            return PackageResult(package, Failed.from_body(None, str(exc)))
        log_success(self._logger, "  ✓ Policy files extracted successfully")

        outcome = deployer.deploy(package.policy_name, artifact)
        return PackageResult(package, outcome)


def run_deployment(
    settings: DeploySettings,
    *,
    transport: Optional[httpx.BaseTransport] = None,
    prompt: Optional[Callable[[], str]] = prompt_password,
    console: Optional[Console] = None,
    logger: Optional[logging.Logger] = None,
    cancellation: Optional[CancellationToken] = None,
) -> RunSummary:
    """Run a complete deployment and return its summary.

    Fatal errors (:data:`~.errors.FATAL_ERRORS`) propagate after the log
    footer is written.
    """

    write_log_banner(settings.log_path)
    try:
        with RunContext.create(
            settings, transport=transport, console=console, logger=logger
        ) as ctx:
            if cancellation is not None:
                ctx.cancellation = cancellation
            try:
                return DeploymentOrchestrator(ctx, prompt=prompt).run()
            except Exception as exc:
                ctx.logger.error("%s", exc)
                raise
    finally:
        write_log_footer(settings.log_path)
