"""Explicit per-run state handed to every deployment component.

:class:`RunContext` bundles what the shell installer kept in globals: the
settings, the logger writing ``install.log``, the shared HTTP client, the
cancellation token and the masking filter that keeps secrets out of the log.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import httpx
from rich.console import Console

from .cancellation import CancellationToken
from .logging_utils import SecretMaskingFilter, masking_filter, setup_logging
from .network.client import create_http_client
from .settings import DeploySettings

__all__ = ["RunContext"]


@dataclass
class RunContext:
    """Settings, logging sink and shared resources for a single run."""

    settings: DeploySettings
    logger: logging.Logger
    client: httpx.Client
    cancellation: CancellationToken = field(default_factory=CancellationToken)
    masking: SecretMaskingFilter = field(default_factory=SecretMaskingFilter)

    @classmethod
    def create(
        cls,
        settings: DeploySettings,
        *,
        transport: Optional[httpx.BaseTransport] = None,
        console: Optional[Console] = None,
        logger: Optional[logging.Logger] = None,
    ) -> "RunContext":
        """Build a context, configuring logging and the HTTP client."""

        masking = SecretMaskingFilter()
        if logger is None:
            logger = setup_logging(
                level=settings.log_level,
                log_path=settings.log_path,
                console=console,
                masking=masking,
            )
        else:
            masking = masking_filter(logger) or masking
        client = create_http_client(settings, transport=transport)
        return cls(settings=settings, logger=logger, client=client, masking=masking)

    @property
    def extract_dir(self) -> Path:
        return self.settings.extract_dir

    @property
    def log_path(self) -> Path:
        return self.settings.log_path

    def protect(self, value: str) -> None:
        """Register ``value`` so it is masked if it ever reaches a log record."""
        self.masking.register(value)

    def release(self, value: str) -> None:
        self.masking.forget(value)

    def close(self) -> None:
        self.client.close()

    def __enter__(self) -> "RunContext":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
