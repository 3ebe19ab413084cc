"""Logging helpers for the policy deployment run.

Every step is echoed to the console through :mod:`rich` and appended to
``build-output/install.log`` as plain text tagged with its severity
(``[INFO]``, ``[SUCCESS]``, ``[WARNING]``, ``[ERROR]`` and ``[HEADER]`` for
section titles).  Secret values registered with :class:`SecretMaskingFilter`
are scrubbed from every record before any handler formats it.
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterable, Optional

from rich.console import Console
from rich.logging import RichHandler

from .scoped_secrets import MASK

__all__ = [
    "LOGGER_NAME",
    "SUCCESS",
    "SecretMaskingFilter",
    "PlainTagFormatter",
    "mask_sensitive_data",
    "setup_logging",
    "log_header",
    "log_success",
    "masking_filter",
    "write_log_banner",
    "write_log_footer",
]

LOGGER_NAME = "GuardrailPolicies.PolicyDeploy"

SUCCESS = 25
logging.addLevelName(SUCCESS, "SUCCESS")

_BANNER = "WSO2 APIM Policy Installation Script"


def mask_sensitive_data(payload: Dict[str, object]) -> Dict[str, object]:
    """Replace common secret fields in structured payloads.

    Examples:
        >>> mask_sensitive_data({"access_token": "abc", "status": 201})
        {'access_token': '***masked***', 'status': 201}
    """
    sensitive = ("authorization", "password", "secret", "token")
    masked: Dict[str, object] = {}
    for key, value in payload.items():
        lower = key.lower()
        if any(marker in lower for marker in sensitive):
            masked[key] = MASK
        else:
            masked[key] = value
    return masked


class SecretMaskingFilter(logging.Filter):
    """Scrub registered secret strings from log messages."""

    def __init__(self, secrets: Iterable[str] = ()) -> None:
        super().__init__()
        self._secrets = {value for value in secrets if value}

    def register(self, value: str) -> None:
        if value:
            self._secrets.add(value)

    def forget(self, value: str) -> None:
        self._secrets.discard(value)

    def filter(self, record: logging.LogRecord) -> bool:
        extra_fields = getattr(record, "extra_fields", None)
        if isinstance(extra_fields, dict):
            record.extra_fields = mask_sensitive_data(extra_fields)
        if not self._secrets:
            return True
        message = record.getMessage()
        scrubbed = message
        for secret in self._secrets:
            scrubbed = scrubbed.replace(secret, MASK)
        if scrubbed != message:
            record.msg = scrubbed
            record.args = None
        return True


class PlainTagFormatter(logging.Formatter):
    """Render ``[LEVEL] message`` lines; header records use ``[HEADER]``."""

    def format(self, record: logging.LogRecord) -> str:
        tag = "HEADER" if getattr(record, "stage", None) == "header" else record.levelname
        line = f"[{tag}] {record.getMessage()}"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def setup_logging(
    *,
    level: str = "INFO",
    log_path: Optional[Path] = None,
    console: Optional[Console] = None,
    masking: Optional[SecretMaskingFilter] = None,
) -> logging.Logger:
    """Configure the deployment logger with console and append-only file handlers."""

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    for handler in list(logger.handlers):
        if getattr(handler, "_policydeploy_managed", False):
            logger.removeHandler(handler)
            handler.close()
    masking = masking or SecretMaskingFilter()

    console_handler = RichHandler(
        console=console or Console(stderr=False),
        show_time=False,
        show_path=False,
        markup=False,
    )
    console_handler.setFormatter(logging.Formatter("%(message)s"))
    console_handler.addFilter(masking)
    console_handler._policydeploy_managed = True  # type: ignore[attr-defined]
    logger.addHandler(console_handler)

    if log_path is not None:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, mode="a", encoding="utf-8")
        file_handler.setFormatter(PlainTagFormatter())
        file_handler.addFilter(masking)
        file_handler._policydeploy_managed = True  # type: ignore[attr-defined]
        logger.addHandler(file_handler)

    logger.propagate = False
    return logger


def masking_filter(logger: logging.Logger) -> Optional[SecretMaskingFilter]:
    for handler in logger.handlers:
        for existing in handler.filters:
            if isinstance(existing, SecretMaskingFilter):
                return existing
    return None


def log_header(logger: logging.Logger, message: str) -> None:
    logger.info(message, extra={"stage": "header"})


def log_success(logger: logging.Logger, message: str) -> None:
    logger.log(SUCCESS, message)


def write_log_banner(log_path: Path) -> None:
    """Start a new run section in the append-only log."""

    log_path.parent.mkdir(parents=True, exist_ok=True)
    with log_path.open("a", encoding="utf-8") as handle:
        handle.write(f"{_BANNER}\n")
        handle.write("=" * len(_BANNER) + "\n")
        handle.write(f"Installation started at: {datetime.now().isoformat(timespec='seconds')}\n\n")


def write_log_footer(log_path: Path) -> None:
    with log_path.open("a", encoding="utf-8") as handle:
        handle.write(f"\nInstallation completed at: {datetime.now().isoformat(timespec='seconds')}\n")
