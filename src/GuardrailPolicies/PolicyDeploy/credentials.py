"""Resolve the administrative credential for a deployment run.

The password is taken from the first source that provides one:

1. ``ADMIN_PASS`` already set in the environment;
2. the file named by ``ADMIN_PASS_FILE`` (line terminators stripped);
3. an interactive, masked prompt.

The username resolves independently (``ADMIN_USER``, default ``admin``).
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Optional

from rich.prompt import Prompt

from .errors import EmptyCredentialFile, NoCredentialAvailable
from .scoped_secrets import Credential, ScopedSecret
from .settings import DeploySettings

__all__ = ["CredentialProvider", "prompt_password"]

PROMPT_TEXT = "Enter WSO2 Admin Password"


def prompt_password() -> str:
    """Ask for the password on the terminal without echoing it."""
    return Prompt.ask(PROMPT_TEXT, password=True, default="", show_default=False)


class CredentialProvider:
    """Produce the run's :class:`Credential` from ranked sources."""

    def __init__(
        self,
        settings: DeploySettings,
        *,
        logger: Optional[logging.Logger] = None,
        prompt: Optional[Callable[[], str]] = prompt_password,
    ) -> None:
        self._settings = settings
        self._logger = logger or logging.getLogger(__name__)
        self._prompt = prompt

    def resolve(self) -> Credential:
        """Return the credential or raise a :class:`CredentialError` subclass."""

        username = self._settings.admin_user
        password = self._from_environment()
        if password is None:
            password = self._from_file()
        if password is None:
            password = self._from_prompt()
        return Credential(username=username, password=password)

    def _from_environment(self) -> Optional[ScopedSecret]:
        secret = self._settings.admin_pass
        if secret is None:
            return None
        self._logger.info("Using password from environment variable")
        return ScopedSecret(secret.get_secret_value())

    def _from_file(self) -> Optional[ScopedSecret]:
        path = self._settings.admin_pass_file
        if path is None or not Path(path).is_file():
            return None
        self._logger.info("Using password from file: %s", path)
        try:
            raw = Path(path).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise NoCredentialAvailable(
                f"Cannot read password file {path}: {type(exc).__name__}"
            ) from exc
        value = raw.replace("\r", "").replace("\n", "")
        if not value:
            raise EmptyCredentialFile(f"Password file is empty: {path}")
        return ScopedSecret(value)

    def _from_prompt(self) -> ScopedSecret:
        if self._prompt is None:
            raise NoCredentialAvailable(
                "No admin password available: set ADMIN_PASS, ADMIN_PASS_FILE or run interactively"
            )
        try:
            value = self._prompt()
        except (EOFError, KeyboardInterrupt) as exc:
            raise NoCredentialAvailable("Password prompt was aborted") from exc
        if not value:
            raise EmptyCredentialFile("Password cannot be empty")
        self._logger.info("Using password from interactive prompt")
        return ScopedSecret(value)
