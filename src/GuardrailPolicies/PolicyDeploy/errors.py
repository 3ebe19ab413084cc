"""Exception hierarchy shared across credential, token, discovery and deploy steps.

A deployment run moves through credential resolution, OAuth2 client
registration, token exchange, package discovery, archive extraction and the
multipart upload itself.  The failures are grouped so the orchestrator can tell
run-ending problems (no credential, no token, nothing to deploy) apart from
per-package problems that are recorded and skipped.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

__all__ = [
    "PolicyDeployError",
    "ConfigError",
    "CredentialError",
    "NoCredentialAvailable",
    "EmptyCredentialFile",
    "RegistrationError",
    "RegistrationTransportError",
    "RegistrationParseError",
    "TokenError",
    "TokenTransportError",
    "TokenParseError",
    "DiscoveryError",
    "NoPackagesFound",
    "ExtractionError",
    "DeploymentError",
    "FATAL_ERRORS",
]


class PolicyDeployError(RuntimeError):
    """Base exception for policy deployment failures."""


class ConfigError(PolicyDeployError):
    """Raised when settings or CLI inputs are invalid."""


class CredentialError(PolicyDeployError):
    """Raised when the administrative credential cannot be resolved."""


class NoCredentialAvailable(CredentialError):
    """Raised when no credential source produced a password."""


class EmptyCredentialFile(CredentialError):
    """Raised when the password file or the interactive prompt yields nothing."""


class RegistrationError(PolicyDeployError):
    """Raised when dynamic OAuth2 client registration fails."""


class RegistrationTransportError(RegistrationError):
    """Registration request failed in transit or returned an empty body."""


class RegistrationParseError(RegistrationError):
    """Registration response lacked a usable ``clientId``/``clientSecret``."""


class TokenError(PolicyDeployError):
    """Raised when the password-grant token exchange fails."""


class TokenTransportError(TokenError):
    """Token request failed in transit or returned an empty body."""


class TokenParseError(TokenError):
    """Token response lacked a usable ``access_token``."""


class DiscoveryError(PolicyDeployError):
    """Raised when distribution packages cannot be located."""


class NoPackagesFound(DiscoveryError):
    """Raised when the policies tree holds no distribution archives."""


class ExtractionError(PolicyDeployError):
    """Raised when policy artefacts cannot be pulled out of an archive."""

    def __init__(self, message: str, *, archive: Optional[Path] = None) -> None:
        super().__init__(message)
        self.archive = archive


class DeploymentError(PolicyDeployError):
    """Raised when a policy upload cannot be completed."""

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code


# Errors that end the run before (or instead of) the per-package phase.
FATAL_ERRORS = (CredentialError, RegistrationError, TokenError, DiscoveryError)
# === NAVMAP v1 ===
# {
#   "module": "GuardrailPolicies.PolicyDeploy.errors",
#   "purpose": "Define the exception hierarchy used across credential, token, discovery and deploy steps",
#   "sections": [
#     {"id": "base", "name": "Base Exceptions", "anchor": "BAS", "kind": "api"},
#     {"id": "auth", "name": "Credential & Token Errors", "anchor": "AUT", "kind": "api"},
#     {"id": "package", "name": "Discovery, Extraction & Deployment Errors", "anchor": "PKG", "kind": "api"}
#   ]
# }
# === /NAVMAP ===
