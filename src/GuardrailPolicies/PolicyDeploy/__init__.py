"""Deploy built AI guardrail policy packages to a WSO2 API Manager.

The public entry point is :func:`run_deployment`, which resolves the admin
credential, registers a dynamic OAuth2 client, obtains a token, discovers the
``*-distribution.zip`` archives and uploads each policy, returning a
:class:`RunSummary`.  The ``policy-deploy`` console script wraps it.
"""

from __future__ import annotations

from .errors import FATAL_ERRORS, PolicyDeployError
from .models import AlreadyExists, DistributionPackage, Failed, Installed
from .orchestrator import DeploymentOrchestrator, run_deployment
from .settings import DeploySettings, load_settings
from .summary import RunSummary

__version__ = "0.3.0"

__all__ = [
    "__version__",
    "AlreadyExists",
    "DeploySettings",
    "DeploymentOrchestrator",
    "DistributionPackage",
    "FATAL_ERRORS",
    "Failed",
    "Installed",
    "PolicyDeployError",
    "RunSummary",
    "load_settings",
    "run_deployment",
]
