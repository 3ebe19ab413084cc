# === NAVMAP v1 ===
# {
#   "module": "tests.conftest",
#   "purpose": "Shared pytest fixtures for suite",
#   "sections": [
#     {"id": "isolate-environment", "name": "isolate_environment", "anchor": "function-isolate-environment", "kind": "function"},
#     {"id": "deploy-settings", "name": "deploy_settings", "anchor": "function-deploy-settings", "kind": "function"},
#     {"id": "run-context", "name": "run_context", "anchor": "function-run-context", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""
Pytest Configuration

Shared fixtures for the policy deployment suite: environment isolation so the
developer's ``APIM_*``/``ADMIN_*`` exports never leak into tests, settings
rooted in ``tmp_path``, a quiet console, and a run context wired to the
in-memory publisher service.
"""

from __future__ import annotations

import io
import logging
import os
import sys
from pathlib import Path
from typing import Generator

import pytest
from rich.console import Console

ROOT = Path(__file__).resolve().parent.parent
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from GuardrailPolicies.PolicyDeploy.context import RunContext  # noqa: E402
from GuardrailPolicies.PolicyDeploy.logging_utils import LOGGER_NAME  # noqa: E402
from GuardrailPolicies.PolicyDeploy.settings import DeploySettings, load_settings  # noqa: E402
from tests.fixtures.packages import make_package  # noqa: E402,F401
from tests.fixtures.policy_service import FakePolicyService, policy_service  # noqa: E402,F401

_ENV_NAMES = ("APIM_HOST", "APIM_PORT", "ADMIN_USER", "ADMIN_PASS", "ADMIN_PASS_FILE")


@pytest.fixture(autouse=True)
def isolate_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Strip deployment variables from the environment for every test."""

    for name in _ENV_NAMES:
        monkeypatch.delenv(name, raising=False)
    for name in list(os.environ):
        if name.upper().startswith("POLICY_DEPLOY_"):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def reset_deploy_logger() -> Generator[None, None, None]:
    """Close handlers installed by a test so log files are released."""

    yield
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


@pytest.fixture
def quiet_console() -> Console:
    return Console(file=io.StringIO(), width=120)


@pytest.fixture
def deploy_settings(tmp_path: Path) -> DeploySettings:
    """Sequential settings rooted at ``tmp_path`` with the fake admin password."""

    return load_settings(project_root=tmp_path, admin_pass="s3cret", workers=1)


@pytest.fixture
def run_context(
    deploy_settings: DeploySettings,
    policy_service: FakePolicyService,
    quiet_console: Console,
) -> Generator[RunContext, None, None]:
    ctx = RunContext.create(
        deploy_settings, transport=policy_service.transport(), console=quiet_console
    )
    yield ctx
    ctx.close()
