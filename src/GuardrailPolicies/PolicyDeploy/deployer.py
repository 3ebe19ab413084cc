"""Upload extracted policy artefacts and classify the service's answer.

The publisher API signals "already there" in two ways: a clean ``409`` or, on
the v4 API, a ``500`` whose body carries a known message.  Both are mapped to
:class:`AlreadyExists` so a re-run is idempotent.  Classification is a
first-match decision table:

=========  ==========================================  ==================
status     body condition                              outcome
=========  ==========================================  ==================
200, 201   any                                         Installed(id)
409        any                                         AlreadyExists
500        contains a known duplicate message          AlreadyExists
other      any                                         Failed(status, body)
=========  ==========================================  ==================
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Callable, FrozenSet, Mapping, Optional, Tuple

import httpx

from .context import RunContext
from .errors import DeploymentError
from .extraction import POLICY_DEFINITION_NAME, POLICY_SPEC_NAME
from .logging_utils import log_success
from .models import AlreadyExists, DeploymentOutcome, ExtractedArtifact, Failed, Installed
from .scoped_secrets import AccessToken

__all__ = [
    "POLICY_CREATE_PATH",
    "SPEC_FORM_FIELD",
    "DEFINITION_FORM_FIELD",
    "DUPLICATE_POLICY_MESSAGES",
    "SERVICE_API_VERSION",
    "OutcomeRule",
    "OUTCOME_RULES",
    "classify_response",
    "PolicyDeployer",
]

SERVICE_API_VERSION = "v4"
POLICY_CREATE_PATH = f"/api/am/publisher/{SERVICE_API_VERSION}/operation-policies"
SPEC_FORM_FIELD = "policySpecFile"
DEFINITION_FORM_FIELD = "synapsePolicyDefinitionFile"

#: Duplicate-name messages returned with HTTP 500, per publisher API version.
#: Revisit when the service's error contract changes.
DUPLICATE_POLICY_MESSAGES: Mapping[str, Tuple[str, ...]] = {
    "v4": ("Existing common operation policy found for the same name",),
}


def _policy_id(body: str) -> Optional[str]:
    try:
        payload = json.loads(body)
    except (json.JSONDecodeError, ValueError):
        return None
    if not isinstance(payload, dict):
        return None
    value = payload.get("id")
    if value is None or value == "" or value == "null":
        return None
    return str(value)


def _contains_duplicate_message(body: str, api_version: str = SERVICE_API_VERSION) -> bool:
    return any(message in body for message in DUPLICATE_POLICY_MESSAGES.get(api_version, ()))


@dataclass(frozen=True)
class OutcomeRule:
    """One row of the response decision table."""

    statuses: FrozenSet[int]
    build: Callable[[int, str], DeploymentOutcome]
    body_matches: Optional[Callable[[str], bool]] = None

    def applies(self, status: int, body: str) -> bool:
        if status not in self.statuses:
            return False
        return self.body_matches is None or self.body_matches(body)


OUTCOME_RULES: Tuple[OutcomeRule, ...] = (
    OutcomeRule(frozenset({200, 201}), lambda status, body: Installed(_policy_id(body))),
    OutcomeRule(frozenset({409}), lambda status, body: AlreadyExists()),
    OutcomeRule(
        frozenset({500}),
        lambda status, body: AlreadyExists(),
        body_matches=_contains_duplicate_message,
    ),
)


def classify_response(status: int, body: str) -> DeploymentOutcome:
    """Map an HTTP status and body to a deployment outcome.

    Examples:
        >>> classify_response(201, '{"id": "abc"}')
        Installed(policy_id='abc')
        >>> classify_response(409, "")
        AlreadyExists()
        >>> classify_response(500, "boom").kind.value
        'failed'
    """
    for rule in OUTCOME_RULES:
        if rule.applies(status, body):
            return rule.build(status, body)
    return Failed.from_body(status, body)


class PolicyDeployer:
    """Submit one policy per call to the operation-policies endpoint."""

    def __init__(self, ctx: RunContext, token: AccessToken) -> None:
        self._ctx = ctx
        self._token = token
        self._logger = ctx.logger

    def submit(self, artifact: ExtractedArtifact) -> httpx.Response:
        """POST the multipart upload; raise :class:`DeploymentError` on transport failure."""

        files = {
            SPEC_FORM_FIELD: (POLICY_SPEC_NAME, artifact.policy_spec, "application/json"),
            DEFINITION_FORM_FIELD: (
                POLICY_DEFINITION_NAME,
                artifact.policy_definition,
                "application/octet-stream",
            ),
        }
        try:
            return self._ctx.client.post(
                POLICY_CREATE_PATH,
                files=files,
                headers={"Authorization": self._token.authorization_header()},
                timeout=self._ctx.settings.deploy_timeout,
            )
        except httpx.HTTPError as exc:
            raise DeploymentError(f"Policy upload failed: {exc}") from exc

    def deploy(self, policy_name: str, artifact: ExtractedArtifact) -> DeploymentOutcome:
        """Deploy ``artifact`` and return the classified outcome; never raises for HTTP results."""

        self._logger.info("Deploying policy: %s", policy_name)
        if artifact.spec_path is not None:
            self._logger.info("Policy definition: %s", artifact.spec_path)
        if artifact.definition_path is not None:
            self._logger.info("Artifact template: %s", artifact.definition_path)

        try:
            response = self.submit(artifact)
        except DeploymentError as exc:
            self._logger.error("  ✗ Failed to deploy policy %s: %s", policy_name, exc)
            return Failed.from_body(exc.status_code, str(exc))

        outcome = classify_response(response.status_code, response.text)
        self._report(policy_name, response.status_code, outcome)
        return outcome

    def _report(self, policy_name: str, status: int, outcome: DeploymentOutcome) -> None:
        if isinstance(outcome, Installed):
            log_success(self._logger, "  ✓ Policy deployed successfully")
            if outcome.policy_id:
                self._logger.info("  Policy ID: %s", outcome.policy_id)
        elif isinstance(outcome, AlreadyExists):
            if status == 409:
                log_success(self._logger, "  ✓ Policy already exists (conflict - skipped duplicate)")
            else:
                log_success(self._logger, "  ✓ Policy already exists (skipped duplicate)")
        else:
            self._logger.error("  ✗ Failed to deploy policy %s (HTTP %s)", policy_name, status)
            self._logger.info("  Response: %s", outcome.body_excerpt)
