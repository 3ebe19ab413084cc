"""Tests for the upload decision table and the policy deployer."""

import httpx
import pytest

from GuardrailPolicies.PolicyDeploy.context import RunContext
from GuardrailPolicies.PolicyDeploy.deployer import (
    DEFINITION_FORM_FIELD,
    SPEC_FORM_FIELD,
    PolicyDeployer,
    classify_response,
)
from GuardrailPolicies.PolicyDeploy.models import (
    BODY_EXCERPT_LIMIT,
    AlreadyExists,
    ExtractedArtifact,
    Failed,
    Installed,
    OutcomeKind,
)
from GuardrailPolicies.PolicyDeploy.scoped_secrets import AccessToken, ScopedSecret
from tests.fixtures.packages import policy_spec, policy_template
from tests.fixtures.policy_service import DUPLICATE_MESSAGE


class TestDecisionTable:
    @pytest.mark.parametrize("status", [200, 201])
    def test_success_is_installed_with_id(self, status: int) -> None:
        assert classify_response(status, '{"id": "4f1c", "name": "x"}') == Installed("4f1c")

    def test_success_without_id(self) -> None:
        assert classify_response(201, "") == Installed(None)

    def test_conflict_is_already_exists(self) -> None:
        assert classify_response(409, '{"code": 409}') == AlreadyExists()

    def test_500_with_duplicate_message_is_already_exists(self) -> None:
        body = f'{{"code": 500, "description": "{DUPLICATE_MESSAGE}: pii"}}'

        assert classify_response(500, body) == AlreadyExists()

    def test_plain_500_fails(self) -> None:
        outcome = classify_response(500, '{"message": "Internal server error"}')

        assert isinstance(outcome, Failed)
        assert outcome.http_status == 500

    @pytest.mark.parametrize("status", [400, 401, 403, 404, 415, 502])
    def test_other_statuses_fail(self, status: int) -> None:
        assert classify_response(status, DUPLICATE_MESSAGE).kind is OutcomeKind.FAILED

    def test_body_excerpt_is_truncated(self) -> None:
        outcome = classify_response(400, "x" * 5000)

        assert len(outcome.body_excerpt) == BODY_EXCERPT_LIMIT


def _artifact(name: str) -> ExtractedArtifact:
    return ExtractedArtifact(policy_spec=policy_spec(name), policy_definition=policy_template(name))


def _token(value: str = "access-token-abc") -> AccessToken:
    return AccessToken(value=ScopedSecret(value))


def test_deploy_sends_multipart_with_bearer(run_context: RunContext, policy_service) -> None:
    outcome = PolicyDeployer(run_context, _token()).deploy("pii-masking", _artifact("pii-masking"))

    assert outcome == Installed("id-pii-masking")
    call = policy_service.deploy_calls[0]
    assert call.headers["authorization"] == "Bearer access-token-abc"
    assert call.headers["content-type"].startswith("multipart/form-data")
    assert f'name="{SPEC_FORM_FIELD}"'.encode() in call.body
    assert f'name="{DEFINITION_FORM_FIELD}"'.encode() in call.body
    assert b'filename="artifact.j2"' in call.body


def test_second_upload_is_already_exists(run_context: RunContext, policy_service) -> None:
    deployer = PolicyDeployer(run_context, _token())
    deployer.deploy("url-guardrail", _artifact("url-guardrail"))

    assert deployer.deploy("url-guardrail", _artifact("url-guardrail")) == AlreadyExists()


def test_expired_token_is_failed_not_retried(run_context: RunContext, policy_service) -> None:
    outcome = PolicyDeployer(run_context, _token("expired")).deploy(
        "url-guardrail", _artifact("url-guardrail")
    )

    assert isinstance(outcome, Failed)
    assert outcome.http_status == 401
    assert len(policy_service.deploy_calls) == 1


def test_transport_failure_is_failed(deploy_settings, quiet_console) -> None:
    def timeout(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    with RunContext.create(
        deploy_settings, transport=httpx.MockTransport(timeout), console=quiet_console
    ) as ctx:
        outcome = PolicyDeployer(ctx, _token()).deploy("slow", _artifact("slow"))

    assert isinstance(outcome, Failed)
    assert outcome.http_status is None
    assert "timed out" in outcome.body_excerpt
