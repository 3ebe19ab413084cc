"""End-to-end deployment runs against the in-memory publisher service."""

from pathlib import Path

import pytest

from GuardrailPolicies.PolicyDeploy.cancellation import CancellationToken
from GuardrailPolicies.PolicyDeploy.errors import (
    EmptyCredentialFile,
    NoPackagesFound,
    RegistrationParseError,
    TokenParseError,
)
from GuardrailPolicies.PolicyDeploy.models import AlreadyExists, Failed, Installed
from GuardrailPolicies.PolicyDeploy.orchestrator import create_executor, run_deployment
from GuardrailPolicies.PolicyDeploy.settings import load_settings
from tests.fixtures.packages import corrupt_member, policy_spec

POLICIES = ("azure-content-safety-guardrail", "pii-masking-regex", "word-count-guardrail")


@pytest.fixture
def three_packages(make_package) -> None:
    for name in POLICIES:
        prefix = "content-moderation" if name.startswith("azure-content-safety") else ""
        make_package(name, member_prefix=prefix)


def _run(settings, service, console, **kwargs):
    return run_deployment(
        settings, transport=service.transport(), console=console, prompt=None, **kwargs
    )


def test_installed_and_conflict_example(deploy_settings, policy_service, quiet_console, make_package) -> None:
    make_package("pii-masking-regex")
    make_package("url-guardrail")
    policy_service.deploy_responses["url-guardrail"] = (409, {"code": 409})

    summary = _run(deploy_settings, policy_service, quiet_console)

    assert (summary.installed, summary.already_exists, summary.failed) == (1, 1, 0)
    assert summary.exit_code == 0


def test_missing_template_example(deploy_settings, policy_service, quiet_console, make_package) -> None:
    make_package(
        "word-count-guardrail",
        members={"policy-definition.json": policy_spec("word-count-guardrail")},
    )

    summary = _run(deploy_settings, policy_service, quiet_console)

    assert summary.failed == 1
    assert summary.total == 1
    assert summary.exit_code != 0
    assert not policy_service.deploy_calls


@pytest.mark.parametrize("duplicate_mode", ["409", "500"])
def test_second_run_is_idempotent(
    deploy_settings, policy_service, quiet_console, three_packages, duplicate_mode: str
) -> None:
    policy_service.duplicate_mode = duplicate_mode

    first = _run(deploy_settings, policy_service, quiet_console)
    second = _run(deploy_settings, policy_service, quiet_console)

    assert first.installed == len(POLICIES)
    assert second.installed == 0
    assert second.already_exists == len(POLICIES)
    assert second.failed == 0
    assert second.exit_code == 0


def test_no_packages_is_fatal_before_any_upload(deploy_settings, policy_service, quiet_console) -> None:
    with pytest.raises(NoPackagesFound):
        _run(deploy_settings, policy_service, quiet_console)

    assert not policy_service.deploy_calls


def test_token_failure_attempts_no_packages(
    deploy_settings, policy_service, quiet_console, three_packages
) -> None:
    policy_service.token_response = (200, {"access_token": None})

    with pytest.raises(TokenParseError):
        _run(deploy_settings, policy_service, quiet_console)

    assert not policy_service.deploy_calls
    assert not deploy_settings.extract_dir.exists()


def test_registration_failure_attempts_no_packages(
    deploy_settings, policy_service, quiet_console, three_packages
) -> None:
    policy_service.registration_response = (200, {"clientId": "only-id"})

    with pytest.raises(RegistrationParseError):
        _run(deploy_settings, policy_service, quiet_console)

    assert not policy_service.deploy_calls


def test_missing_credential_makes_no_http_calls(tmp_path: Path, policy_service, quiet_console, three_packages) -> None:
    settings = load_settings(project_root=tmp_path, workers=1)

    with pytest.raises(EmptyCredentialFile):
        run_deployment(
            settings, transport=policy_service.transport(), console=quiet_console, prompt=lambda: ""
        )

    assert policy_service.calls == []


def test_per_package_failures_do_not_stop_the_run(
    deploy_settings, policy_service, quiet_console, three_packages
) -> None:
    policy_service.deploy_responses["pii-masking-regex"] = (500, {"message": "Internal server error"})

    summary = _run(deploy_settings, policy_service, quiet_console)

    outcomes = {r.package.policy_name: r.outcome for r in summary.results}
    assert isinstance(outcomes["pii-masking-regex"], Failed)
    assert outcomes["pii-masking-regex"].http_status == 500
    assert outcomes["azure-content-safety-guardrail"] == Installed("id-azure-content-safety-guardrail")
    assert isinstance(outcomes["word-count-guardrail"], Installed)
    assert summary.total == summary.installed + summary.already_exists + summary.failed == 3
    assert summary.exit_code == 1


@pytest.mark.parametrize("workers", [1, 2])
def test_corrupt_archive_does_not_stop_the_run(
    tmp_path: Path, policy_service, quiet_console, make_package, workers: int
) -> None:
    corrupt_member(make_package("aaa-guardrail"), "policy-definition.json")
    make_package("zzz-guardrail")
    settings = load_settings(project_root=tmp_path, admin_pass="s3cret", workers=workers)

    summary = _run(settings, policy_service, quiet_console)

    assert (summary.installed, summary.failed) == (1, 1)
    assert summary.failures()[0].package.policy_name == "aaa-guardrail"
    assert len(policy_service.deploy_calls) == 1


def test_bounded_pool_keeps_discovery_order(tmp_path: Path, policy_service, quiet_console, make_package) -> None:
    names = [f"guardrail-{index:02d}" for index in range(12)]
    for name in names:
        make_package(name)
    policy_service.installed["guardrail-03"] = "id-existing"
    settings = load_settings(project_root=tmp_path, admin_pass="s3cret", workers=4)

    summary = _run(settings, policy_service, quiet_console)

    assert [r.package.policy_name for r in summary.results] == names
    assert summary.installed == 11
    assert summary.already_exists == 1
    assert isinstance(dict((r.package.policy_name, r.outcome) for r in summary.results)["guardrail-03"], AlreadyExists)


def test_cancelled_run_records_every_package(
    deploy_settings, policy_service, quiet_console, three_packages
) -> None:
    token = CancellationToken()
    token.cancel("interrupted")

    summary = _run(deploy_settings, policy_service, quiet_console, cancellation=token)

    assert summary.failed == summary.total == len(POLICIES)
    assert all(r.outcome.body_excerpt == "cancelled: interrupted" for r in summary.results)
    assert not policy_service.deploy_calls


def test_run_artifacts_are_kept(deploy_settings, policy_service, quiet_console, three_packages) -> None:
    stale = deploy_settings.extract_dir / "removed-policy"
    stale.mkdir(parents=True)

    _run(deploy_settings, policy_service, quiet_console)

    assert not stale.exists()
    assert (deploy_settings.extract_dir / "pii-masking-regex" / "artifact.j2").is_file()
    log_text = deploy_settings.log_path.read_text(encoding="utf-8")
    assert log_text.startswith("WSO2 APIM Policy Installation Script")
    assert "[HEADER] Processing: pii-masking-regex" in log_text
    assert "[SUCCESS]   ✓ Policy deployed successfully" in log_text
    assert "Installation completed at:" in log_text
    assert "s3cret" not in log_text
    assert policy_service.access_token not in log_text


def test_log_is_append_only(deploy_settings, policy_service, quiet_console, three_packages) -> None:
    _run(deploy_settings, policy_service, quiet_console)
    _run(deploy_settings, policy_service, quiet_console)

    assert deploy_settings.log_path.read_text(encoding="utf-8").count("Installation started at:") == 2


def test_create_executor() -> None:
    assert create_executor(1) == (None, False)
    executor, needs_shutdown = create_executor(3)
    try:
        assert needs_shutdown
        assert executor is not None
    finally:
        executor.shutdown()
