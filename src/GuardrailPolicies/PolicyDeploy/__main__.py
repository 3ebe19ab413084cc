"""Entry point for CLI invocation via python -m."""

from GuardrailPolicies.PolicyDeploy.cli import cli_main

if __name__ == "__main__":
    cli_main()
