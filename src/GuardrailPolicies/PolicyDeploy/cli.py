"""Typer CLI for deploying guardrail policies.

Commands:
- ``deploy`` (default when no subcommand is given): full installation run
- ``discover``: list distribution archives and their extraction layout
- ``config``: show the effective settings with secrets masked

Exit codes: ``0`` when every package is installed or already present, ``1``
when any package failed or a fatal precondition (credential, token, packages)
was not met, ``2`` for invalid settings.

Example:
    $ ADMIN_PASS_FILE=~/.wso2-admin-pass policy-deploy --workers 2
    $ policy-deploy discover --root ./
"""

from __future__ import annotations

import json
import signal
import sys
from enum import Enum
from pathlib import Path
from typing import List, Optional, Sequence

import typer
from rich.console import Console
from rich.table import Table

from . import __version__
from .cancellation import CancellationToken
from .discovery import PackageLocator
from .errors import FATAL_ERRORS, ConfigError, NoPackagesFound
from .extraction import layout_for
from .logging_utils import setup_logging
from .orchestrator import run_deployment
from .settings import DeploySettings, load_settings

_DEFAULT_SUBCOMMAND = "deploy"
_KNOWN_SUBCOMMANDS = {"deploy", "discover", "config"}
_APP_ONLY_OPTIONS = {"--help", "--version", "-V"}


class OutputFormat(str, Enum):
    """Output format choices for summaries and listings."""

    TABLE = "table"
    JSON = "json"


_console = Console()

app = typer.Typer(
    name="policy-deploy",
    help="Deploy built AI guardrail policies to WSO2 API Manager",
    no_args_is_help=True,
    add_completion=False,
)


def _normalize_args(args: Sequence[str]) -> List[str]:
    """Inject the default subcommand when callers omit it.

    Args:
        args: Original CLI argument vector supplied to :func:`cli_main`.

    Returns:
        ``args`` unchanged when it starts with a subcommand or only asks for help or
        the version; otherwise ``args`` prefixed with ``deploy`` so options such
        as ``--workers 2`` apply to the default command.

    Examples:
        >>> _normalize_args(["--workers", "2"])
        ['deploy', '--workers', '2']
        >>> _normalize_args(["--version"])
        ['--version']
    """

    normalized: list[str] = list(args)
    if normalized and normalized[0] in _KNOWN_SUBCOMMANDS:
        return normalized
    if normalized and all(token in _APP_ONLY_OPTIONS for token in normalized):
        return normalized
    return [_DEFAULT_SUBCOMMAND, *normalized]


def _load(**overrides: object) -> DeploySettings:
    try:
        return load_settings(**overrides)
    except ConfigError as exc:
        _console.print(f"[red]Error loading settings: {exc}[/red]")
        raise typer.Exit(2)


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version and exit",
        is_eager=True,
    ),
) -> None:
    """Deploy built AI guardrail policies to WSO2 API Manager.

    Password sources, first match wins: ADMIN_PASS, the file named by
    ADMIN_PASS_FILE, then an interactive prompt.  Connection settings come from
    APIM_HOST (default localhost), APIM_PORT (default 9443) and ADMIN_USER
    (default admin).
    """
    if version:
        typer.echo(f"policy-deploy {__version__}")
        raise typer.Exit(0)
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit(0)


@app.command()
def deploy(
    root: Optional[Path] = typer.Option(
        None, "--root", "-r", help="Project root containing mediation/ai/"
    ),
    host: Optional[str] = typer.Option(None, "--host", help="APIM hostname (APIM_HOST)"),
    port: Optional[int] = typer.Option(None, "--port", help="APIM port (APIM_PORT)"),
    user: Optional[str] = typer.Option(None, "--user", "-u", help="Admin username (ADMIN_USER)"),
    password_file: Optional[Path] = typer.Option(
        None, "--password-file", help="File containing the admin password (ADMIN_PASS_FILE)"
    ),
    workers: Optional[int] = typer.Option(
        None, "--workers", "-w", help="Concurrent uploads (default 4)"
    ),
    timeout: Optional[float] = typer.Option(
        None, "--timeout", help="Per-upload timeout in seconds (default 30)"
    ),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="DEBUG, INFO, WARNING, ERROR"),
    format_output: OutputFormat = typer.Option(
        OutputFormat.TABLE, "--format", "-f", help="Summary output format", case_sensitive=False
    ),
) -> None:
    """Install every built policy package through the Publisher REST API."""

    settings = _load(
        project_root=root,
        host=host,
        port=port,
        admin_user=user,
        admin_pass_file=password_file,
        workers=workers,
        deploy_timeout=timeout,
        log_level=log_level,
    )

    cancellation = CancellationToken()
    previous = signal.getsignal(signal.SIGINT)
    signal.signal(signal.SIGINT, lambda signum, frame: cancellation.cancel("interrupted"))
    try:
        summary = run_deployment(settings, cancellation=cancellation, console=_console)
    except FATAL_ERRORS:
        raise typer.Exit(1)
    finally:
        signal.signal(signal.SIGINT, previous)

    if format_output is OutputFormat.JSON:
        typer.echo(json.dumps(summary.to_dict(), indent=2))
    raise typer.Exit(summary.exit_code)


@app.command()
def discover(
    root: Optional[Path] = typer.Option(
        None, "--root", "-r", help="Project root containing mediation/ai/"
    ),
    format_output: OutputFormat = typer.Option(
        OutputFormat.TABLE, "--format", "-f", help="Listing output format", case_sensitive=False
    ),
) -> None:
    """List distribution packages without contacting the service."""

    settings = _load(project_root=root)
    logger = setup_logging(level="WARNING", console=_console)
    try:
        packages = PackageLocator(settings.policies_dir, logger=logger).locate()
    except NoPackagesFound as exc:
        _console.print(f"[red]{exc}[/red]")
        raise typer.Exit(1)

    if format_output is OutputFormat.JSON:
        payload = [
            {
                "policy": package.policy_name,
                "archive": str(package.archive_path),
                "layout": layout_for(package.archive_name).name,
            }
            for package in packages
        ]
        typer.echo(json.dumps(payload, indent=2))
        return

    table = Table(title=f"Distribution packages ({len(packages)})")
    table.add_column("Policy")
    table.add_column("Layout")
    table.add_column("Archive")
    for package in packages:
        table.add_row(
            package.policy_name,
            layout_for(package.archive_name).name,
            str(package.archive_path),
        )
    _console.print(table)


@app.command("config")
def show_config(
    root: Optional[Path] = typer.Option(None, "--root", "-r", help="Project root"),
) -> None:
    """Show the effective configuration (secrets masked)."""

    settings = _load(project_root=root)
    typer.echo(json.dumps(settings.describe(), indent=2))


def cli_main(argv: Optional[Sequence[str]] = None) -> None:
    """Console-script entry point applying default-subcommand normalisation."""

    args = sys.argv[1:] if argv is None else argv
    app(args=_normalize_args(args), prog_name="policy-deploy")


__all__ = ["OutputFormat", "app", "cli_main", "deploy", "discover", "show_config", "main"]
