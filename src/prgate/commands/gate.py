from __future__ import annotations

import asyncio
from collections import defaultdict
from pathlib import Path
from typing import TYPE_CHECKING

import typer
from rich import box
from rich.panel import Panel
from rich.table import Table

from prgate.core.console import console
from prgate.core.decorators import EXIT_FAILURE, handle_exceptions
from prgate.core.result import ConfigurationError, Err, Ok
from prgate.git.client import AsyncRepo
from prgate.security.gate import SecurityGate
from prgate.security.patterns import PatternRegistry
from prgate.security.types import FindingKind, GateVerdict, ScanFinding

if TYPE_CHECKING:
    from prgate.main import AppState

SECRET_ADVICE = (
    "Please remove these secrets before pushing.\n"
    "Use environment variables or a secret manager instead of literals."
)
CREDENTIAL_ADVICE = (
    "If these are legitimate non-secret values, consider:\n"
    "  - Using 'example' in the value name\n"
    "  - Using obvious placeholders like 'YOUR_API_KEY'\n"
    "  - Moving them to .env.example with fake values"
)
ENV_FILE_ADVICE = "Environment files should never be committed. Unstage them and keep them ignored."


def open_repo(path: Path) -> AsyncRepo:
    match asyncio.run(AsyncRepo.open(path.expanduser())):
        case Ok(repo):
            return repo
        case Err(err):
            raise ConfigurationError(f"Not a git repository: {path}", context={"git": err.message})


def _findings_table(title: str, findings: list[ScanFinding], excerpt_limit: int) -> Table:
    table = Table(title=title, box=box.SIMPLE_HEAVY, expand=True, title_justify="left")
    table.add_column("Location", style="cyan", no_wrap=True)
    table.add_column("Match", style="red", no_wrap=True)
    table.add_column("Line", style="dim")
    for finding in findings[:excerpt_limit]:
        table.add_row(finding.location, finding.excerpt, finding.context)
    hidden = len(findings) - excerpt_limit
    if hidden > 0:
        table.caption = f"... and {hidden} more"
    return table


def render_verdict(verdict: GateVerdict, excerpt_limit: int = 5) -> None:
    """Print every finding grouped by pattern, plus remediation advice."""
    if verdict.passed:
        console.print("[green]All security checks passed.[/green]")
        return

    env_files = verdict.by_kind(FindingKind.ENV_FILE)
    if env_files:
        listing = "\n".join(f"  - {finding.excerpt}" for finding in env_files)
        console.print(
            Panel(
                f"[bold red]BLOCKED: Environment file(s) in commit![/bold red]\n\n{listing}\n\n{ENV_FILE_ADVICE}",
                border_style="red",
            )
        )

    secrets = verdict.by_kind(FindingKind.SECRET)
    if secrets:
        grouped: dict[str, list[ScanFinding]] = defaultdict(list)
        for finding in secrets:
            grouped[finding.pattern_label].append(finding)
        console.print("[bold red]BLOCKED: Potential secret detected![/bold red]")
        for label, findings in grouped.items():
            console.print(_findings_table(f"Pattern: {label}", findings, excerpt_limit))
        console.print(SECRET_ADVICE)

    credentials = list(verdict.by_kind(FindingKind.HARDCODED_CREDENTIAL))
    if credentials:
        console.print("[bold red]BLOCKED: Potential hardcoded credential detected![/bold red]")
        console.print(
            _findings_table("Suspicious lines (excluding examples/placeholders)", credentials, excerpt_limit)
        )
        console.print(CREDENTIAL_ADVICE)


@handle_exceptions
def check(
    ctx: typer.Context,
    base: str | None = typer.Option(None, "--base", "-b", help="Base revision (default: gate.base_ref)."),
    head: str = typer.Option("HEAD", "--head", help="Head revision to scan."),
    staged: bool = typer.Option(False, "--staged", help="Scan the index instead of a head revision."),
    repo_path: Path = typer.Option(Path("."), "--repo", "-r", help="Repository path."),
) -> None:
    """Run the pre-publish security gate."""
    state: AppState = ctx.obj
    gate_config = state.config.gate
    repo = open_repo(repo_path)

    gate = SecurityGate(repo, gate_config)
    verdict = asyncio.run(gate.run(base, None if staged else head))
    render_verdict(verdict, gate_config.excerpt_limit)
    if not verdict.passed:
        raise typer.Exit(code=EXIT_FAILURE)


def patterns() -> None:
    """List the secret signatures the gate scans for."""
    registry = PatternRegistry.default()
    table = Table(title=f"Secret patterns ({len(registry)})", box=box.SIMPLE_HEAVY, expand=True)
    table.add_column("#", style="dim", no_wrap=True)
    table.add_column("Label", style="cyan", no_wrap=True)
    table.add_column("Expression", style="white")
    for index, pattern in enumerate(registry, start=1):
        table.add_row(str(index), pattern.label, pattern.expression.pattern)
    console.print(table)
