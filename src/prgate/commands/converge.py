from __future__ import annotations

import asyncio
from pathlib import Path
from typing import TYPE_CHECKING

import typer
from pydantic import ValidationError
from rich import box
from rich.panel import Panel
from rich.table import Table

from prgate.commands.gate import open_repo, render_verdict
from prgate.core.config import AppConfig, ConfigError, FeedbackConfig
from prgate.core.console import console
from prgate.core.decorators import EXIT_FAILURE, handle_exceptions
from prgate.core.result import GateBlocked
from prgate.feedback.classifier import FeedbackClassifier
from prgate.feedback.controller import ConvergenceController
from prgate.feedback.fixer import CommandFixApplier
from prgate.feedback.github import GhCommentSource, GhPublisher, ensure_gh_ready
from prgate.feedback.poller import FeedbackPoller
from prgate.feedback.types import ConvergenceResult, ConvergenceStatus
from prgate.git.client import AsyncRepo
from prgate.security.gate import SecurityGate

if TYPE_CHECKING:
    from prgate.main import AppState

EXIT_INTERRUPTED = 130

STATUS_EXIT_CODES: dict[ConvergenceStatus, int] = {
    ConvergenceStatus.CLEAN: 0,
    ConvergenceStatus.LIMIT_REACHED: 3,
    ConvergenceStatus.LOOP_DETECTED: 4,
    ConvergenceStatus.NO_PROGRESS: 5,
}

_STATUS_STYLE = {
    ConvergenceStatus.CLEAN: "green",
    ConvergenceStatus.LIMIT_REACHED: "yellow",
    ConvergenceStatus.LOOP_DETECTED: "red",
    ConvergenceStatus.NO_PROGRESS: "yellow",
    ConvergenceStatus.RUNNING: "yellow",
}


def _apply_overrides(
    config: AppConfig,
    *,
    max_iterations: int | None,
    interval: float | None,
    attempts: int | None,
    fix_command: str | None,
) -> AppConfig:
    updates = {
        key: value
        for key, value in {
            "max_iterations": max_iterations,
            "poll_interval": interval,
            "max_attempts": attempts,
            "fix_command": fix_command,
        }.items()
        if value is not None
    }
    if not updates:
        return config
    try:
        feedback = FeedbackConfig.model_validate({**config.feedback.model_dump(), **updates})
    except ValidationError as exc:
        raise ConfigError(f"Invalid feedback option: {exc}") from exc
    return config.model_copy(update={"feedback": feedback})


def build_publisher(repo: AsyncRepo, config: AppConfig) -> GhPublisher:
    return GhPublisher(
        repo,
        SecurityGate(repo, config.gate),
        base_ref=config.gate.base_ref,
        remote=config.publish.remote,
        gh_binary=config.publish.gh_binary,
        draft=config.publish.draft,
    )


def build_controller(repo: AsyncRepo, config: AppConfig) -> ConvergenceController:
    feedback = config.feedback
    return ConvergenceController(
        GhCommentSource(repo.path, config.publish.gh_binary),
        CommandFixApplier(repo, feedback.feedback_dir, feedback.fix_command),
        build_publisher(repo, config),
        poller=FeedbackPoller(
            feedback.reviewer_identities, feedback.poll_interval, feedback.max_attempts
        ),
        classifier=FeedbackClassifier(feedback.blocking_keywords, feedback.suggestion_keywords),
        max_iterations=feedback.max_iterations,
    )


def render_result(result: ConvergenceResult) -> None:
    table = Table(title=f"Review iterations on #{result.change_id}", box=box.SIMPLE_HEAVY, expand=True)
    table.add_column("#", style="cyan", no_wrap=True)
    table.add_column("New", justify="right")
    table.add_column("Blocking", justify="right", style="red")
    table.add_column("Suggestion", justify="right", style="yellow")
    table.add_column("Other", justify="right", style="dim")
    table.add_column("Locations", style="white")
    table.add_column("Files changed", style="white")
    for snapshot in result.iterations:
        counts = snapshot.classified_counts
        table.add_row(
            str(snapshot.iteration),
            str(len(snapshot.new_comments)),
            str(counts.blocking),
            str(counts.suggestion),
            str(counts.other),
            ", ".join(f"{path}:{line}" for path, line in sorted(snapshot.locations)) or "-",
            ", ".join(snapshot.files_changed) or "-",
        )
    if result.iterations:
        console.print(table)

    style = _STATUS_STYLE[result.status]
    console.print(
        Panel(
            f"[bold {style}]{result.status.value}[/bold {style}]\n\n{result.message}",
            title="Convergence",
            border_style=style,
        )
    )


def _converge(repo: AsyncRepo, config: AppConfig, change_id: str) -> None:
    controller = build_controller(repo, config)
    try:
        result = asyncio.run(controller.run(change_id))
    except GateBlocked as exc:
        render_result(controller.result())
        render_verdict(exc.verdict, config.gate.excerpt_limit)
        raise typer.Exit(code=EXIT_FAILURE) from exc
    except KeyboardInterrupt as exc:
        render_result(controller.result())
        raise typer.Exit(code=EXIT_INTERRUPTED) from exc

    render_result(result)
    code = STATUS_EXIT_CODES[result.status]
    if code:
        raise typer.Exit(code=code)


@handle_exceptions
def converge(
    ctx: typer.Context,
    pr: str = typer.Option(..., "--pr", help="Pull request number to converge."),
    repo_path: Path = typer.Option(Path("."), "--repo", "-r", help="Repository path."),
    max_iterations: int | None = typer.Option(None, "--max-iterations", help="Override feedback.max_iterations."),
    interval: float | None = typer.Option(None, "--interval", help="Seconds between polls."),
    attempts: int | None = typer.Option(None, "--attempts", help="Poll attempts per iteration."),
    fix_command: str | None = typer.Option(None, "--fix-command", help="Command that applies fixes."),
) -> None:
    """Fetch reviewer feedback, apply fixes and re-publish until clean or a limit is hit."""
    state: AppState = ctx.obj
    config = _apply_overrides(
        state.config,
        max_iterations=max_iterations,
        interval=interval,
        attempts=attempts,
        fix_command=fix_command,
    )
    repo = open_repo(repo_path)
    asyncio.run(ensure_gh_ready(config.publish.gh_binary, repo.path))
    _converge(repo, config, pr)


@handle_exceptions
def ship(
    ctx: typer.Context,
    message: str = typer.Option(..., "--message", "-m", help="Commit message."),
    repo_path: Path = typer.Option(Path("."), "--repo", "-r", help="Repository path."),
    no_converge: bool = typer.Option(False, "--no-converge", help="Publish only; skip the review loop."),
    fix_command: str | None = typer.Option(None, "--fix-command", help="Command that applies fixes."),
) -> None:
    """Stage, gate, commit and publish the current change, then converge on review feedback."""
    state: AppState = ctx.obj
    config = _apply_overrides(
        state.config, max_iterations=None, interval=None, attempts=None, fix_command=fix_command
    )
    repo = open_repo(repo_path)
    asyncio.run(ensure_gh_ready(config.publish.gh_binary, repo.path))

    try:
        published = asyncio.run(build_publisher(repo, config).publish(message))
    except GateBlocked as exc:
        render_verdict(exc.verdict, config.gate.excerpt_limit)
        raise typer.Exit(code=EXIT_FAILURE) from exc

    verb = "Opened" if published.created else "Updated"
    console.print(f"[green]{verb}[/green] pull request #{published.change_id} {published.url or ''}".rstrip())
    if no_converge:
        return
    _converge(repo, config, published.change_id)
