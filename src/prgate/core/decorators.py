from __future__ import annotations

import functools
from collections.abc import Callable
from typing import Any, NoReturn, TypeVar

import typer

from prgate.core.config import ConfigError
from prgate.core.console import console
from prgate.core.result import ConfigurationError, PRGateError

F = TypeVar("F", bound=Callable[..., Any])

EXIT_FAILURE = 1
EXIT_CONFIGURATION = 2


def _handle_exception(exc: Exception) -> NoReturn:
    console.print(f"[red]{exc}[/red]")
    code = EXIT_CONFIGURATION if isinstance(exc, (ConfigurationError, ConfigError)) else EXIT_FAILURE
    raise typer.Exit(code=code)


def handle_exceptions(func: F) -> F:
    """Decorate CLI entrypoints to present friendly errors and exit cleanly."""

    @functools.wraps(func)
    def sync_wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except (PRGateError, ConfigError, PermissionError) as exc:
            _handle_exception(exc)

    return sync_wrapper  # type: ignore[return-value]


__all__ = ["EXIT_CONFIGURATION", "EXIT_FAILURE", "handle_exceptions"]
