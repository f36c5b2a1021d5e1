"""Application configuration management.

Handles loading and validating configuration from multiple sources:
    - TOML/JSON config files (``.prgate.toml`` in the working directory by default)
    - Environment variables (PRGATE_* prefix, ``__`` for nested keys)
    - Default values

Key components:
    - AppConfig: Main configuration model
    - load_config(): Safe config loading with fallback
    - ConfigLoadResult: Metadata about config source
"""

from __future__ import annotations

import json
import os
import tomllib
from collections.abc import Mapping
from contextlib import nullcontext
from dataclasses import dataclass
from pathlib import Path
from typing import Any
from unittest.mock import patch

from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

CONFIG_ENV_VAR = "PRGATE_CONFIG"
DEFAULT_CONFIG_NAME = ".prgate.toml"


class ConfigError(RuntimeError):
    """Raised when configuration cannot be loaded or validated."""


# -----------------------------------------------------------------------------
# Sub-configuration Models
# -----------------------------------------------------------------------------


class GateConfig(BaseModel):
    """Security gate configuration."""

    base_ref: str = Field(default="main", description="Revision the change is compared against.")
    exclusions: list[str] = Field(
        default_factory=lambda: ["*.example", "*.example.*", "*.sample", "*.template"],
        description="Path globs removed from the scanned diff (example/template files).",
    )
    required_ignores: list[str] = Field(
        default_factory=lambda: [
            ".env",
            ".env.*",
            "!.env.example",
            "*.key",
            "*.pem",
            ".prgate/feedback/",
            "node_modules/",
            ".DS_Store",
            "credentials.json",
            "config/secrets.yml",
        ],
        description="Patterns that must be present in the ignore file.",
    )
    ignore_file: Path = Field(default=Path(".gitignore"), description="Ignore file to audit.")
    credential_min_length: int = Field(
        default=20, description="Minimum opaque value length for the credential heuristic."
    )
    suppression_markers: list[str] = Field(
        default_factory=lambda: ["example", "placeholder", "your_", "dummy", "changeme", "${", "{{"],
        description="Case-insensitive substrings that mark a credential-shaped line as a placeholder.",
    )
    excerpt_limit: int = Field(default=5, description="Matching lines shown per pattern in reports.")

    @field_validator("credential_min_length")
    @classmethod
    def _check_min_length(cls, v: int) -> int:
        if v < 8:
            raise ValueError("credential_min_length must be at least 8")
        return v


class FeedbackConfig(BaseModel):
    """Review-feedback convergence loop configuration."""

    max_iterations: int = Field(default=3, description="Maximum fix/publish iterations.")
    poll_interval: float = Field(default=30.0, description="Seconds between comment polls.")
    max_attempts: int = Field(default=10, description="Poll attempts per iteration.")
    reviewer_identities: list[str] = Field(
        default_factory=lambda: ["claude", "bot", "github-actions"],
        description="Case-insensitive author substrings treated as reviewer bots.",
    )
    blocking_keywords: list[str] = Field(
        default_factory=lambda: [
            "must fix",
            "must",
            "critical",
            "security",
            "vulnerab",
            "error",
            "bug",
            "blocking",
            "breaking",
        ],
    )
    suggestion_keywords: list[str] = Field(
        default_factory=lambda: [
            "consider",
            "optional",
            "nit",
            "suggest",
            "could",
            "might",
            "minor",
            "style",
        ],
    )
    feedback_dir: Path = Field(
        default=Path(".prgate/feedback"), description="Where per-iteration feedback is written."
    )
    fix_command: str | None = Field(
        default=None,
        description="Command that applies fixes; receives PRGATE_FEEDBACK_FILE in its environment.",
    )

    @field_validator("max_iterations", "max_attempts")
    @classmethod
    def _check_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be at least 1")
        return v

    @field_validator("poll_interval")
    @classmethod
    def _check_interval(cls, v: float) -> float:
        if v < 0:
            raise ValueError("poll_interval cannot be negative")
        return v


class PublishConfig(BaseModel):
    """Remote publishing configuration."""

    remote: str = Field(default="origin", description="Remote the change is pushed to.")
    gh_binary: str = Field(default="gh", description="GitHub CLI executable.")
    draft: bool = Field(default=False, description="Open new pull requests as drafts.")


@dataclass
class ConfigLoadResult:
    path: Path
    file_loaded: bool
    env_overrides: set[str]
    error: str | None = None


class AppConfig(BaseSettings):
    """Application-wide configuration with nested sub-configs."""

    model_config = SettingsConfigDict(
        env_prefix="PRGATE_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    gate: GateConfig = Field(default_factory=GateConfig)
    feedback: FeedbackConfig = Field(default_factory=FeedbackConfig)
    publish: PublishConfig = Field(default_factory=PublishConfig)
    log_level: str = Field(default="INFO", description="Log level for prgate output.")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[
        PydanticBaseSettingsSource,
        PydanticBaseSettingsSource,
        PydanticBaseSettingsSource,
        PydanticBaseSettingsSource,
    ]:
        # Environment variables override config file entries.
        return (env_settings, init_settings, dotenv_settings, file_secret_settings)


def _resolve_config_path(config_path: Path | None, env_vars: Mapping[str, str]) -> Path:
    candidate = config_path or env_vars.get(CONFIG_ENV_VAR) or (Path.cwd() / DEFAULT_CONFIG_NAME)
    return Path(candidate).expanduser()


def _read_config_file(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}

    raw = path.read_text(encoding="utf-8")
    suffix = path.suffix.lower()
    parser = json.loads if suffix == ".json" else tomllib.loads

    try:
        data = parser(raw)
    except (json.JSONDecodeError, tomllib.TOMLDecodeError) as exc:
        raise ConfigError(f"Syntax error in {path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigError(f"Config root in {path} must be a mapping.")

    return data


def _detect_env_overrides(env_vars: Mapping[str, str]) -> set[str]:
    """Detect which fields are overridden by environment variables.

    For nested models, detects vars like PRGATE_FEEDBACK__MAX_ITERATIONS.
    """
    prefix = AppConfig.model_config.get("env_prefix", "")
    delimiter = AppConfig.model_config.get("env_nested_delimiter", "__")
    overrides: set[str] = set()

    nested_models: dict[str, type[BaseModel]] = {
        "gate": GateConfig,
        "feedback": FeedbackConfig,
        "publish": PublishConfig,
    }

    for group_name, model_cls in nested_models.items():
        for field in model_cls.model_fields:
            env_key = f"{prefix}{group_name}{delimiter}{field}".upper()
            if env_key in env_vars:
                overrides.add(f"{group_name}.{field}")

    if f"{prefix}LOG_LEVEL".upper() in env_vars:
        overrides.add("log_level")

    return overrides


def load_config(
    config_path: Path | None = None,
    env: Mapping[str, str] | None = None,
) -> tuple[AppConfig, ConfigLoadResult]:
    """
    Load configuration with Safe Mode fallback.
    If the file is invalid, returns default config + error message.
    """
    env_vars: Mapping[str, str] = os.environ if env is None else {**os.environ, **env}
    resolved_path = _resolve_config_path(config_path, env_vars)
    env_overrides = _detect_env_overrides(env_vars)

    error: str | None = None
    file_loaded = False
    file_data: dict[str, Any] = {}

    try:
        file_data = _read_config_file(resolved_path)
        file_loaded = resolved_path.exists()
    except ConfigError as exc:
        error = str(exc)

    context_manager = (
        patch.dict(os.environ, env_vars, clear=False) if env is not None else nullcontext()
    )

    try:
        with context_manager:
            config = AppConfig(**file_data)
    except ValidationError as exc:
        error = str(exc)
        config = AppConfig.model_construct()

    load_result = ConfigLoadResult(
        path=resolved_path,
        file_loaded=file_loaded,
        env_overrides=env_overrides,
        error=error,
    )

    return config, load_result
